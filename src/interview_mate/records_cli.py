"""Command-line utilities for browsing stored interview records."""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .auth import Principal
from .config import AppSettings
from .formatter import BlockKind, SummaryBlock, format_summary
from .models import InterviewRecord
from .pdf_exporter import SummaryExportError, SummaryPDFExporter
from .record_store import RecordRepository, RecordStoreError
from .search import RecordSearch

# The CLI runs with operator rights and sees every record.
OPERATOR = Principal(email="operator@localhost", role="admin", privileged=True)

CommandHandler = Callable[[RecordRepository, AppSettings, argparse.Namespace], int]


def run_records_cli(
    settings: AppSettings,
    argv: Optional[List[str]] = None,
    repository: Optional[RecordRepository] = None,
) -> int:
    """Entry point for record-related CLI commands."""

    repo = repository or RecordRepository(
        archive_path=settings.record_log,
        redis_url=settings.redis_url,
    )
    parser = argparse.ArgumentParser(
        prog="interview-mate records",
        description="List, inspect and export stored interview records.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    list_parser = subparsers.add_parser("list", help="Show recent interview records")
    list_parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=10,
        help="Maximum number of records to display (default: 10)",
    )
    list_parser.add_argument(
        "-q",
        "--query",
        default="",
        help="Space separated keywords; every keyword must match",
    )
    list_parser.set_defaults(func=_handle_list)

    show_parser = subparsers.add_parser("show", help="Display every answer of a record")
    show_parser.add_argument("id", help="Record identifier")
    show_parser.set_defaults(func=_handle_show)

    summary_parser = subparsers.add_parser("summary", help="Print the formatted AI summary")
    summary_parser.add_argument("id", help="Record identifier")
    summary_parser.set_defaults(func=_handle_summary)

    export_parser = subparsers.add_parser("export-pdf", help="Write the AI summary as PDF")
    export_parser.add_argument("id", help="Record identifier")
    export_parser.add_argument("output", type=Path, help="Destination PDF path")
    export_parser.set_defaults(func=_handle_export)

    delete_parser = subparsers.add_parser("delete", help="Delete a record")
    delete_parser.add_argument("id", help="Record identifier")
    delete_parser.set_defaults(func=_handle_delete)

    args = parser.parse_args(argv)
    handler: CommandHandler = args.func
    return handler(repo, settings, args)


def _handle_list(repo: RecordRepository, settings: AppSettings, args: argparse.Namespace) -> int:
    search = RecordSearch()
    records = search.filter(repo.list(OPERATOR), args.query)[: args.limit]
    if not records:
        print("No records found.")
        return 0
    print(f"Showing {len(records)} records:")
    for record in records:
        info = record.basic_info
        summary_flag = "AI" if record.ai_summary else "--"
        print(
            f" - {record.id} | [{search.initial(info.name)}] {info.name} | "
            f"{info.position or '-'} | {info.store or '-'} | {info.date} | "
            f"{info.interview_type.value} | {record.answers.answered_count()} answers | "
            f"{summary_flag}"
        )
    return 0


def _load(repo: RecordRepository, record_id: str) -> Optional[InterviewRecord]:
    record = repo.get(record_id)
    if record is None:
        print(f"Record '{record_id}' not found.")
    return record


def _handle_show(repo: RecordRepository, settings: AppSettings, args: argparse.Namespace) -> int:
    record = _load(repo, args.id)
    if record is None:
        return 1
    info = record.basic_info
    created = datetime.fromtimestamp(record.created_at / 1000).isoformat(timespec="seconds")
    print(f"Record ID: {record.id}")
    print(f"Candidate: {info.name}")
    print(f"Position: {info.position}")
    print(f"Store: {info.store}")
    print(f"Interview date: {info.date}")
    print(f"Interviewer: {info.interviewer}")
    print(f"Interview type: {info.interview_type.value}")
    if info.visa_status:
        print(f"Visa: {info.visa_status.value} {info.visa_expiry_date}".rstrip())
    print(f"Created: {created}")
    if record.resume:
        print(f"Resume: {record.resume.file_name}")
    for question_id, answer in sorted(record.answers.non_empty_texts().items()):
        print("\n" + "-" * 40)
        print(f"{question_id}:\n{answer}")
    return 0


def _handle_summary(repo: RecordRepository, settings: AppSettings, args: argparse.Namespace) -> int:
    record = _load(repo, args.id)
    if record is None:
        return 1
    if not record.ai_summary:
        print("This record has no AI summary yet.")
        return 1
    for line in render_blocks(format_summary(record.ai_summary)):
        print(line)
    return 0


def _handle_export(repo: RecordRepository, settings: AppSettings, args: argparse.Namespace) -> int:
    record = _load(repo, args.id)
    if record is None:
        return 1
    if not record.ai_summary:
        print("This record has no AI summary yet.")
        return 1
    exporter = SummaryPDFExporter(font_path=settings.pdf_font_path)
    try:
        destination = exporter.export(record.ai_summary, args.output)
    except SummaryExportError as exc:
        print(f"PDF export failed: {exc}")
        return 1
    print(f"Summary PDF written to {destination}")
    return 0


def _handle_delete(repo: RecordRepository, settings: AppSettings, args: argparse.Namespace) -> int:
    try:
        repo.delete(args.id, OPERATOR)
    except RecordStoreError as exc:
        print(str(exc))
        return 1
    print(f"Deleted record {args.id}.")
    return 0


def render_blocks(blocks: List[SummaryBlock]) -> List[str]:
    """Plain-text rendering of summary blocks for the terminal."""

    lines: List[str] = []
    for block in blocks:
        if block.kind is BlockKind.SPACER:
            lines.append("")
        elif block.kind is BlockKind.INTRO:
            lines.extend([block.text, "=" * len(block.text)])
        elif block.kind is BlockKind.OVERALL:
            lines.extend(["", f"[{block.text}]"])
        elif block.kind is BlockKind.HEADER:
            lines.append(f"{block.number}. {block.text}")
        elif block.kind is BlockKind.BULLET:
            lines.append(f"  - {block.text}")
        elif block.kind is BlockKind.VERDICT:
            verdict = block.verdict.value if block.verdict else "undetermined"
            lines.append(f">> 최종 추천 여부: {block.text} ({verdict})")
        else:
            lines.append(f"   {block.text}" if block.indent else block.text)
    return lines
