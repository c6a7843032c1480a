"""Command line entry-point for Interview Mate."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .config import AppSettings
from .records_cli import run_records_cli
from .web import add_server_arguments, run_server


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="interview-mate",
        description="Serve the interview evaluation tool or inspect stored records.",
    )
    subparsers = parser.add_subparsers(dest="command")
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API (default)")
    add_server_arguments(serve_parser)
    subparsers.add_parser("records", help="Browse stored interview records")
    arg_list = list(argv or [])
    if not arg_list or (arg_list[0].startswith("-") and arg_list[0] not in {"-h", "--help"}):
        arg_list = ["serve", *arg_list]
    return parser.parse_args(arg_list)


def _load_settings() -> AppSettings:
    try:
        return AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m interview_mate``."""

    logging.basicConfig(level=logging.INFO)
    arg_list = list(argv) if argv is not None else sys.argv[1:]
    if arg_list and arg_list[0] == "records":
        settings = _load_settings()
        raise SystemExit(run_records_cli(settings, arg_list[1:]))

    args = _parse_args(arg_list)
    settings = _load_settings()
    run_server(
        settings=settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
