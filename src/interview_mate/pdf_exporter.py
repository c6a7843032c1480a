"""Utilities for exporting formatted interview summaries to PDF."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .formatter import BlockKind, SummaryBlock, TextRun, Verdict, format_summary

logger = logging.getLogger(__name__)

_FONT_FAMILY = "SummaryFont"
_FALLBACK_FAMILY = "Helvetica"

# (fill, text) colours for the verdict box.
_VERDICT_COLOURS: Dict[Verdict, Tuple[Tuple[int, int, int], Tuple[int, int, int]]] = {
    Verdict.RECOMMENDED: ((220, 252, 231), (21, 128, 61)),
    Verdict.NOT_RECOMMENDED: ((254, 226, 226), (185, 28, 28)),
    Verdict.UNDETERMINED: ((255, 237, 213), (194, 65, 12)),
}


class SummaryExportError(RuntimeError):
    """Raised when a summary PDF cannot be generated."""


class SummaryPDFExporter:
    """Render an AI interview summary to PDF using a minimal layout."""

    _UNICODE_TRANSLATION = str.maketrans(
        {
            " ": " ",  # non-breaking space
            "–": "-",  # en dash
            "—": "-",  # em dash
            "‘": "'",  # left single quote
            "’": "'",  # right single quote
            "“": '"',  # left double quote
            "”": '"',  # right double quote
            "•": "-",  # bullet
        }
    )

    def __init__(self, font_path: Optional[Path] = None, title: str = "Interview Analysis") -> None:
        self._font_path = Path(font_path) if font_path else None
        self._title = title
        self._family = _FALLBACK_FAMILY
        self._warned_latin1 = False

    @property
    def unicode_enabled(self) -> bool:
        return self._family == _FONT_FAMILY

    def render(self, summary_text: str) -> bytes:
        return self.render_blocks(format_summary(summary_text))

    def render_blocks(self, blocks: Sequence[SummaryBlock]) -> bytes:
        try:
            from fpdf import FPDF  # type: ignore[import]
            from fpdf.errors import FPDFException  # type: ignore[import]
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise SummaryExportError(
                "fpdf2 is required to export summaries as PDF."
            ) from exc

        try:
            pdf: Any = FPDF(unit="mm", format="A4")
            pdf.set_auto_page_break(auto=True, margin=15)
            pdf.set_margin(15)
            self._register_font(pdf)
            pdf.add_page()
            pdf.set_title(self._title)
            for block in blocks:
                self._render_block(pdf, block)
            return bytes(pdf.output())
        except (OSError, RuntimeError, ValueError, FPDFException) as exc:
            raise SummaryExportError(f"Unable to render summary PDF: {exc}") from exc

    def export(self, summary_text: str, destination: Path) -> Path:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - filesystem guard
            raise SummaryExportError(
                f"Unable to create directory for PDF export: {destination}"
            ) from exc

        payload = self.render(summary_text)
        try:
            destination.write_bytes(payload)
        except OSError as exc:
            raise SummaryExportError(
                f"Unable to write summary PDF: {destination}"
            ) from exc
        return destination

    def _register_font(self, pdf: Any) -> None:
        if self._font_path is None:
            self._family = _FALLBACK_FAMILY
            return
        if not self._font_path.exists():
            raise SummaryExportError(f"PDF font not found: {self._font_path}")
        pdf.add_font(_FONT_FAMILY, style="", fname=str(self._font_path))
        pdf.add_font(_FONT_FAMILY, style="B", fname=str(self._font_path))
        self._family = _FONT_FAMILY

    def _render_block(self, pdf: Any, block: SummaryBlock) -> None:
        if block.kind is BlockKind.SPACER:
            pdf.ln(3)
            return

        if block.kind is BlockKind.INTRO:
            pdf.set_font(self._family, "B", size=16)
            self._reset_to_margin(pdf)
            pdf.multi_cell(0, 9, self._safe_text(block.text), align="C")
            pdf.ln(4)
            return

        if block.kind is BlockKind.OVERALL:
            pdf.ln(4)
            pdf.set_font(self._family, "B", size=14)
            self._reset_to_margin(pdf)
            pdf.multi_cell(0, 8, self._safe_text(block.text))
            pdf.ln(2)
            return

        if block.kind is BlockKind.HEADER:
            pdf.ln(3)
            prefix = TextRun(f"{block.number}. ", bold=True) if block.number else None
            runs = ((prefix,) if prefix else ()) + block.runs
            self._write_runs(pdf, runs, size=13, line_height=7, force_bold=True)
            pdf.ln(1)
            return

        if block.kind is BlockKind.BULLET:
            self._write_runs(pdf, (TextRun("- "),) + block.runs, size=11, indent=4)
            return

        if block.kind is BlockKind.PARAGRAPH:
            self._write_runs(pdf, block.runs, size=11, indent=8 if block.indent else 0)
            return

        if block.kind is BlockKind.VERDICT:
            self._render_verdict(pdf, block)
            return

        logger.debug("Unhandled summary block kind: %s", block.kind)

    def _render_verdict(self, pdf: Any, block: SummaryBlock) -> None:
        verdict = block.verdict or Verdict.UNDETERMINED
        fill, text_colour = _VERDICT_COLOURS[verdict]
        pdf.ln(6)
        self._reset_to_margin(pdf)
        pdf.set_font(self._family, "B", size=12)
        pdf.set_fill_color(*fill)
        pdf.set_text_color(*text_colour)
        label = f"최종 추천 여부 | {block.text}" if block.text else "최종 추천 여부"
        pdf.cell(
            0,
            10,
            self._safe_text(label),
            border=1,
            align="C",
            fill=True,
            new_x="LMARGIN",
            new_y="NEXT",
        )
        pdf.set_text_color(0, 0, 0)

    def _write_runs(
        self,
        pdf: Any,
        runs: Sequence[TextRun],
        *,
        size: int,
        line_height: float = 6,
        indent: float = 0,
        force_bold: bool = False,
    ) -> None:
        left = pdf.l_margin
        pdf.set_left_margin(left + indent)
        pdf.set_x(left + indent)
        for run in runs:
            style = "B" if run.bold or force_bold else ""
            pdf.set_font(self._family, style, size=size)
            pdf.write(line_height, self._safe_text(run.text))
        pdf.ln(line_height)
        pdf.set_left_margin(left)
        pdf.set_x(left)

    def _safe_text(self, text: str) -> str:
        text = text.translate(self._UNICODE_TRANSLATION)
        if self.unicode_enabled:
            return text
        try:
            text.encode("latin-1")
        except UnicodeEncodeError:
            if not self._warned_latin1:
                logger.warning(
                    "No Unicode font configured (IM_PDF_FONT_PATH); "
                    "non Latin-1 characters are replaced in the PDF."
                )
                self._warned_latin1 = True
            return text.encode("latin-1", "replace").decode("latin-1")
        return text

    @staticmethod
    def _reset_to_margin(pdf: Any) -> None:
        """Ensure the cursor is positioned at the left margin."""

        pdf.set_x(pdf.l_margin)
