"""Turn raw AI summary text into typed display blocks.

The formatter is a pure function of its input. It is re-run on the
accumulated text of a streamed response, so every matcher only looks at
the current logical line and a small amount of context about what came
before it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

INTRO_MARKER = "인터뷰 분석 결과"
VERDICT_MARKER = "최종 추천 여부"
OVERALL_MARKER = "종합 의견"
RECOMMEND_WORD = "추천"
NEGATED_RECOMMEND_WORD = "비추천"

KNOWN_SECTION_TITLES: Tuple[str, ...] = (
    "핵심 강점",
    "우려 사항",
    "조직 적합성",
    "온보딩 & 코칭 가이드",
)

INTRO_SEARCH_WINDOW = 10
INTRO_MAX_LENGTH = 100
VERDICT_MAX_LENGTH = 200
OVERALL_MAX_LENGTH = 50
FALLBACK_HEADER_MAX_LENGTH = 60

_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_BARE_NUMBER_RE = re.compile(r"^(?P<number>\d+)[.)]?$")
_LIST_MARKER_RE = re.compile(r"^(?:[-*]\s+|\d+[.)]\s*)")
_LEADING_NUMBER_RE = re.compile(r"^\d+[.)]?\s*")
_HEADER_RE = re.compile(r"^(?P<number>[1-4])[.)]\s*(?P<rest>.+)$")
_BULLET_RE = re.compile(r"^[-*]\s+(?P<text>.*)$")
_FIRST_NUMBER_RE = re.compile(r"\d+")
_NAME_RE = re.compile(r"^[\"'‘’“”]*(?P<name>.*?)[\"'‘’“”]*\s*님의")
_WHITESPACE_RE = re.compile(r"\s{2,}")


class BlockKind(str, Enum):
    SPACER = "spacer"
    INTRO = "intro"
    VERDICT = "verdict"
    OVERALL = "overall"
    HEADER = "header"
    BULLET = "bullet"
    PARAGRAPH = "paragraph"


class Verdict(str, Enum):
    RECOMMENDED = "recommended"
    NOT_RECOMMENDED = "not_recommended"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True, slots=True)
class TextRun:
    text: str
    bold: bool = False


@dataclass(frozen=True, slots=True)
class SummaryBlock:
    """One renderable unit of a formatted summary."""

    kind: BlockKind
    runs: Tuple[TextRun, ...] = ()
    number: Optional[str] = None
    verdict: Optional[Verdict] = None
    indent: bool = False

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


SPACER_BLOCK = SummaryBlock(kind=BlockKind.SPACER)


def _plain(text: str) -> Tuple[TextRun, ...]:
    return (TextRun(text),) if text else ()


def strip_markup(line: str) -> str:
    """Remove bold markers and leading heading hashes."""

    return line.replace("**", "").lstrip("#").strip()


def parse_bold(text: str) -> Tuple[TextRun, ...]:
    """Split ``text`` on paired ``**`` delimiters.

    A dangling opening ``**`` at the end of the text is treated as closed,
    so a partially streamed bold span renders as bold instead of leaking
    the marker.
    """

    runs: List[TextRun] = []
    position = 0
    for match in _BOLD_RE.finditer(text):
        if match.start() > position:
            runs.append(TextRun(text[position : match.start()]))
        if match.group(1):
            runs.append(TextRun(match.group(1), bold=True))
        position = match.end()

    tail = text[position:]
    if "**" in tail:
        before, _, after = tail.partition("**")
        if before:
            runs.append(TextRun(before))
        after = after.rstrip("*")
        if after:
            runs.append(TextRun(after, bold=True))
    elif tail:
        runs.append(TextRun(tail))
    return tuple(runs)


def classify_verdict(label: str) -> Verdict:
    if NEGATED_RECOMMEND_WORD in label:
        return Verdict.NOT_RECOMMENDED
    if RECOMMEND_WORD in label:
        return Verdict.RECOMMENDED
    return Verdict.UNDETERMINED


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.split("\n")]


def _bare_number(line: str) -> Optional[str]:
    normalized = re.sub(r"[\s*#]", "", line)
    match = _BARE_NUMBER_RE.match(normalized)
    return match.group("number") if match else None


def merge_numeric_lines(lines: Sequence[str]) -> List[str]:
    """Join a lone ``N.`` line with the next non-blank line.

    Streaming models sometimes emit a section number and its title on
    separate lines. Blank lines between the two are consumed.
    """

    merged: List[str] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        number = _bare_number(line) if line else None
        if number is not None:
            lookahead = index + 1
            while lookahead < len(lines) and not lines[lookahead]:
                lookahead += 1
            if lookahead < len(lines) and _bare_number(lines[lookahead]) is None:
                merged.append(f"{number}. {lines[lookahead]}")
                index = lookahead + 1
                continue
        merged.append(line)
        index += 1
    return merged


@dataclass(slots=True)
class LineContext:
    """What the matchers may know about the lines already processed."""

    index: int = 0
    intro_seen: bool = False
    previous: Optional[SummaryBlock] = None

    @property
    def follows_header(self) -> bool:
        previous = self.previous
        if previous is None:
            return False
        if previous.kind is BlockKind.HEADER:
            return True
        return previous.kind is BlockKind.PARAGRAPH and previous.indent


class LineMatcher:
    """A predicate plus extractor for one kind of summary line."""

    kind: BlockKind

    def matches(self, line: str, ctx: LineContext) -> bool:
        raise NotImplementedError

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        raise NotImplementedError


class IntroTitleMatcher(LineMatcher):
    kind = BlockKind.INTRO

    def matches(self, line: str, ctx: LineContext) -> bool:
        if ctx.intro_seen or ctx.index >= INTRO_SEARCH_WINDOW:
            return False
        clean = strip_markup(line)
        return INTRO_MARKER in clean and len(clean) < INTRO_MAX_LENGTH

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        ctx.intro_seen = True
        clean = strip_markup(line)
        match = _NAME_RE.match(clean)
        if match and match.group("name").strip():
            name = match.group("name").strip()
            clean = f"'{name}'님의{clean[match.end():]}"
        return [SummaryBlock(kind=self.kind, runs=_plain(clean))]


class VerdictMatcher(LineMatcher):
    kind = BlockKind.VERDICT

    def matches(self, line: str, ctx: LineContext) -> bool:
        if len(line) >= VERDICT_MAX_LENGTH:
            return False
        clean = strip_markup(_LIST_MARKER_RE.sub("", line, count=1))
        return VERDICT_MARKER in clean

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        clean = strip_markup(_LIST_MARKER_RE.sub("", line, count=1))
        _, _, after = clean.partition(VERDICT_MARKER)
        label = re.sub(r"[*\[\]]", "", after).lstrip(":： ").strip()
        return [
            SummaryBlock(
                kind=self.kind,
                runs=_plain(label),
                verdict=classify_verdict(label),
            )
        ]


class OverallOpinionMatcher(LineMatcher):
    kind = BlockKind.OVERALL

    def matches(self, line: str, ctx: LineContext) -> bool:
        clean = strip_markup(line)
        return OVERALL_MARKER in clean and len(clean) < OVERALL_MAX_LENGTH

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        content = _LEADING_NUMBER_RE.sub("", strip_markup(line), count=1)
        content = content.rstrip(":： ").strip()
        return [SummaryBlock(kind=self.kind, runs=_plain(content))]


class NumberedHeaderMatcher(LineMatcher):
    kind = BlockKind.HEADER

    def matches(self, line: str, ctx: LineContext) -> bool:
        return self._parts(line) is not None

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        parts = self._parts(line)
        if parts is None:
            raise ValueError(f"Not a numbered header: {line!r}")
        number, title, inline = parts
        blocks = [SummaryBlock(kind=self.kind, runs=parse_bold(title), number=number)]
        if inline:
            blocks.append(
                SummaryBlock(
                    kind=BlockKind.PARAGRAPH,
                    runs=parse_bold(_WHITESPACE_RE.sub(" ", inline)),
                    indent=True,
                )
            )
        return blocks

    def _parts(self, line: str) -> Optional[Tuple[str, str, str]]:
        return self._split(line) or self._fallback(line)

    @staticmethod
    def _split(line: str) -> Optional[Tuple[str, str, str]]:
        match = _HEADER_RE.match(line)
        if not match:
            return None
        rest = match.group("rest")
        if rest.startswith("**"):
            closing = rest.find("**", 2)
            if closing == -1:
                title, inline = rest[2:], ""
            else:
                title, inline = rest[2:closing], rest[closing + 2 :]
        else:
            title, _, inline = rest.partition(":")
        title = title.rstrip(":*： ").strip()
        inline = inline.lstrip(":： ").strip()
        if not title:
            return None
        return match.group("number"), title, inline

    @staticmethod
    def _fallback(line: str) -> Optional[Tuple[str, str, str]]:
        if _BULLET_RE.match(line):
            return None
        clean = strip_markup(line)
        if len(clean) >= FALLBACK_HEADER_MAX_LENGTH:
            return None
        for ordinal, title in enumerate(KNOWN_SECTION_TITLES, start=1):
            if title in clean:
                number_match = _FIRST_NUMBER_RE.search(clean)
                number = number_match.group(0) if number_match else str(ordinal)
                text = _LEADING_NUMBER_RE.sub("", clean, count=1)
                return number, text.rstrip(":： ").strip(), ""
        return None


class BulletMatcher(LineMatcher):
    kind = BlockKind.BULLET

    def matches(self, line: str, ctx: LineContext) -> bool:
        return line.startswith("* ") or line.startswith("- ")

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        return [SummaryBlock(kind=self.kind, runs=parse_bold(line[2:].strip()))]


class ParagraphMatcher(LineMatcher):
    kind = BlockKind.PARAGRAPH

    def matches(self, line: str, ctx: LineContext) -> bool:
        return bool(line)

    def extract(self, line: str, ctx: LineContext) -> List[SummaryBlock]:
        return [
            SummaryBlock(
                kind=self.kind,
                runs=parse_bold(_WHITESPACE_RE.sub(" ", line)),
                indent=ctx.follows_header,
            )
        ]


def default_matchers() -> List[LineMatcher]:
    return [
        IntroTitleMatcher(),
        VerdictMatcher(),
        OverallOpinionMatcher(),
        NumberedHeaderMatcher(),
        BulletMatcher(),
        ParagraphMatcher(),
    ]


class SummaryFormatter:
    """First-match-wins classification of summary lines into blocks."""

    def __init__(self, matchers: Optional[Sequence[LineMatcher]] = None) -> None:
        self._matchers = list(matchers) if matchers is not None else default_matchers()

    def format(self, text: str) -> List[SummaryBlock]:
        blocks: List[SummaryBlock] = []
        if not text:
            return blocks
        ctx = LineContext()
        for index, line in enumerate(merge_numeric_lines(split_lines(text))):
            ctx.index = index
            if not line:
                if not blocks or blocks[-1].kind is not BlockKind.SPACER:
                    blocks.append(SPACER_BLOCK)
                ctx.previous = SPACER_BLOCK
                continue
            produced: List[SummaryBlock] = []
            for matcher in self._matchers:
                if matcher.matches(line, ctx):
                    produced = matcher.extract(line, ctx)
                    break
            if produced:
                blocks.extend(produced)
                ctx.previous = produced[-1]
        while blocks and blocks[-1].kind is BlockKind.SPACER:
            blocks.pop()
        return blocks


_DEFAULT_FORMATTER = SummaryFormatter()


def format_summary(text: str) -> List[SummaryBlock]:
    return _DEFAULT_FORMATTER.format(text)


@dataclass(slots=True)
class SummaryStream:
    """Accumulates streamed chunks and formats the text received so far."""

    formatter: SummaryFormatter = field(default_factory=SummaryFormatter)
    text: str = ""
    _formatted_text: Optional[str] = None
    _blocks: List[SummaryBlock] = field(default_factory=list)

    def feed(self, chunk: str) -> List[SummaryBlock]:
        self.text += chunk
        return self.blocks()

    def update(self, accumulated: str) -> List[SummaryBlock]:
        """Replace the buffer with text a caller has already accumulated."""

        self.text = accumulated
        return self.blocks()

    def blocks(self) -> List[SummaryBlock]:
        if self._formatted_text != self.text:
            self._blocks = self.formatter.format(self.text)
            self._formatted_text = self.text
        return list(self._blocks)


def blocks_to_dict(blocks: Sequence[SummaryBlock]) -> List[Dict[str, Any]]:
    payload: List[Dict[str, Any]] = []
    for block in blocks:
        item: Dict[str, Any] = {"kind": block.kind.value, "text": block.text}
        if block.runs:
            item["runs"] = [{"text": run.text, "bold": run.bold} for run in block.runs]
        if block.number is not None:
            item["number"] = block.number
        if block.verdict is not None:
            item["verdict"] = block.verdict.value
        if block.indent:
            item["indent"] = True
        payload.append(item)
    return payload
