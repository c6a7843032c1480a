"""Keyword search over interview records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .models import InterviewRecord

OTHER_INITIAL = "Other"

_HANGUL_FIRST = 0xAC00
_HANGUL_LAST = 0xD7A3
_SYLLABLES_PER_INITIAL = 588

HANGUL_INITIALS = (
    "ㄱ", "ㄲ", "ㄴ", "ㄷ", "ㄸ", "ㄹ", "ㅁ", "ㅂ", "ㅃ", "ㅅ",
    "ㅆ", "ㅇ", "ㅈ", "ㅉ", "ㅊ", "ㅋ", "ㅌ", "ㅍ", "ㅎ",
)

# Doubled consonants are grouped with their base consonant.
_DOUBLED_TO_BASE = {"ㄲ": "ㄱ", "ㄸ": "ㄷ", "ㅃ": "ㅂ", "ㅆ": "ㅅ", "ㅉ": "ㅈ"}

InitialExtractor = Callable[[str], Optional[str]]


def hangul_initial(char: str) -> Optional[str]:
    code = ord(char)
    if not _HANGUL_FIRST <= code <= _HANGUL_LAST:
        return None
    initial = HANGUL_INITIALS[(code - _HANGUL_FIRST) // _SYLLABLES_PER_INITIAL]
    return _DOUBLED_TO_BASE.get(initial, initial)


def latin_initial(char: str) -> Optional[str]:
    if "a" <= char.lower() <= "z":
        return char.upper()
    return None


DEFAULT_EXTRACTORS: Sequence[InitialExtractor] = (hangul_initial, latin_initial)


def split_keywords(query: str) -> List[str]:
    return query.lower().split()


def leading_initial(
    name: str,
    extractors: Sequence[InitialExtractor] = DEFAULT_EXTRACTORS,
) -> str:
    """Group key for ``name``: its consonant or letter initial, else ``Other``.

    An empty name has no initial and yields an empty string.
    """

    if not name:
        return ""
    first = name[0]
    for extractor in extractors:
        initial = extractor(first)
        if initial:
            return initial
    return OTHER_INITIAL


def _keyword_matches(
    record: InterviewRecord,
    keyword: str,
    extractors: Sequence[InitialExtractor],
) -> bool:
    info = record.basic_info
    if len(keyword) == 1 and leading_initial(info.name, extractors).lower() == keyword:
        return True
    fields = (info.name, info.position, info.store, info.date)
    if any(keyword in value.lower() for value in fields if value):
        return True
    return any(keyword in answer.lower() for answer in record.answers.texts.values())


def record_matches(
    record: InterviewRecord,
    keywords: Sequence[str],
    extractors: Sequence[InitialExtractor] = DEFAULT_EXTRACTORS,
) -> bool:
    """Every keyword must match; an empty keyword list matches everything."""

    return all(_keyword_matches(record, keyword, extractors) for keyword in keywords)


class RecordSearch:
    """Filters records by free-text query using configurable initial rules."""

    def __init__(self, extractors: Sequence[InitialExtractor] = DEFAULT_EXTRACTORS) -> None:
        self._extractors = tuple(extractors)

    def initial(self, name: str) -> str:
        return leading_initial(name, self._extractors)

    def matches(self, record: InterviewRecord, query: str) -> bool:
        return record_matches(record, split_keywords(query), self._extractors)

    def filter(self, records: Iterable[InterviewRecord], query: str) -> List[InterviewRecord]:
        keywords = split_keywords(query)
        return [
            record
            for record in records
            if record_matches(record, keywords, self._extractors)
        ]

    def group_by_initial(self, records: Iterable[InterviewRecord]) -> Dict[str, List[InterviewRecord]]:
        groups: Dict[str, List[InterviewRecord]] = {}
        for record in records:
            groups.setdefault(self.initial(record.basic_info.name), []).append(record)
        return groups


def filter_records(records: Iterable[InterviewRecord], query: str) -> List[InterviewRecord]:
    return RecordSearch().filter(records, query)


@dataclass(frozen=True, slots=True)
class RecordSummary:
    """One row of the record list."""

    id: str
    name: str
    position: str
    store: str
    date: str
    interview_type: str
    initial: str
    has_summary: bool
    answered_count: int
    created_at: int

    @classmethod
    def from_record(cls, record: InterviewRecord, search: Optional[RecordSearch] = None) -> "RecordSummary":
        info = record.basic_info
        initial = (search or RecordSearch()).initial(info.name)
        return cls(
            id=record.id,
            name=info.name,
            position=info.position,
            store=info.store,
            date=info.date,
            interview_type=info.interview_type.value,
            initial=initial,
            has_summary=bool(record.ai_summary),
            answered_count=record.answers.answered_count(),
            created_at=record.created_at,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "store": self.store,
            "date": self.date,
            "interviewType": self.interview_type,
            "initial": self.initial,
            "hasSummary": self.has_summary,
            "answeredCount": self.answered_count,
            "createdAt": self.created_at,
        }
