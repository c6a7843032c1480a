"""Form schema: stages, sections, questions and section visibility rules."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .answers import consent_key, notice_key

logger = logging.getLogger(__name__)

PRIOR_EXPERIENCE_FLAG = "has_prior_experience"

# Legacy flag names found in stored condition expressions.
FLAG_ALIASES: Dict[str, str] = {
    "hasSushiExperience": PRIOR_EXPERIENCE_FLAG,
    "hasPriorExperience": PRIOR_EXPERIENCE_FLAG,
}

_LEGACY_CONDITION_RE = re.compile(
    r"^\s*(?P<flag>[A-Za-z_][A-Za-z0-9_]*)\s*={2,3}\s*(?P<value>true|false)\s*$"
)


@dataclass(frozen=True, slots=True)
class FlagEquals:
    """Visible when a boolean form flag equals ``value``."""

    flag: str
    value: bool

    kind = "flag_equals"


@dataclass(frozen=True, slots=True)
class UnknownCondition:
    """A condition that could not be interpreted; always visible."""

    source: str

    kind = "unknown"


Condition = Union[FlagEquals, UnknownCondition]


def parse_condition(expression: str | None) -> Optional[Condition]:
    """Convert a legacy expression such as ``hasSushiExperience === true``."""

    if expression is None or not expression.strip():
        return None
    match = _LEGACY_CONDITION_RE.match(expression)
    if not match:
        logger.debug("Unparseable section condition: %s", expression)
        return UnknownCondition(source=expression)
    flag = FLAG_ALIASES.get(match.group("flag"), match.group("flag"))
    return FlagEquals(flag=flag, value=match.group("value") == "true")


def evaluate_condition(
    condition: Optional[Condition],
    flags: Mapping[str, bool],
) -> bool:
    """Return whether a section guarded by ``condition`` is visible."""

    if condition is None:
        return True
    if isinstance(condition, FlagEquals):
        if condition.flag not in flags:
            return True
        return bool(flags[condition.flag]) == condition.value
    return True


@dataclass(frozen=True, slots=True)
class Question:
    """A single interview question with its checkpoint labels."""

    id: str
    text: str
    checkpoints: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Section:
    """Group of questions or notices inside a stage."""

    id: str
    title: Optional[str] = None
    questions: Tuple[Question, ...] = ()
    notices: Tuple[str, ...] = ()
    require_consent: bool = False
    condition: Optional[Condition] = None

    def notice_key(self, index: int) -> str:
        return notice_key(self.id, index)

    @property
    def consent_key(self) -> str:
        return consent_key(self.id)

    def is_visible(self, flags: Mapping[str, bool]) -> bool:
        return evaluate_condition(self.condition, flags)


@dataclass(frozen=True, slots=True)
class Stage:
    """Top-level ordered phase of the interview wizard."""

    id: str
    title: str
    sections: Tuple[Section, ...]
    description: Optional[str] = None
    kind: str = "question"

    def visible_sections(self, flags: Mapping[str, bool]) -> List[Section]:
        return [section for section in self.sections if section.is_visible(flags)]

    def questions(self) -> Iterator[Question]:
        for section in self.sections:
            yield from section.questions


def iter_questions(stages: Iterable[Stage]) -> Iterator[Question]:
    """Flatten every question in the schema, in display order."""

    for stage in stages:
        yield from stage.questions()


def find_question(stages: Iterable[Stage], question_id: str) -> Optional[Question]:
    for question in iter_questions(stages):
        if question.id == question_id:
            return question
    return None


def find_section(stages: Iterable[Stage], section_id: str) -> Optional[Section]:
    for stage in stages:
        for section in stage.sections:
            if section.id == section_id:
                return section
    return None


def _condition_to_dict(condition: Optional[Condition]) -> Optional[Dict[str, Any]]:
    if condition is None:
        return None
    if isinstance(condition, FlagEquals):
        return {"kind": condition.kind, "flag": condition.flag, "value": condition.value}
    return {"kind": condition.kind, "source": condition.source}


def stages_to_dict(stages: Sequence[Stage]) -> List[Dict[str, Any]]:
    """Serialize the schema for the browser."""

    payload: List[Dict[str, Any]] = []
    for stage in stages:
        payload.append(
            {
                "id": stage.id,
                "title": stage.title,
                "description": stage.description,
                "type": stage.kind,
                "sections": [
                    {
                        "id": section.id,
                        "title": section.title,
                        "condition": _condition_to_dict(section.condition),
                        "requireConsent": section.require_consent,
                        "notices": list(section.notices),
                        "questions": [
                            {
                                "id": question.id,
                                "text": question.text,
                                "checkpoints": list(question.checkpoints),
                            }
                            for question in section.questions
                        ],
                    }
                    for section in stage.sections
                ],
            }
        )
    return payload
