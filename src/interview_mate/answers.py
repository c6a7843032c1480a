"""In-progress answers for an interview form."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

NOTICE_PREFIX = "notice-"
CONSENT_PREFIX = "consent-"

_TRUE = "true"
_FALSE = "false"


def is_flag_key(key: str) -> bool:
    """Notice and consent keys hold acknowledgements, not free text."""

    return key.startswith(NOTICE_PREFIX) or key.startswith(CONSENT_PREFIX)


def notice_key(section_id: str, index: int) -> str:
    return f"{NOTICE_PREFIX}{section_id}-{index}"


def consent_key(section_id: str) -> str:
    return f"{CONSENT_PREFIX}{section_id}"


def _empty_text() -> Dict[str, str]:
    return {}


def _empty_flags() -> Dict[str, Optional[bool]]:
    return {}


@dataclass(slots=True)
class AnswerSheet:
    """Free-text answers plus tri-state notice/consent acknowledgements.

    Acknowledgements are ``None`` until touched, then ``True`` or ``False``.
    The literal ``"true"``/``"false"`` strings only exist in the storage
    mapping produced by :meth:`to_storage`.
    """

    texts: Dict[str, str] = field(default_factory=_empty_text)
    flags: Dict[str, Optional[bool]] = field(default_factory=_empty_flags)

    def text(self, question_id: str) -> str:
        return self.texts.get(question_id, "")

    def set_text(self, question_id: str, value: str) -> None:
        self.texts[question_id] = value

    def has_answer(self, question_id: str) -> bool:
        return bool(self.texts.get(question_id, "").strip())

    def flag(self, key: str) -> Optional[bool]:
        return self.flags.get(key)

    def set_notice(
        self,
        section_id: str,
        index: int,
        checked: bool,
    ) -> None:
        self.flags[notice_key(section_id, index)] = checked
        if not checked:
            self.flags[consent_key(section_id)] = False

    def set_consent(
        self,
        section_id: str,
        checked: bool,
        notice_count: int,
    ) -> None:
        self.flags[consent_key(section_id)] = checked
        for index in range(notice_count):
            self.flags[notice_key(section_id, index)] = checked

    def non_empty_texts(self) -> Dict[str, str]:
        return {
            question_id: value
            for question_id, value in self.texts.items()
            if value.strip()
        }

    def answered_count(self) -> int:
        return len(self.non_empty_texts())

    def copy(self) -> "AnswerSheet":
        return AnswerSheet(texts=dict(self.texts), flags=dict(self.flags))

    def to_storage(self) -> Dict[str, str]:
        """Encode into the flat string mapping used by the record store."""

        payload: Dict[str, str] = dict(self.texts)
        for key, value in self.flags.items():
            if value is None:
                continue
            payload[key] = _TRUE if value else _FALSE
        return payload

    @classmethod
    def from_storage(cls, payload: Mapping[str, object] | None) -> "AnswerSheet":
        sheet = cls()
        if not payload:
            return sheet
        for key, raw_value in payload.items():
            key = str(key)
            if is_flag_key(key):
                if isinstance(raw_value, bool):
                    sheet.flags[key] = raw_value
                    continue
                value = str(raw_value).strip().lower()
                if value == _TRUE:
                    sheet.flags[key] = True
                elif value == _FALSE:
                    sheet.flags[key] = False
                continue
            sheet.texts[key] = "" if raw_value is None else str(raw_value)
        return sheet
