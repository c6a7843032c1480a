"""Interview records and candidate information."""

from __future__ import annotations

import base64
import mimetypes
import time
from dataclasses import dataclass, field, fields, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .answers import AnswerSheet
from .config import InterviewType
from .schema import PRIOR_EXPERIENCE_FLAG


class VisaStatus(str, Enum):
    """Visa categories offered in the basic information form."""

    CITIZEN = "Australian Citizen"
    PERMANENT_RESIDENT = "Permanent Resident"
    PARTNER = "Partner / De facto"
    STUDENT = "International Student"
    WORKING_HOLIDAY = "Working Holiday"
    TSS = "Temporary Skill Shortage (TSS)"
    OTHERS = "Others"

    @classmethod
    def from_string(cls, value: str | None) -> Optional["VisaStatus"]:
        if not value or not value.strip():
            return None
        normalized = value.strip().lower()
        for candidate in cls:
            if candidate.value.lower() == normalized or candidate.name.lower() == normalized:
                return candidate
        raise ValueError(f"Unsupported visa status: {value}")


NO_EXPIRY_STATUSES = frozenset({VisaStatus.CITIZEN, VisaStatus.PERMANENT_RESIDENT})

_TEXT_FIELDS = frozenset(
    {
        "name",
        "position",
        "store",
        "date",
        "interviewer",
        "visa_expiry_date",
        "email",
        "mobile",
        "birth_date",
    }
)


def now_millis() -> int:
    return int(time.time() * 1000)


def _today() -> str:
    return date.today().isoformat()


@dataclass(slots=True)
class BasicInfo:
    """Candidate and logistics fields captured at the top of the form."""

    name: str = ""
    position: str = ""
    store: str = ""
    date: str = field(default_factory=_today)
    interviewer: str = ""
    has_prior_experience: bool = False
    visa_status: Optional[VisaStatus] = None
    visa_expiry_date: str = ""
    email: str = ""
    mobile: str = ""
    birth_date: str = ""
    interview_type: InterviewType = InterviewType.STANDARD

    @property
    def requires_visa_expiry(self) -> bool:
        return self.visa_status not in NO_EXPIRY_STATUSES

    def flags(self) -> Dict[str, bool]:
        """Boolean flags that section visibility conditions can test."""

        return {PRIOR_EXPERIENCE_FLAG: self.has_prior_experience}

    def with_changes(self, **changes: Any) -> "BasicInfo":
        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise TypeError(f"Unknown basic info field(s): {', '.join(unknown)}")
        for name, value in changes.items():
            if name in _TEXT_FIELDS and not isinstance(value, str):
                raise TypeError(f"Basic info field '{name}' must be a string.")
            if name == "has_prior_experience" and not isinstance(value, bool):
                raise TypeError("Basic info field 'has_prior_experience' must be a boolean.")
        if "visa_status" in changes and not isinstance(
            changes["visa_status"], (VisaStatus, type(None))
        ):
            changes["visa_status"] = VisaStatus.from_string(changes["visa_status"])
        if "interview_type" in changes and not isinstance(
            changes["interview_type"], InterviewType
        ):
            changes["interview_type"] = InterviewType.from_string(
                changes["interview_type"],
                default=InterviewType.STANDARD,
            )
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "position": self.position,
            "store": self.store,
            "date": self.date,
            "interviewer": self.interviewer,
            "hasSushiExperience": self.has_prior_experience,
            "visaStatus": self.visa_status.value if self.visa_status else "",
            "visaExpiryDate": self.visa_expiry_date,
            "email": self.email,
            "mobile": self.mobile,
            "birthDate": self.birth_date,
            "interviewType": self.interview_type.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "BasicInfo":
        data = dict(payload or {})
        visa_raw = data.get("visaStatus")
        try:
            visa_status = VisaStatus.from_string(str(visa_raw) if visa_raw else None)
        except ValueError:
            visa_status = VisaStatus.OTHERS
        return cls(
            name=str(data.get("name") or ""),
            position=str(data.get("position") or ""),
            store=str(data.get("store") or ""),
            date=str(data.get("date") or ""),
            interviewer=str(data.get("interviewer") or ""),
            has_prior_experience=bool(
                data.get("hasSushiExperience", data.get("hasPriorExperience", False))
            ),
            visa_status=visa_status,
            visa_expiry_date=str(data.get("visaExpiryDate") or ""),
            email=str(data.get("email") or ""),
            mobile=str(data.get("mobile") or ""),
            birth_date=str(data.get("birthDate") or ""),
            interview_type=InterviewType.from_string(
                data.get("interviewType"),
                default=InterviewType.STANDARD,
            ),
        )


@dataclass(frozen=True, slots=True)
class ResumeAttachment:
    """Resume file carried inline as a base64 data URL."""

    file_name: str
    file_data: str

    @classmethod
    def from_bytes(
        cls,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> "ResumeAttachment":
        mime = content_type or mimetypes.guess_type(file_name)[0]
        mime = mime or "application/octet-stream"
        encoded = base64.b64encode(data).decode("ascii")
        return cls(file_name=file_name, file_data=f"data:{mime};base64,{encoded}")

    def decode(self) -> bytes:
        _, _, encoded = self.file_data.partition("base64,")
        return base64.b64decode(encoded or self.file_data)

    def to_dict(self) -> Dict[str, str]:
        return {"fileName": self.file_name, "fileData": self.file_data}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> Optional["ResumeAttachment"]:
        if not payload:
            return None
        file_name = payload.get("fileName")
        file_data = payload.get("fileData")
        if not file_name or not file_data:
            return None
        return cls(file_name=str(file_name), file_data=str(file_data))


def _empty_answers() -> AnswerSheet:
    return AnswerSheet()


@dataclass(slots=True)
class InterviewRecord:
    """The persisted unit of work for one candidate."""

    id: str
    basic_info: BasicInfo
    answers: AnswerSheet = field(default_factory=_empty_answers)
    resume: Optional[ResumeAttachment] = None
    ai_summary: Optional[str] = None
    created_at: int = field(default_factory=now_millis)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "basicInfo": self.basic_info.to_dict(),
            "answers": self.answers.to_storage(),
            "resume": self.resume.to_dict() if self.resume else None,
            "aiSummary": self.ai_summary,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InterviewRecord":
        answers_raw = payload.get("answers")
        summary = payload.get("aiSummary")
        created_raw = payload.get("createdAt")
        try:
            created_at = int(created_raw) if created_raw is not None else 0
        except (TypeError, ValueError):
            created_at = 0
        return cls(
            id=str(payload["id"]),
            basic_info=BasicInfo.from_dict(payload.get("basicInfo")),
            answers=AnswerSheet.from_storage(
                answers_raw if isinstance(answers_raw, Mapping) else None
            ),
            resume=ResumeAttachment.from_dict(payload.get("resume")),
            ai_summary=str(summary) if summary else None,
            created_at=created_at,
        )
