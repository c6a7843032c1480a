"""Pytest configuration and fixtures for the test suite."""

from typing import Callable, Optional

import pytest

from interview_mate.answers import AnswerSheet
from interview_mate.auth import Principal
from interview_mate.config import AppSettings, InterviewType
from interview_mate.models import BasicInfo, InterviewRecord
from interview_mate.record_store import RecordRepository

ALLOWED_USERS = {
    "admin@example.com": "admin",
    "staff@example.com": "manager",
    "other@example.com": "manager",
    "hr@example.com": "hr_director",
}


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    """Settings pointing at a temporary data directory, without Redis or a model."""
    return AppSettings(
        model=None,
        data_dir=tmp_path,
        record_log=tmp_path / "records.jsonl",
        redis_url=None,
        allowed_users=dict(ALLOWED_USERS),
    )


@pytest.fixture
def repository(settings) -> RecordRepository:
    return RecordRepository(archive_path=settings.record_log, redis_url=None)


@pytest.fixture
def admin() -> Principal:
    return Principal(email="admin@example.com", role="admin", privileged=True)


@pytest.fixture
def staff() -> Principal:
    return Principal(email="staff@example.com", role="manager")


@pytest.fixture
def other_staff() -> Principal:
    return Principal(email="other@example.com", role="manager")


@pytest.fixture
def make_record() -> Callable[..., InterviewRecord]:
    """Factory for interview records with sensible defaults."""

    def _make(
        record_id: str = "rec-1",
        name: str = "홍길동",
        position: str = "Sushi Chef",
        store: str = "Sydney CBD",
        date: str = "2024-01-15",
        answers: Optional[dict] = None,
        ai_summary: Optional[str] = None,
        created_at: int = 1_700_000_000_000,
        interview_type: InterviewType = InterviewType.STANDARD,
    ) -> InterviewRecord:
        return InterviewRecord(
            id=record_id,
            basic_info=BasicInfo(
                name=name,
                position=position,
                store=store,
                date=date,
                interview_type=interview_type,
            ),
            answers=AnswerSheet(texts=dict(answers or {})),
            ai_summary=ai_summary,
            created_at=created_at,
        )

    return _make
