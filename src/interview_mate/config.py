"""Configuration helpers for Interview Mate."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from importlib import import_module
from pathlib import Path
from typing import Dict, FrozenSet, Optional

logger = logging.getLogger(__name__)


class InterviewType(str, Enum):
    """Available interview question banks."""

    STANDARD = "STANDARD"
    DEPTH = "DEPTH"
    HR = "HR"

    @classmethod
    def from_string(
        cls,
        value: str | None,
        default: Optional["InterviewType"] = None,
    ) -> "InterviewType":
        """Normalize arbitrary user input into a valid interview type."""
        if not value:
            if default is None:
                raise ValueError("Interview type is required.")
            return default
        normalized = value.strip().upper().replace("-", "_")
        if normalized == "IN_DEPTH":
            normalized = "DEPTH"
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported interview type: {value}")


class Language(str, Enum):
    """Languages the question banks can be presented in."""

    KO = "ko"
    EN = "en"

    @classmethod
    def from_string(
        cls,
        value: str | None,
        default: Optional["Language"] = None,
    ) -> "Language":
        if not value:
            if default is None:
                raise ValueError("Language is required.")
            return default
        normalized = value.strip().lower().replace("_", "-").split("-")[0]
        if normalized == "kr":
            normalized = "ko"
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported language: {value}")


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the analysis backend."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]

    @classmethod
    def from_env(cls) -> Optional["ModelSettings"]:
        """Return model settings, or ``None`` when the backend is not configured."""
        model = os.getenv("IM_MODEL")
        api_key = os.getenv("IM_MODEL_API_KEY")
        if not model or not api_key:
            missing = "IM_MODEL" if not model else "IM_MODEL_API_KEY"
            logger.warning(
                "%s is not set; AI interview analysis is disabled.", missing
            )
            return None
        return cls(
            provider=os.getenv("IM_MODEL_PROVIDER", "openai"),
            model=model,
            endpoint=os.getenv("IM_MODEL_ENDPOINT"),
            api_key=api_key,
            api_version=os.getenv("IM_MODEL_API_VERSION"),
        )


DEFAULT_SESSION_TTL = 12 * 60 * 60.0
DEFAULT_FORM_TTL = 4 * 60 * 60.0


def _positive_seconds(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be greater than 0")
    return value


def _empty_users() -> Dict[str, Optional[str]]:
    return {}


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: Optional[ModelSettings]
    data_dir: Path
    record_log: Path
    redis_url: Optional[str]
    allowed_users: Dict[str, Optional[str]] = field(default_factory=_empty_users)
    privileged_roles: FrozenSet[str] = frozenset({"admin"})
    default_language: Language = Language.KO
    analysis_timeout: float = 90.0
    session_ttl: float = DEFAULT_SESSION_TTL
    form_ttl: float = DEFAULT_FORM_TTL
    pdf_font_path: Optional[Path] = None
    organization: str = "Elleo Group"

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        model = ModelSettings.from_env()

        data_dir = Path(os.getenv("IM_DATA_DIR", "data"))
        data_dir.mkdir(parents=True, exist_ok=True)
        record_log = Path(
            os.getenv("IM_RECORD_JSONL", str(data_dir / "records.jsonl"))
        )
        record_log.parent.mkdir(parents=True, exist_ok=True)

        redis_url = os.getenv("IM_REDIS_URL", "").strip() or None
        if redis_url is None:
            logger.info("IM_REDIS_URL not set; Redis mirroring is disabled.")

        allowed_users = parse_allowed_users(os.getenv("IM_ALLOWED_USERS", ""))
        if not allowed_users:
            logger.warning(
                "IM_ALLOWED_USERS is empty; nobody will be able to sign in."
            )
        roles_raw = os.getenv("IM_PRIVILEGED_ROLES", "admin")
        privileged_roles = frozenset(
            role.strip().lower() for role in roles_raw.split(",") if role.strip()
        )

        default_language = Language.from_string(
            os.getenv("IM_DEFAULT_LANGUAGE"),
            default=Language.KO,
        )

        analysis_timeout = _positive_seconds("IM_ANALYSIS_TIMEOUT", 90.0)
        session_ttl = _positive_seconds("IM_SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL)
        form_ttl = _positive_seconds("IM_FORM_TTL_SECONDS", DEFAULT_FORM_TTL)

        font_raw = os.getenv("IM_PDF_FONT_PATH", "").strip()
        pdf_font_path = Path(font_raw) if font_raw else None

        return cls(
            model=model,
            data_dir=data_dir,
            record_log=record_log,
            redis_url=redis_url,
            allowed_users=allowed_users,
            privileged_roles=privileged_roles,
            default_language=default_language,
            analysis_timeout=analysis_timeout,
            session_ttl=session_ttl,
            form_ttl=form_ttl,
            pdf_font_path=pdf_font_path,
            organization=os.getenv("IM_ORGANIZATION", "Elleo Group"),
        )


def parse_allowed_users(raw: str) -> Dict[str, Optional[str]]:
    """Parse ``email=role`` pairs separated by commas.

    A bare email grants access without a role.
    """

    users: Dict[str, Optional[str]] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        email, _, role = entry.partition("=")
        email = email.strip().lower()
        if not email:
            continue
        users[email] = role.strip().lower() or None
    return users


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
