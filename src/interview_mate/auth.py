"""Whitelist-based access control and role-derived permissions."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .config import DEFAULT_SESSION_TTL, AppSettings, InterviewType

logger = logging.getLogger(__name__)

UNREGISTERED_USER_MESSAGE = "등록되지 않은 사용자입니다. 관리자에게 문의하세요."

ADMIN_ROLE = "admin"
HR_DIRECTOR_ROLE = "hr_director"


class AuthorizationError(PermissionError):
    """Raised when an identity may not perform the requested action."""


@dataclass(frozen=True, slots=True)
class Principal:
    """An authenticated identity."""

    email: str
    role: Optional[str] = None
    privileged: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "email": self.email,
            "role": self.role,
            "privileged": self.privileged,
            "interviewTypes": [item.value for item in allowed_interview_types(self.role)],
        }


def allowed_interview_types(role: Optional[str]) -> List[InterviewType]:
    """Interview types a role may start."""

    normalized = (role or "").lower()
    types: List[InterviewType] = []
    if normalized != HR_DIRECTOR_ROLE:
        types.append(InterviewType.STANDARD)
    if normalized == ADMIN_ROLE:
        types.append(InterviewType.DEPTH)
    if normalized in {ADMIN_ROLE, HR_DIRECTOR_ROLE}:
        types.append(InterviewType.HR)
    return types


class AccessPolicy:
    """Maps whitelisted e-mail addresses to roles."""

    def __init__(
        self,
        allowed_users: Mapping[str, Optional[str]],
        privileged_roles: FrozenSet[str] = frozenset({ADMIN_ROLE}),
    ) -> None:
        self._allowed = {email.strip().lower(): role for email, role in allowed_users.items()}
        self._privileged_roles = frozenset(role.lower() for role in privileged_roles)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "AccessPolicy":
        return cls(settings.allowed_users, settings.privileged_roles)

    def is_allowed(self, email: str) -> bool:
        return email.strip().lower() in self._allowed

    def principal_for(self, email: str) -> Principal:
        normalized = email.strip().lower()
        if normalized not in self._allowed:
            raise AuthorizationError(UNREGISTERED_USER_MESSAGE)
        role = self._allowed[normalized]
        return Principal(
            email=normalized,
            role=role,
            privileged=role is not None and role in self._privileged_roles,
        )


class AuthService:
    """Issues opaque bearer tokens to whitelisted identities.

    Tokens live in memory, expire ``ttl`` seconds after sign-in and are
    lost on restart.
    """

    def __init__(
        self,
        policy: AccessPolicy,
        *,
        ttl: float = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policy = policy
        self._ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, Tuple[Principal, float]] = {}

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

    def sign_in(self, email: str) -> Tuple[str, Principal]:
        if not email or not email.strip():
            raise AuthorizationError(UNREGISTERED_USER_MESSAGE)
        try:
            principal = self._policy.principal_for(email)
        except AuthorizationError:
            logger.warning("Rejected sign-in for unregistered identity %s", email)
            raise
        self.prune()
        token = secrets.token_urlsafe(32)
        self._sessions[token] = (principal, self._clock() + self._ttl)
        logger.info("Signed in %s (role=%s)", principal.email, principal.role)
        return token, principal

    def sign_out(self, token: str) -> Optional[Principal]:
        entry = self._sessions.pop(token, None)
        if entry is None:
            return None
        logger.info("Signed out %s", entry[0].email)
        return entry[0]

    def resolve(self, token: Optional[str]) -> Optional[Principal]:
        if not token:
            return None
        entry = self._sessions.get(token)
        if entry is None:
            return None
        principal, expires_at = entry
        if self._clock() >= expires_at:
            self._sessions.pop(token, None)
            logger.info("Session for %s expired", principal.email)
            return None
        return principal

    def prune(self) -> int:
        """Drop expired tokens and return how many were removed."""

        now = self._clock()
        expired = [token for token, (_, expires_at) in self._sessions.items() if now >= expires_at]
        for token in expired:
            del self._sessions[token]
        return len(expired)

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)


def ensure_can_start(principal: Principal, interview_type: InterviewType) -> None:
    if interview_type not in allowed_interview_types(principal.role):
        raise AuthorizationError(
            f"Role '{principal.role or 'none'}' may not start {interview_type.value} interviews."
        )
