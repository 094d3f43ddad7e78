from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping
import hmac

from .booking import ErrorCode

SESSION_LIFETIME = timedelta(hours=8)


@dataclass(frozen=True)
class AdminSession:
    issued_at: datetime
    expires_at: datetime
    is_authenticated: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "isAuthenticated": self.is_authenticated,
            "issuedAt": self.issued_at.isoformat(timespec="seconds"),
            "expiresAt": self.expires_at.isoformat(timespec="seconds"),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> "AdminSession | None":
        if not data:
            return None
        try:
            return AdminSession(
                issued_at=datetime.fromisoformat(str(data["issuedAt"])),
                expires_at=datetime.fromisoformat(str(data["expiresAt"])),
                is_authenticated=bool(data.get("isAuthenticated", False)),
            )
        except (KeyError, TypeError, ValueError):
            return None


class SessionGuard:
    """Password check plus a fixed-lifetime admin session."""

    def __init__(
        self,
        password: str | None,
        lifetime: timedelta = SESSION_LIFETIME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._password = password or ""
        self.lifetime = lifetime
        self.clock: Callable[[], datetime] = clock or datetime.now

    def verify_password(self, candidate: str | None) -> bool:
        if not self._password or not candidate:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._password.encode("utf-8"))

    def create_session(self) -> AdminSession:
        issued_at = self.clock()
        return AdminSession(issued_at=issued_at, expires_at=issued_at + self.lifetime)

    def check(self, session: AdminSession | None) -> ErrorCode | None:
        if not self._password:
            return ErrorCode.UNAUTHENTICATED
        if session is None or not session.is_authenticated:
            return ErrorCode.UNAUTHENTICATED
        if self.clock() >= session.expires_at:
            return ErrorCode.SESSION_EXPIRED
        return None

    def is_session_valid(self, session: AdminSession | None) -> bool:
        return self.check(session) is None
