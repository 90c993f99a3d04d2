"""
Accounts, linked external identities and short-lived sessions.

One account owns N linked identities (``provider`` + ``external_id``).
Lookups go through deterministic keys only; nothing here guesses which
account a login "probably" belongs to.
"""
from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from jobpilot.log import get_logger
from jobpilot.models import SearchCriteria

log = get_logger(__name__)

REQUIRED_PROVIDERS: tuple[str, ...] = ("linkedin", "google")


@dataclass(frozen=True)
class LinkedIdentity:
    provider: str
    external_id: str
    token: str = ""


@dataclass
class Account:
    id: str
    email: str
    name: str = ""
    automation_enabled: bool = True
    preferences: dict[str, Any] = field(default_factory=dict)
    resume_text: str = ""
    telegram_chat_id: str = ""
    identities: list[LinkedIdentity] = field(default_factory=list)

    def identity(self, provider: str) -> LinkedIdentity | None:
        for ident in self.identities:
            if ident.provider == provider:
                return ident
        return None

    @property
    def is_eligible(self) -> bool:
        """Automation on and every required provider linked."""
        return self.automation_enabled and all(self.identity(p) for p in REQUIRED_PROVIDERS)

    def criteria(self) -> SearchCriteria:
        prefs = self.preferences or {}
        return SearchCriteria.from_preferences(
            prefs.get("keywords"),
            prefs.get("location"),
            prefs.get("experience_level"),
            prefs.get("job_type"),
        )


@dataclass(frozen=True)
class Session:
    token: str
    account_id: str
    expires_at: float


class SessionStore:
    def __init__(self, ttl_seconds: float = 86400, *, clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, account_id: str) -> Session:
        session = Session(secrets.token_urlsafe(32), account_id, self._clock() + self.ttl)
        with self._lock:
            self._sessions[session.token] = session
        return session

    def get(self, token: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.expires_at <= self._clock():
                del self._sessions[token]
                return None
            return session

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def sweep(self) -> int:
        """Drop every expired session; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if s.expires_at <= now]
            for t in expired:
                del self._sessions[t]
        if expired:
            log.info("Swept %d expired session(s)", len(expired))
        return len(expired)
