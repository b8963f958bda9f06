"""Pricing sessions: one exclusive rate model and pricing engine per caller."""
from __future__ import annotations

import logging
import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from itsdangerous import BadSignature, URLSafeSerializer

from pricing import PricingEngine
from rate_model import RateModel

SESSION_TOKEN_SALT = "pricing-session"


def _utcnow() -> datetime:
    """Return the current time in UTC."""

    return datetime.now(timezone.utc)


@dataclass
class PricingSession:
    """A rate model, the engine bound to it, and the lock that serialises access."""

    session_id: str
    engine: PricingEngine
    created_at: datetime = field(default_factory=_utcnow)
    last_used_at: datetime = field(default_factory=_utcnow)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def rate_model(self) -> RateModel:
        """Return the rate model the engine prices against."""

        return self.engine.rate_model

    def touch(self, now: Optional[datetime] = None) -> None:
        """Record activity on the session."""

        self.last_used_at = now or _utcnow()


class SessionStore:
    """In-memory registry of pricing sessions keyed by signed tokens.

    Sessions are never shared: each token maps to its own ``RateModel`` and
    ``PricingEngine``. Idle sessions expire after ``ttl`` and the least
    recently used session is evicted once ``max_sessions`` is reached.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        ttl: timedelta = timedelta(hours=4),
        max_sessions: int = 500,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._serializer = URLSafeSerializer(secret_key, salt=SESSION_TOKEN_SALT)
        self._ttl = ttl
        self._max_sessions = max_sessions
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sessions: "OrderedDict[str, PricingSession]" = OrderedDict()
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        """Return the number of live sessions."""

        return len(self._sessions)

    def create(self) -> tuple[str, PricingSession]:
        """Start a fresh session and return its token alongside it."""

        now = self._clock()
        session_id = secrets.token_urlsafe(16)
        pricing_session = PricingSession(
            session_id=session_id,
            engine=PricingEngine(RateModel()),
            created_at=now,
            last_used_at=now,
        )

        with self._registry_lock:
            self._purge_expired(now)
            while len(self._sessions) >= self._max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                self._logger.info("Evicted least recently used pricing session %s", evicted_id)
            self._sessions[session_id] = pricing_session

        self._logger.info("Created pricing session %s", session_id)
        return self._serializer.dumps(session_id), pricing_session

    def get(self, token: str) -> Optional[PricingSession]:
        """Return the live session for ``token``, or ``None`` if unknown or expired."""

        session_id = self._load_session_id(token)
        if session_id is None:
            return None

        now = self._clock()
        with self._registry_lock:
            pricing_session = self._sessions.get(session_id)
            if pricing_session is None:
                return None
            if now - pricing_session.last_used_at > self._ttl:
                del self._sessions[session_id]
                self._logger.info("Pricing session %s expired", session_id)
                return None
            pricing_session.touch(now)
            self._sessions.move_to_end(session_id)
            return pricing_session

    def discard(self, token: str) -> bool:
        """Close the session for ``token`` and report whether it existed."""

        session_id = self._load_session_id(token)
        if session_id is None:
            return False

        with self._registry_lock:
            removed = self._sessions.pop(session_id, None)

        if removed is not None:
            self._logger.info("Closed pricing session %s", session_id)
        return removed is not None

    def _load_session_id(self, token: str) -> Optional[str]:
        """Return the session id signed into ``token``, or ``None``."""

        try:
            session_id = self._serializer.loads(token)
        except BadSignature:
            self._logger.warning("Rejected pricing session token with an invalid signature.")
            return None
        return session_id if isinstance(session_id, str) else None

    def _purge_expired(self, now: datetime) -> None:
        """Drop sessions idle for longer than the TTL."""

        expired = [
            session_id
            for session_id, pricing_session in self._sessions.items()
            if now - pricing_session.last_used_at > self._ttl
        ]
        for session_id in expired:
            del self._sessions[session_id]
            self._logger.info("Pricing session %s expired", session_id)
