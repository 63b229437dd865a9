"""Session persistence for USSD dialogs."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from ussd_voting.config import resolve_session_ttl
from ussd_voting.domain.sessions import (
    CorruptedSessionError,
    MenuState,
    UssdSession,
    VotingProgress,
)

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Key-value persistence interface for session payloads."""

    def get_payload(self, session_id: str) -> object | None:
        """Return the stored payload for a session, if present and not expired."""

    def put_payload(
        self, session_id: str, payload: dict[str, object], ttl_seconds: int
    ) -> None:
        """Store a session payload that expires after ttl_seconds."""

    def delete_payload(self, session_id: str) -> None:
        """Remove a stored session payload."""


@dataclass
class SessionService:
    """Loads, creates and saves USSD sessions without failing the request."""

    repository: SessionRepository
    ttl_seconds: int = 60 * 30
    logger: logging.Logger = _logger

    def __post_init__(self) -> None:
        self.ttl_seconds = resolve_session_ttl(self.ttl_seconds)

    def get_session(self, session_id: str) -> UssdSession | None:
        """Return the stored session, treating corrupted records as absent."""
        try:
            payload = self.repository.get_payload(session_id)
        except Exception:
            self.logger.exception(
                "Session store read failed", extra={"session_id": session_id}
            )
            return None
        if payload is None:
            return None
        try:
            return UssdSession.from_payload(_decode(payload))
        except CorruptedSessionError as exc:
            self.logger.error(
                "Discarding corrupted session %s: %s", session_id, exc
            )
            self.delete_session(session_id)
            return None

    def create_session(self, session_id: str, phone_number: str) -> UssdSession:
        """Create a fresh session at the welcome menu and persist it."""
        session = UssdSession(
            session_id=session_id,
            phone_number=phone_number,
            current_menu=MenuState.WELCOME,
            voting_progress=VotingProgress(),
            last_activity=_now_millis(),
        )
        self.save_session(session)
        return session

    def save_session(self, session: UssdSession) -> None:
        """Persist a session, refreshing its activity timestamp."""
        session.last_activity = _now_millis()
        try:
            self.repository.put_payload(
                session.session_id, session.to_payload(), self.ttl_seconds
            )
        except Exception:
            self.logger.exception(
                "Session store write failed", extra={"session_id": session.session_id}
            )

    def delete_session(self, session_id: str) -> None:
        """Remove a session, ignoring store errors."""
        try:
            self.repository.delete_payload(session_id)
        except Exception:
            self.logger.exception(
                "Session store delete failed", extra={"session_id": session_id}
            )


@dataclass
class SessionLocks:
    """Per-session asyncio locks so one dialog is handled at a time."""

    enabled: bool = True
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)
    _waiters: dict[str, int] = field(default_factory=dict)

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """Serialize work for the same session id within this process."""
        if not self.enabled:
            yield
            return
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if self._waiters[session_id] == 0:
                self._waiters.pop(session_id, None)
                self._locks.pop(session_id, None)

    def active(self) -> int:
        """Return how many session ids currently hold or await a lock."""
        return len(self._locks)


def _decode(payload: object) -> object:
    if isinstance(payload, str | bytes):
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise CorruptedSessionError("Session payload is not valid JSON") from exc
    return payload


def _now_millis() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)
