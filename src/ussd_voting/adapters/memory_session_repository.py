"""Process-local session repository with expiry."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from ussd_voting.services.sessions import SessionRepository


@dataclass(frozen=True)
class _StoredSession:
    payload: dict[str, object]
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class InMemorySessionRepository(SessionRepository):
    """Session store kept in process memory, for local runs and tests."""

    sessions: dict[str, _StoredSession] = field(default_factory=dict)

    def get_payload(self, session_id: str) -> object | None:
        stored = self.sessions.get(session_id)
        if stored is None:
            return None
        if stored.expired(datetime.now(tz=UTC)):
            del self.sessions[session_id]
            return None
        return stored.payload

    def put_payload(
        self, session_id: str, payload: dict[str, object], ttl_seconds: int
    ) -> None:
        self.sessions[session_id] = _StoredSession(
            payload=payload,
            expires_at=datetime.now(tz=UTC) + timedelta(seconds=ttl_seconds),
        )

    def delete_payload(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)
