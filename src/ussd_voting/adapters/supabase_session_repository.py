"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from supabase import Client

from ussd_voting.services.sessions import SessionRepository

_TABLE = "ussd_sessions"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for USSD session payloads."""

    client: Client

    def get_payload(self, session_id: str) -> object | None:
        """Return an unexpired session payload, if present."""
        response = (
            self.client.table(_TABLE)
            .select("session_id, payload, expires_at")
            .eq("session_id", session_id)
            .gt("expires_at", datetime.now(tz=UTC).isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0].get("payload")

    def put_payload(
        self, session_id: str, payload: dict[str, object], ttl_seconds: int
    ) -> None:
        """Upsert a session payload with a fresh expiry."""
        now = datetime.now(tz=UTC)
        response = (
            self.client.table(_TABLE)
            .upsert(
                {
                    "session_id": session_id,
                    "payload": payload,
                    "expires_at": (now + timedelta(seconds=ttl_seconds)).isoformat(),
                    "updated_at": now.isoformat(),
                },
                on_conflict="session_id",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save session")

    def delete_payload(self, session_id: str) -> None:
        """Delete a session row."""
        self.client.table(_TABLE).delete().eq("session_id", session_id).execute()
