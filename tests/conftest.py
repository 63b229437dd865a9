"""Shared test fixtures."""

from dataclasses import dataclass, field

import pytest

from ussd_voting.adapters.voting_backend_client import VotingBackendClient
from ussd_voting.config import Settings
from ussd_voting.containers import AppContainer
from ussd_voting.domain.sessions import MenuState, UssdSession
from ussd_voting.services.backend import BackendGateway
from ussd_voting.services.menu import MenuService
from ussd_voting.services.sessions import (
    SessionLocks,
    SessionRepository,
    SessionService,
)


def make_ballot(*positions: tuple[str, str, list[tuple[str, str]]]) -> dict:
    """Build a getBallot payload from (id, title, [(candidate id, name)])."""
    return {
        "success": True,
        "ballot": {
            "positions": [
                {
                    "id": position_id,
                    "title": title,
                    "candidates": [
                        {"id": candidate_id, "name": name}
                        for candidate_id, name in candidates
                    ],
                }
                for position_id, title, candidates in positions
            ]
        },
    }


@dataclass
class FakeVotingBackendClient(VotingBackendClient):
    """Fake voting backend returning canned payloads and recording calls."""

    elections: dict[str, object] = field(
        default_factory=lambda: {
            "success": True,
            "elections": [{"id": "elec-1", "name": "City Council 2025"}],
        }
    )
    request_code: dict[str, object] = field(default_factory=lambda: {"success": True})
    verification: dict[str, object] = field(
        default_factory=lambda: {"success": True, "voterName": "Jane Doe"}
    )
    ballot: dict[str, object] = field(
        default_factory=lambda: make_ballot(
            ("mayor", "Mayor", [("m1", "Alice"), ("m2", "Bob")]),
            ("clerk", "Clerk", [("c1", "Carol"), ("c2", "Dan")]),
        )
    )
    submission: dict[str, object] = field(
        default_factory=lambda: {"success": True, "receiptCode": "RCPT-42"}
    )
    vote_status: dict[str, object] = field(
        default_factory=lambda: {"success": True, "hasVoted": False}
    )
    failing: set[str] = field(default_factory=set)
    calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def _record(self, method: str, **params: object) -> None:
        self.calls.append((method, params))
        if method in self.failing:
            raise RuntimeError(f"{method} unavailable")

    def called(self, method: str) -> list[dict[str, object]]:
        return [params for name, params in self.calls if name == method]

    async def get_active_elections(self) -> dict[str, object]:
        self._record("get_active_elections")
        return self.elections

    async def request_verification_code(
        self, voter_id: str, phone_number: str, election_id: str
    ) -> dict[str, object]:
        self._record(
            "request_verification_code",
            voter_id=voter_id,
            phone_number=phone_number,
            election_id=election_id,
        )
        return self.request_code

    async def verify_voter_identity(
        self,
        voter_id: str,
        phone_number: str,
        verification_code: str,
        election_id: str,
    ) -> dict[str, object]:
        self._record(
            "verify_voter_identity",
            voter_id=voter_id,
            phone_number=phone_number,
            verification_code=verification_code,
            election_id=election_id,
        )
        return self.verification

    async def get_ballot(self, election_id: str, voter_id: str) -> dict[str, object]:
        self._record("get_ballot", election_id=election_id, voter_id=voter_id)
        return self.ballot

    async def submit_vote(  # noqa: PLR0913
        self,
        election_id: str,
        voter_id: str,
        votes: dict[str, str],
        session_id: str,
        phone_number: str,
    ) -> dict[str, object]:
        self._record(
            "submit_vote",
            election_id=election_id,
            voter_id=voter_id,
            votes=votes,
            session_id=session_id,
            phone_number=phone_number,
        )
        return self.submission

    async def has_voted(self, election_id: str, voter_id: str) -> dict[str, object]:
        self._record("has_voted", election_id=election_id, voter_id=voter_id)
        return self.vote_status


@dataclass
class RecordingSessionRepository(SessionRepository):
    """In-memory session repository that records every write."""

    payloads: dict[str, object] = field(default_factory=dict)
    writes: list[tuple[str, dict[str, object], int]] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)

    def get_payload(self, session_id: str) -> object | None:
        return self.payloads.get(session_id)

    def put_payload(
        self, session_id: str, payload: dict[str, object], ttl_seconds: int
    ) -> None:
        self.writes.append((session_id, payload, ttl_seconds))
        self.payloads[session_id] = payload

    def delete_payload(self, session_id: str) -> None:
        self.deletes.append(session_id)
        self.payloads.pop(session_id, None)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        voting_backend_url="https://backend.test",
        voting_backend_api_key="backend-key",
        admin_token="admin-token",
        ussd_shortcode="*384*123#",
        session_store="memory",
    )


@pytest.fixture
def backend_client() -> FakeVotingBackendClient:
    return FakeVotingBackendClient()


@pytest.fixture
def session_repository() -> RecordingSessionRepository:
    return RecordingSessionRepository()


@pytest.fixture
def menu_service(backend_client: FakeVotingBackendClient) -> MenuService:
    return MenuService(gateway=BackendGateway(backend_client), shortcode="*384*123#")


@pytest.fixture
def new_session() -> UssdSession:
    return UssdSession(session_id="ATUid_1", phone_number="+254700000001")


@pytest.fixture
def verified_session() -> UssdSession:
    return UssdSession(
        session_id="ATUid_2",
        phone_number="+254700000002",
        current_menu=MenuState.BALLOT_POSITION,
        election_id="elec-1",
        voter_id="V123",
        voter_name="Jane Doe",
    )


@pytest.fixture
def container(
    settings: Settings,
    backend_client: FakeVotingBackendClient,
    session_repository: RecordingSessionRepository,
    menu_service: MenuService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        backend_gateway=menu_service.gateway,
        session_service=SessionService(session_repository, ttl_seconds=600),
        session_locks=SessionLocks(),
        menu_service=menu_service,
        close_resources=close_resources,
    )
