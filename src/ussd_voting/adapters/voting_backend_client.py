"""Voting backend RPC client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class VotingBackendClient(Protocol):
    """Interface for voting backend RPC interactions."""

    async def get_active_elections(self) -> dict[str, object]:
        """Return the raw active elections payload."""

    async def request_verification_code(
        self, voter_id: str, phone_number: str, election_id: str
    ) -> dict[str, object]:
        """Ask the backend to send a verification code."""

    async def verify_voter_identity(
        self,
        voter_id: str,
        phone_number: str,
        verification_code: str,
        election_id: str,
    ) -> dict[str, object]:
        """Verify a voter with the code they received."""

    async def get_ballot(self, election_id: str, voter_id: str) -> dict[str, object]:
        """Return the raw ballot payload for a voter."""

    async def submit_vote(  # noqa: PLR0913
        self,
        election_id: str,
        voter_id: str,
        votes: dict[str, str],
        session_id: str,
        phone_number: str,
    ) -> dict[str, object]:
        """Submit the voter's selections."""

    async def has_voted(self, election_id: str, voter_id: str) -> dict[str, object]:
        """Return whether the voter already cast a ballot."""


@dataclass
class HttpxVotingBackendClient(VotingBackendClient):
    """Voting backend client implemented with httpx."""

    base_url: str
    api_key: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0

    @classmethod
    def create(
        cls, base_url: str, api_key: str, timeout: float = 10.0
    ) -> "HttpxVotingBackendClient":
        """Create a backend client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            api_key=api_key,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def get_active_elections(self) -> dict[str, object]:
        """Call getActiveElections."""
        return await self._call("getActiveElections", {})

    async def request_verification_code(
        self, voter_id: str, phone_number: str, election_id: str
    ) -> dict[str, object]:
        """Call requestVerificationCode."""
        return await self._call(
            "requestVerificationCode",
            {
                "voterId": voter_id,
                "phoneNumber": phone_number,
                "electionId": election_id,
            },
        )

    async def verify_voter_identity(
        self,
        voter_id: str,
        phone_number: str,
        verification_code: str,
        election_id: str,
    ) -> dict[str, object]:
        """Call verifyVoterIdentity."""
        return await self._call(
            "verifyVoterIdentity",
            {
                "voterId": voter_id,
                "phoneNumber": phone_number,
                "verificationCode": verification_code,
                "electionId": election_id,
            },
        )

    async def get_ballot(self, election_id: str, voter_id: str) -> dict[str, object]:
        """Call getBallot."""
        return await self._call(
            "getBallot", {"electionId": election_id, "voterId": voter_id}
        )

    async def submit_vote(  # noqa: PLR0913
        self,
        election_id: str,
        voter_id: str,
        votes: dict[str, str],
        session_id: str,
        phone_number: str,
    ) -> dict[str, object]:
        """Call submitVote."""
        return await self._call(
            "submitVote",
            {
                "electionId": election_id,
                "voterId": voter_id,
                "votes": votes,
                "sessionId": session_id,
                "phoneNumber": phone_number,
            },
        )

    async def has_voted(self, election_id: str, voter_id: str) -> dict[str, object]:
        """Call hasVoted."""
        return await self._call(
            "hasVoted", {"electionId": election_id, "voterId": voter_id}
        )

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _call(self, method: str, params: dict[str, object]) -> dict[str, object]:
        url = f"{self.base_url}/rpc/{method}"
        response = await self.http_client.post(
            url,
            json=params,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError(f"Unexpected {method} response: {type(payload).__name__}")
        return payload
