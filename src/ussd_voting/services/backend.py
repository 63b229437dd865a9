"""Gateway over the voting backend that never lets a failure escape."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from pydantic import ValidationError

from ussd_voting.adapters.voting_backend_client import VotingBackendClient
from ussd_voting.adapters.voting_backend_models import (
    BallotResponse,
    ElectionsResponse,
    RpcResponse,
    SubmissionResponse,
    VerificationResponse,
    VoteStatusResponse,
)
from ussd_voting.domain.backend import (
    BackendErrorCode,
    BackendResult,
    BallotResult,
    ElectionsResult,
    SubmissionResult,
    VerificationResult,
    VoteStatusResult,
)
from ussd_voting.domain.ballots import BallotCandidate, BallotPosition, Election

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Service temporarily unavailable."
BALLOT_UNAVAILABLE_MESSAGE = "Failed to load ballot."
SUBMIT_UNAVAILABLE_MESSAGE = "Failed to submit vote."
STATUS_UNAVAILABLE_MESSAGE = "Unable to validate voter status. Please try again."

_ResponseT = TypeVar("_ResponseT", bound=RpcResponse)


class _RpcFailure(Exception):
    """Internal marker for a failed or malformed RPC call."""


@dataclass
class BackendGateway:
    """Typed facade over the voting backend RPC client."""

    client: VotingBackendClient
    logger: logging.Logger = _logger

    async def get_active_elections(self) -> ElectionsResult:
        """List the elections currently open for voting."""
        try:
            response = await self._call(
                "getActiveElections",
                self.client.get_active_elections,
                ElectionsResponse,
            )
        except _RpcFailure:
            return ElectionsResult(**_failure(UNAVAILABLE_MESSAGE))
        if not response.success or response.elections is None:
            return ElectionsResult(
                success=False,
                error=response.error,
                error_code=BackendErrorCode.parse(response.error_code),
            )
        return ElectionsResult(
            success=True,
            elections=tuple(
                Election(id=election.id, name=election.name)
                for election in response.elections
            ),
        )

    async def request_verification_code(
        self, voter_id: str, phone_number: str, election_id: str
    ) -> BackendResult:
        """Ask the backend to send a verification code to the voter."""
        try:
            response = await self._call(
                "requestVerificationCode",
                lambda: self.client.request_verification_code(
                    voter_id=voter_id,
                    phone_number=phone_number,
                    election_id=election_id,
                ),
                RpcResponse,
            )
        except _RpcFailure:
            return BackendResult(**_failure(UNAVAILABLE_MESSAGE))
        return BackendResult(
            success=response.success,
            error=response.error,
            error_code=BackendErrorCode.parse(response.error_code),
        )

    async def verify_voter_identity(
        self,
        voter_id: str,
        phone_number: str,
        verification_code: str,
        election_id: str,
    ) -> VerificationResult:
        """Verify the voter with the code they were sent."""
        try:
            response = await self._call(
                "verifyVoterIdentity",
                lambda: self.client.verify_voter_identity(
                    voter_id=voter_id,
                    phone_number=phone_number,
                    verification_code=verification_code,
                    election_id=election_id,
                ),
                VerificationResponse,
            )
        except _RpcFailure:
            return VerificationResult(**_failure(UNAVAILABLE_MESSAGE))
        return VerificationResult(
            success=response.success,
            error=response.error,
            error_code=BackendErrorCode.parse(response.error_code),
            voter_name=response.voter_name,
        )

    async def get_ballot(self, election_id: str, voter_id: str) -> BallotResult:
        """Fetch the ordered ballot for a voter."""
        try:
            response = await self._call(
                "getBallot",
                lambda: self.client.get_ballot(
                    election_id=election_id, voter_id=voter_id
                ),
                BallotResponse,
            )
        except _RpcFailure:
            return BallotResult(**_failure(BALLOT_UNAVAILABLE_MESSAGE))
        if not response.success or response.ballot is None:
            return BallotResult(
                success=False,
                error=response.error or BALLOT_UNAVAILABLE_MESSAGE,
                error_code=BackendErrorCode.parse(response.error_code),
            )
        return BallotResult(
            success=True,
            positions=tuple(
                BallotPosition(
                    id=position.id,
                    title=position.title,
                    candidates=tuple(
                        BallotCandidate(id=candidate.id, name=candidate.name)
                        for candidate in position.candidates or []
                    ),
                )
                for position in response.ballot.positions
            ),
        )

    async def submit_vote(  # noqa: PLR0913
        self,
        election_id: str,
        voter_id: str,
        votes: dict[str, str],
        session_id: str,
        phone_number: str,
    ) -> SubmissionResult:
        """Submit the voter's selections and return the receipt."""
        try:
            response = await self._call(
                "submitVote",
                lambda: self.client.submit_vote(
                    election_id=election_id,
                    voter_id=voter_id,
                    votes=dict(votes),
                    session_id=session_id,
                    phone_number=phone_number,
                ),
                SubmissionResponse,
            )
        except _RpcFailure:
            return SubmissionResult(**_failure(SUBMIT_UNAVAILABLE_MESSAGE))
        return SubmissionResult(
            success=response.success,
            error=response.error,
            error_code=BackendErrorCode.parse(response.error_code),
            receipt_code=response.receipt_code,
        )

    async def has_voted(self, election_id: str, voter_id: str) -> VoteStatusResult:
        """Check whether the voter already cast a ballot."""
        try:
            response = await self._call(
                "hasVoted",
                lambda: self.client.has_voted(
                    election_id=election_id, voter_id=voter_id
                ),
                VoteStatusResponse,
            )
        except _RpcFailure:
            return VoteStatusResult(
                has_voted=False, **_failure(STATUS_UNAVAILABLE_MESSAGE)
            )
        return VoteStatusResult(
            success=response.success,
            error=response.error,
            error_code=BackendErrorCode.parse(response.error_code),
            has_voted=response.has_voted,
        )

    async def _call(
        self,
        action: str,
        func: "Callable[[], Awaitable[dict[str, object]]]",
        model: type[_ResponseT],
    ) -> _ResponseT:
        """Run an RPC and validate its payload, raising _RpcFailure on error."""
        try:
            payload = await func()
        except Exception as exc:
            self.logger.exception(
                "Backend %s RPC error", action, extra={"status": _status_code(exc)}
            )
            raise _RpcFailure(action) from exc
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            self.logger.error("Backend %s returned a malformed payload: %s", action, exc)
            raise _RpcFailure(action) from exc


def _failure(message: str) -> dict[str, object]:
    return {
        "success": False,
        "error": message,
        "error_code": BackendErrorCode.RPC_ERROR,
    }


def _status_code(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"
