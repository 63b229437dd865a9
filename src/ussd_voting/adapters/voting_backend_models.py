"""Pydantic models for voting backend RPC payloads."""

from pydantic import BaseModel, ConfigDict, Field


class _BackendModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CandidatePayload(_BackendModel):
    """Candidate entry on a ballot position."""

    id: str
    name: str


class PositionPayload(_BackendModel):
    """Ballot position payload."""

    id: str
    title: str
    candidates: list[CandidatePayload] | None = None


class BallotPayload(_BackendModel):
    """Ballot payload."""

    positions: list[PositionPayload] = Field(default_factory=list)


class ElectionPayload(_BackendModel):
    """Active election payload."""

    id: str
    name: str


class RpcResponse(_BackendModel):
    """Common envelope fields of every RPC response."""

    success: bool = False
    error: str | None = None
    error_code: str | None = Field(default=None, alias="errorCode")


class ElectionsResponse(RpcResponse):
    """Response of getActiveElections."""

    elections: list[ElectionPayload] | None = None


class VerificationResponse(RpcResponse):
    """Response of verifyVoterIdentity."""

    voter_name: str | None = Field(default=None, alias="voterName")


class BallotResponse(RpcResponse):
    """Response of getBallot."""

    ballot: BallotPayload | None = None


class SubmissionResponse(RpcResponse):
    """Response of submitVote."""

    receipt_code: str | None = Field(default=None, alias="receiptCode")


class VoteStatusResponse(RpcResponse):
    """Response of hasVoted."""

    success: bool = True
    has_voted: bool = Field(default=False, alias="hasVoted")
