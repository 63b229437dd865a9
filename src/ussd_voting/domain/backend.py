"""Result types returned by the voting backend gateway."""

from dataclasses import dataclass
from enum import Enum

from ussd_voting.domain.ballots import BallotPosition, Election


class BackendErrorCode(str, Enum):
    """Machine-readable failure classes reported by the backend."""

    CODE_EXPIRED = "CODE_EXPIRED"
    ALREADY_VOTED = "ALREADY_VOTED"
    ALREADY_VOTED_BLACKLIST = "ALREADY_VOTED_BLACKLIST"
    RPC_ERROR = "RPC_ERROR"

    @classmethod
    def parse(cls, raw: str | None) -> "BackendErrorCode | None":
        """Map a raw error code to a known class, or None when unclassified."""
        if raw is None:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(frozen=True)
class BackendResult:
    """Outcome shared by every backend operation."""

    success: bool
    error: str | None = None
    error_code: BackendErrorCode | None = None


@dataclass(frozen=True)
class ElectionsResult(BackendResult):
    """Active elections listing."""

    elections: tuple[Election, ...] = ()


@dataclass(frozen=True)
class VerificationResult(BackendResult):
    """Identity verification outcome."""

    voter_name: str | None = None


@dataclass(frozen=True)
class BallotResult(BackendResult):
    """Ballot fetched for a voter."""

    positions: tuple[BallotPosition, ...] = ()


@dataclass(frozen=True)
class SubmissionResult(BackendResult):
    """Vote submission outcome."""

    receipt_code: str | None = None


@dataclass(frozen=True)
class VoteStatusResult(BackendResult):
    """Whether a voter has already voted."""

    has_voted: bool = False
