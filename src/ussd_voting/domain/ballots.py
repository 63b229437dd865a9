"""Domain models for elections and ballots."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Election:
    """Active election offered on the welcome menu."""

    id: str
    name: str


@dataclass(frozen=True)
class BallotCandidate:
    """Candidate standing for a ballot position."""

    id: str
    name: str


@dataclass(frozen=True)
class BallotPosition:
    """Single position on a ballot with its ordered candidates."""

    id: str
    title: str
    candidates: tuple[BallotCandidate, ...] = ()

    def candidate_by_id(self, candidate_id: str | None) -> BallotCandidate | None:
        """Return the candidate with the given id, if present."""
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        return None
