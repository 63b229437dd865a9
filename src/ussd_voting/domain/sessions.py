"""Domain models for USSD menu sessions."""

from dataclasses import dataclass, field
from enum import Enum


class MenuState(str, Enum):
    """Menu a session is currently waiting on."""

    WELCOME = "WELCOME"
    REQUEST_CODE = "REQUEST_CODE"
    VERIFY_ID = "VERIFY_ID"
    VERIFY_CODE = "VERIFY_CODE"
    BALLOT_POSITION = "BALLOT_POSITION"
    REVIEW_VOTES = "REVIEW_VOTES"
    CONFIRM_SUBMISSION = "CONFIRM_SUBMISSION"
    FINAL_CONFIRM = "FINAL_CONFIRM"
    VOTE_SUBMITTED = "VOTE_SUBMITTED"


class CorruptedSessionError(ValueError):
    """Raised when a stored session payload cannot be decoded."""


@dataclass
class VotingProgress:
    """Position cursor and recorded choices for the ballot."""

    current_position_index: int = 0
    selections: dict[str, str] = field(default_factory=dict)


@dataclass
class UssdSession:
    """Server-side record of one in-progress USSD dialog."""

    session_id: str
    phone_number: str
    current_menu: MenuState = MenuState.WELCOME
    election_id: str | None = None
    voter_id: str | None = None
    voter_name: str | None = None
    voting_progress: VotingProgress = field(default_factory=VotingProgress)
    last_activity: int = 0

    def copy(self) -> "UssdSession":
        """Return an independent copy safe to mutate."""
        return UssdSession(
            session_id=self.session_id,
            phone_number=self.phone_number,
            current_menu=self.current_menu,
            election_id=self.election_id,
            voter_id=self.voter_id,
            voter_name=self.voter_name,
            voting_progress=VotingProgress(
                current_position_index=self.voting_progress.current_position_index,
                selections=dict(self.voting_progress.selections),
            ),
            last_activity=self.last_activity,
        )

    def to_payload(self) -> dict[str, object]:
        """Serialize the session into its stored JSON shape."""
        payload: dict[str, object] = {
            "sessionId": self.session_id,
            "phoneNumber": self.phone_number,
            "currentMenu": _menu_value(self.current_menu),
            "votingProgress": {
                "currentPositionIndex": self.voting_progress.current_position_index,
                "selections": dict(self.voting_progress.selections),
            },
            "lastActivity": self.last_activity,
        }
        if self.election_id is not None:
            payload["electionId"] = self.election_id
        if self.voter_id is not None:
            payload["voterId"] = self.voter_id
        if self.voter_name is not None:
            payload["voterName"] = self.voter_name
        return payload

    @classmethod
    def from_payload(cls, payload: object) -> "UssdSession":
        """Decode a stored payload, raising CorruptedSessionError if invalid."""
        if not isinstance(payload, dict):
            raise CorruptedSessionError("Session payload is not an object")
        try:
            session_id = payload["sessionId"]
            phone_number = payload["phoneNumber"]
            current_menu = MenuState(payload["currentMenu"])
        except (KeyError, ValueError) as exc:
            raise CorruptedSessionError(str(exc)) from exc
        if not isinstance(session_id, str) or not isinstance(phone_number, str):
            raise CorruptedSessionError("Session identifiers must be strings")

        progress = payload.get("votingProgress") or {}
        if not isinstance(progress, dict):
            raise CorruptedSessionError("votingProgress is not an object")
        index = progress.get("currentPositionIndex", 0)
        selections = progress.get("selections") or {}
        if not isinstance(index, int) or index < 0 or not isinstance(selections, dict):
            raise CorruptedSessionError("votingProgress is malformed")

        last_activity = payload.get("lastActivity", 0)
        return cls(
            session_id=session_id,
            phone_number=phone_number,
            current_menu=current_menu,
            election_id=_optional_str(payload.get("electionId")),
            voter_id=_optional_str(payload.get("voterId")),
            voter_name=_optional_str(payload.get("voterName")),
            voting_progress=VotingProgress(
                current_position_index=index,
                selections={str(key): str(value) for key, value in selections.items()},
            ),
            last_activity=last_activity if isinstance(last_activity, int) else 0,
        )


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def _menu_value(menu: object) -> object:
    return menu.value if isinstance(menu, MenuState) else menu
