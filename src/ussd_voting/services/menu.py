"""USSD menu state machine for the voting dialog.

Each call to :meth:`MenuService.handle` consumes one input token for a
session, talks to the voting backend as needed and returns the next reply.
Handlers work on a copy of the session; when a step fails the caller gets the
session back exactly as it was loaded.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ussd_voting.domain.backend import BackendErrorCode
from ussd_voting.domain.ballots import BallotPosition
from ussd_voting.domain.sessions import MenuState, UssdSession
from ussd_voting.services.backend import BackendGateway

_logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"\d{6}", flags=re.ASCII)
_NUMBER_PATTERN = re.compile(r"\d+", flags=re.ASCII)
_MAX_CHOICE_DIGITS = 4

ACTION_MENU = "1. Request Verification Code\n2. Vote in Election"
ENTER_VOTER_ID = "Enter your Voter ID:"
NO_ELECTIONS = "No active elections available.\n\nPlease try again later."
INVALID_OPTION_DIAL = "Invalid option. Please dial again."
INVALID_OPTION = "Invalid option."
INVALID_INPUT = "Invalid input."
INVALID_STATE = "Invalid session state. Please try again."
ELECTION_REQUIRED = "Election not selected. Please dial again."
VOTER_ID_REQUIRED = "Voter ID is required."
UNAVAILABLE = "Service temporarily unavailable.\n\nPlease try again later."
SERVICE_ERROR = "Service error.\n\nPlease try again later."
SYSTEM_ERROR = "System error. Please try again later."
SUBMIT_SYSTEM_ERROR = "Submission failed due to system error.\n\nPlease try again later."
BALLOT_FAILED = "Failed to load ballot.\n\nPlease try again later."
REVIEW_BALLOT_FAILED = "Failed to load ballot.\n\nPlease try again."
VOTING_CANCELLED = "Voting cancelled.\n\nYour vote was not submitted."
NO_SELECTIONS = "No selections made.\n\nVoting cancelled."
ALREADY_VOTED = (
    "You have already cast your ballot in this election.\n\n"
    "Thank you for participating!"
)
ALREADY_SUBMITTED = "Your vote has already been submitted.\n\nThank you for voting!"
CODE_SENT_PROMPT = (
    "A 6-digit code has been sent to your phone.\n\nEnter the code to proceed:"
)
FINAL_CONFIRM_PROMPT = (
    "Are you sure you want to submit?\nThis action cannot be undone.\n\n"
    "1. Yes, Submit\n0. No, Go Back"
)
REVIEW_OPTIONS = "1. Submit Vote\n2. Change Choices\n0. Cancel"


@dataclass(frozen=True)
class UssdReply:
    """Rendered reply for the gateway."""

    text: str
    terminal: bool = False

    @property
    def body(self) -> str:
        """Return the wire body with its CON/END marker."""
        marker = "END" if self.terminal else "CON"
        return f"{marker} {self.text}"


class MenuAbort(Exception):
    """Ends the dialog with a message, discarding session changes."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


_Handler = Callable[[UssdSession, str], Awaitable[UssdReply]]

# state -> (handler method, reply used when the handler raises)
_ROUTES: dict[MenuState, tuple[str, str]] = {
    MenuState.WELCOME: ("_handle_welcome", UNAVAILABLE),
    MenuState.REQUEST_CODE: ("_handle_request_code", UNAVAILABLE),
    MenuState.VERIFY_ID: ("_handle_verify_id", UNAVAILABLE),
    MenuState.VERIFY_CODE: ("_handle_verify_code", UNAVAILABLE),
    MenuState.BALLOT_POSITION: ("_handle_ballot_position", SERVICE_ERROR),
    MenuState.REVIEW_VOTES: ("_handle_review_votes", SYSTEM_ERROR),
    MenuState.CONFIRM_SUBMISSION: ("_handle_confirm_submission", SYSTEM_ERROR),
    MenuState.FINAL_CONFIRM: ("_handle_final_confirm", SUBMIT_SYSTEM_ERROR),
    MenuState.VOTE_SUBMITTED: ("_handle_vote_submitted", SYSTEM_ERROR),
}


@dataclass
class MenuService:
    """State machine driving the USSD voting menus."""

    gateway: BackendGateway
    shortcode: str
    logger: logging.Logger = _logger

    @staticmethod
    def supported_states() -> frozenset[MenuState]:
        """Return every state the dispatcher has a handler for."""
        return frozenset(_ROUTES)

    async def handle(
        self, session: UssdSession, user_input: str | None
    ) -> tuple[UssdReply, UssdSession]:
        """Consume one input token and return the reply with the next session."""
        self.logger.info(
            "Menu state=%s input=%s",
            session.current_menu,
            "none" if not user_input else "present",
            extra={"session_id": session.session_id},
        )
        route = _ROUTES.get(session.current_menu)
        if route is None:
            self.logger.error(
                "Invalid session state: %s",
                session.current_menu,
                extra={"session_id": session.session_id},
            )
            return UssdReply(INVALID_STATE, terminal=True), session

        method_name, fallback = route
        handler: _Handler = getattr(self, method_name)
        working = session.copy()
        value = user_input.strip() if user_input else ""
        try:
            reply = await handler(working, value)
        except MenuAbort as abort:
            return UssdReply(abort.message, terminal=True), session
        except Exception:
            self.logger.exception(
                "Menu handler failed in state %s",
                session.current_menu,
                extra={"session_id": session.session_id},
            )
            return UssdReply(fallback, terminal=True), session
        return reply, working

    async def _handle_welcome(self, session: UssdSession, value: str) -> UssdReply:
        result = await self.gateway.get_active_elections()
        if not result.success:
            self.logger.error("Failed to list elections: %s", result.error)
            raise MenuAbort(NO_ELECTIONS)
        elections = result.elections
        if not elections:
            raise MenuAbort(NO_ELECTIONS)

        if session.election_id:
            return self._action_menu(session, value, header="Welcome")

        if len(elections) == 1:
            election = elections[0]
            session.election_id = election.id
            return self._action_menu(
                session, value, header=f"Welcome to {election.name}"
            )

        if not value:
            lines = ["Select Election:"]
            lines.extend(
                f"{number}. {election.name}"
                for number, election in enumerate(elections, 1)
            )
            return UssdReply("\n".join(lines))

        selection = _parse_number(value)
        if selection is None or not 1 <= selection <= len(elections):
            raise MenuAbort("Invalid election selection.")
        election = elections[selection - 1]
        session.election_id = election.id
        # The action choice arrives on the next request, still in WELCOME.
        return UssdReply(f"{election.name}\n\n{ACTION_MENU}")

    def _action_menu(self, session: UssdSession, value: str, header: str) -> UssdReply:
        if not value:
            return UssdReply(f"{header}\n\n{ACTION_MENU}")
        if value == "1":
            session.current_menu = MenuState.REQUEST_CODE
            return UssdReply(ENTER_VOTER_ID)
        if value == "2":
            session.current_menu = MenuState.VERIFY_ID
            return UssdReply(ENTER_VOTER_ID)
        raise MenuAbort(INVALID_OPTION_DIAL)

    async def _handle_request_code(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        if not value:
            raise MenuAbort(VOTER_ID_REQUIRED)
        if not session.election_id:
            raise MenuAbort(ELECTION_REQUIRED)

        result = await self.gateway.request_verification_code(
            voter_id=value,
            phone_number=session.phone_number,
            election_id=session.election_id,
        )
        if not result.success:
            message = result.error or "Failed to send code"
            self.logger.error(
                "Request code failed: %s",
                message,
                extra={"error_code": result.error_code},
            )
            raise MenuAbort(f"{message}\n\nPlease try again or contact support.")
        return UssdReply(
            "Verification code sent to your phone.\n\n"
            f"Dial {self.shortcode} again to vote.",
            terminal=True,
        )

    async def _handle_verify_id(self, session: UssdSession, value: str) -> UssdReply:
        if not value:
            raise MenuAbort(VOTER_ID_REQUIRED)
        if not session.election_id:
            raise MenuAbort(ELECTION_REQUIRED)
        session.voter_id = value

        status = await self.gateway.has_voted(
            election_id=session.election_id, voter_id=value
        )
        if not status.success:
            raise MenuAbort(status.error or "Failed to validate voting status.")
        if status.has_voted:
            return UssdReply(ALREADY_VOTED, terminal=True)

        result = await self.gateway.request_verification_code(
            voter_id=value,
            phone_number=session.phone_number,
            election_id=session.election_id,
        )
        if not result.success:
            message = result.error or "Verification failed"
            self.logger.error(
                "Verify id failed: %s",
                message,
                extra={"error_code": result.error_code},
            )
            raise MenuAbort(f"{message}\n\nPlease try again or contact support.")

        session.current_menu = MenuState.VERIFY_CODE
        return UssdReply(CODE_SENT_PROMPT)

    async def _handle_verify_code(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        if not value:
            raise MenuAbort("Verification code is required.")
        if not _CODE_PATTERN.fullmatch(value):
            raise MenuAbort("Invalid code format.\n\nCode must be 6 digits.")
        election_id, voter_id = self._require_voter(session)

        result = await self.gateway.verify_voter_identity(
            voter_id=voter_id,
            phone_number=session.phone_number,
            verification_code=value,
            election_id=election_id,
        )
        if not result.success:
            message = result.error or "Invalid code"
            self.logger.error(
                "Verify code failed: %s",
                message,
                extra={"error_code": result.error_code},
            )
            if result.error_code == BackendErrorCode.CODE_EXPIRED:
                raise MenuAbort(
                    f"{message}\n\nDial {self.shortcode} to request a new code."
                )
            if result.error_code in {
                BackendErrorCode.ALREADY_VOTED,
                BackendErrorCode.ALREADY_VOTED_BLACKLIST,
            }:
                raise MenuAbort(f"{message}\n\nThank you for participating!")
            raise MenuAbort(f"{message}\n\nPlease try again.")

        session.voter_name = result.voter_name
        session.current_menu = MenuState.BALLOT_POSITION
        session.voting_progress.current_position_index = 0
        positions = await self._fetch_positions(session)
        return self._render_ballot(session, positions)

    async def _handle_ballot_position(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        if not value:
            raise MenuAbort(INVALID_INPUT)
        positions = await self._fetch_positions(session)
        progress = session.voting_progress
        index = progress.current_position_index
        if index >= len(positions) or not positions[index].candidates:
            # Ballot changed since the last prompt; show whatever is current.
            return self._render_ballot(session, positions)

        choice = _parse_number(value)
        previous = _previous_index(positions, index)
        if choice == 0:
            if previous is None:
                return UssdReply(VOTING_CANCELLED, terminal=True)
            progress.current_position_index = previous
            return self._render_ballot(session, positions)

        position = positions[index]
        if choice is None or not 1 <= choice <= len(position.candidates):
            prompt = _position_text(position, can_go_back=previous is not None)
            return UssdReply(f"Invalid choice. Try again.\n\n{prompt}")

        candidate = position.candidates[choice - 1]
        progress.selections[position.id] = candidate.id
        progress.current_position_index = index + 1
        return self._render_ballot(session, positions)

    async def _handle_review_votes(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        return await self._handle_confirm_submission(session, value)

    async def _handle_confirm_submission(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        if not value:
            raise MenuAbort(INVALID_INPUT)
        if value == "0":
            return UssdReply(VOTING_CANCELLED, terminal=True)
        if value == "1":
            session.current_menu = MenuState.FINAL_CONFIRM
            return UssdReply(FINAL_CONFIRM_PROMPT)
        if value == "2":
            session.voting_progress.current_position_index = 0
            session.voting_progress.selections = {}
            session.current_menu = MenuState.BALLOT_POSITION
            positions = await self._fetch_positions(session)
            return self._render_ballot(session, positions)
        raise MenuAbort(INVALID_OPTION)

    async def _handle_final_confirm(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        if not value:
            raise MenuAbort(INVALID_INPUT)
        if value == "0":
            session.current_menu = MenuState.REVIEW_VOTES
            positions = await self._fetch_positions(
                session, failure_message=REVIEW_BALLOT_FAILED
            )
            return self._render_review(session, positions)
        if value != "1":
            raise MenuAbort(INVALID_OPTION)

        election_id, voter_id = self._require_voter(session)
        result = await self.gateway.submit_vote(
            election_id=election_id,
            voter_id=voter_id,
            votes=session.voting_progress.selections,
            session_id=session.session_id,
            phone_number=session.phone_number,
        )
        if not result.success:
            message = result.error or "Unknown error"
            self.logger.error(
                "Submission failed: %s",
                message,
                extra={"error_code": result.error_code},
            )
            raise MenuAbort(
                f"Submission Failed: {message}\n\n"
                "Please contact support if this persists."
            )

        session.current_menu = MenuState.VOTE_SUBMITTED
        return UssdReply(
            "Vote Submitted Successfully!\n\n"
            f"Receipt: {result.receipt_code}\n\nThank you for voting!",
            terminal=True,
        )

    async def _handle_vote_submitted(
        self, session: UssdSession, value: str
    ) -> UssdReply:
        return UssdReply(ALREADY_SUBMITTED, terminal=True)

    def _require_voter(self, session: UssdSession) -> tuple[str, str]:
        if not session.election_id or not session.voter_id:
            self.logger.error(
                "Session in %s without election or voter",
                session.current_menu,
                extra={"session_id": session.session_id},
            )
            raise MenuAbort(INVALID_STATE)
        return session.election_id, session.voter_id

    async def _fetch_positions(
        self, session: UssdSession, failure_message: str = BALLOT_FAILED
    ) -> tuple[BallotPosition, ...]:
        election_id, voter_id = self._require_voter(session)
        result = await self.gateway.get_ballot(
            election_id=election_id, voter_id=voter_id
        )
        if not result.success:
            self.logger.error(
                "Failed to load ballot: %s",
                result.error,
                extra={"session_id": session.session_id},
            )
            raise MenuAbort(failure_message)
        return result.positions

    def _render_ballot(
        self, session: UssdSession, positions: tuple[BallotPosition, ...]
    ) -> UssdReply:
        progress = session.voting_progress
        index = min(progress.current_position_index, len(positions))
        while index < len(positions) and not positions[index].candidates:
            self.logger.warning("No candidates for position: %s", positions[index].title)
            index += 1
        progress.current_position_index = index

        if index >= len(positions):
            session.current_menu = MenuState.REVIEW_VOTES
            return self._render_review(session, positions)
        can_go_back = _previous_index(positions, index) is not None
        return UssdReply(_position_text(positions[index], can_go_back))

    def _render_review(
        self, session: UssdSession, positions: tuple[BallotPosition, ...]
    ) -> UssdReply:
        selections = session.voting_progress.selections
        lines = ["Review your choices:"]
        for position in positions:
            candidate = position.candidate_by_id(selections.get(position.id))
            if candidate is not None:
                lines.append(f"{position.title}: {candidate.name}")
        if len(lines) == 1:
            return UssdReply(NO_SELECTIONS, terminal=True)

        session.current_menu = MenuState.CONFIRM_SUBMISSION
        return UssdReply("\n".join(lines) + f"\n\n{REVIEW_OPTIONS}")


def _position_text(position: BallotPosition, can_go_back: bool) -> str:
    lines = [f"Vote for {position.title}"]
    lines.extend(
        f"{number}. {candidate.name}"
        for number, candidate in enumerate(position.candidates, 1)
    )
    if can_go_back:
        lines.append("0. Back")
    return "\n".join(lines)


def _previous_index(
    positions: tuple[BallotPosition, ...], index: int
) -> int | None:
    """Return the nearest earlier position that has candidates, if any."""
    for target in range(index - 1, -1, -1):
        if positions[target].candidates:
            return target
    return None


def _parse_number(value: str) -> int | None:
    # Menu choices are short; longer digit runs are never a valid option.
    if len(value) > _MAX_CHOICE_DIGITS or not _NUMBER_PATTERN.fullmatch(value):
        return None
    return int(value)
