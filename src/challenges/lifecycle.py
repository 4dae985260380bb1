"""Challenge and participant state machine.

Participant: NOT_JOINED -> JOINED -> COMPLETED
Challenge:   OPEN -> FINALIZED

COMPLETED and FINALIZED are terminal. The guards below are the single source
of these rules; every ledger implementation runs them inside its atomic
section before writing.
"""

from enum import Enum
from typing import Optional

from src.challenges.schemas import ChallengeCreate, ChallengeSchema, ParticipantSchema
from src.exceptions import (
    AlreadyCompleted,
    AlreadyJoined,
    ChallengeActive,
    ChallengeFinalized,
    IncorrectStake,
    MalformedInput,
    NotJoined,
)
from src.verification.constants import MAX_TIMESTAMP


class ParticipantState(str, Enum):
    NOT_JOINED = "not_joined"
    JOINED = "joined"
    COMPLETED = "completed"


class ChallengeState(str, Enum):
    OPEN = "open"
    FINALIZED = "finalized"


def normalize_address(address: str) -> str:
    """Canonical identity form; identities compare case-insensitively."""
    canonical = (address or "").strip().lower()
    if not canonical:
        raise MalformedInput("Identity must not be empty")
    return canonical


def participant_state(participant: Optional[ParticipantSchema]) -> ParticipantState:
    if participant is None or not participant.has_joined:
        return ParticipantState.NOT_JOINED
    if participant.has_completed:
        return ParticipantState.COMPLETED
    return ParticipantState.JOINED


def challenge_state(challenge: ChallengeSchema) -> ChallengeState:
    return ChallengeState.FINALIZED if challenge.finalized else ChallengeState.OPEN


def resolve_window(data: ChallengeCreate, now: int) -> tuple[int, int]:
    """Compute (start_time, end_time) for a new challenge.

    Parameters
    ----------
    data : ChallengeCreate
        Creation input with a duration or an explicit window
    now : int
        Current Unix time, used as the default start

    Returns
    -------
    tuple[int, int]
        Validated window

    Raises
    ------
    MalformedInput
        If the window is empty, reversed or past the datetime range
    """
    start_time = data.start_time if data.start_time is not None else now
    if data.end_time is not None:
        end_time = data.end_time
    else:
        end_time = start_time + (data.duration or 0)

    if end_time <= start_time:
        raise MalformedInput("Challenge end time must be after start time")
    if end_time > MAX_TIMESTAMP:
        raise MalformedInput("Challenge end time is out of range")
    return start_time, end_time


def ensure_can_join(
    challenge: ChallengeSchema,
    participant: Optional[ParticipantSchema],
    stake_amount: int,
) -> None:
    """Guard NOT_JOINED -> JOINED."""
    if challenge_state(challenge) is ChallengeState.FINALIZED:
        raise ChallengeFinalized(f"Challenge {challenge.challenge_id} is finalized")
    if participant_state(participant) is not ParticipantState.NOT_JOINED:
        raise AlreadyJoined("Already joined this challenge")
    if stake_amount != challenge.stake_amount:
        raise IncorrectStake(
            f"Incorrect stake amount: {stake_amount}. "
            f"Required: {challenge.stake_amount}"
        )


def ensure_can_complete(
    challenge: ChallengeSchema, participant: Optional[ParticipantSchema]
) -> None:
    """Guard JOINED -> COMPLETED."""
    if challenge_state(challenge) is ChallengeState.FINALIZED:
        raise ChallengeFinalized(f"Challenge {challenge.challenge_id} is finalized")

    state = participant_state(participant)
    if state is ParticipantState.NOT_JOINED:
        raise NotJoined("User not a participant")
    if state is ParticipantState.COMPLETED:
        raise AlreadyCompleted("User already marked as completed")


def ensure_can_finalize(challenge: ChallengeSchema, now: int) -> None:
    """Guard OPEN -> FINALIZED; only once the end time has passed."""
    if challenge_state(challenge) is ChallengeState.FINALIZED:
        raise ChallengeFinalized(f"Challenge {challenge.challenge_id} is already finalized")
    if now <= challenge.end_time:
        raise ChallengeActive(
            f"Challenge {challenge.challenge_id} has not ended yet "
            f"(ends at {challenge.end_time})"
        )
