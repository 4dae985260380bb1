"""FitStake error taxonomy.

Every failure the verification engine can report has a distinct ``ErrorKind``
so callers can branch on it (e.g. treat ``ALREADY_COMPLETED`` as an
idempotent success) instead of parsing messages.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable failure kinds."""

    MALFORMED_INPUT = "MALFORMED_INPUT"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNAUTHORIZED_ORACLE = "UNAUTHORIZED_ORACLE"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    NOT_JOINED = "NOT_JOINED"
    CHALLENGE_FINALIZED = "CHALLENGE_FINALIZED"
    LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"
    CHALLENGE_NOT_FOUND = "CHALLENGE_NOT_FOUND"
    ALREADY_JOINED = "ALREADY_JOINED"
    INCORRECT_STAKE = "INCORRECT_STAKE"
    CHALLENGE_ACTIVE = "CHALLENGE_ACTIVE"
    ACTIVITY_UNAVAILABLE = "ACTIVITY_UNAVAILABLE"


class FitStakeError(Exception):
    """Base exception for verification and lifecycle errors."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedInput(FitStakeError):
    """Raised when request or activity input is structurally invalid."""

    kind = ErrorKind.MALFORMED_INPUT


class ValidationFailed(FitStakeError):
    """Raised when a decision that did not pass reaches the authorizer."""

    kind = ErrorKind.VALIDATION_FAILED


class UnauthorizedOracle(FitStakeError):
    """Raised when the caller is not the configured oracle identity."""

    kind = ErrorKind.UNAUTHORIZED_ORACLE


class AlreadyCompleted(FitStakeError):
    """Raised when the participant's completion was already recorded."""

    kind = ErrorKind.ALREADY_COMPLETED


class NotJoined(FitStakeError):
    """Raised when the target identity never joined the challenge."""

    kind = ErrorKind.NOT_JOINED


class ChallengeFinalized(FitStakeError):
    """Raised on any mutation of a finalized challenge."""

    kind = ErrorKind.CHALLENGE_FINALIZED


class LedgerUnavailable(FitStakeError):
    """Raised when the ledger could not be reached or rejected the call."""

    kind = ErrorKind.LEDGER_UNAVAILABLE
    retryable = True


class ChallengeNotFound(FitStakeError):
    """Raised when a challenge id does not exist (404)."""

    kind = ErrorKind.CHALLENGE_NOT_FOUND


class AlreadyJoined(FitStakeError):
    """Raised when an identity joins the same challenge twice."""

    kind = ErrorKind.ALREADY_JOINED


class IncorrectStake(FitStakeError):
    """Raised when the join stake differs from the challenge stake amount."""

    kind = ErrorKind.INCORRECT_STAKE


class ChallengeActive(FitStakeError):
    """Raised when finalizing before the challenge end time."""

    kind = ErrorKind.CHALLENGE_ACTIVE


class ActivityUnavailable(FitStakeError):
    """Raised when the activity could not be fetched from Strava."""

    kind = ErrorKind.ACTIVITY_UNAVAILABLE
    retryable = True
