"""Request and result models for the oracle endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from src.challenges.schemas import CompletionEvent
from src.exceptions import ErrorKind, FitStakeError
from src.verification.schemas import VerificationDecision


class ValidateRequest(BaseModel):
    """Dry-run validation of an inline activity against a challenge."""

    challenge_id: int = Field(ge=0)
    activity: dict[str, Any] = Field(
        ...,
        description="Raw Strava activity JSON",
        examples=[
            {
                "id": 12345678901,
                "name": "Morning Run",
                "type": "Run",
                "distance": 5200.0,
                "moving_time": 1800,
                "elapsed_time": 1900,
                "start_date": "2026-01-15T07:30:00Z",
            }
        ],
    )


class VerifyRequest(BaseModel):
    """Verify one participant's activity and record completion on success.

    The activity is given inline or fetched from Strava with the athlete's
    access token (a specific activity id, or the athlete's latest activity).
    """

    challenge_id: int = Field(ge=0)
    participant_address: str = Field(min_length=1)
    activity: Optional[dict[str, Any]] = None
    strava_access_token: Optional[str] = None
    strava_activity_id: Optional[int] = None

    @model_validator(mode="after")
    def check_activity_source(self) -> "VerifyRequest":
        if self.activity is None and not self.strava_access_token:
            raise ValueError("either activity or strava_access_token is required")
        return self


class VerificationOutcome(BaseModel):
    """Typed result of one verify-and-complete run.

    ``error_kind`` is None exactly when ``success`` is True. ``decision`` is
    present whenever the validation pipeline ran.
    """

    success: bool
    challenge_id: int
    participant: str
    message: str
    error_kind: Optional[ErrorKind] = None
    retryable: bool = False
    decision: Optional[VerificationDecision] = None
    completion: Optional[CompletionEvent] = None

    @classmethod
    def failed(
        cls,
        error: FitStakeError,
        challenge_id: int,
        participant: str,
        decision: Optional[VerificationDecision] = None,
    ) -> "VerificationOutcome":
        return cls(
            success=False,
            challenge_id=challenge_id,
            participant=participant,
            message=error.message,
            error_kind=error.kind,
            retryable=error.retryable,
            decision=decision,
        )
