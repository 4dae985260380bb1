"""Pydantic schemas for challenges, participants and completion records."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.verification.constants import DEFAULT_ACTIVITY_TYPE, MAX_TIMESTAMP
from src.verification.schemas import ChallengeCriteria, VerificationDecision


def _as_int(value: Any) -> Any:
    """Numeric(78, 0) columns come back as Decimal."""
    if isinstance(value, Decimal):
        return int(value)
    return value


class ChallengeCreate(BaseModel):
    """Input for creating a challenge.

    Either ``duration`` (seconds from now) or an explicit ``start_time`` /
    ``end_time`` window must be given.
    """

    creator: str = Field(min_length=1)
    description: str
    target_distance: float = Field(gt=0)  # meters
    stake_amount: int = Field(gt=0)  # smallest currency unit
    duration: Optional[int] = Field(default=None, gt=0)  # seconds
    start_time: Optional[int] = Field(default=None, ge=0, le=MAX_TIMESTAMP)
    end_time: Optional[int] = Field(default=None, ge=0, le=MAX_TIMESTAMP)
    required_activity_type: Optional[str] = None  # deployment default when omitted
    min_distance: Optional[float] = Field(default=None, ge=0)
    max_distance: Optional[float] = Field(default=None, gt=0)
    distance_tolerance: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_window(self) -> "ChallengeCreate":
        if self.duration is None and self.end_time is None:
            raise ValueError("either duration or end_time is required")
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.end_time <= self.start_time
        ):
            raise ValueError("end_time must be after start_time")
        return self


class ChallengeSchema(BaseModel):
    """Stored challenge state."""

    challenge_id: int
    creator: str
    description: str
    target_distance: float
    stake_amount: int
    start_time: int
    end_time: int
    required_activity_type: str = DEFAULT_ACTIVITY_TYPE
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None
    distance_tolerance: Optional[float] = None
    total_staked: int = 0
    participant_count: int = 0
    finalized: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator("stake_amount", "total_staked", mode="before")
    @classmethod
    def coerce_amounts(cls, value: Any) -> Any:
        return _as_int(value)

    def to_criteria(
        self,
        default_tolerance: float,
        max_average_speed: float,
        max_activity_distance: float,
    ) -> ChallengeCriteria:
        """Build validator criteria; a per-challenge tolerance wins over the default."""
        tolerance = (
            self.distance_tolerance
            if self.distance_tolerance is not None
            else default_tolerance
        )
        return ChallengeCriteria(
            challenge_id=self.challenge_id,
            target_distance=self.target_distance,
            start_time=self.start_time,
            end_time=self.end_time,
            required_activity_type=self.required_activity_type,
            min_distance=self.min_distance,
            max_distance=self.max_distance,
            distance_tolerance=tolerance,
            max_average_speed=max_average_speed,
            max_activity_distance=max_activity_distance,
        )


class ParticipantSchema(BaseModel):
    """Participant state for one (challenge, identity) pair."""

    challenge_id: int
    address: str
    staked_amount: int
    has_joined: bool = True
    has_completed: bool = False
    completion_timestamp: Optional[int] = None
    completion_distance: Optional[int] = None
    completion_duration: Optional[int] = None
    source_activity_id: Optional[str] = None
    joined_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("staked_amount", mode="before")
    @classmethod
    def coerce_amounts(cls, value: Any) -> Any:
        return _as_int(value)


class CompletionMetadata(BaseModel):
    """Write-once completion data recorded on the participant."""

    completion_timestamp: int
    distance: int  # whole meters
    duration: int  # seconds
    source_activity_id: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_decision(cls, decision: VerificationDecision) -> "CompletionMetadata":
        """Take completion data from the activity echoed by a passing decision."""
        return cls(
            completion_timestamp=decision.activity_timestamp,
            distance=int(decision.distance),
            duration=decision.duration,
            source_activity_id=decision.activity_id,
        )


class CompletionEvent(BaseModel):
    """Immutable event emitted once per completed participant."""

    challenge_id: int
    participant: str
    completion_timestamp: int
    distance: int
    duration: int
    source_activity_id: str
    emitted_at: int

    model_config = ConfigDict(frozen=True, from_attributes=True)


class JoinRequest(BaseModel):
    address: str = Field(min_length=1)
    stake_amount: int = Field(gt=0)


class FinalizationSummary(BaseModel):
    """Outcome of finalizing a challenge.

    Payout distribution is computed downstream from ``winners``.
    """

    challenge_id: int
    total_participants: int
    successful_participants: int
    failed_participants: int
    total_staked: int
    winners: list[str]
    finalized_at: int
