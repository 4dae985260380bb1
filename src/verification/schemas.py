"""Pydantic schemas for challenge criteria and verification decisions."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.verification.constants import (
    DEFAULT_ACTIVITY_TYPE,
    DEFAULT_DISTANCE_TOLERANCE,
    MAX_ACTIVITY_DISTANCE,
    MAX_AVERAGE_SPEED,
    MAX_TIMESTAMP,
)

SUCCESS_MESSAGE = "Activity validation successful"


class Stage(str, Enum):
    """Validation stages in evaluation order."""

    COMPLETENESS = "completeness"
    TYPE = "type"
    DISTANCE = "distance"
    TIMESTAMP = "timestamp"


class ChallengeCriteria(BaseModel):
    """Acceptance criteria for one challenge.

    Attributes
    ----------
    challenge_id : int
        Challenge the criteria belong to
    target_distance : float
        Goal distance in meters
    start_time : int
        Window start (Unix seconds, inclusive)
    end_time : int
        Window end (Unix seconds, inclusive)
    required_activity_type : str
        Strava activity type, matched case-sensitively
    min_distance : float | None
        Lower distance bound, defaults to ``target_distance``
    max_distance : float | None
        Upper distance bound, unbounded when None
    distance_tolerance : float
        Meters subtracted from the minimum and added to the maximum
    """

    challenge_id: int = Field(ge=0)
    target_distance: float = Field(gt=0)
    start_time: int = Field(ge=0, le=MAX_TIMESTAMP)
    end_time: int = Field(ge=0, le=MAX_TIMESTAMP)
    required_activity_type: str = DEFAULT_ACTIVITY_TYPE
    min_distance: Optional[float] = Field(default=None, ge=0)
    max_distance: Optional[float] = Field(default=None, gt=0)
    distance_tolerance: float = Field(default=DEFAULT_DISTANCE_TOLERANCE, ge=0)
    max_average_speed: float = Field(default=MAX_AVERAGE_SPEED, gt=0)
    max_activity_distance: float = Field(default=MAX_ACTIVITY_DISTANCE, gt=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_window(self) -> "ChallengeCriteria":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def required_min_distance(self) -> float:
        """Tolerance-adjusted minimum distance."""
        minimum = (
            self.min_distance if self.min_distance is not None else self.target_distance
        )
        return minimum - self.distance_tolerance

    @property
    def allowed_max_distance(self) -> Optional[float]:
        """Tolerance-adjusted maximum distance, None when unbounded."""
        if self.max_distance is None:
            return None
        return self.max_distance + self.distance_tolerance


class StageResult(BaseModel):
    """Tagged pass/fail output of a single validation stage."""

    stage: Stage
    passed: bool
    reason: str
    detail: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class VerificationDecision(BaseModel):
    """Immutable, auditable result of one verification attempt.

    ``success`` holds exactly when all four stage flags are set, and
    ``reason`` is non-empty exactly when ``success`` is False. Stages after the
    first failure were never evaluated and keep their flag False.
    """

    success: bool
    reason: str = ""
    failed_stage: Optional[Stage] = None
    is_valid_completeness: bool = False
    is_valid_type: bool = False
    is_valid_distance: bool = False
    is_valid_timestamp: bool = False
    challenge_id: int
    activity_id: Optional[str] = None
    activity_type: Optional[str] = None
    distance: Optional[float] = None
    duration: Optional[int] = None
    activity_timestamp: Optional[int] = None
    time_status: Optional[str] = None
    details: dict[str, dict[str, Any]] = Field(default_factory=dict)
    evaluated_at: int

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_consistency(self) -> "VerificationDecision":
        all_passed = all(self.stage_results.values())
        if self.success != all_passed:
            raise ValueError("success must equal the conjunction of stage results")
        if self.success == bool(self.reason):
            raise ValueError("reason must be set exactly when the decision failed")
        return self

    @property
    def stage_results(self) -> dict[str, bool]:
        return {
            Stage.COMPLETENESS.value: self.is_valid_completeness,
            Stage.TYPE.value: self.is_valid_type,
            Stage.DISTANCE.value: self.is_valid_distance,
            Stage.TIMESTAMP.value: self.is_valid_timestamp,
        }

    @property
    def message(self) -> str:
        """Human-readable outcome, the failure reason or a success message."""
        return self.reason or SUCCESS_MESSAGE

    @property
    def summary(self) -> str:
        passed = sum(1 for ok in self.stage_results.values() if ok)
        return f"{passed}/{len(self.stage_results)} validation checks passed"

    def to_log(self) -> dict[str, Any]:
        """Flat mapping suitable for structured audit logging."""
        return {
            "challenge_id": self.challenge_id,
            "activity_id": self.activity_id,
            "success": self.success,
            "reason": self.message,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "stages": self.stage_results,
            "evaluated_at": self.evaluated_at,
        }
