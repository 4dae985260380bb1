"""Pure validation stages for activities against challenge criteria.

No I/O and no shared state: every function here can be called concurrently
for independent verification requests.

Stages run in a fixed order and the first failure short-circuits the
pipeline, so an activity of the wrong type is reported as such even when its
distance is also too short.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from src.verification.constants import ON_TIME, TOO_EARLY, TOO_LATE
from src.verification.normalizer import (
    ActivityRecord,
    CompletenessResult,
    normalize_activity,
)
from src.verification.schemas import (
    ChallengeCriteria,
    Stage,
    StageResult,
    VerificationDecision,
)


def _format_meters(value: float) -> str:
    """Render a distance without a trailing '.0' for whole meters."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def check_completeness(completeness: CompletenessResult) -> StageResult:
    """Stage 1: wrap the normalizer outcome."""
    return StageResult(
        stage=Stage.COMPLETENESS,
        passed=completeness.is_valid,
        reason=completeness.reason,
        detail={"issues": list(completeness.issues)},
    )


def check_activity_type(activity: ActivityRecord, required_type: str) -> StageResult:
    """Stage 2: exact, case-sensitive activity type match."""
    passed = activity.type == required_type
    if passed:
        reason = f"Activity type valid: {activity.type}"
    else:
        reason = f"Invalid activity type: {activity.type}. Expected: {required_type}"

    return StageResult(
        stage=Stage.TYPE,
        passed=passed,
        reason=reason,
        detail={"actual_type": activity.type, "required_type": required_type},
    )


def check_distance(activity: ActivityRecord, criteria: ChallengeCriteria) -> StageResult:
    """Stage 3: distance within the tolerance-adjusted bounds (inclusive).

    Parameters
    ----------
    activity : ActivityRecord
        Normalized activity
    criteria : ChallengeCriteria
        Challenge criteria providing target, optional min/max and tolerance

    Returns
    -------
    StageResult
        Failing reasons name the actual and required distances
    """
    distance = activity.distance
    min_required = criteria.required_min_distance
    max_allowed = criteria.allowed_max_distance

    if distance < min_required:
        passed = False
        reason = (
            f"Distance too short: {_format_meters(distance)}m. "
            f"Required: {_format_meters(min_required)}m"
        )
    elif max_allowed is not None and distance > max_allowed:
        passed = False
        reason = (
            f"Distance too long: {_format_meters(distance)}m. "
            f"Maximum allowed: {_format_meters(max_allowed)}m"
        )
    else:
        passed = True
        reason = (
            f"Distance valid: {_format_meters(distance)}m "
            f"(target: {_format_meters(criteria.target_distance)}m)"
        )

    return StageResult(
        stage=Stage.DISTANCE,
        passed=passed,
        reason=reason,
        detail={
            "actual_distance": distance,
            "target_distance": criteria.target_distance,
            "min_required": min_required,
            "max_allowed": max_allowed,
        },
    )


def check_timestamp(
    activity: ActivityRecord, start_time: int, end_time: int
) -> StageResult:
    """Stage 4: activity start inside [start_time, end_time], both inclusive.

    The failing reason is the classification itself (``too_early`` or
    ``too_late``); the readable comparison is kept in ``detail["message"]``.
    """
    activity_time = activity.start_date.timestamp()
    started = activity.start_date.isoformat()

    if activity_time < start_time:
        passed = False
        time_status = TOO_EARLY
        message = f"Activity too early: {started}. Challenge starts: {_iso(start_time)}"
    elif activity_time > end_time:
        passed = False
        time_status = TOO_LATE
        message = f"Activity too late: {started}. Challenge ends: {_iso(end_time)}"
    else:
        passed = True
        time_status = ON_TIME
        message = f"Activity timestamp valid: {started}"

    return StageResult(
        stage=Stage.TIMESTAMP,
        passed=passed,
        reason=time_status if not passed else message,
        detail={
            "activity_time": activity_time,
            "start_time": start_time,
            "end_time": end_time,
            "time_status": time_status,
            "message": message,
        },
    )


# Post-completeness stages in evaluation order
STAGES: tuple[tuple[Stage, Callable[[ActivityRecord, ChallengeCriteria], StageResult]], ...] = (
    (Stage.TYPE, lambda a, c: check_activity_type(a, c.required_activity_type)),
    (Stage.DISTANCE, check_distance),
    (Stage.TIMESTAMP, lambda a, c: check_timestamp(a, c.start_time, c.end_time)),
)


def _raw_field(payload: Any, key: str) -> Optional[str]:
    if isinstance(payload, Mapping) and payload.get(key) is not None:
        return str(payload[key])
    return None


def validate_activity(
    payload: Any,
    criteria: ChallengeCriteria,
    evaluated_at: Optional[int] = None,
) -> VerificationDecision:
    """Run the full staged pipeline and build the decision.

    Parameters
    ----------
    payload : Any
        Raw, untrusted activity payload
    criteria : ChallengeCriteria
        Acceptance criteria of the challenge being verified
    evaluated_at : int | None
        Evaluation time in Unix seconds, defaults to now

    Returns
    -------
    VerificationDecision
        Aggregated decision; ``reason`` is the first failing stage's reason
    """
    if evaluated_at is None:
        evaluated_at = int(time.time())

    completeness = normalize_activity(
        payload,
        max_average_speed=criteria.max_average_speed,
        max_distance=criteria.max_activity_distance,
    )
    completeness_result = check_completeness(completeness)
    details: dict[str, dict[str, Any]] = {
        Stage.COMPLETENESS.value: completeness_result.model_dump(include={"passed", "reason", "detail"})
    }

    if not completeness_result.passed:
        return VerificationDecision(
            success=False,
            reason=completeness_result.reason,
            failed_stage=Stage.COMPLETENESS,
            challenge_id=criteria.challenge_id,
            activity_id=_raw_field(payload, "id"),
            activity_type=_raw_field(payload, "type"),
            details=details,
            evaluated_at=evaluated_at,
        )

    activity = completeness.record
    flags = {Stage.COMPLETENESS: True}
    time_status = None
    failure: Optional[StageResult] = None

    for stage, check in STAGES:
        result = check(activity, criteria)
        details[stage.value] = result.model_dump(include={"passed", "reason", "detail"})
        flags[stage] = result.passed
        if stage is Stage.TIMESTAMP:
            time_status = result.detail["time_status"]
        if not result.passed:
            failure = result
            break

    return VerificationDecision(
        success=failure is None,
        reason=failure.reason if failure else "",
        failed_stage=failure.stage if failure else None,
        is_valid_completeness=flags.get(Stage.COMPLETENESS, False),
        is_valid_type=flags.get(Stage.TYPE, False),
        is_valid_distance=flags.get(Stage.DISTANCE, False),
        is_valid_timestamp=flags.get(Stage.TIMESTAMP, False),
        challenge_id=criteria.challenge_id,
        activity_id=activity.id,
        activity_type=activity.type,
        distance=activity.distance,
        duration=activity.duration,
        activity_timestamp=activity.start_timestamp,
        time_status=time_status,
        details=details,
        evaluated_at=evaluated_at,
    )


def activity_qualifies(payload: Any, criteria: ChallengeCriteria) -> bool:
    """Shortcut for callers that only need the pass/fail outcome."""
    return validate_activity(payload, criteria).success
