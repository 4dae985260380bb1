"""Normalization of raw third-party activity payloads.

The payload comes from Strava (or a client relaying Strava data) and is
treated as untrusted: every problem is collected as an issue string instead of
raised, so a caller always gets a complete list of what is wrong.
"""

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from src.verification.constants import MAX_ACTIVITY_DISTANCE, MAX_AVERAGE_SPEED

_datetime_adapter = TypeAdapter(datetime)


class ActivityRecord(BaseModel):
    """Normalized activity used as the verification subject."""

    id: str
    name: str
    type: str
    distance: float  # meters
    moving_time: int  # seconds
    elapsed_time: Optional[int] = None  # seconds
    start_date: datetime  # UTC
    average_speed: float  # m/s

    model_config = ConfigDict(frozen=True)

    @property
    def start_timestamp(self) -> int:
        """Activity start as Unix seconds."""
        return int(self.start_date.timestamp())

    @property
    def duration(self) -> int:
        """Moving time, falling back to elapsed time."""
        return self.moving_time or self.elapsed_time or 0

    @property
    def is_complete(self) -> bool:
        return self.distance > 0 and self.moving_time > 0 and self.average_speed > 0


class CompletenessResult(BaseModel):
    """Outcome of normalizing one payload."""

    is_valid: bool
    issues: tuple[str, ...] = ()
    reason: str
    record: Optional[ActivityRecord] = None

    model_config = ConfigDict(frozen=True)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_number(value: Any) -> Optional[float]:
    """Coerce an untrusted value to a finite float, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_start_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, datetime or Unix timestamp into aware UTC.

    Naive datetimes are assumed to already be UTC, matching Strava's
    ``start_date`` field.
    """
    if isinstance(value, bool):
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        else:
            parsed = parsed.astimezone(timezone.utc)
        # Must be representable as Unix seconds downstream
        parsed.timestamp()
    except (ValidationError, OverflowError, ValueError):
        return None
    return parsed


def normalize_activity(
    payload: Any,
    max_average_speed: float = MAX_AVERAGE_SPEED,
    max_distance: float = MAX_ACTIVITY_DISTANCE,
) -> CompletenessResult:
    """Check a raw activity payload and build an ``ActivityRecord``.

    Parameters
    ----------
    payload : Any
        Raw activity, expected to be a mapping shaped like a Strava
        ``DetailedActivity``
    max_average_speed : float
        Plausibility ceiling for average speed in m/s
    max_distance : float
        Plausibility ceiling for distance in meters

    Returns
    -------
    CompletenessResult
        ``is_valid`` is True only when no issue was found, in which case
        ``record`` holds the normalized activity
    """
    if not isinstance(payload, Mapping):
        issues = ("Activity payload is not an object",)
        return CompletenessResult(
            is_valid=False,
            issues=issues,
            reason=f"Activity validation issues: {', '.join(issues)}",
        )

    issues: list[str] = []

    # Required fields
    if _is_missing(payload.get("id")):
        issues.append("Missing activity ID")
    if _is_missing(payload.get("name")):
        issues.append("Missing activity name")
    if _is_missing(payload.get("distance")):
        issues.append("Missing distance")
    if _is_missing(payload.get("start_date")):
        issues.append("Missing start date")
    if _is_missing(payload.get("type")):
        issues.append("Missing activity type")
    elif not isinstance(payload.get("type"), str):
        issues.append("Invalid activity type (not a string)")

    start_date = None
    if not _is_missing(payload.get("start_date")):
        start_date = parse_start_date(payload.get("start_date"))
        if start_date is None:
            issues.append("Invalid start date")

    distance = None
    if not _is_missing(payload.get("distance")):
        distance = _to_number(payload.get("distance"))
        if distance is None:
            issues.append("Invalid distance (not a number)")

    moving_time = None
    if _is_missing(payload.get("moving_time")):
        issues.append("Missing moving time")
    else:
        moving_time = _to_number(payload.get("moving_time"))
        if moving_time is None:
            issues.append("Invalid moving time (not a number)")

    elapsed_time = None
    if not _is_missing(payload.get("elapsed_time")):
        elapsed_time = _to_number(payload.get("elapsed_time"))
        if elapsed_time is None:
            issues.append("Invalid elapsed time (not a number)")

    average_speed = None
    if _is_missing(payload.get("average_speed")):
        # Derive when the provider omitted it
        if distance is not None and moving_time:
            average_speed = distance / moving_time
    else:
        average_speed = _to_number(payload.get("average_speed"))
        if average_speed is None:
            issues.append("Invalid average speed (not a number)")

    # Suspicious values
    if distance is not None and distance <= 0:
        issues.append("Invalid distance (zero or negative)")
    if moving_time is not None and moving_time <= 0:
        issues.append("Invalid moving time (zero or negative)")
    if average_speed is not None and average_speed <= 0:
        issues.append("Invalid average speed (zero or negative)")

    # Unrealistic values
    if average_speed is not None and average_speed > max_average_speed:
        issues.append(f"Unrealistic average speed (>{max_average_speed * 3.6:g} km/h)")
    if distance is not None and distance > max_distance:
        issues.append(f"Very long distance (>{max_distance / 1000:g}km)")

    if issues:
        return CompletenessResult(
            is_valid=False,
            issues=tuple(issues),
            reason=f"Activity validation issues: {', '.join(issues)}",
        )

    record = ActivityRecord(
        id=str(payload["id"]),
        name=str(payload["name"]),
        type=payload["type"],
        distance=distance,
        moving_time=int(moving_time),
        elapsed_time=int(elapsed_time) if elapsed_time is not None else None,
        start_date=start_date,
        average_speed=average_speed,
    )
    return CompletenessResult(
        is_valid=True,
        reason="Activity data complete and valid",
        record=record,
    )
