"""Constants and builders shared by the test modules."""

from datetime import datetime, timezone
from typing import Any

from src.challenges.schemas import ChallengeCreate

ORACLE = "0x00000000000000000000000000000000000000aa"
ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
MALLORY = "0x9999999999999999999999999999999999999999"
ADMIN_API_KEY = "test-admin-key"

# Challenge window start used across tests: 2026-01-01T00:00:00Z
T0 = int(datetime(2026, 1, 1, tzinfo=timezone.utc).timestamp())
DAY = 24 * 60 * 60
WEEK = 7 * DAY
STAKE = 10**16


def iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def activity_payload(**overrides: Any) -> dict[str, Any]:
    """Strava-shaped activity: a 5.2 km run one day into the window."""
    activity = {
        "id": 12345678901,
        "name": "Morning Run",
        "type": "Run",
        "distance": 5200.0,
        "moving_time": 1800,
        "elapsed_time": 1900,
        "start_date": iso(T0 + DAY),
        "average_speed": 2.89,
    }
    activity.update(overrides)
    return activity


def challenge_input(**overrides: Any) -> ChallengeCreate:
    data = {
        "creator": ALICE,
        "description": "Run 5k this week",
        "target_distance": 5000,
        "stake_amount": STAKE,
        "start_time": T0,
        "end_time": T0 + WEEK,
    }
    data.update(overrides)
    return ChallengeCreate(**data)
