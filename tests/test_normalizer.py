"""Tests for activity payload normalization."""

from datetime import datetime, timezone

import pytest

from src.verification.normalizer import normalize_activity, parse_start_date
from tests.helpers import DAY, T0, activity_payload


class TestCompletePayload:
    def test_valid_payload_builds_record(self):
        result = normalize_activity(activity_payload())

        assert result.is_valid is True
        assert result.issues == ()
        assert result.reason == "Activity data complete and valid"
        record = result.record
        assert record.id == "12345678901"
        assert record.type == "Run"
        assert record.distance == 5200.0
        assert record.start_timestamp == T0 + DAY
        assert record.start_date.tzinfo is not None
        assert record.is_complete is True

    def test_average_speed_derived_when_missing(self):
        payload = activity_payload()
        del payload["average_speed"]

        record = normalize_activity(payload).record
        assert record.average_speed == pytest.approx(5200 / 1800)

    def test_numeric_strings_are_accepted(self):
        result = normalize_activity(activity_payload(distance="5200.5", moving_time="1800"))

        assert result.is_valid is True
        assert result.record.distance == 5200.5
        assert result.record.moving_time == 1800

    def test_duration_prefers_moving_time(self):
        record = normalize_activity(activity_payload()).record
        assert record.duration == 1800


class TestMissingFields:
    def test_empty_payload_reports_every_missing_field(self):
        result = normalize_activity({})

        assert result.is_valid is False
        assert result.record is None
        assert set(result.issues) >= {
            "Missing activity ID",
            "Missing activity name",
            "Missing distance",
            "Missing start date",
            "Missing activity type",
            "Missing moving time",
        }
        assert result.reason.startswith("Activity validation issues: ")

    def test_blank_strings_count_as_missing(self):
        result = normalize_activity(activity_payload(name="   ", type=""))

        assert "Missing activity name" in result.issues
        assert "Missing activity type" in result.issues

    @pytest.mark.parametrize("payload", [None, [], "activity", 42])
    def test_non_object_payload(self, payload):
        result = normalize_activity(payload)

        assert result.is_valid is False
        assert result.issues == ("Activity payload is not an object",)


class TestSuspiciousValues:
    def test_zero_distance(self):
        result = normalize_activity(activity_payload(distance=0))
        assert "Invalid distance (zero or negative)" in result.issues

    def test_negative_moving_time(self):
        result = normalize_activity(activity_payload(moving_time=-5))
        assert "Invalid moving time (zero or negative)" in result.issues

    def test_boolean_is_not_a_number(self):
        result = normalize_activity(activity_payload(distance=True))
        assert "Invalid distance (not a number)" in result.issues

    def test_unparseable_start_date(self):
        result = normalize_activity(activity_payload(start_date="yesterday"))
        assert "Invalid start date" in result.issues

    @pytest.mark.parametrize(
        "start_date", ["9999-12-31T23:00:00-05:00", "0001-01-01T01:00:00+05:00"]
    )
    def test_start_date_outside_datetime_range(self, start_date):
        result = normalize_activity(activity_payload(start_date=start_date))

        assert result.is_valid is False
        assert "Invalid start date" in result.issues

    def test_unrealistic_speed(self):
        result = normalize_activity(activity_payload(average_speed=12.0))

        assert result.is_valid is False
        assert "Unrealistic average speed (>36 km/h)" in result.issues

    def test_very_long_distance(self):
        result = normalize_activity(activity_payload(distance=150_000))

        assert result.is_valid is False
        assert "Very long distance (>100km)" in result.issues

    def test_thresholds_are_configurable(self):
        result = normalize_activity(
            activity_payload(distance=150_000, average_speed=12.0),
            max_average_speed=15.0,
            max_distance=200_000.0,
        )
        assert result.is_valid is True

    def test_all_issues_are_joined_into_reason(self):
        result = normalize_activity(activity_payload(distance=0, moving_time=0))

        assert result.reason == (
            "Activity validation issues: "
            "Invalid distance (zero or negative), Invalid moving time (zero or negative)"
        )


class TestParseStartDate:
    def test_naive_iso_is_utc(self):
        parsed = parse_start_date("2026-01-02T08:00:00")
        assert parsed == datetime(2026, 1, 2, 8, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_start_date("2026-01-02T10:00:00+02:00")
        assert parsed == datetime(2026, 1, 2, 8, tzinfo=timezone.utc)

    def test_unix_seconds(self):
        assert parse_start_date(T0).timestamp() == T0

    def test_garbage_returns_none(self):
        assert parse_start_date({"date": "2026"}) is None
        assert parse_start_date(True) is None

    def test_out_of_range_offset_returns_none(self):
        assert parse_start_date("9999-12-31T23:00:00-05:00") is None
