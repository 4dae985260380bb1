"""Tests for the staged activity validation pipeline."""

import pytest
from pydantic import ValidationError

from src.verification.constants import MAX_TIMESTAMP
from src.verification.schemas import ChallengeCriteria, Stage, VerificationDecision
from src.verification.validator import activity_qualifies, validate_activity
from tests.helpers import DAY, T0, WEEK, activity_payload, iso


class TestScenarios:
    def test_qualifying_run(self, criteria):
        decision = validate_activity(activity_payload(), criteria)

        assert decision.success is True
        assert decision.reason == ""
        assert decision.message == "Activity validation successful"
        assert decision.failed_stage is None
        assert decision.time_status == "valid"
        assert decision.summary == "4/4 validation checks passed"

    def test_short_run(self, criteria):
        decision = validate_activity(activity_payload(distance=3000), criteria)

        assert decision.success is False
        assert decision.failed_stage is Stage.DISTANCE
        assert "3000" in decision.reason
        assert "5000" in decision.reason
        assert decision.reason == "Distance too short: 3000m. Required: 5000m"

    def test_wrong_activity_type(self, criteria):
        decision = validate_activity(activity_payload(type="Walk", distance=6000), criteria)

        assert decision.success is False
        assert decision.failed_stage is Stage.TYPE
        assert decision.reason == "Invalid activity type: Walk. Expected: Run"

    def test_activity_before_window(self, criteria):
        decision = validate_activity(
            activity_payload(distance=6000, start_date=iso(T0 - DAY)), criteria
        )

        assert decision.success is False
        assert decision.reason == "too_early"
        assert decision.time_status == "too_early"
        assert decision.details["timestamp"]["detail"]["message"].startswith(
            "Activity too early"
        )

    def test_activity_after_window(self, criteria):
        decision = validate_activity(
            activity_payload(start_date=iso(T0 + WEEK + 1)), criteria
        )

        assert decision.success is False
        assert decision.reason == "too_late"


class TestShortCircuit:
    def test_type_failure_hides_distance_and_time(self, criteria):
        decision = validate_activity(
            activity_payload(type="Ride", distance=10, start_date=iso(T0 - DAY)),
            criteria,
        )

        assert decision.failed_stage is Stage.TYPE
        assert decision.is_valid_completeness is True
        assert decision.is_valid_type is False
        assert decision.is_valid_distance is False
        assert decision.is_valid_timestamp is False
        assert set(decision.details) == {"completeness", "type"}

    def test_incomplete_payload_stops_at_completeness(self, criteria):
        decision = validate_activity({"id": 7, "type": "Run"}, criteria)

        assert decision.failed_stage is Stage.COMPLETENESS
        assert decision.reason.startswith("Activity validation issues: ")
        assert decision.activity_id == "7"
        assert decision.summary == "0/4 validation checks passed"

    def test_non_object_payload_is_a_completeness_failure(self, criteria):
        decision = validate_activity(["not", "an", "activity"], criteria)

        assert decision.success is False
        assert decision.failed_stage is Stage.COMPLETENESS


class TestBoundaries:
    def test_exact_target_distance_passes(self, criteria):
        assert activity_qualifies(activity_payload(distance=5000), criteria)

    def test_just_below_target_fails(self, criteria):
        assert not activity_qualifies(activity_payload(distance=4999.9), criteria)

    def test_window_start_is_inclusive(self, criteria):
        assert activity_qualifies(activity_payload(start_date=iso(T0)), criteria)

    def test_window_end_is_inclusive(self, criteria):
        assert activity_qualifies(activity_payload(start_date=iso(T0 + WEEK)), criteria)

    def test_type_match_is_case_sensitive(self, criteria):
        assert not activity_qualifies(activity_payload(type="run"), criteria)


class TestDistanceCriteria:
    def test_tolerance_lowers_minimum(self):
        criteria = ChallengeCriteria(
            challenge_id=1,
            target_distance=5000,
            start_time=T0,
            end_time=T0 + WEEK,
            distance_tolerance=100,
        )
        assert activity_qualifies(activity_payload(distance=4900), criteria)
        assert not activity_qualifies(activity_payload(distance=4899), criteria)

    def test_explicit_minimum_overrides_target(self):
        criteria = ChallengeCriteria(
            challenge_id=1,
            target_distance=5000,
            min_distance=4000,
            start_time=T0,
            end_time=T0 + WEEK,
        )
        assert activity_qualifies(activity_payload(distance=4000), criteria)

    def test_maximum_distance(self):
        criteria = ChallengeCriteria(
            challenge_id=1,
            target_distance=5000,
            max_distance=6000,
            start_time=T0,
            end_time=T0 + WEEK,
        )
        decision = validate_activity(activity_payload(distance=6500), criteria)

        assert decision.success is False
        assert decision.reason == "Distance too long: 6500m. Maximum allowed: 6000m"
        assert activity_qualifies(activity_payload(distance=6000), criteria)

    def test_reversed_window_is_rejected(self):
        with pytest.raises(ValidationError):
            ChallengeCriteria(challenge_id=1, target_distance=5000, start_time=T0, end_time=T0)

    def test_window_beyond_datetime_range_is_rejected(self):
        with pytest.raises(ValidationError):
            ChallengeCriteria(
                challenge_id=1,
                target_distance=5000,
                start_time=10**12,
                end_time=10**12 + 1,
            )

    def test_latest_representable_window_reports_too_early(self):
        criteria = ChallengeCriteria(
            challenge_id=1,
            target_distance=5000,
            start_time=MAX_TIMESTAMP - DAY,
            end_time=MAX_TIMESTAMP,
        )
        decision = validate_activity(activity_payload(), criteria)

        assert decision.success is False
        assert decision.reason == "too_early"


class TestDecisionInvariants:
    def test_passing_decision_echoes_activity(self, criteria):
        decision = validate_activity(activity_payload(), criteria)

        assert decision.activity_id == "12345678901"
        assert decision.distance == 5200.0
        assert decision.duration == 1800
        assert decision.activity_timestamp == T0 + DAY
        assert decision.challenge_id == criteria.challenge_id

    def test_success_requires_all_stages(self):
        with pytest.raises(ValidationError):
            VerificationDecision(
                success=True,
                is_valid_completeness=True,
                is_valid_type=True,
                is_valid_distance=True,
                challenge_id=1,
                evaluated_at=T0,
            )

    def test_failure_requires_reason(self):
        with pytest.raises(ValidationError):
            VerificationDecision(success=False, challenge_id=1, evaluated_at=T0)

    def test_decision_is_immutable(self, criteria):
        decision = validate_activity(activity_payload(), criteria)
        with pytest.raises(ValidationError):
            decision.success = False

    def test_evaluation_time_is_recorded(self, criteria):
        decision = validate_activity(activity_payload(), criteria, evaluated_at=T0 + 5)
        assert decision.evaluated_at == T0 + 5
        assert decision.to_log()["stages"] == {
            "completeness": True,
            "type": True,
            "distance": True,
            "timestamp": True,
        }
