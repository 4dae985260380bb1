"""Tests for the in-memory and database-backed ledgers."""

import asyncio

import pytest
from sqlalchemy import update

from src.challenges import lifecycle
from src.challenges.database_ledger import DatabaseLedger
from src.challenges.ledger import InMemoryLedger
from src.challenges.models import CompletionEventRecord, Participant
from src.challenges.schemas import CompletionMetadata
from src.exceptions import (
    AlreadyCompleted,
    AlreadyJoined,
    ChallengeActive,
    ChallengeFinalized,
    ChallengeNotFound,
    IncorrectStake,
    NotJoined,
)
from tests.helpers import ALICE, BOB, DAY, STAKE, T0, WEEK, challenge_input

METADATA = CompletionMetadata(
    completion_timestamp=T0 + DAY,
    distance=5200,
    duration=1800,
    source_activity_id="12345678901",
)


@pytest.fixture(params=["memory", "database"])
def any_ledger(request, session_maker):
    """Run the same behavioral tests against both ledger backends."""
    if request.param == "memory":
        return InMemoryLedger()
    return DatabaseLedger(session_maker)


@pytest.mark.asyncio
class TestChallengeCreation:
    async def test_ids_are_sequential(self, any_ledger):
        first = await any_ledger.create_challenge(challenge_input(), now=T0)
        second = await any_ledger.create_challenge(challenge_input(), now=T0)

        assert first.challenge_id == 1
        assert second.challenge_id == 2
        assert first.finalized is False
        assert first.total_staked == 0

    async def test_duration_window(self, any_ledger):
        challenge = await any_ledger.create_challenge(
            challenge_input(start_time=None, end_time=None, duration=WEEK), now=T0
        )
        assert (challenge.start_time, challenge.end_time) == (T0, T0 + WEEK)

    async def test_creator_is_lowercased(self, any_ledger):
        challenge = await any_ledger.create_challenge(
            challenge_input(creator="0xAbCdEf0000000000000000000000000000000001"), now=T0
        )
        assert challenge.creator == "0xabcdef0000000000000000000000000000000001"

    async def test_unknown_challenge(self, any_ledger):
        with pytest.raises(ChallengeNotFound):
            await any_ledger.get_challenge(42)


@pytest.mark.asyncio
class TestJoin:
    async def test_join_updates_totals(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        participant = await any_ledger.join(challenge.challenge_id, ALICE, STAKE)
        await any_ledger.join(challenge.challenge_id, BOB, STAKE)

        assert participant.has_joined is True
        assert participant.has_completed is False
        updated = await any_ledger.get_challenge(challenge.challenge_id)
        assert updated.total_staked == 2 * STAKE
        assert updated.participant_count == 2
        assert len(await any_ledger.list_participants(challenge.challenge_id)) == 2

    async def test_join_twice(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        await any_ledger.join(challenge.challenge_id, "0xAbCd", STAKE)

        with pytest.raises(AlreadyJoined):
            await any_ledger.join(challenge.challenge_id, "0xaBcD", STAKE)

    async def test_wrong_stake(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        with pytest.raises(IncorrectStake):
            await any_ledger.join(challenge.challenge_id, ALICE, STAKE + 1)

    async def test_join_unknown_challenge(self, any_ledger):
        with pytest.raises(ChallengeNotFound):
            await any_ledger.join(9, ALICE, STAKE)

    async def test_get_non_participant(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        with pytest.raises(NotJoined):
            await any_ledger.get_participant(challenge.challenge_id, BOB)


@pytest.mark.asyncio
class TestMarkComplete:
    async def test_completion_records_metadata_and_event(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        await any_ledger.join(challenge.challenge_id, ALICE, STAKE)

        event = await any_ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)

        assert event.participant == ALICE
        assert event.distance == 5200
        assert event.source_activity_id == "12345678901"
        participant = await any_ledger.get_participant(challenge.challenge_id, ALICE)
        assert participant.has_completed is True
        assert participant.completion_timestamp == T0 + DAY
        assert participant.completion_distance == 5200
        assert participant.completion_duration == 1800
        assert await any_ledger.completion_events(challenge.challenge_id) == [event]

    async def test_second_completion_is_rejected(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        await any_ledger.join(challenge.challenge_id, ALICE, STAKE)
        await any_ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)

        other = METADATA.model_copy(update={"source_activity_id": "999"})
        with pytest.raises(AlreadyCompleted):
            await any_ledger.mark_complete(challenge.challenge_id, ALICE, other)

        participant = await any_ledger.get_participant(challenge.challenge_id, ALICE)
        assert participant.source_activity_id == "12345678901"
        assert len(await any_ledger.completion_events(challenge.challenge_id)) == 1

    async def test_not_joined(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        with pytest.raises(NotJoined):
            await any_ledger.mark_complete(challenge.challenge_id, BOB, METADATA)

    async def test_finalized_challenge_is_frozen(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        await any_ledger.join(challenge.challenge_id, ALICE, STAKE)
        await any_ledger.finalize(challenge.challenge_id, now=T0 + WEEK + 1)

        with pytest.raises(ChallengeFinalized):
            await any_ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)
        with pytest.raises(ChallengeFinalized):
            await any_ledger.join(challenge.challenge_id, BOB, STAKE)


@pytest.mark.asyncio
class TestFinalize:
    async def test_summary_lists_winners(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        await any_ledger.join(challenge.challenge_id, ALICE, STAKE)
        await any_ledger.join(challenge.challenge_id, BOB, STAKE)
        await any_ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)

        summary = await any_ledger.finalize(challenge.challenge_id, now=T0 + WEEK + 1)

        assert summary.total_participants == 2
        assert summary.successful_participants == 1
        assert summary.failed_participants == 1
        assert summary.winners == [ALICE]
        assert summary.total_staked == 2 * STAKE
        assert (await any_ledger.get_challenge(challenge.challenge_id)).finalized is True

    async def test_finalize_before_end(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        with pytest.raises(ChallengeActive):
            await any_ledger.finalize(challenge.challenge_id, now=T0 + WEEK)

    async def test_finalize_is_monotonic(self, any_ledger):
        challenge = await any_ledger.create_challenge(challenge_input(), now=T0)
        await any_ledger.finalize(challenge.challenge_id, now=T0 + WEEK + 1)

        with pytest.raises(ChallengeFinalized):
            await any_ledger.finalize(challenge.challenge_id, now=T0 + 2 * WEEK)
        assert (await any_ledger.get_challenge(challenge.challenge_id)).finalized is True


@pytest.mark.asyncio
class TestConcurrency:
    async def test_concurrent_completions_yield_one_event(self):
        ledger = InMemoryLedger()
        challenge = await ledger.create_challenge(challenge_input(), now=T0)
        await ledger.join(challenge.challenge_id, ALICE, STAKE)

        results = await asyncio.gather(
            *(
                ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)
                for _ in range(10)
            ),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(f, AlreadyCompleted) for f in failures)
        assert len(await ledger.completion_events(challenge.challenge_id)) == 1

    async def test_concurrent_joins_yield_one_participant(self):
        ledger = InMemoryLedger()
        challenge = await ledger.create_challenge(challenge_input(), now=T0)

        results = await asyncio.gather(
            *(ledger.join(challenge.challenge_id, ALICE, STAKE) for _ in range(5)),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert (await ledger.get_challenge(challenge.challenge_id)).total_staked == STAKE

    async def test_unknown_challenge_does_not_allocate_a_lock(self):
        ledger = InMemoryLedger()
        challenge = await ledger.create_challenge(challenge_input(), now=T0)

        with pytest.raises(ChallengeNotFound):
            await ledger.join(99, ALICE, STAKE)
        with pytest.raises(ChallengeNotFound):
            await ledger.mark_complete(99, ALICE, METADATA)
        with pytest.raises(ChallengeNotFound):
            await ledger.finalize(99, now=T0 + WEEK + 1)

        assert set(ledger._locks) == {challenge.challenge_id}


@pytest.mark.asyncio
class TestDatabaseCompletionSwap:
    """The conditional UPDATE and the event uniqueness both reject a second completion."""

    async def test_flag_already_set_in_database(self, session_maker, monkeypatch):
        ledger = DatabaseLedger(session_maker)
        challenge = await ledger.create_challenge(challenge_input(), now=T0)
        await ledger.join(challenge.challenge_id, ALICE, STAKE)
        async with session_maker() as session, session.begin():
            await session.execute(
                update(Participant)
                .where(Participant.challenge_id == challenge.challenge_id)
                .values(has_completed=True)
            )
        # Let the stale read through so only the conditional UPDATE decides
        monkeypatch.setattr(lifecycle, "ensure_can_complete", lambda *args: None)

        with pytest.raises(AlreadyCompleted):
            await ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)

        assert await ledger.completion_events(challenge.challenge_id) == []

    async def test_duplicate_event_rolls_back_completion(self, session_maker):
        ledger = DatabaseLedger(session_maker)
        challenge = await ledger.create_challenge(challenge_input(), now=T0)
        await ledger.join(challenge.challenge_id, ALICE, STAKE)
        async with session_maker() as session, session.begin():
            session.add(
                CompletionEventRecord(
                    challenge_id=challenge.challenge_id,
                    participant=ALICE,
                    completion_timestamp=T0,
                    distance=5000,
                    duration=1500,
                    source_activity_id="1",
                    emitted_at=T0,
                )
            )

        with pytest.raises(AlreadyCompleted):
            await ledger.mark_complete(challenge.challenge_id, ALICE, METADATA)

        participant = await ledger.get_participant(challenge.challenge_id, ALICE)
        assert participant.has_completed is False
