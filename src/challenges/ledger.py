"""Ledger interface and in-process implementation.

The ledger holds challenge and participant state and is the only place that
mutates it. The Completion Authorizer and the challenge service talk to it
through ``ChallengeLedger`` so that either the database-backed ledger or the
in-memory one can be injected.
"""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

from loguru import logger

from src.challenges import lifecycle
from src.challenges.schemas import (
    ChallengeCreate,
    ChallengeSchema,
    CompletionEvent,
    CompletionMetadata,
    FinalizationSummary,
    ParticipantSchema,
)
from src.config import get_settings
from src.core.lifespan import manager
from src.exceptions import ChallengeNotFound, NotJoined
from src.verification.constants import DEFAULT_ACTIVITY_TYPE


class ChallengeLedger(Protocol):
    """Operations the verification engine needs from the ledger."""

    async def create_challenge(
        self, data: ChallengeCreate, now: Optional[int] = None
    ) -> ChallengeSchema: ...

    async def get_challenge(self, challenge_id: int) -> ChallengeSchema: ...

    async def get_participant(
        self, challenge_id: int, address: str
    ) -> ParticipantSchema: ...

    async def list_participants(self, challenge_id: int) -> list[ParticipantSchema]: ...

    async def join(
        self, challenge_id: int, address: str, stake_amount: int
    ) -> ParticipantSchema: ...

    async def mark_complete(
        self, challenge_id: int, address: str, metadata: CompletionMetadata
    ) -> CompletionEvent: ...

    async def finalize(
        self, challenge_id: int, now: Optional[int] = None
    ) -> FinalizationSummary: ...

    async def completion_events(self, challenge_id: int) -> list[CompletionEvent]: ...


class InMemoryLedger:
    """Ledger kept in process memory.

    Each challenge has an ``asyncio.Lock``; join, completion and finalization
    run their read-check-write under it, so concurrent completions for the
    same participant yield one success and ``AlreadyCompleted`` for the rest.
    Suitable for tests and single-worker deployments.
    """

    def __init__(self):
        self._challenges: dict[int, ChallengeSchema] = {}
        self._participants: dict[int, dict[str, ParticipantSchema]] = defaultdict(dict)
        self._events: dict[tuple[int, str], CompletionEvent] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._next_id = 1
        self._create_lock = asyncio.Lock()

    def _require_challenge(self, challenge_id: int) -> ChallengeSchema:
        challenge = self._challenges.get(challenge_id)
        if challenge is None:
            raise ChallengeNotFound(f"Challenge {challenge_id} does not exist")
        return challenge

    def _lock_for(self, challenge_id: int) -> asyncio.Lock:
        """Lock of an existing challenge; challenges are never removed."""
        self._require_challenge(challenge_id)
        return self._locks[challenge_id]

    async def create_challenge(
        self, data: ChallengeCreate, now: Optional[int] = None
    ) -> ChallengeSchema:
        now = int(time.time()) if now is None else now
        start_time, end_time = lifecycle.resolve_window(data, now)

        async with self._create_lock:
            challenge = ChallengeSchema(
                challenge_id=self._next_id,
                creator=lifecycle.normalize_address(data.creator),
                description=data.description,
                target_distance=data.target_distance,
                stake_amount=data.stake_amount,
                start_time=start_time,
                end_time=end_time,
                required_activity_type=(
                    data.required_activity_type or DEFAULT_ACTIVITY_TYPE
                ),
                min_distance=data.min_distance,
                max_distance=data.max_distance,
                distance_tolerance=data.distance_tolerance,
            )
            self._challenges[challenge.challenge_id] = challenge
            self._locks[challenge.challenge_id] = asyncio.Lock()
            self._next_id += 1

        logger.info(
            "Challenge created",
            challenge_id=challenge.challenge_id,
            creator=challenge.creator,
            target_distance=challenge.target_distance,
            stake_amount=challenge.stake_amount,
        )
        return challenge

    async def get_challenge(self, challenge_id: int) -> ChallengeSchema:
        return self._require_challenge(challenge_id)

    async def get_participant(self, challenge_id: int, address: str) -> ParticipantSchema:
        self._require_challenge(challenge_id)
        participant = self._participants[challenge_id].get(
            lifecycle.normalize_address(address)
        )
        if participant is None:
            raise NotJoined("Not a participant")
        return participant

    async def list_participants(self, challenge_id: int) -> list[ParticipantSchema]:
        self._require_challenge(challenge_id)
        return list(self._participants[challenge_id].values())

    async def join(
        self, challenge_id: int, address: str, stake_amount: int
    ) -> ParticipantSchema:
        address = lifecycle.normalize_address(address)

        async with self._lock_for(challenge_id):
            challenge = self._require_challenge(challenge_id)
            existing = self._participants[challenge_id].get(address)
            lifecycle.ensure_can_join(challenge, existing, stake_amount)

            participant = ParticipantSchema(
                challenge_id=challenge_id,
                address=address,
                staked_amount=stake_amount,
            )
            self._participants[challenge_id][address] = participant
            self._challenges[challenge_id] = challenge.model_copy(
                update={
                    "total_staked": challenge.total_staked + stake_amount,
                    "participant_count": challenge.participant_count + 1,
                }
            )

        logger.info(
            "Participant joined",
            challenge_id=challenge_id,
            participant=address,
            staked_amount=stake_amount,
        )
        return participant

    async def mark_complete(
        self, challenge_id: int, address: str, metadata: CompletionMetadata
    ) -> CompletionEvent:
        address = lifecycle.normalize_address(address)

        async with self._lock_for(challenge_id):
            challenge = self._require_challenge(challenge_id)
            participant = self._participants[challenge_id].get(address)
            lifecycle.ensure_can_complete(challenge, participant)

            self._participants[challenge_id][address] = participant.model_copy(
                update={
                    "has_completed": True,
                    "completion_timestamp": metadata.completion_timestamp,
                    "completion_distance": metadata.distance,
                    "completion_duration": metadata.duration,
                    "source_activity_id": metadata.source_activity_id,
                }
            )
            event = CompletionEvent(
                challenge_id=challenge_id,
                participant=address,
                completion_timestamp=metadata.completion_timestamp,
                distance=metadata.distance,
                duration=metadata.duration,
                source_activity_id=metadata.source_activity_id,
                emitted_at=int(time.time()),
            )
            self._events[(challenge_id, address)] = event

        return event

    async def finalize(
        self, challenge_id: int, now: Optional[int] = None
    ) -> FinalizationSummary:
        now = int(time.time()) if now is None else now

        async with self._lock_for(challenge_id):
            challenge = self._require_challenge(challenge_id)
            lifecycle.ensure_can_finalize(challenge, now)

            participants = list(self._participants[challenge_id].values())
            winners = [p.address for p in participants if p.has_completed]
            self._challenges[challenge_id] = challenge.model_copy(
                update={"finalized": True}
            )

        return FinalizationSummary(
            challenge_id=challenge_id,
            total_participants=len(participants),
            successful_participants=len(winners),
            failed_participants=len(participants) - len(winners),
            total_staked=challenge.total_staked,
            winners=winners,
            finalized_at=now,
        )

    async def completion_events(self, challenge_id: int) -> list[CompletionEvent]:
        self._require_challenge(challenge_id)
        return [
            event
            for (event_challenge_id, _), event in self._events.items()
            if event_challenge_id == challenge_id
        ]


@manager.add
@asynccontextmanager
async def memory_ledger_lifespan() -> AsyncIterator[dict]:
    """Provide one process-wide in-memory ledger when configured."""
    settings = get_settings()
    if settings.LEDGER_BACKEND != "memory":
        yield {}
        return

    logger.warning("Using in-memory ledger; state is lost on restart")
    yield {"ledger": InMemoryLedger()}
