"""SQLAlchemy-backed ledger."""

import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.challenges import lifecycle
from src.challenges.models import Challenge, CompletionEventRecord, Participant
from src.challenges.schemas import (
    ChallengeCreate,
    ChallengeSchema,
    CompletionEvent,
    CompletionMetadata,
    FinalizationSummary,
    ParticipantSchema,
)
from src.exceptions import (
    AlreadyCompleted,
    AlreadyJoined,
    ChallengeNotFound,
    LedgerUnavailable,
    NotJoined,
)
from src.verification.constants import DEFAULT_ACTIVITY_TYPE


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Surface driver and database failures as ``LedgerUnavailable``."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "Ledger call failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise LedgerUnavailable(f"Ledger unavailable during {operation}") from e


class DatabaseLedger:
    """Ledger persisted through SQLAlchemy.

    Every mutation runs in one transaction that first locks the challenge row
    (``SELECT ... FOR UPDATE``). Completion is additionally a conditional
    update on ``has_completed``, so only one of several concurrent attempts
    can flip the flag; the others are reported as ``AlreadyCompleted``.
    """

    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    async def _lock_challenge(self, session: AsyncSession, challenge_id: int) -> Challenge:
        result = await session.execute(
            select(Challenge)
            .filter(Challenge.challenge_id == challenge_id)
            .with_for_update()
        )
        challenge = result.scalar_one_or_none()
        if challenge is None:
            raise ChallengeNotFound(f"Challenge {challenge_id} does not exist")
        return challenge

    async def _load_participant(
        self, session: AsyncSession, challenge_id: int, address: str
    ) -> Optional[Participant]:
        result = await session.execute(
            select(Participant).filter(
                Participant.challenge_id == challenge_id,
                Participant.address == address,
            )
        )
        return result.scalar_one_or_none()

    async def create_challenge(
        self, data: ChallengeCreate, now: Optional[int] = None
    ) -> ChallengeSchema:
        now = int(time.time()) if now is None else now
        start_time, end_time = lifecycle.resolve_window(data, now)

        with _translate_errors("create_challenge"):
            async with self._session_maker() as session, session.begin():
                challenge = Challenge(
                    creator=lifecycle.normalize_address(data.creator),
                    description=data.description,
                    target_distance=data.target_distance,
                    required_activity_type=(
                        data.required_activity_type or DEFAULT_ACTIVITY_TYPE
                    ),
                    min_distance=data.min_distance,
                    max_distance=data.max_distance,
                    distance_tolerance=data.distance_tolerance,
                    start_time=start_time,
                    end_time=end_time,
                    stake_amount=data.stake_amount,
                    total_staked=0,
                    participant_count=0,
                    finalized=False,
                )
                session.add(challenge)
                await session.flush()
                created = ChallengeSchema.model_validate(challenge)

        logger.info(
            "Challenge created",
            challenge_id=created.challenge_id,
            creator=created.creator,
            target_distance=created.target_distance,
            stake_amount=created.stake_amount,
        )
        return created

    async def get_challenge(self, challenge_id: int) -> ChallengeSchema:
        with _translate_errors("get_challenge"):
            async with self._session_maker() as session:
                challenge = await session.get(Challenge, challenge_id)
                if challenge is None:
                    raise ChallengeNotFound(f"Challenge {challenge_id} does not exist")
                return ChallengeSchema.model_validate(challenge)

    async def get_participant(self, challenge_id: int, address: str) -> ParticipantSchema:
        address = lifecycle.normalize_address(address)
        with _translate_errors("get_participant"):
            async with self._session_maker() as session:
                if await session.get(Challenge, challenge_id) is None:
                    raise ChallengeNotFound(f"Challenge {challenge_id} does not exist")
                participant = await self._load_participant(session, challenge_id, address)
                if participant is None:
                    raise NotJoined("Not a participant")
                return ParticipantSchema.model_validate(participant)

    async def list_participants(self, challenge_id: int) -> list[ParticipantSchema]:
        with _translate_errors("list_participants"):
            async with self._session_maker() as session:
                if await session.get(Challenge, challenge_id) is None:
                    raise ChallengeNotFound(f"Challenge {challenge_id} does not exist")
                result = await session.execute(
                    select(Participant)
                    .filter(Participant.challenge_id == challenge_id)
                    .order_by(Participant.joined_at)
                )
                return [
                    ParticipantSchema.model_validate(p) for p in result.scalars().all()
                ]

    async def join(
        self, challenge_id: int, address: str, stake_amount: int
    ) -> ParticipantSchema:
        address = lifecycle.normalize_address(address)

        with _translate_errors("join"):
            try:
                async with self._session_maker() as session, session.begin():
                    challenge = await self._lock_challenge(session, challenge_id)
                    existing = await self._load_participant(session, challenge_id, address)
                    lifecycle.ensure_can_join(
                        ChallengeSchema.model_validate(challenge),
                        ParticipantSchema.model_validate(existing) if existing else None,
                        stake_amount,
                    )

                    participant = Participant(
                        challenge_id=challenge_id,
                        address=address,
                        staked_amount=stake_amount,
                        has_completed=False,
                    )
                    session.add(participant)
                    challenge.total_staked = challenge.total_staked + stake_amount
                    challenge.participant_count = challenge.participant_count + 1
                    await session.flush()
                    joined = ParticipantSchema.model_validate(participant)
            except IntegrityError as e:
                # Concurrent join inserted the same primary key first
                raise AlreadyJoined("Already joined this challenge") from e

        logger.info(
            "Participant joined",
            challenge_id=challenge_id,
            participant=address,
            staked_amount=stake_amount,
        )
        return joined

    async def mark_complete(
        self, challenge_id: int, address: str, metadata: CompletionMetadata
    ) -> CompletionEvent:
        """Record completion for one participant, at most once.

        Raises
        ------
        ChallengeNotFound, ChallengeFinalized, NotJoined, AlreadyCompleted
            Precondition failures, evaluated inside the transaction
        LedgerUnavailable
            If the database call fails
        """
        address = lifecycle.normalize_address(address)
        emitted_at = int(time.time())

        with _translate_errors("mark_complete"):
            try:
                async with self._session_maker() as session, session.begin():
                    challenge = await self._lock_challenge(session, challenge_id)
                    participant = await self._load_participant(
                        session, challenge_id, address
                    )
                    lifecycle.ensure_can_complete(
                        ChallengeSchema.model_validate(challenge),
                        ParticipantSchema.model_validate(participant)
                        if participant
                        else None,
                    )

                    # Compare-and-swap on the completion flag
                    result = await session.execute(
                        update(Participant)
                        .where(
                            Participant.challenge_id == challenge_id,
                            Participant.address == address,
                            Participant.has_completed.is_(False),
                        )
                        .values(
                            has_completed=True,
                            completion_timestamp=metadata.completion_timestamp,
                            completion_distance=metadata.distance,
                            completion_duration=metadata.duration,
                            source_activity_id=metadata.source_activity_id,
                            completed_at=datetime.now(timezone.utc),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise AlreadyCompleted("User already marked as completed")

                    record = CompletionEventRecord(
                        challenge_id=challenge_id,
                        participant=address,
                        completion_timestamp=metadata.completion_timestamp,
                        distance=metadata.distance,
                        duration=metadata.duration,
                        source_activity_id=metadata.source_activity_id,
                        emitted_at=emitted_at,
                    )
                    session.add(record)
                    await session.flush()
                    event = CompletionEvent.model_validate(record)
            except IntegrityError as e:
                # Event already written for this participant
                raise AlreadyCompleted("User already marked as completed") from e

        return event

    async def finalize(
        self, challenge_id: int, now: Optional[int] = None
    ) -> FinalizationSummary:
        now = int(time.time()) if now is None else now

        with _translate_errors("finalize"):
            async with self._session_maker() as session, session.begin():
                challenge = await self._lock_challenge(session, challenge_id)
                lifecycle.ensure_can_finalize(ChallengeSchema.model_validate(challenge), now)

                result = await session.execute(
                    select(Participant).filter(Participant.challenge_id == challenge_id)
                )
                participants = list(result.scalars().all())
                winners = [p.address for p in participants if p.has_completed]

                challenge.finalized = True
                total_staked = int(challenge.total_staked)

        return FinalizationSummary(
            challenge_id=challenge_id,
            total_participants=len(participants),
            successful_participants=len(winners),
            failed_participants=len(participants) - len(winners),
            total_staked=total_staked,
            winners=winners,
            finalized_at=now,
        )

    async def completion_events(self, challenge_id: int) -> list[CompletionEvent]:
        with _translate_errors("completion_events"):
            async with self._session_maker() as session:
                if await session.get(Challenge, challenge_id) is None:
                    raise ChallengeNotFound(f"Challenge {challenge_id} does not exist")
                result = await session.execute(
                    select(CompletionEventRecord)
                    .filter(CompletionEventRecord.challenge_id == challenge_id)
                    .order_by(CompletionEventRecord.id)
                )
                return [
                    CompletionEvent.model_validate(record)
                    for record in result.scalars().all()
                ]
