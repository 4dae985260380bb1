"""Challenge service: lifecycle operations on top of the ledger."""

from typing import Optional

from loguru import logger

from src.challenges.ledger import ChallengeLedger
from src.challenges.schemas import (
    ChallengeCreate,
    ChallengeSchema,
    CompletionEvent,
    FinalizationSummary,
    ParticipantSchema,
)
from src.verification.constants import DEFAULT_ACTIVITY_TYPE


class ChallengeService:
    """Service for creating, joining, reading and finalizing challenges."""

    def __init__(
        self, ledger: ChallengeLedger, default_activity_type: str = DEFAULT_ACTIVITY_TYPE
    ):
        self.ledger = ledger
        self.default_activity_type = default_activity_type

    async def create_challenge(
        self, data: ChallengeCreate, now: Optional[int] = None
    ) -> ChallengeSchema:
        if data.required_activity_type is None:
            data = data.model_copy(
                update={"required_activity_type": self.default_activity_type}
            )
        return await self.ledger.create_challenge(data, now=now)

    async def get_challenge(self, challenge_id: int) -> ChallengeSchema:
        return await self.ledger.get_challenge(challenge_id)

    async def join(
        self, challenge_id: int, address: str, stake_amount: int
    ) -> ParticipantSchema:
        return await self.ledger.join(challenge_id, address, stake_amount)

    async def get_participant(
        self, challenge_id: int, address: str
    ) -> ParticipantSchema:
        return await self.ledger.get_participant(challenge_id, address)

    async def list_participants(self, challenge_id: int) -> list[ParticipantSchema]:
        return await self.ledger.list_participants(challenge_id)

    async def completion_events(self, challenge_id: int) -> list[CompletionEvent]:
        return await self.ledger.completion_events(challenge_id)

    async def finalize(
        self, challenge_id: int, now: Optional[int] = None
    ) -> FinalizationSummary:
        """Finalize a challenge once its end time has passed.

        After this no participant can join or complete; participants that
        never completed forfeit their stake to the winners.

        Parameters
        ----------
        challenge_id : int
            Challenge to finalize
        now : int | None
            Current Unix time, defaults to the wall clock

        Returns
        -------
        FinalizationSummary
            Participant counts and winning identities
        """
        summary = await self.ledger.finalize(challenge_id, now=now)

        logger.info(
            "Challenge finalized",
            challenge_id=summary.challenge_id,
            total_participants=summary.total_participants,
            successful_participants=summary.successful_participants,
            failed_participants=summary.failed_participants,
            total_staked=summary.total_staked,
        )
        return summary
