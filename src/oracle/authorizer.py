"""Completion Authorizer.

The only component allowed to move a participant from JOINED to COMPLETED.
It trusts the ``VerificationDecision`` it is handed and never re-runs any
acceptance rule itself.
"""

import asyncio

from loguru import logger

from src.challenges.ledger import ChallengeLedger
from src.challenges.schemas import CompletionEvent, CompletionMetadata
from src.exceptions import (
    AlreadyCompleted,
    LedgerUnavailable,
    UnauthorizedOracle,
    ValidationFailed,
)
from src.oracle.config import OracleConfig
from src.verification.schemas import VerificationDecision


class CompletionAuthorizer:
    """Gate the ledger's ``mark_complete`` call.

    Parameters
    ----------
    config : OracleConfig
        Oracle identity of the deployment scope
    ledger : ChallengeLedger
        Ledger performing the atomic state transition
    """

    def __init__(self, config: OracleConfig, ledger: ChallengeLedger):
        self.config = config
        self.ledger = ledger

    async def authorize(
        self,
        decision: VerificationDecision,
        caller: str,
        participant: str,
    ) -> CompletionEvent:
        """Mark ``participant`` complete for ``decision.challenge_id``.

        Parameters
        ----------
        decision : VerificationDecision
            Decision produced by the validation pipeline
        caller : str
            Identity attempting the mutation
        participant : str
            Participant identity to mark complete

        Returns
        -------
        CompletionEvent
            The event emitted by the ledger for this completion

        Raises
        ------
        ValidationFailed
            If the decision did not pass
        UnauthorizedOracle
            If ``caller`` is not the configured oracle
        ChallengeNotFound, ChallengeFinalized, NotJoined, AlreadyCompleted
            Ledger precondition failures
        LedgerUnavailable
            If the ledger could not be reached
        """
        if not decision.success:
            raise ValidationFailed(f"Verification failed: {decision.reason}")

        if not self.config.is_oracle(caller):
            logger.warning(
                "Unauthorized oracle call rejected",
                caller=caller,
                expected_oracle=self.config.oracle_address,
                scope=self.config.scope,
                challenge_id=decision.challenge_id,
                participant=participant,
            )
            raise UnauthorizedOracle("Only authorized oracle can call this function")

        metadata = CompletionMetadata.from_decision(decision)

        try:
            event = await self.ledger.mark_complete(
                decision.challenge_id, participant, metadata
            )
        except AlreadyCompleted:
            logger.info(
                "Completion already recorded",
                challenge_id=decision.challenge_id,
                participant=participant,
            )
            raise
        except (OSError, asyncio.TimeoutError) as e:
            raise LedgerUnavailable(f"Ledger call failed: {e}") from e

        logger.info(
            "Task completed",
            scope=self.config.scope,
            **event.model_dump(),
        )
        return event
