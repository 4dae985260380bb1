"""Oracle service: one verification run from activity fetch to completion."""

from typing import Any, Callable, Optional

from loguru import logger

from src.challenges.ledger import ChallengeLedger
from src.config import Settings
from src.exceptions import (
    ActivityUnavailable,
    FitStakeError,
    ValidationFailed,
)
from src.oracle.authorizer import CompletionAuthorizer
from src.oracle.schemas import VerificationOutcome, VerifyRequest
from src.strava import AsyncStravaClient
from src.strava.exceptions import ObjectNotFound, StravaException
from src.verification.schemas import ChallengeCriteria, VerificationDecision
from src.verification.validator import validate_activity

StravaClientFactory = Callable[[str], AsyncStravaClient]


class OracleService:
    """Orchestrates activity resolution, validation and authorization.

    Parameters
    ----------
    ledger : ChallengeLedger
        Source of challenge criteria
    authorizer : CompletionAuthorizer
        Gate for the completion transition
    settings : Settings
        Supplies tolerance and sanity thresholds
    strava_client_factory : callable, optional
        Builds a Strava client from an access token
    """

    def __init__(
        self,
        ledger: ChallengeLedger,
        authorizer: CompletionAuthorizer,
        settings: Settings,
        strava_client_factory: Optional[StravaClientFactory] = None,
    ):
        self.ledger = ledger
        self.authorizer = authorizer
        self.settings = settings
        self.strava_client_factory = strava_client_factory or self._default_client

    def _default_client(self, access_token: str) -> AsyncStravaClient:
        return AsyncStravaClient(
            access_token,
            base_url=self.settings.STRAVA_API_URL,
            timeout=self.settings.STRAVA_TIMEOUT,
        )

    async def load_criteria(self, challenge_id: int) -> ChallengeCriteria:
        challenge = await self.ledger.get_challenge(challenge_id)
        return challenge.to_criteria(
            default_tolerance=self.settings.DISTANCE_TOLERANCE,
            max_average_speed=self.settings.MAX_AVERAGE_SPEED,
            max_activity_distance=self.settings.MAX_ACTIVITY_DISTANCE,
        )

    async def evaluate(self, challenge_id: int, activity: Any) -> VerificationDecision:
        """Validate ``activity`` against the challenge's criteria, no writes.

        Every decision is logged as an audit record.
        """
        criteria = await self.load_criteria(challenge_id)
        decision = validate_activity(activity, criteria)

        logger.info(
            "Verification decision",
            summary=decision.summary,
            **decision.to_log(),
        )
        return decision

    async def fetch_activity(
        self, access_token: str, activity_id: Optional[int] = None
    ) -> dict[str, Any]:
        """Fetch a raw activity from Strava.

        Raises
        ------
        ActivityUnavailable
            If Strava rejects the request or the athlete has no activity
        """
        client = self.strava_client_factory(access_token)
        try:
            if activity_id is not None:
                return await client.get_activity(activity_id)
            activity = await client.get_latest_activity()
        except ObjectNotFound as e:
            raise ActivityUnavailable(f"Activity not found: {e}") from e
        except StravaException as e:
            logger.error(
                "Strava fetch failed",
                activity_id=activity_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ActivityUnavailable(f"Could not fetch activity: {e}") from e

        if activity is None:
            raise ActivityUnavailable("No activity found for athlete")
        return activity

    async def verify_and_complete(
        self, request: VerifyRequest, caller: Optional[str]
    ) -> VerificationOutcome:
        """Run one full verification and, on success, record completion.

        Every engine failure is returned as an outcome with its error kind;
        nothing is raised for expected failures.

        Parameters
        ----------
        request : VerifyRequest
            Challenge, participant and activity source
        caller : str | None
            Identity presented as the oracle

        Returns
        -------
        VerificationOutcome
            Decision plus completion event, or the failure kind
        """
        challenge_id = request.challenge_id
        participant = request.participant_address.strip().lower()
        decision: Optional[VerificationDecision] = None

        try:
            if request.activity is not None:
                activity = request.activity
            else:
                activity = await self.fetch_activity(
                    request.strava_access_token, request.strava_activity_id
                )

            decision = await self.evaluate(challenge_id, activity)
            if not decision.success:
                raise ValidationFailed(decision.reason)

            event = await self.authorizer.authorize(decision, caller, participant)
        except FitStakeError as e:
            logger.info(
                "Verification not completed",
                challenge_id=challenge_id,
                participant=participant,
                error_kind=e.kind.value,
                retryable=e.retryable,
                message=e.message,
            )
            return VerificationOutcome.failed(e, challenge_id, participant, decision)

        return VerificationOutcome(
            success=True,
            challenge_id=challenge_id,
            participant=participant,
            message=decision.message,
            decision=decision,
            completion=event,
        )
