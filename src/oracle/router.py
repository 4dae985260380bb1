"""API routes for the verification oracle."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from src.core.errors import status_for
from src.dependencies import get_oracle_service, verify_admin_api_key
from src.oracle.schemas import ValidateRequest, VerificationOutcome, VerifyRequest
from src.oracle.service import OracleService
from src.verification.schemas import VerificationDecision

router = APIRouter(
    prefix="/oracle",
    tags=["oracle"],
    dependencies=[Depends(verify_admin_api_key)],
)


@router.post("/verify", response_model=VerificationOutcome)
async def verify_activity(
    request: VerifyRequest,
    oracle_address: Optional[str] = Header(None, alias="X-Oracle-Address"),
    service: OracleService = Depends(get_oracle_service),
):
    """Verify an activity and mark the participant complete on success.

    Parameters
    ----------
    request : VerifyRequest
        Challenge, participant and activity source
    oracle_address : str | None
        Caller identity, must match the configured oracle
    service : OracleService
        Oracle service (injected)

    Returns
    -------
    VerificationOutcome
        Decision and completion event

    Raises
    ------
    HTTPException
        With the status mapped from the failure kind; the full outcome is
        returned as the error detail
    """
    outcome = await service.verify_and_complete(request, oracle_address)
    if not outcome.success:
        raise HTTPException(
            status_code=status_for(outcome.error_kind),
            detail=outcome.model_dump(mode="json"),
        )
    return outcome


@router.post("/validate", response_model=VerificationDecision)
async def validate_activity(
    request: ValidateRequest,
    service: OracleService = Depends(get_oracle_service),
):
    """Dry run: return the decision without touching the ledger."""
    return await service.evaluate(request.challenge_id, request.activity)
