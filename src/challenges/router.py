"""API routes for challenges and participants."""

from fastapi import APIRouter, Depends

from src.challenges.schemas import (
    ChallengeCreate,
    ChallengeSchema,
    CompletionEvent,
    FinalizationSummary,
    JoinRequest,
    ParticipantSchema,
)
from src.challenges.service import ChallengeService
from src.dependencies import get_challenge_service, verify_admin_api_key

router = APIRouter(
    prefix="/challenges",
    tags=["challenges"],
)


@router.post("", response_model=ChallengeSchema, status_code=201)
async def create_challenge(
    data: ChallengeCreate,
    service: ChallengeService = Depends(get_challenge_service),
):
    """Create a new challenge.

    The window is either ``[start_time, end_time]`` or starts now and lasts
    ``duration`` seconds.
    """
    return await service.create_challenge(data)


@router.get("/{challenge_id}", response_model=ChallengeSchema)
async def get_challenge(
    challenge_id: int,
    service: ChallengeService = Depends(get_challenge_service),
):
    return await service.get_challenge(challenge_id)


@router.post(
    "/{challenge_id}/join", response_model=ParticipantSchema, status_code=201
)
async def join_challenge(
    challenge_id: int,
    request: JoinRequest,
    service: ChallengeService = Depends(get_challenge_service),
):
    """Join a challenge with exactly the challenge's stake amount.

    Parameters
    ----------
    challenge_id : int
        Challenge to join
    request : JoinRequest
        Participant identity and stake
    service : ChallengeService
        Challenge service (injected)

    Returns
    -------
    ParticipantSchema
        The new participant record
    """
    return await service.join(challenge_id, request.address, request.stake_amount)


@router.post(
    "/{challenge_id}/finalize",
    response_model=FinalizationSummary,
    dependencies=[Depends(verify_admin_api_key)],
)
async def finalize_challenge(
    challenge_id: int,
    service: ChallengeService = Depends(get_challenge_service),
):
    """Finalize a challenge after its end time (admin only)."""
    return await service.finalize(challenge_id)


@router.get("/{challenge_id}/participants", response_model=list[ParticipantSchema])
async def list_participants(
    challenge_id: int,
    service: ChallengeService = Depends(get_challenge_service),
):
    return await service.list_participants(challenge_id)


@router.get(
    "/{challenge_id}/participants/{address}", response_model=ParticipantSchema
)
async def get_participant(
    challenge_id: int,
    address: str,
    service: ChallengeService = Depends(get_challenge_service),
):
    return await service.get_participant(challenge_id, address)


@router.get("/{challenge_id}/completions", response_model=list[CompletionEvent])
async def list_completions(
    challenge_id: int,
    service: ChallengeService = Depends(get_challenge_service),
):
    """Completion events emitted for this challenge, in emission order."""
    return await service.completion_events(challenge_id)
