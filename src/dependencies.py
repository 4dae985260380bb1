"""FastAPI dependencies for accessing application state."""

from typing import cast

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.challenges.database_ledger import DatabaseLedger
from src.challenges.ledger import ChallengeLedger
from src.challenges.service import ChallengeService
from src.config import Settings, get_settings
from src.oracle.authorizer import CompletionAuthorizer
from src.oracle.config import OracleConfig
from src.oracle.service import OracleService

# Define API key header scheme for Swagger UI
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=True)


def get_ledger(request: Request) -> ChallengeLedger:
    """
    Get the ledger configured for this deployment.

    The in-memory ledger lives in application state; the database ledger is
    built around the session maker created by the database lifespan.
    """
    ledger = getattr(request.state, "ledger", None)
    if ledger is not None:
        return cast(ChallengeLedger, ledger)
    session_maker = cast(async_sessionmaker, request.state.session_maker)
    return DatabaseLedger(session_maker)


def get_oracle_config(settings: Settings = Depends(get_settings)) -> OracleConfig:
    return OracleConfig.from_settings(settings)


def get_challenge_service(
    ledger: ChallengeLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> ChallengeService:
    return ChallengeService(ledger, default_activity_type=settings.DEFAULT_ACTIVITY_TYPE)


def get_authorizer(
    config: OracleConfig = Depends(get_oracle_config),
    ledger: ChallengeLedger = Depends(get_ledger),
) -> CompletionAuthorizer:
    return CompletionAuthorizer(config, ledger)


def get_oracle_service(
    ledger: ChallengeLedger = Depends(get_ledger),
    authorizer: CompletionAuthorizer = Depends(get_authorizer),
    settings: Settings = Depends(get_settings),
) -> OracleService:
    """
    Build the oracle service for one request.

    Usage:
        @router.post("/verify")
        async def verify(service: OracleService = Depends(get_oracle_service)):
            ...
    """
    return OracleService(ledger, authorizer, settings)


async def verify_admin_api_key(api_key: str = Security(api_key_header)) -> None:
    """
    Verify admin API key from X-API-Key header.

    This dependency integrates with Swagger UI's "Authorize" button.

    Usage (on entire router):
        router = APIRouter(prefix="/oracle", dependencies=[Depends(verify_admin_api_key)])

    Raises
    ------
    HTTPException
        403 if API key is invalid or missing
    """
    settings = get_settings()
    if api_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API key")
