"""HTTP translation of FitStake errors."""

from typing import Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from src.core.request_context import get_request_id
from src.exceptions import ErrorKind, FitStakeError

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.MALFORMED_INPUT: 400,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.INCORRECT_STAKE: 400,
    ErrorKind.UNAUTHORIZED_ORACLE: 403,
    ErrorKind.CHALLENGE_NOT_FOUND: 404,
    ErrorKind.NOT_JOINED: 404,
    ErrorKind.ALREADY_COMPLETED: 409,
    ErrorKind.ALREADY_JOINED: 409,
    ErrorKind.CHALLENGE_FINALIZED: 409,
    ErrorKind.CHALLENGE_ACTIVE: 409,
    ErrorKind.ACTIVITY_UNAVAILABLE: 502,
    ErrorKind.LEDGER_UNAVAILABLE: 503,
}


def status_for(kind: Optional[ErrorKind]) -> int:
    return STATUS_BY_KIND.get(kind, 500)


async def fitstake_exception_handler(request: Request, exc: FitStakeError):
    """Render a FitStake error raised by a route as JSON.

    Parameters
    ----------
    request : Request
        The HTTP request that raised
    exc : FitStakeError
        The raised error

    Returns
    -------
    JSONResponse
        Error body with kind, retry hint and request_id
    """
    status_code = status_for(exc.kind)
    request_id = get_request_id()

    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        error_kind=exc.kind.value,
        error=exc.message,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_kind": exc.kind.value,
            "retryable": exc.retryable,
            "request_id": request_id,
        },
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Report request body and parameter validation errors as malformed input."""
    request_id = get_request_id()
    errors = jsonable_encoder(exc.errors())

    logger.info(
        "Malformed request",
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        errors=errors,
    )

    return JSONResponse(
        status_code=status_for(ErrorKind.MALFORMED_INPUT),
        content={
            "detail": errors,
            "error_kind": ErrorKind.MALFORMED_INPUT.value,
            "retryable": False,
            "request_id": request_id,
        },
    )
