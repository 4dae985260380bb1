from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

import src.challenges.ledger  # noqa: F401 - registers in-memory ledger lifespan
import src.core.database  # noqa: F401 - registers database lifespan
import src.core.logging_config  # noqa: F401 - registers logging lifespan
from src.challenges.router import router as challenges_router
from src.config import get_settings
from src.core.errors import (
    fitstake_exception_handler,
    request_validation_exception_handler,
)
from src.core.lifespan import manager
from src.core.logging_config import configure_logging
from src.core.middleware import LoggingMiddleware, RequestContextMiddleware
from src.core.request_context import get_request_id
from src.exceptions import FitStakeError
from src.oracle.router import router as oracle_router

# Configure logging FIRST (before app creation and settings access)
configure_logging()

settings = get_settings()

app_configs = {
    "title": settings.APP_NAME,
    "version": "1.0.0",
    "lifespan": manager,
    "debug": settings.DEBUG,
}

if settings.ENVIRONMENT not in ("local", "staging"):
    app_configs["openapi_url"] = None

app = FastAPI(**app_configs)

# Add middleware (order matters - last added runs first)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestContextMiddleware)  # Must run before logging

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(challenges_router)
app.include_router(oracle_router)

app.add_exception_handler(FitStakeError, fitstake_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with structured logging.

    Parameters
    ----------
    request : Request
        The HTTP request that caused the exception
    exc : Exception
        The unhandled exception

    Returns
    -------
    JSONResponse
        Error response with request_id for tracking
    """
    request_id = get_request_id()
    logger.opt(exception=exc).error(
        "Unhandled exception",
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": request_id},
    )


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "ledger_backend": settings.LEDGER_BACKEND,
        "oracle_scope": settings.CONTRACT_ADDRESS,
    }
