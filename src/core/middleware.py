"""FastAPI middleware for request context and logging.

This module provides two middleware components:
1. RequestContextMiddleware: Resolves the request_id and binds it to the context
2. LoggingMiddleware: Logs HTTP requests and responses with timing information

Middleware should be added to the FastAPI app in this order:
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)  # Added last, runs first
"""

import json
import time
from typing import Any

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.core.request_context import get_request_id, resolve_request_id, set_request_id

# Max body size to log (in bytes) - avoid logging huge payloads
MAX_BODY_LOG_SIZE = 10000  # 10KB

# Body fields never written to logs
REDACTED_FIELDS = frozenset({"strava_access_token", "access_token", "refresh_token"})
REDACTED = "***"


def redact(data: Any) -> Any:
    """Mask secret fields in a parsed JSON body, recursively."""
    if isinstance(data, dict):
        return {
            key: REDACTED if key in REDACTED_FIELDS else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to resolve the request_id and inject it into context.

    Reuses a well-formed incoming X-Request-ID so that oracle retries can be
    correlated, generates one otherwise, and echoes it on the response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process the request and inject request_id.

        Parameters
        ----------
        request : Request
            The incoming HTTP request
        call_next : callable
            The next middleware or route handler

        Returns
        -------
        Response
            The HTTP response with X-Request-ID header added
        """
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        set_request_id(request_id)

        with logger.contextualize(request_id=request_id):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log HTTP requests and responses.

    Logs:
    - Request started: method, path, query params, client IP, redacted body
    - Request completed: status code, duration in milliseconds

    Skips logging for /health endpoint to reduce noise.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        # Skip logging for health checks to reduce noise
        if request.url.path == "/health":
            return await call_next(request)

        request_id = get_request_id()
        start_time = time.time()

        body_data = None
        if request.method in ("POST", "PUT", "PATCH"):
            body_bytes = await request.body()

            if len(body_bytes) <= MAX_BODY_LOG_SIZE:
                try:
                    body_data = redact(json.loads(body_bytes))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    # Not JSON; never log raw text that might hold a token
                    body_data = f"<non-JSON body: {len(body_bytes)} bytes>"
            else:
                body_data = f"<body too large: {len(body_bytes)} bytes>"

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": str(request.query_params),
            "client_ip": request.client.host if request.client else None,
        }
        if body_data is not None:
            log_data["body"] = body_data

        logger.info("Request started", **log_data)

        response = await call_next(request)

        duration = time.time() - start_time

        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        return response
