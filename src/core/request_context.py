"""Request context management using contextvars.

The request_id traces all logs and ledger operations of a single HTTP request
(including an oracle verification run). Context variables are async-safe and
propagate through async call chains without explicit parameter passing.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable to store the current request ID
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Accepted shape for caller-supplied request ids
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def get_request_id() -> Optional[str]:
    """Get the current request ID from context.

    Returns
    -------
    Optional[str]
        The current request ID, or None if not set
    """
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def generate_request_id() -> str:
    """Generate a new unique request ID (UUID v4)."""
    return str(uuid.uuid4())


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse a well-formed incoming X-Request-ID, otherwise generate one.

    Parameters
    ----------
    incoming : str | None
        Value of the client's X-Request-ID header

    Returns
    -------
    str
        Request ID to use for this request
    """
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return generate_request_id()
