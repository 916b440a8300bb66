"""
Request context middleware for observability.

Injects a request_id into every request so the log lines and error reports
of one submission (breaker, retries, queue fallback) can be found together.

Headers:
- X-Request-ID: Unique ID for this request (generated if not provided)
"""

import re
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from wts_forms.core.context import (
    set_request_id,
    generate_request_id,
    clear_context,
)

logger = structlog.get_logger(__name__)

# Request ID validation to prevent log injection attacks
MAX_ID_LENGTH = 64
SAFE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")


def _validate_id(value: Optional[str]) -> Optional[str]:
    """
    Validate a client-supplied request ID.

    Returns None if invalid (a generated ID is used instead): too long, or
    containing anything besides letters, digits, ``_`` and ``-``.
    """
    if not value:
        return None
    if len(value) > MAX_ID_LENGTH:
        return None
    if not SAFE_ID_PATTERN.match(value):
        return None
    return value


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds the request ID to structlog and the error context for the
    duration of the request, and echoes it in the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _validate_id(request.headers.get("X-Request-ID")) or generate_request_id()
        set_request_id(request_id)
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            # Clean up context to prevent leaking to next request
            clear_context()
            structlog.contextvars.clear_contextvars()
