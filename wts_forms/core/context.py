"""
Request context for log and error correlation.

Uses contextvars so the request id follows the submission through the
breaker, the retry sleeps and the fallback enqueue.
"""

from contextvars import ContextVar
from typing import Optional
import uuid

__all__ = [
    "set_request_id",
    "get_request_id",
    "generate_request_id",
    "set_form_kind",
    "get_form_kind",
    "clear_context",
    "get_context_dict",
]

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_form_kind: ContextVar[Optional[str]] = ContextVar("form_kind", default=None)


def generate_request_id() -> str:
    """
    Generate a new request ID.

    Format: req_{16 hex chars}
    """
    return f"req_{uuid.uuid4().hex[:16]}"


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def set_form_kind(kind: str) -> None:
    """Set the form kind being submitted in the current context."""
    _form_kind.set(kind)


def get_form_kind() -> Optional[str]:
    return _form_kind.get()


def clear_context() -> None:
    """Clear all context variables at the end of a request."""
    _request_id.set(None)
    _form_kind.set(None)


def get_context_dict() -> dict:
    """All context variables as a dict, for enriching error reports."""
    return {
        "request_id": get_request_id(),
        "form_kind": get_form_kind(),
    }
