"""
Unified error reporting with Sentry integration.

Every capture is logged through structlog; events additionally go to
Sentry once ``init_sentry`` has been called with a DSN.

Form data never leaves the process unmasked: ``_before_send`` strips
cookies/auth headers and masks e-mail addresses in the ``form_data``
extra before an event is sent.

Usage:
    capture_exception(exc, context={"kind": "quote-requests"})
    capture_message("Circuit breaker OPEN for quote-requests", level="warning")
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import sentry_sdk
import structlog

from wts_forms.core.context import get_context_dict, get_request_id

logger = structlog.get_logger(__name__)

__all__ = [
    "init_sentry",
    "capture_exception",
    "capture_message",
    "is_sentry_enabled",
    "mask_email",
]

_sentry_initialized: bool = False

# Keep the first three characters of the local part: jan***@example.com
_EMAIL_MASK = re.compile(r"^(.{3}).*(@.*)$")

# Expected while the document store is unreachable; the breaker already reports these
IGNORED_MESSAGES = (
    "Request timeout",
    "Network request failed",
)


def init_sentry(
    dsn: str,
    environment: str = "production",
    traces_sample_rate: float = 0.1,
    release: Optional[str] = None,
) -> bool:
    """
    Initialize Sentry SDK for error tracking.

    Returns:
        True if initialization successful, False otherwise
    """
    global _sentry_initialized

    if not dsn:
        logger.info("Sentry disabled (no DSN provided)")
        return False

    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            traces_sample_rate=traces_sample_rate,
            release=release,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            ignore_errors=[KeyboardInterrupt, SystemExit],
            traces_sampler=_traces_sampler,
            before_send=_before_send,
        )
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))
        return False

    _sentry_initialized = True
    logger.info("Sentry initialized", environment=environment, traces_sample_rate=traces_sample_rate)
    return True


def _traces_sampler(sampling_context: Dict[str, Any]) -> float:
    """Never trace health checks; otherwise follow the parent decision."""
    transaction_name = sampling_context.get("transaction_context", {}).get("name", "")
    parent = sampling_context.get("parent_sampled")

    if parent is not None:
        return float(parent)
    if "/health" in transaction_name:
        return 0.0
    return 0.1


def mask_email(value: str) -> str:
    """Mask an e-mail address for error reports: ``janedoe@x.com`` -> ``jan***@x.com``."""
    return _EMAIL_MASK.sub(r"\1***\2", value)


def _mask_form_data(context: Dict[str, Any]) -> Dict[str, Any]:
    form_data = context.get("form_data")
    if isinstance(form_data, dict) and isinstance(form_data.get("email"), str):
        context["form_data"] = {**form_data, "email": mask_email(form_data["email"])}
    return context


def _before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Strip credentials and personal data before an event leaves the process."""
    request = event.get("request")
    if request:
        if "/health" in request.get("url", ""):
            return None
        request.pop("cookies", None)
        headers = request.get("headers") or {}
        for header in ("Authorization", "authorization", "X-Admin-Key", "x-admin-key"):
            headers.pop(header, None)

    for message in IGNORED_MESSAGES:
        if message in str(event.get("message", "")):
            return None

    if isinstance(event.get("extra"), dict):
        _mask_form_data(event["extra"])

    request_id = get_request_id()
    if request_id:
        event.setdefault("tags", {})["request_id"] = request_id

    return event


def is_sentry_enabled() -> bool:
    return _sentry_initialized


def capture_exception(
    exc: BaseException,
    context: Optional[Dict[str, Any]] = None,
    level: str = "error",
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture an exception with structured logging and Sentry.

    Returns:
        Sentry event ID or None if not sent
    """
    enriched_context = _mask_form_data(
        {
            **get_context_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error_type": type(exc).__name__,
            **(context or {}),
        }
    )

    logger.error("Exception captured", exc_info=exc, **enriched_context)

    if _sentry_initialized:
        try:
            with sentry_sdk.new_scope() as scope:
                for key, value in enriched_context.items():
                    if value is not None:
                        scope.set_extra(key, value)
                for key, value in (tags or {}).items():
                    scope.set_tag(key, value)
                scope.level = level
                return sentry_sdk.capture_exception(exc)
        except Exception as e:
            logger.warning("Failed to send exception to Sentry", error=str(e))

    return None


def capture_message(
    message: str,
    level: str = "info",
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture a non-exception event (circuit state changes, queue health alerts).

    Returns:
        Sentry event ID or None if not sent
    """
    enriched_context = {
        **get_context_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **(context or {}),
    }

    log_func = getattr(logger, level, logger.info)
    log_func(message, **enriched_context)

    if _sentry_initialized:
        try:
            with sentry_sdk.new_scope() as scope:
                for key, value in enriched_context.items():
                    if value is not None:
                        scope.set_extra(key, value)
                for key, value in (tags or {}).items():
                    scope.set_tag(key, value)
                scope.level = level
                return sentry_sdk.capture_message(message, level=level)
        except Exception as e:
            logger.warning("Failed to send message to Sentry", error=str(e))

    return None
