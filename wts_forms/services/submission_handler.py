"""
Form submission handler.

Binds one site form to the resilience pipeline:

    validate -> sanitize -> breaker.execute(
        retry.execute(remote_write(payload)),
        fallback=queue.enqueue(payload),
    )

and renders exactly one of three outcomes on the form's view: sent
(success), saved for later (queued) or not saved (failed). This is the only
layer that produces user-facing error text.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol

import structlog

from wts_forms.core.circuit_breaker import CircuitBreaker
from wts_forms.core.errors import capture_exception
from wts_forms.core.retry import RetryWithBackoff
from wts_forms.core.typing import utc_now
from wts_forms.services.forms import FormDefinition, validate_fields
from wts_forms.services.messages import get_translation
from wts_forms.services.sanitize import escape_html, sanitize_fields
from wts_forms.services.submission_queue import SubmissionQueue

logger = structlog.get_logger(__name__)

RemoteWrite = Callable[[Dict[str, Any]], Awaitable[Any]]


class SubmissionOutcome(str, Enum):
    SUCCESS = "success"
    QUEUED = "queued"
    FAILED = "failed"
    INVALID = "invalid"  # rejected by validation, pipeline never touched


class QueueFullError(Exception):
    """The fallback could not keep the submission (queue at capacity or storage failure)."""


class FormView(Protocol):
    """The parts of a form the handler drives."""

    def set_busy(self, busy: bool, label: str) -> None: ...

    def show_success(self, message: str) -> None: ...

    def show_queued(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...

    def schedule_reset(self, delay: float) -> None: ...


@dataclass
class JsonFormView:
    """
    Records what the page should display, for clients that render the
    form themselves from a JSON response.
    """

    busy: bool = False
    button_label: Optional[str] = None
    outcome: Optional[str] = None
    message: Optional[str] = None
    reset_after: Optional[float] = None
    busy_history: list = field(default_factory=list)

    def set_busy(self, busy: bool, label: str) -> None:
        self.busy = busy
        self.button_label = label
        self.busy_history.append(busy)

    def show_success(self, message: str) -> None:
        self.outcome, self.message = SubmissionOutcome.SUCCESS.value, message

    def show_queued(self, message: str) -> None:
        self.outcome, self.message = SubmissionOutcome.QUEUED.value, message

    def show_error(self, message: str) -> None:
        self.outcome, self.message = SubmissionOutcome.FAILED.value, message

    def schedule_reset(self, delay: float) -> None:
        self.reset_after = delay

    def to_dict(self) -> Dict[str, Any]:
        return {
            "busy": self.busy,
            "button_label": self.button_label,
            "message": self.message,
            "reset_after": self.reset_after,
        }


@dataclass
class SubmissionResult:
    outcome: SubmissionOutcome
    message: str
    payload: Optional[Dict[str, str]] = None
    errors: Dict[str, str] = field(default_factory=dict)


def build_payload(
    fields: Mapping[str, Any],
    page_url: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, str]:
    """Sanitized field values plus submission metadata."""
    payload = sanitize_fields(fields)
    payload["submitted_at"] = utc_now().isoformat()
    payload["page_url"] = escape_html(page_url or "")
    payload["user_agent"] = escape_html(user_agent or "")
    return payload


class SubmissionHandler:
    def __init__(
        self,
        definition: FormDefinition,
        breaker: CircuitBreaker,
        retry: RetryWithBackoff,
        queue: SubmissionQueue,
        remote_write: RemoteWrite,
        reset_delay: float = 3.0,
    ):
        self.definition = definition
        self.breaker = breaker
        self.retry = retry
        self.queue = queue
        self.remote_write = remote_write
        self.reset_delay = reset_delay

    async def handle(
        self,
        fields: Mapping[str, Any],
        view: FormView,
        lang: str = "en",
        page_url: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SubmissionResult:
        """Validate, submit and render the outcome of one form submission."""
        kind = self.definition.kind

        errors = validate_fields(self.definition, fields)
        if errors:
            message = get_translation("formErrors", lang)
            view.show_error(message)
            logger.info("Submission rejected by validation", kind=kind, fields=sorted(errors))
            return SubmissionResult(SubmissionOutcome.INVALID, message, errors=errors)

        view.set_busy(True, get_translation(self.definition.busy_label_key, lang))
        outcome = SubmissionOutcome.FAILED
        payload = build_payload(fields, page_url=page_url, user_agent=user_agent)

        async def send() -> SubmissionOutcome:
            await self.retry.execute(lambda: self.remote_write(payload))
            return SubmissionOutcome.SUCCESS

        async def keep_for_later() -> SubmissionOutcome:
            if not self.queue.enqueue(payload):
                raise QueueFullError(f"Submission queue {self.queue.storage_key} could not accept the submission")
            return SubmissionOutcome.QUEUED

        try:
            outcome = await self.breaker.execute(send, keep_for_later)
            if outcome is SubmissionOutcome.QUEUED:
                message = get_translation("submissionQueued", lang)
                view.show_queued(message)
            else:
                message = get_translation(self.definition.success_key, lang)
                view.show_success(message)
            logger.info("Submission handled", kind=kind, outcome=outcome.value, circuit=self.breaker.state.value)
            return SubmissionResult(outcome, message, payload)
        except Exception as e:
            outcome = SubmissionOutcome.FAILED
            capture_exception(
                e,
                context={"kind": kind, "circuit": self.breaker.state.value, "form_data": payload},
                level="warning",
            )
            message = f"{get_translation('submissionFailed', lang)}. {get_translation('tryAgainLater', lang)}"
            view.show_error(message)
            return SubmissionResult(outcome, message, payload)
        finally:
            view.set_busy(False, get_translation(self.definition.submit_label_key, lang))
            if outcome in (SubmissionOutcome.SUCCESS, SubmissionOutcome.QUEUED):
                view.schedule_reset(self.reset_delay)
