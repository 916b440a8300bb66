"""
Tests for the form submission handler: the three user-visible outcomes.
"""

from unittest.mock import AsyncMock, patch

import pytest

from wts_forms.core.circuit_breaker import CircuitBreaker, CircuitState
from wts_forms.core.retry import RetryWithBackoff
from wts_forms.core.storage import MemoryStorage
from wts_forms.services.forms import NEWSLETTER_FORM, QUOTE_REQUEST_FORM
from wts_forms.services.messages import get_translation
from wts_forms.services.submission_handler import (
    JsonFormView,
    SubmissionHandler,
    SubmissionOutcome,
    build_payload,
)
from wts_forms.services.submission_queue import SubmissionQueue

VALID_QUOTE = {"name": "Jane Doe", "email": "jane@example.com", "message": "Need a quote"}

FAILED_MESSAGE = f"{get_translation('submissionFailed')}. {get_translation('tryAgainLater')}"


def make_handler(remote_write, definition=QUOTE_REQUEST_FORM, max_retries=0, queue=None):
    queue = queue or SubmissionQueue(MemoryStorage(), storage_key=definition.storage_key)
    return SubmissionHandler(
        definition,
        breaker=CircuitBreaker(name=definition.kind),
        retry=RetryWithBackoff(max_retries=max_retries, base_delay=0.0, max_jitter=0.0),
        queue=queue,
        remote_write=remote_write,
        reset_delay=3.0,
    )


class TestSuccess:
    @pytest.mark.asyncio
    async def test_success_outcome(self):
        remote_write = AsyncMock()
        handler = make_handler(remote_write)
        view = JsonFormView()

        result = await handler.handle(VALID_QUOTE, view)

        assert result.outcome is SubmissionOutcome.SUCCESS
        assert view.outcome == "success"
        assert view.message == get_translation("submissionSuccess")
        assert view.reset_after == 3.0
        assert handler.queue.get_status()["pending"] == 0
        remote_write.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_busy_during_submission_then_restored(self):
        handler = make_handler(AsyncMock())
        view = JsonFormView()

        await handler.handle(VALID_QUOTE, view)

        assert view.busy_history == [True, False]
        assert view.busy is False
        assert view.button_label == get_translation("submitRequest")

    @pytest.mark.asyncio
    async def test_retry_then_success_is_not_queued(self):
        """Remote write fails twice then succeeds with two retries: success, 3 calls, nothing queued."""
        remote_write = AsyncMock(side_effect=[ConnectionError("down"), ConnectionError("down"), None])
        handler = make_handler(remote_write, max_retries=2)
        view = JsonFormView()

        result = await handler.handle(VALID_QUOTE, view)

        assert result.outcome is SubmissionOutcome.SUCCESS
        assert remote_write.await_count == 3
        assert handler.queue.get_status()["pending"] == 0
        assert handler.breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_newsletter_labels(self):
        handler = make_handler(AsyncMock(), definition=NEWSLETTER_FORM)
        view = JsonFormView()

        await handler.handle({"email": "jane@example.com"}, view, lang="fr")

        assert view.button_label == "S'abonner"
        assert view.message == get_translation("subscribeSuccess", "fr")


class TestQueued:
    @pytest.mark.asyncio
    async def test_persistent_failure_queues_after_threshold(self):
        """Remote write always throws: the 5th consecutive failure opens the circuit and queues."""
        remote_write = AsyncMock(side_effect=ConnectionError("Network request failed"))
        handler = make_handler(remote_write)

        outcomes = []
        for _ in range(5):
            view = JsonFormView()
            outcomes.append((await handler.handle(VALID_QUOTE, view)).outcome)

        assert outcomes[:4] == [SubmissionOutcome.FAILED] * 4
        assert outcomes[4] is SubmissionOutcome.QUEUED
        assert view.outcome == "queued"
        assert view.message == get_translation("submissionQueued")
        assert view.reset_after == 3.0

        pending = handler.queue.pending_entries()
        assert len(pending) == 1
        assert pending[0].data["email"] == "jane@example.com"

    @pytest.mark.asyncio
    async def test_open_circuit_queues_without_remote_call(self):
        remote_write = AsyncMock()
        handler = make_handler(remote_write)
        handler.breaker._state = CircuitState.OPEN
        handler.breaker._next_attempt_time = float("inf")

        result = await handler.handle(VALID_QUOTE, JsonFormView())

        assert result.outcome is SubmissionOutcome.QUEUED
        remote_write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_queued_payload_is_sanitized(self):
        handler = make_handler(AsyncMock())
        handler.breaker._state = CircuitState.OPEN
        handler.breaker._next_attempt_time = float("inf")
        fields = {**VALID_QUOTE, "message": "<script>alert(1)</script>"}

        await handler.handle(fields, JsonFormView())

        queued = handler.queue.pending_entries()[0].data
        assert "<script>" not in queued["message"]
        assert queued["message"].startswith("&lt;script&gt;")


class TestFailed:
    @pytest.mark.asyncio
    async def test_full_queue_is_hard_failure(self):
        queue = SubmissionQueue(MemoryStorage(), storage_key=QUOTE_REQUEST_FORM.storage_key)
        for i in range(100):
            queue.enqueue({"email": f"user{i}@example.com"})
        handler = make_handler(AsyncMock(), queue=queue)
        handler.breaker._state = CircuitState.OPEN
        handler.breaker._next_attempt_time = float("inf")
        view = JsonFormView()

        result = await handler.handle(VALID_QUOTE, view)

        assert result.outcome is SubmissionOutcome.FAILED
        assert view.message == FAILED_MESSAGE
        assert view.reset_after is None
        assert view.busy is False
        assert queue.get_status()["pending"] == 100

    @pytest.mark.asyncio
    async def test_failure_below_threshold_is_reported(self):
        handler = make_handler(AsyncMock(side_effect=ConnectionError("down")))
        view = JsonFormView()

        with patch("wts_forms.services.submission_handler.capture_exception") as capture:
            result = await handler.handle(VALID_QUOTE, view, lang="th")

        assert result.outcome is SubmissionOutcome.FAILED
        assert view.message == f"{get_translation('submissionFailed', 'th')}. {get_translation('tryAgainLater', 'th')}"
        capture.assert_called_once()
        assert capture.call_args.kwargs["context"]["kind"] == "quote-requests"


class TestValidation:
    @pytest.mark.asyncio
    async def test_invalid_fields_never_reach_pipeline(self):
        remote_write = AsyncMock()
        handler = make_handler(remote_write)
        view = JsonFormView()

        result = await handler.handle({"email": "bad"}, view)

        assert result.outcome is SubmissionOutcome.INVALID
        assert result.errors == {"name": "requiredField", "email": "invalidEmail", "message": "requiredField"}
        assert view.message == get_translation("formErrors")
        assert view.busy_history == []
        remote_write.assert_not_awaited()
        assert handler.breaker.metrics.total_requests == 0


class TestBuildPayload:
    def test_metadata_added(self):
        payload = build_payload(VALID_QUOTE, page_url="https://example.com/contact", user_agent="Mozilla/5.0")

        assert payload["name"] == "Jane Doe"
        assert payload["page_url"] == "https:&#x2F;&#x2F;example.com&#x2F;contact"
        assert payload["user_agent"] == "Mozilla&#x2F;5.0"
        assert "submitted_at" in payload

    def test_remote_write_receives_sanitized_payload(self):
        payload = build_payload({"name": "<b>Jane</b>"})

        assert payload["name"] == "&lt;b&gt;Jane&lt;&#x2F;b&gt;"
        assert payload["page_url"] == ""
