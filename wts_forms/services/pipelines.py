"""
Composition root for the submission pipelines.

One ``SubmissionPipeline`` per form kind: its own circuit breaker, retry
helper, durable queue and handler. Built once at startup and shared through
``app.state.pipelines``.
"""

from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Iterator, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.engine import Engine

from wts_forms.core.circuit_breaker import CircuitBreaker
from wts_forms.core.config import Settings
from wts_forms.core.retry import RetryWithBackoff
from wts_forms.core.storage import DatabaseStorage, LocalStorage, MemoryStorage
from wts_forms.services.document_store import DocumentStoreClient
from wts_forms.services.forms import FORMS, FormDefinition
from wts_forms.services.submission_handler import RemoteWrite, SubmissionHandler
from wts_forms.services.submission_queue import SubmissionQueue

logger = structlog.get_logger(__name__)


@dataclass
class SubmissionPipeline:
    definition: FormDefinition
    breaker: CircuitBreaker
    retry: RetryWithBackoff
    queue: SubmissionQueue
    handler: SubmissionHandler
    remote_write: RemoteWrite

    @property
    def kind(self) -> str:
        return self.definition.kind

    def start(self) -> None:
        """Begin replaying this form's queue through the remote write."""
        self.queue.start_auto_sync(self.remote_write)

    def stop(self) -> None:
        self.queue.stop_auto_sync()

    def snapshot(self) -> Dict[str, Any]:
        """Breaker metrics and queue status, as polled by monitoring."""
        return {"circuit": self.breaker.get_metrics(), "queue": self.queue.get_status()}


class SubmissionPipelines:
    """The pipelines of every form kind, keyed by kind."""

    def __init__(self, pipelines: Dict[str, SubmissionPipeline]):
        self._pipelines = pipelines

    def get(self, kind: str) -> Optional[SubmissionPipeline]:
        return self._pipelines.get(kind)

    def __iter__(self) -> Iterator[SubmissionPipeline]:
        return iter(self._pipelines.values())

    def __len__(self) -> int:
        return len(self._pipelines)

    def start(self) -> None:
        for pipeline in self:
            pipeline.start()
        logger.info("Submission sync started", kinds=[p.kind for p in self])

    def stop(self) -> None:
        for pipeline in self:
            pipeline.stop()

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {pipeline.kind: pipeline.snapshot() for pipeline in self}


def build_storage(settings: Settings, engine: Optional[Engine] = None) -> LocalStorage:
    """Queue storage for ``QUEUE_STORAGE_BACKEND`` (database needs ``engine``)."""
    if settings.QUEUE_STORAGE_BACKEND == "memory":
        logger.warning("Queue storage is process-local; queued submissions are lost on restart")
        return MemoryStorage(quota_bytes=settings.QUEUE_STORAGE_QUOTA_BYTES)
    if engine is None:
        raise ValueError("Database queue storage requires an engine")
    return DatabaseStorage(engine, quota_bytes=settings.QUEUE_STORAGE_QUOTA_BYTES)


def build_pipeline(
    definition: FormDefinition,
    settings: Settings,
    storage: LocalStorage,
    remote_write: RemoteWrite,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> SubmissionPipeline:
    breaker = CircuitBreaker(
        name=definition.kind,
        failure_threshold=settings.CIRCUIT_FAILURE_THRESHOLD,
        success_threshold=settings.CIRCUIT_SUCCESS_THRESHOLD,
        timeout=settings.CIRCUIT_TIMEOUT_SECONDS,
        request_timeout=settings.CIRCUIT_REQUEST_TIMEOUT_SECONDS,
    )
    retry = RetryWithBackoff(
        max_retries=settings.RETRY_MAX_RETRIES,
        base_delay=settings.RETRY_BASE_DELAY_SECONDS,
        max_jitter=settings.RETRY_MAX_JITTER_SECONDS,
    )
    queue = SubmissionQueue(
        storage,
        storage_key=definition.storage_key,
        max_size=settings.QUEUE_MAX_SIZE,
        max_attempts=settings.QUEUE_MAX_ATTEMPTS,
        sync_interval=settings.QUEUE_SYNC_INTERVAL_SECONDS,
        scheduler=scheduler,
    )
    handler = SubmissionHandler(
        definition,
        breaker=breaker,
        retry=retry,
        queue=queue,
        remote_write=remote_write,
        reset_delay=settings.FORM_RESET_DELAY_SECONDS,
    )
    return SubmissionPipeline(
        definition=definition,
        breaker=breaker,
        retry=retry,
        queue=queue,
        handler=handler,
        remote_write=remote_write,
    )


def build_pipelines(
    settings: Settings,
    storage: LocalStorage,
    store_client: DocumentStoreClient,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> SubmissionPipelines:
    """One pipeline per site form, all writing through ``store_client``."""
    return SubmissionPipelines(
        {
            kind: build_pipeline(
                definition,
                settings,
                storage,
                remote_write=partial(store_client.write, definition.collection),
                scheduler=scheduler,
            )
            for kind, definition in FORMS.items()
        }
    )
