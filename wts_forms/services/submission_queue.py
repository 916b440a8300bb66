"""
Submission Queue Service

Durable FIFO of form submissions that could not be written to the document
store. Entries survive restarts (the collection lives in ``LocalStorage``)
and are replayed by a background sync job.

Usage:
    from wts_forms.services.submission_queue import SubmissionQueue

    queue = SubmissionQueue(storage, storage_key="pendingSubmissions")

    # Fallback path: keep the submission for later
    if not queue.enqueue(payload):
        ...  # at capacity or storage failed - the user must be told

    # Background replay every 30s, first pass immediately
    queue.start_auto_sync(remote_write)

    # Observability
    queue.get_status()
    # {"pending": 2, "failed": 0, "oldest_submission": "2024-...", "queue_healthy": True}

Entry lifecycle:
    enqueue -> pending tail -> dequeue (sync job) -> synced, dropped
                                                 -> sync failed: retry()
                                                      attempts < 3: pending tail
                                                      attempts >= 3: failed collection
"""

import asyncio
import json
import random
import string
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel, TypeAdapter, ValidationError

from wts_forms.core.storage import LocalStorage, QuotaExceededError, StorageError
from wts_forms.core.typing import epoch_ms, ms_to_iso

logger = structlog.get_logger(__name__)

QUEUE_KEY = "pendingSubmissions"
NEWSLETTER_QUEUE_KEY = "pendingNewsletterSignups"
FAILED_SUFFIX = "_failed"
MAX_QUEUE_SIZE = 100
MAX_ATTEMPTS = 3
SYNC_INTERVAL = 30.0  # seconds
HEALTHY_FILL_RATIO = 0.8

SyncCallback = Callable[[Dict[str, Any]], Awaitable[Any]]


class QueueEntry(BaseModel):
    """One queued submission. ``data`` is never modified after creation."""

    id: str
    data: Dict[str, Any]
    timestamp: int  # epoch ms, creation time
    attempts: int = 0
    status: Literal["pending", "failed"] = "pending"
    last_attempt: Optional[int] = None


_entries_adapter = TypeAdapter(List[QueueEntry])


def generate_submission_id() -> str:
    """``sub_<epoch ms>_<9 random base36 chars>``"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"sub_{epoch_ms()}_{suffix}"


class SubmissionQueue:
    def __init__(
        self,
        storage: LocalStorage,
        storage_key: str = QUEUE_KEY,
        max_size: int = MAX_QUEUE_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        sync_interval: float = SYNC_INTERVAL,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.max_size = max_size
        self.max_attempts = max_attempts
        self.sync_interval = sync_interval

        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._sync_callback: Optional[SyncCallback] = None
        self._job: Optional[Job] = None
        self._processing = False

    @property
    def failed_key(self) -> str:
        return self.storage_key + FAILED_SUFFIX

    @property
    def is_syncing(self) -> bool:
        """True while auto-sync is scheduled."""
        return self._job is not None

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def enqueue(self, data: Dict[str, Any]) -> bool:
        """
        Append a submission to the tail of the pending collection.

        Returns:
            True if the entry was persisted; False at capacity or when the
            storage write failed. Never raises.
        """
        queue = self._get_queue()

        if len(queue) >= self.max_size:
            logger.error("Maximum queue size reached", queue=self.storage_key, max_size=self.max_size)
            return False

        entry = QueueEntry(id=generate_submission_id(), data=dict(data), timestamp=epoch_ms())
        queue.append(entry)

        saved = self._save_queue(queue)
        if saved is None or not any(e.id == entry.id for e in saved):
            logger.error("Failed to persist queued submission", queue=self.storage_key, submission_id=entry.id)
            return False

        logger.info("Submission queued", queue=self.storage_key, submission_id=entry.id, queue_size=len(saved))
        return True

    def dequeue(self) -> Optional[QueueEntry]:
        """Remove and return the oldest pending entry, or None when empty."""
        queue = self._get_queue()
        if not queue:
            return None

        entry = queue.pop(0)
        if self._save_queue(queue) is None:
            logger.warning("Dequeued submission not persisted", queue=self.storage_key, submission_id=entry.id)
        return entry

    def retry(self, entry: QueueEntry) -> None:
        """
        Record a failed sync attempt for ``entry``.

        Below ``max_attempts`` the entry goes back to the tail of the pending
        collection so other entries get a turn first; at the ceiling it is
        moved to the failed collection and never retried again.
        """
        entry.attempts += 1
        entry.last_attempt = epoch_ms()

        if entry.attempts >= self.max_attempts:
            logger.error(
                "Submission exceeded max retries, moving to failed queue",
                queue=self.storage_key,
                submission_id=entry.id,
                attempts=entry.attempts,
            )
            self._move_to_failed_queue(entry)
            return

        queue = self._get_queue()
        queue.append(entry)
        self._save_queue(queue)

        logger.warning(
            "Submission re-queued",
            queue=self.storage_key,
            submission_id=entry.id,
            attempt=f"{entry.attempts}/{self.max_attempts}",
        )

    def get_status(self) -> Dict[str, Any]:
        """Queue depth and health. Read-only."""
        queue = self._get_queue()
        failed = self._get_failed_queue()
        oldest = min((e.timestamp for e in queue), default=None)

        return {
            "pending": len(queue),
            "failed": len(failed),
            "oldest_submission": ms_to_iso(oldest) if oldest is not None else None,
            "queue_healthy": len(queue) < self.max_size * HEALTHY_FILL_RATIO,
        }

    def pending_entries(self) -> List[QueueEntry]:
        return self._get_queue()

    def failed_entries(self) -> List[QueueEntry]:
        return self._get_failed_queue()

    def clear_queue(self) -> None:
        """Drop every pending entry. The failed collection is kept."""
        try:
            self.storage.remove_item(self.storage_key)
            logger.info("Queue cleared", queue=self.storage_key)
        except StorageError as e:
            logger.error("Failed to clear queue", queue=self.storage_key, error=str(e))

    # ------------------------------------------------------------------
    # Background sync
    # ------------------------------------------------------------------

    def start_auto_sync(self, sync_callback: SyncCallback) -> None:
        """
        Replay queued submissions through ``sync_callback`` every
        ``sync_interval`` seconds, starting immediately.

        Must be called from a running event loop. A second call while
        sync is already scheduled is a no-op.
        """
        if self._job is not None:
            logger.warning("Auto-sync already running", queue=self.storage_key)
            return

        self._sync_callback = sync_callback
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._job = self._scheduler.add_job(
            self.process_queue,
            IntervalTrigger(seconds=self.sync_interval),
            id=f"sync_{self.storage_key}",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()

        logger.info("Auto-sync started", queue=self.storage_key, interval_seconds=self.sync_interval)

    def stop_auto_sync(self) -> None:
        """Cancel the sync job. Safe to call when not running."""
        if self._job is None:
            return

        job, self._job = self._job, None
        if self._scheduler is not None and self._scheduler.get_job(job.id) is not None:
            job.remove()
        if self._owns_scheduler and self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None

        logger.info("Auto-sync stopped", queue=self.storage_key)

    async def process_queue(self, sync_callback: Optional[SyncCallback] = None) -> Dict[str, int]:
        """
        One sync pass over the entries pending when the pass starts.

        Each entry gets at most one attempt per pass; entries re-queued by
        ``retry`` wait for the next pass.

        Returns:
            {"processed": N, "failed": N}
        """
        callback = sync_callback or self._sync_callback
        result = {"processed": 0, "failed": 0}
        if callback is None or self._processing:
            return result

        pending = len(self._get_queue())
        if pending == 0:
            return result

        self._processing = True
        logger.info("Processing queued submissions", queue=self.storage_key, pending=pending)
        try:
            for _ in range(pending):
                entry = self.dequeue()
                if entry is None:
                    break

                try:
                    await callback(entry.data)
                except asyncio.CancelledError:
                    # Not an attempt: the entry goes back where it was
                    self._restore_to_head(entry)
                    logger.warning("Sync cancelled, submission restored", queue=self.storage_key, submission_id=entry.id)
                    raise
                except Exception as e:
                    result["failed"] += 1
                    logger.error(
                        "Failed to sync submission",
                        queue=self.storage_key,
                        submission_id=entry.id,
                        error=str(e),
                    )
                    self.retry(entry)
                else:
                    result["processed"] += 1
                    logger.info("Submission synced", queue=self.storage_key, submission_id=entry.id)
        finally:
            self._processing = False

        logger.info("Sync complete", queue=self.storage_key, **result)
        return result

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    def _read(self, key: str) -> List[QueueEntry]:
        try:
            raw = self.storage.get_item(key)
        except StorageError as e:
            logger.error("Failed to read queue", key=key, error=str(e))
            return []
        if not raw:
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error("Discarding unreadable queue data", key=key, error=str(e))
            return []

    def _write(self, key: str, entries: List[QueueEntry]) -> None:
        self.storage.set_item(key, json.dumps([e.model_dump(mode="json") for e in entries]))

    def _get_queue(self) -> List[QueueEntry]:
        return self._read(self.storage_key)

    def _get_failed_queue(self) -> List[QueueEntry]:
        return self._read(self.failed_key)

    def _save_queue(self, queue: List[QueueEntry]) -> Optional[List[QueueEntry]]:
        """
        Persist the pending collection.

        On a quota error the single oldest entry is evicted and the write is
        retried once. Returns the collection as written, or None if nothing
        could be persisted.
        """
        try:
            self._write(self.storage_key, queue)
            return queue
        except QuotaExceededError:
            if not queue:
                logger.error("Storage quota exceeded with an empty queue", queue=self.storage_key)
                return None
            remaining = queue[1:]
            logger.error(
                "Storage quota exceeded, evicting oldest submission",
                queue=self.storage_key,
                submission_id=queue[0].id,
            )
            try:
                self._write(self.storage_key, remaining)
                return remaining
            except StorageError as e:
                logger.error("Failed to save queue after eviction", queue=self.storage_key, error=str(e))
                return None
        except StorageError as e:
            logger.error("Failed to save queue", queue=self.storage_key, error=str(e))
            return None

    def _restore_to_head(self, entry: QueueEntry) -> None:
        queue = self._get_queue()
        queue.insert(0, entry)
        try:
            self._write(self.storage_key, queue)
        except StorageError as e:
            logger.error(
                "Failed to restore submission after cancelled sync",
                queue=self.storage_key,
                submission_id=entry.id,
                error=str(e),
            )

    def _move_to_failed_queue(self, entry: QueueEntry) -> None:
        entry.status = "failed"
        failed = self._get_failed_queue()
        failed.append(entry)
        try:
            self._write(self.failed_key, failed)
        except StorageError as e:
            logger.error(
                "Failed to move submission to failed queue",
                queue=self.storage_key,
                submission_id=entry.id,
                error=str(e),
            )
