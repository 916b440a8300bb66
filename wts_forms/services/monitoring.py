"""
Resilience monitoring.

Polls every pipeline's breaker metrics and queue status on a fixed interval
and raises alerts (structlog + Sentry + Discord) when a circuit is not
CLOSED or a queue is filling up. Breaker state transitions are forwarded to
the same channels as they happen.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wts_forms.core.circuit_breaker import CircuitState, set_notification_callback
from wts_forms.core.errors import capture_message
from wts_forms.services.alerts import alert_circuit_state, alert_queue_unhealthy
from wts_forms.services.pipelines import SubmissionPipelines

logger = structlog.get_logger(__name__)

MONITOR_JOB_ID = "resilience_monitor"

# Keep references so pending alert tasks are not garbage collected
_alert_tasks: Set[asyncio.Task] = set()


def _on_circuit_state_change(name: str, old_state: str, new_state: str) -> None:
    level = "warning" if new_state != CircuitState.CLOSED.value else "info"
    capture_message(
        f"Circuit breaker {name}: {old_state} -> {new_state}",
        level=level,
        context={"circuit": name, "old_state": old_state, "new_state": new_state},
        tags={"circuit": name},
    )

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    task = loop.create_task(alert_circuit_state(name, old_state, new_state))
    _alert_tasks.add(task)
    task.add_done_callback(_alert_tasks.discard)


def register_state_change_alerts() -> None:
    """Route every breaker transition to the alert channels."""
    set_notification_callback(_on_circuit_state_change)


def unregister_state_change_alerts() -> None:
    set_notification_callback(None)


class ResilienceMonitor:
    def __init__(
        self,
        pipelines: SubmissionPipelines,
        interval: float = 60.0,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.pipelines = pipelines
        self.interval = interval
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._job: Optional[Job] = None
        self.last_snapshot: Dict[str, Dict[str, Any]] = {}
        self.last_checked: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._job is not None

    def start(self) -> None:
        """Schedule ``check`` every ``interval`` seconds. No-op if already running."""
        if self._job is not None:
            return

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()

        self._job = self._scheduler.add_job(
            self.check,
            IntervalTrigger(seconds=self.interval),
            id=MONITOR_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()

        logger.info("Resilience monitor started", interval_seconds=self.interval)

    def stop(self) -> None:
        if self._job is None:
            return

        job, self._job = self._job, None
        if self._scheduler is not None and self._scheduler.get_job(job.id) is not None:
            job.remove()
        if self._owns_scheduler and self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None

    async def check(self) -> List[str]:
        """
        One monitoring pass.

        Returns:
            The alert messages raised during this pass.
        """
        alerts: List[str] = []
        self.last_snapshot = self.pipelines.snapshot()
        self.last_checked = datetime.now(timezone.utc)

        for kind, snapshot in self.last_snapshot.items():
            circuit = snapshot["circuit"]
            queue = snapshot["queue"]

            if circuit["state"] != CircuitState.CLOSED.value:
                message = f"Circuit breaker {kind} is {circuit['state'].upper()}"
                capture_message(message, level="warning", context={"circuit": circuit}, tags={"circuit": kind})
                alerts.append(message)

            if not queue["queue_healthy"]:
                message = f"Submission queue {kind} unhealthy"
                capture_message(message, level="error", context={"queue": queue}, tags={"queue": kind})
                await alert_queue_unhealthy(kind, queue)
                alerts.append(message)

        logger.debug("Resilience check complete", kinds=list(self.last_snapshot), alerts=len(alerts))
        return alerts
