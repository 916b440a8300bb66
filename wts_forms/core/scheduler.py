from datetime import timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from wts_forms.services.monitoring import (
    ResilienceMonitor,
    register_state_change_alerts,
    unregister_state_change_alerts,
)
from wts_forms.services.pipelines import SubmissionPipelines

logger = structlog.get_logger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """One scheduler per process, shared by every queue sync job and the monitor."""
    return AsyncIOScheduler(
        timezone=timezone.utc,
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 30},
    )


def start_scheduler(scheduler: AsyncIOScheduler, pipelines: SubmissionPipelines, monitor: ResilienceMonitor) -> None:
    """Start queue auto-sync for every form plus the resilience monitor."""
    register_state_change_alerts()
    pipelines.start()
    monitor.start()
    if not scheduler.running:
        scheduler.start()

    logger.info("Scheduler started", jobs=[job.id for job in scheduler.get_jobs()])


def stop_scheduler(scheduler: AsyncIOScheduler, pipelines: SubmissionPipelines, monitor: ResilienceMonitor) -> None:
    monitor.stop()
    pipelines.stop()
    unregister_state_change_alerts()
    if scheduler.running:
        scheduler.shutdown(wait=False)

    logger.info("Scheduler stopped")
