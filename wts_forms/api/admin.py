"""
Admin API endpoints for manual recovery of the submission pipelines.
Protected by the X-Admin-Key header.
"""

import structlog
from fastapi import APIRouter, Depends

from wts_forms.api import deps
from wts_forms.schemas import AdminActionOut, FailedSubmissionsOut, SyncResultOut
from wts_forms.services.pipelines import SubmissionPipeline

logger = structlog.get_logger(__name__)

router = APIRouter(dependencies=[Depends(deps.require_admin)])


@router.post("/circuits/{kind}/reset", response_model=AdminActionOut)
def reset_circuit(pipeline: SubmissionPipeline = Depends(deps.get_pipeline)):
    """Force the form's circuit breaker CLOSED."""
    pipeline.breaker.reset()
    logger.info("Circuit reset by admin", kind=pipeline.kind)
    return {"kind": pipeline.kind, "action": "reset", "circuit": pipeline.breaker.get_metrics()}


@router.delete("/queues/{kind}", response_model=AdminActionOut)
def clear_queue(pipeline: SubmissionPipeline = Depends(deps.get_pipeline)):
    """Drop every pending submission of the form. Failed entries are kept."""
    pipeline.queue.clear_queue()
    logger.warning("Queue cleared by admin", kind=pipeline.kind)
    return {"kind": pipeline.kind, "action": "clear", "queue": pipeline.queue.get_status()}


@router.post("/queues/{kind}/sync", response_model=SyncResultOut)
async def sync_queue(pipeline: SubmissionPipeline = Depends(deps.get_pipeline)):
    """Run one sync pass now instead of waiting for the next interval."""
    result = await pipeline.queue.process_queue(pipeline.remote_write)
    return {"kind": pipeline.kind, **result}


@router.get("/queues/{kind}/failed", response_model=FailedSubmissionsOut)
def list_failed(pipeline: SubmissionPipeline = Depends(deps.get_pipeline)):
    """Submissions that exhausted their sync attempts (payloads omitted)."""
    entries = [
        {"id": e.id, "timestamp": e.timestamp, "attempts": e.attempts, "last_attempt": e.last_attempt}
        for e in pipeline.queue.failed_entries()
    ]
    return {"kind": pipeline.kind, "entries": entries}
