"""
Submission pipeline health: breaker metrics and queue status per form kind.
"""

from fastapi import APIRouter, Depends

from wts_forms.api import deps
from wts_forms.schemas import SubmissionsHealthOut
from wts_forms.services.pipelines import SubmissionPipelines

router = APIRouter()


@router.get("/submissions", response_model=SubmissionsHealthOut)
def submissions_health(pipelines: SubmissionPipelines = Depends(deps.get_pipelines)):
    snapshot = pipelines.snapshot()
    healthy = all(
        entry["circuit"]["state"] == "closed" and entry["queue"]["queue_healthy"] for entry in snapshot.values()
    )
    return {"healthy": healthy, "pipelines": snapshot}
