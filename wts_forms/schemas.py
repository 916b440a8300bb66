from typing import Dict, List, Optional
from pydantic import BaseModel


class SubmissionResponse(BaseModel):
    """What the page should display after a submission, as rendered by JsonFormView."""
    outcome: str  # success | queued | failed | invalid
    message: str
    button_label: Optional[str] = None
    busy: bool = False
    reset_after: Optional[float] = None  # seconds until the form should be cleared
    errors: Dict[str, str] = {}  # field -> message, only for invalid


class LastFailure(BaseModel):
    timestamp: str
    error: str


class CircuitMetricsOut(BaseModel):
    name: str
    total_requests: int
    successful_requests: int
    failed_requests: int
    fallback_requests: int
    last_failure: Optional[LastFailure] = None
    last_success: Optional[str] = None
    state: str
    failure_count: int
    success_rate: float  # percent, 2 decimals


class QueueStatusOut(BaseModel):
    pending: int
    failed: int
    oldest_submission: Optional[str] = None
    queue_healthy: bool


class PipelineHealthOut(BaseModel):
    circuit: CircuitMetricsOut
    queue: QueueStatusOut


class SubmissionsHealthOut(BaseModel):
    healthy: bool
    pipelines: Dict[str, PipelineHealthOut]


class AdminActionOut(BaseModel):
    kind: str
    action: str
    circuit: Optional[CircuitMetricsOut] = None
    queue: Optional[QueueStatusOut] = None


class SyncResultOut(BaseModel):
    kind: str
    processed: int
    failed: int


class FailedSubmissionOut(BaseModel):
    id: str
    timestamp: int
    attempts: int
    last_attempt: Optional[int] = None


class FailedSubmissionsOut(BaseModel):
    kind: str
    entries: List[FailedSubmissionOut]
