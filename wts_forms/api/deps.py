import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from wts_forms.core.config import settings
from wts_forms.services.pipelines import SubmissionPipeline, SubmissionPipelines

# Admin key header name
ADMIN_KEY_HEADER = "X-Admin-Key"

admin_key_header = APIKeyHeader(name=ADMIN_KEY_HEADER, auto_error=False)


def get_pipelines(request: Request) -> SubmissionPipelines:
    """The pipelines built at startup (see main.lifespan)."""
    pipelines = getattr(request.app.state, "pipelines", None)
    if pipelines is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Submission pipelines not initialized",
        )
    return pipelines


def get_pipeline(kind: str, pipelines: SubmissionPipelines = Depends(get_pipelines)) -> SubmissionPipeline:
    pipeline = pipelines.get(kind)
    if pipeline is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown form: {kind}")
    return pipeline


def require_admin(api_key: Optional[str] = Depends(admin_key_header)) -> None:
    """
    Guard for admin endpoints.

    Disabled entirely (403) while ADMIN_API_KEY is unset.
    """
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin API disabled")
    if not api_key or not secrets.compare_digest(api_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )
