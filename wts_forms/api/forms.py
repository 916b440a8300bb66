"""
Public form submission endpoint.

One route per site form kind (``quote-requests``, ``newsletter-subscriptions``).
The status code tells the page which of the three outcomes happened:

    200 success  - written to the document store
    202 queued   - saved locally, will be synced in the background
    503 failed   - not saved anywhere, the user must retry
    422 invalid  - validation errors, nothing was sent
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Query
from fastapi.responses import JSONResponse

from wts_forms.api import deps
from wts_forms.core.context import set_form_kind
from wts_forms.schemas import SubmissionResponse
from wts_forms.services.messages import get_translation
from wts_forms.services.pipelines import SubmissionPipeline
from wts_forms.services.submission_handler import JsonFormView, SubmissionOutcome

router = APIRouter()

OUTCOME_STATUS_CODES = {
    SubmissionOutcome.SUCCESS: 200,
    SubmissionOutcome.QUEUED: 202,
    SubmissionOutcome.FAILED: 503,
    SubmissionOutcome.INVALID: 422,
}


@router.post(
    "/{kind}",
    response_model=SubmissionResponse,
    responses={202: {"model": SubmissionResponse}, 422: {"model": SubmissionResponse}, 503: {"model": SubmissionResponse}},
)
async def submit_form(
    fields: Dict[str, Any] = Body(...),
    lang: str = Query("en", max_length=8),
    referer: Optional[str] = Header(None),
    user_agent: Optional[str] = Header(None),
    pipeline: SubmissionPipeline = Depends(deps.get_pipeline),
):
    """Submit one form. The body is the form's field values as a JSON object."""
    set_form_kind(pipeline.kind)

    view = JsonFormView()
    result = await pipeline.handler.handle(fields, view, lang=lang, page_url=referer, user_agent=user_agent)

    body = SubmissionResponse(
        outcome=result.outcome.value,
        message=result.message,
        button_label=view.button_label,
        busy=view.busy,
        reset_after=view.reset_after,
        errors={name: get_translation(key, lang) for name, key in result.errors.items()},
    )
    return JSONResponse(status_code=OUTCOME_STATUS_CODES[result.outcome], content=body.model_dump())
