"""Manual moderation invocation endpoint.

Operators re-check a single record or start/resume an audit sweep by
POSTing the same payload the function runtime accepts:

    POST /v1/moderation/invocations
    {"mode": "single", "recordId": "r1"}
    {"mode": "sweep", "continuationToken": "...", "owner": "u1"}

The response is the aggregated run result. Partial failures still
return 200; only a payload the router rejects returns 400.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from structlog import get_logger

from content_moderator.api.dependencies.moderation import get_moderation_orchestrator
from content_moderator.api.models.moderation import (
    ModerationErrorResponse,
    ModerationRunResponse,
)
from content_moderator.application.services.moderation_orchestrator import (
    ModerationOrchestrator,
)
from content_moderator.domain.errors import InvalidTriggerError

logger = get_logger()

router = APIRouter(prefix="/v1/moderation", tags=["moderation"])


def _invalid_trigger(request: Request, detail: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "type": "urn:content-moderator:trigger:invalid",
            "title": "Invalid Trigger",
            "status": 400,
            "detail": detail,
            "instance": str(request.url),
        },
    )


@router.post(
    "/invocations",
    response_model=ModerationRunResponse,
    responses={
        400: {
            "model": ModerationErrorResponse,
            "description": "Payload is not a recognized trigger",
        },
    },
    summary="Run a moderation invocation",
)
async def invoke_moderation(
    request: Request,
    orchestrator: ModerationOrchestrator = Depends(get_moderation_orchestrator),
) -> ModerationRunResponse:
    """Run one moderation invocation for a manual trigger.

    Args:
        request: Incoming request; its JSON body is the trigger.
        orchestrator: Injected moderation orchestrator.

    Returns:
        ModerationRunResponse with per-record outcomes.

    Raises:
        HTTPException 400: Body is not JSON or not a recognized trigger.
    """
    try:
        payload: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise _invalid_trigger(request, f"body is not valid JSON: {e}") from None

    try:
        result = await orchestrator.handle(payload)
    except InvalidTriggerError as e:
        logger.warning("invalid_trigger_rejected", reason=e.reason)
        raise _invalid_trigger(request, e.reason) from None

    return ModerationRunResponse.model_validate(result.to_dict())
