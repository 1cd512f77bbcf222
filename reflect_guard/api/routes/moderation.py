"""POST /moderation/decision"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from reflect_guard.api.dependencies import GuardDep, ModerationDep
from reflect_guard.api.middleware import PermissionContext
from reflect_guard.api.schemas import ModerationDecisionRequest
from reflect_guard.moderation.models import ContentType, ModerationRequest

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.post("/decision", summary="Route a submission to a moderation path")
async def moderation_decision(
    body: ModerationDecisionRequest,
    request: Request,
    guard: GuardDep,
    moderation: ModerationDep,
) -> Response:
    async def handler(ctx: PermissionContext) -> Response:
        assert ctx.user is not None
        decision = await moderation.should_moderate_content(
            ModerationRequest(
                user_id=ctx.user.id,
                content_type=ContentType(body.content_type),
                content=body.content,
                context=body.context,
            )
        )
        return JSONResponse(content=decision.to_dict())

    return await guard.with_permissions(
        request, handler, action="moderation_decision", resource="content"
    )
