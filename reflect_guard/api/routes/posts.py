"""GET /posts/{id}, POST /posts/{id}/reflections, GET /posts/{id}/reflection-restrictions"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from reflect_guard.api.dependencies import AuditDep, GuardDep, ModerationDep, ReflectionsDep
from reflect_guard.api.middleware import PermissionContext, PostPermissionContext
from reflect_guard.api.schemas import (
    CreateReflectionRequest,
    PostAccessResponse,
    ReflectionAcceptedResponse,
)
from reflect_guard.audit.models import UsageAction
from reflect_guard.moderation.models import ContentType, ModerationRequest
from reflect_guard.security.models import UserTier

router = APIRouter(prefix="/posts", tags=["posts"])


def _tier(ctx: PermissionContext) -> str:
    return (UserTier.PREMIUM if ctx.is_premium else UserTier.FREE).value


@router.get("/{post_id}", summary="Read a post through the access gate")
async def get_post(post_id: str, request: Request, guard: GuardDep, audit: AuditDep) -> Response:
    async def handler(ctx: PostPermissionContext) -> Response:
        assert ctx.user is not None
        await audit.track_usage_metrics(ctx.user.id, _tier(ctx), UsageAction.POSTS_VIEWED)
        body = PostAccessResponse(
            post_id=ctx.post_id,
            has_access=ctx.has_access,
            can_reflect=ctx.can_reflect,
            upgrade_prompt=ctx.upgrade_prompt,
            is_premium=ctx.is_premium,
        )
        return JSONResponse(content=body.model_dump())

    return await guard.with_post_permissions(request, post_id, handler, require_access=True)


@router.post(
    "/{post_id}/reflections",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a reflection on a post",
)
async def create_reflection(
    post_id: str,
    body: CreateReflectionRequest,
    request: Request,
    guard: GuardDep,
    audit: AuditDep,
    moderation: ModerationDep,
) -> Response:
    async def handler(ctx: PostPermissionContext) -> Response:
        assert ctx.user is not None
        decision = await moderation.should_moderate_content(
            ModerationRequest(
                user_id=ctx.user.id,
                content_type=ContentType(body.content_type),
                content=body.content,
                context={"post_id": post_id},
            )
        )
        await audit.track_usage_metrics(ctx.user.id, _tier(ctx), UsageAction.REFLECTIONS_CREATED)
        accepted = ReflectionAcceptedResponse(post_id=post_id, moderation=decision.to_dict())
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=accepted.model_dump())

    return await guard.with_post_permissions(
        request,
        post_id,
        handler,
        require_access=True,
        require_reflection_permission=True,
    )


@router.get("/{post_id}/reflection-restrictions", summary="Explain reflection eligibility")
async def reflection_restrictions(
    post_id: str, request: Request, guard: GuardDep, reflections: ReflectionsDep
) -> Response:
    async def handler(ctx: PermissionContext) -> Response:
        assert ctx.user is not None
        info = await reflections.get_reflection_restriction_info(ctx.user.id, post_id)
        return JSONResponse(content=info.to_dict())

    return await guard.with_permissions(
        request, handler, action="reflection_restrictions", resource="post"
    )
