"""GET /connections/actions, POST /connections, POST /connections/{id}/respond"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import JSONResponse

from reflect_guard.api.dependencies import AuditDep, ConnectionsDep, GuardDep
from reflect_guard.api.middleware import ConnectionPermissionContext, PermissionContext
from reflect_guard.api.schemas import (
    ConnectionActionResponse,
    ConnectionRequest,
    ConnectionResponseRequest,
)
from reflect_guard.audit.models import UsageAction
from reflect_guard.security.connections import ConnectionStatus
from reflect_guard.security.models import UserTier

router = APIRouter(prefix="/connections", tags=["connections"])


def _tier(ctx: PermissionContext) -> str:
    return (UserTier.PREMIUM if ctx.is_premium else UserTier.FREE).value


@router.get("/actions", summary="Actions available for a connection state")
async def connection_actions(
    request: Request,
    guard: GuardDep,
    connections: ConnectionsDep,
    connection_status: ConnectionStatus = Query(default=ConnectionStatus.NONE, alias="status"),
    recipient: bool = Query(default=False),
) -> Response:
    async def handler(ctx: PermissionContext) -> Response:
        assert ctx.user is not None
        actions = await connections.get_connection_actions(ctx.user.id, connection_status, recipient)
        limitations = await connections.get_connection_limitations(ctx.user.id)
        return JSONResponse(
            content={
                "actions": [a.to_dict() for a in actions],
                "limitations": limitations.to_dict(),
            }
        )

    return await guard.with_permissions(
        request, handler, action="connection_actions", resource="connection"
    )


@router.post("", status_code=status.HTTP_201_CREATED, summary="Request a connection")
async def request_connection(
    body: ConnectionRequest, request: Request, guard: GuardDep, audit: AuditDep
) -> Response:
    async def handler(ctx: ConnectionPermissionContext) -> Response:
        assert ctx.user is not None
        await audit.track_usage_metrics(ctx.user.id, _tier(ctx), UsageAction.CONNECTIONS_REQUESTED)
        result = ConnectionActionResponse(
            status="requested",
            can_request=ctx.can_request,
            can_respond=ctx.can_respond,
            detail={"target_user_id": body.target_user_id},
        )
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=result.model_dump())

    return await guard.with_connection_permissions(
        request, handler, require_request_permission=True
    )


@router.post("/{connection_id}/respond", summary="Accept or decline a pending connection")
async def respond_to_connection(
    connection_id: str,
    body: ConnectionResponseRequest,
    request: Request,
    guard: GuardDep,
    audit: AuditDep,
) -> Response:
    async def handler(ctx: ConnectionPermissionContext) -> Response:
        assert ctx.user is not None
        await audit.track_usage_metrics(ctx.user.id, _tier(ctx), UsageAction.CONNECTIONS_RESPONDED)
        result = ConnectionActionResponse(
            status="accepted" if body.action == "accept" else "declined",
            can_request=ctx.can_request,
            can_respond=ctx.can_respond,
            detail={"connection_id": connection_id},
        )
        return JSONResponse(content=result.model_dump())

    return await guard.with_connection_permissions(
        request, handler, require_response_permission=True
    )
