"""API layer — FastAPI dependency injection.

Stores and services are created once by ``create_app()`` and placed on
``app.state``; routes receive them through the aliases below.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from reflect_guard.api.middleware import PermissionMiddleware
from reflect_guard.audit.service import AuditService
from reflect_guard.config import Settings
from reflect_guard.moderation.routing import ModerationRouter
from reflect_guard.security.connections import ConnectionPermissionManager
from reflect_guard.security.permissions import PermissionService
from reflect_guard.security.reflections import ReflectionPermissionChecker

HEADER_ADMIN_TOKEN = "X-Admin-Token"


def get_config(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


def get_guard(request: Request) -> PermissionMiddleware:
    return request.app.state.guard  # type: ignore[no-any-return]


def get_permission_service(request: Request) -> PermissionService:
    return request.app.state.permission_service  # type: ignore[no-any-return]


def get_reflection_checker(request: Request) -> ReflectionPermissionChecker:
    return request.app.state.reflection_checker  # type: ignore[no-any-return]


def get_connection_manager(request: Request) -> ConnectionPermissionManager:
    return request.app.state.connection_manager  # type: ignore[no-any-return]


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service  # type: ignore[no-any-return]


def get_moderation_router(request: Request) -> ModerationRouter:
    return request.app.state.moderation_router  # type: ignore[no-any-return]


async def verify_admin_token(
    request: Request,
    x_admin_token: Annotated[str | None, Header(alias=HEADER_ADMIN_TOKEN)] = None,
) -> None:
    """Check the admin token if one is configured."""
    settings: Settings = request.app.state.settings
    expected = settings.server.admin_token

    if expected is None:
        return

    if x_admin_token != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token.",
        )


# Shorthand type aliases for route signatures.
ConfigDep = Annotated[Settings, Depends(get_config)]
GuardDep = Annotated[PermissionMiddleware, Depends(get_guard)]
PermissionsDep = Annotated[PermissionService, Depends(get_permission_service)]
ReflectionsDep = Annotated[ReflectionPermissionChecker, Depends(get_reflection_checker)]
ConnectionsDep = Annotated[ConnectionPermissionManager, Depends(get_connection_manager)]
AuditDep = Annotated[AuditService, Depends(get_audit_service)]
ModerationDep = Annotated[ModerationRouter, Depends(get_moderation_router)]
AdminDep = Annotated[None, Depends(verify_admin_token)]
