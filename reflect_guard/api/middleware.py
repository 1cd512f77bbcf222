"""API layer — Request middleware and the permission wrappers.

- Request ID injection (X-Request-ID header) + log context binding
- Structured access logging
- ``PermissionMiddleware``: explicit handler wrappers that authenticate,
  load permissions, run post / connection checks, shape denials and fire
  audit writes
- Global exception handler -> fixed ``INTERNAL_ERROR`` body

Routes compose wrappers by calling them, for example::

    async def handler(ctx: PostPermissionContext) -> Response: ...
    return await guard.with_post_permissions(request, post_id, handler)

Audit writes never fail or block the response.  A failed durable write is
logged and kept in the bounded ``AuditFallbackBuffer``.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from reflect_guard.api.schemas import ErrorResponse
from reflect_guard.audit.buffer import AuditFallbackBuffer
from reflect_guard.audit.models import AuditLogEntry
from reflect_guard.audit.service import AuditService
from reflect_guard.exceptions import ReflectGuardError
from reflect_guard.logging import bind_request_context, clear_request_context, get_logger
from reflect_guard.security.connections import ConnectionPermissionManager
from reflect_guard.security.models import UserPermissions
from reflect_guard.security.permissions import PermissionService
from reflect_guard.security.reflections import REFLECTION_DENIED, ReflectionPermissionChecker
from reflect_guard.stores.protocols import AuthProvider, AuthUser

log = get_logger(__name__)

UNAUTHORIZED = "Não autorizado"
INTERNAL_SERVER_ERROR = "Erro interno do servidor"
INTERNAL_ERROR_REASON = "Erro interno"
DEFAULT_DENIAL_REASON = "Acesso negado"
POST_ACCESS_DENIED = "Acesso negado ao post"
POST_CHECK_ERROR = "Erro ao verificar permissões do post"
CONNECTION_REQUEST_DENIED = "Utilizadores gratuitos não podem solicitar conexões"
CONNECTION_RESPONSE_DENIED = "Não é possível responder a conexões"
CONNECTION_CHECK_ERROR = "Erro ao verificar permissões de conexão"
FREE_USER_CANNOT_REQUEST = "Utilizador gratuito não pode solicitar conexões"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Request-ID to every request, response and log record."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        bind_request_context(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log each request with timing information."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        response = await call_next(request)
        log.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.time() - start) * 1000, 2),
            request_id=getattr(request.state, "request_id", None),
        )
        return response


def build_error_handler() -> Any:
    """Return a FastAPI exception handler for stray ReflectGuardError subclasses."""

    async def handler(request: Request, exc: ReflectGuardError) -> JSONResponse:
        log.error("unhandled_service_error", error=exc.message, error_type=type(exc).__name__)
        body = ErrorResponse(
            error=INTERNAL_SERVER_ERROR,
            code="INTERNAL_ERROR",
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(status_code=500, content=body.body())

    return handler


# ---------------------------------------------------------------------------
# Permission contexts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionContext:
    request: Request
    user: AuthUser | None
    permissions: UserPermissions | None
    is_premium: bool


@dataclass(frozen=True)
class PostPermissionContext(PermissionContext):
    post_id: str = ""
    has_access: bool = False
    can_reflect: bool = False
    upgrade_prompt: bool = False


@dataclass(frozen=True)
class ConnectionPermissionContext(PermissionContext):
    can_request: bool = False
    can_respond: bool = False
    upgrade_prompt: bool = False


Ctx = TypeVar("Ctx", bound=PermissionContext)
Handler = Callable[[Ctx], Awaitable[Response]]


def _denial(status_code: int, error: str, code: str, upgrade_prompt: bool | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, upgrade_prompt=upgrade_prompt)
    return JSONResponse(status_code=status_code, content=body.body())


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# ---------------------------------------------------------------------------
# PermissionMiddleware
# ---------------------------------------------------------------------------


class PermissionMiddleware:
    """Request-scoped orchestrator over the permission services.

    Parameters
    ----------
    background_writes:
        When ``True`` audit writes are scheduled as tasks and the response
        does not wait for them; ``flush()`` awaits the pending ones.
    """

    def __init__(
        self,
        auth: AuthProvider,
        permissions: PermissionService,
        reflections: ReflectionPermissionChecker,
        connections: ConnectionPermissionManager,
        audit: AuditService,
        fallback: AuditFallbackBuffer,
        *,
        background_writes: bool = True,
    ) -> None:
        self._auth = auth
        self._permissions = permissions
        self._reflections = reflections
        self._connections = connections
        self._audit = audit
        self._fallback = fallback
        self._background_writes = background_writes
        self._pending: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def with_permissions(
        self,
        request: Request,
        handler: Handler[PermissionContext],
        *,
        require_auth: bool = True,
        log_access: bool = True,
        action: str = "access",
        resource: str = "unknown",
    ) -> Response:
        user: AuthUser | None = None
        try:
            user = await self._auth.get_current_user(_bearer_token(request))
            if user is None and require_auth:
                await self.log_access(None, action, resource, False, UNAUTHORIZED, request=request)
                return _denial(401, UNAUTHORIZED, "UNAUTHORIZED")

            permissions: UserPermissions | None = None
            is_premium = False
            if user is not None:
                bind_request_context(user_id=user.id)
                permissions = await self._permissions.get_user_permissions(user.id)
                is_premium = (await self._permissions.get_user_premium_status(user.id)).is_premium

            context = PermissionContext(
                request=request, user=user, permissions=permissions, is_premium=is_premium
            )

            if log_access and user is not None:
                await self.log_access(user.id, action, resource, True, request=request)

            return await handler(context)
        except Exception as exc:
            log.error("permission_middleware_error", action=action, error=str(exc), exc_info=True)
            if log_access:
                await self.log_access(
                    user.id if user else None,
                    action,
                    resource,
                    False,
                    INTERNAL_ERROR_REASON,
                    request=request,
                )
            return _denial(500, INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")

    async def with_post_permissions(
        self,
        request: Request,
        post_id: str,
        handler: Handler[PostPermissionContext],
        *,
        require_access: bool = True,
        require_reflection_permission: bool = False,
    ) -> Response:
        async def check(base: PermissionContext) -> Response:
            assert base.user is not None
            try:
                access, reflection = await asyncio.gather(
                    self._permissions.check_post_access(base.user.id, post_id),
                    self._reflections.can_create_reflection(base.user.id, post_id),
                )
            except Exception as exc:
                log.error("post_permission_check_failed", post_id=post_id, error=str(exc))
                return _denial(500, POST_CHECK_ERROR, "PERMISSION_CHECK_ERROR")

            context = PostPermissionContext(
                **_base_fields(base),
                post_id=post_id,
                has_access=access.allowed,
                can_reflect=reflection.allowed,
                upgrade_prompt=access.upgrade_prompt or reflection.upgrade_prompt,
            )

            await self.log_access(
                base.user.id,
                "post_access",
                "post",
                access.allowed,
                access.reason,
                resource_id=post_id,
                request=request,
            )

            if require_access and not access.allowed:
                return _denial(
                    403, access.reason or POST_ACCESS_DENIED, "POST_ACCESS_DENIED", access.upgrade_prompt
                )
            if require_reflection_permission and not reflection.allowed:
                reason = reflection.reason or REFLECTION_DENIED
                await self.log_access(
                    base.user.id,
                    "reflection",
                    "post",
                    False,
                    reason,
                    resource_id=post_id,
                    request=request,
                )
                return _denial(403, reason, "REFLECTION_DENIED", reflection.upgrade_prompt)
            return await handler(context)

        return await self.with_permissions(
            request, check, require_auth=True, log_access=True, action="access", resource="post"
        )

    async def with_connection_permissions(
        self,
        request: Request,
        handler: Handler[ConnectionPermissionContext],
        *,
        require_request_permission: bool = False,
        require_response_permission: bool = False,
    ) -> Response:
        async def check(base: PermissionContext) -> Response:
            assert base.user is not None
            try:
                can_request, can_respond = await asyncio.gather(
                    self._connections.can_request_connection(base.user.id),
                    self._connections.can_respond_to_connection(base.user.id),
                )
            except Exception as exc:
                log.error("connection_permission_check_failed", error=str(exc))
                return _denial(500, CONNECTION_CHECK_ERROR, "PERMISSION_CHECK_ERROR")

            context = ConnectionPermissionContext(
                **_base_fields(base),
                can_request=can_request,
                can_respond=can_respond,
                upgrade_prompt=not can_request and not base.is_premium,
            )

            # A refused requirement is the row; otherwise the row is informational.
            refusal: tuple[str, str, bool] | None = None
            if require_request_permission and not can_request:
                refusal = (CONNECTION_REQUEST_DENIED, "CONNECTION_REQUEST_DENIED", True)
            elif require_response_permission and not can_respond:
                refusal = (CONNECTION_RESPONSE_DENIED, "CONNECTION_RESPONSE_DENIED", False)

            if refusal is not None:
                await self.log_access(
                    base.user.id, "connection_access", "connection", False, refusal[0], request=request
                )
                return _denial(403, *refusal)

            await self.log_access(
                base.user.id,
                "connection_access",
                "connection",
                can_request or can_respond,
                None if can_request else FREE_USER_CANNOT_REQUEST,
                request=request,
            )
            return await handler(context)

        return await self.with_permissions(
            request,
            check,
            require_auth=True,
            log_access=True,
            action="access",
            resource="connection",
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def log_access(
        self,
        user_id: str | None,
        action: str,
        resource: str,
        allowed: bool,
        reason: str | None = None,
        *,
        resource_id: str | None = None,
        request: Request | None = None,
    ) -> None:
        """Record one decision.  Never raises."""
        headers = request.headers if request is not None else {}
        entry = AuditLogEntry(
            user_id=user_id,
            action=action,
            resource=resource,
            allowed=allowed,
            reason=None if allowed else (reason or DEFAULT_DENIAL_REASON),
            resource_id=resource_id,
            user_agent=headers.get("user-agent"),
            ip=headers.get("x-forwarded-for") or headers.get("x-real-ip"),
            metadata={"request_id": getattr(request.state, "request_id", None)} if request else {},
        )
        if self._background_writes:
            task = asyncio.create_task(self._write(entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            await self._write(entry)

    async def _write(self, entry: AuditLogEntry) -> None:
        try:
            await self._audit.log_access(entry)
        except Exception as exc:
            log.error(
                "audit_write_failed",
                user_id=entry.user_id,
                action=entry.action,
                error=str(exc),
            )
            self._fallback.append(entry)

    async def flush(self) -> None:
        """Wait for every scheduled audit write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def get_fallback_logs(self, **filters: Any) -> list[AuditLogEntry]:
        """Filters: user_id, action, resource, allowed, since, limit."""
        return self._fallback.entries(**filters)

    def clear_fallback_logs(self) -> None:
        self._fallback.clear()


def _base_fields(base: PermissionContext) -> dict[str, Any]:
    return {
        "request": base.request,
        "user": base.user,
        "permissions": base.permissions,
        "is_premium": base.is_premium,
    }
