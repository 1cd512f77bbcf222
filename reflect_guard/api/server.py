"""API layer — FastAPI application factory.

``create_app()`` is the single entry point for building the FastAPI app.
Every service is constructed here and handed its collaborators explicitly;
nothing reaches for a module-level instance.
"""

from __future__ import annotations

from fastapi import FastAPI

from reflect_guard import __version__
from reflect_guard.api.middleware import (
    AccessLogMiddleware,
    PermissionMiddleware,
    RequestIDMiddleware,
    build_error_handler,
)
from reflect_guard.api.routes import admin, connections, health, moderation, posts
from reflect_guard.audit.buffer import AuditFallbackBuffer
from reflect_guard.audit.service import AuditService
from reflect_guard.audit.store import AuditStore
from reflect_guard.config import ModerationConfig, Settings, get_settings
from reflect_guard.exceptions import ReflectGuardError
from reflect_guard.logging import configure_logging, get_logger
from reflect_guard.moderation.models import CustomRule, Severity
from reflect_guard.moderation.routing import ModerationRouter
from reflect_guard.moderation.rules import RiskThresholds
from reflect_guard.security.cache import PermissionCache
from reflect_guard.security.connections import ConnectionPermissionManager
from reflect_guard.security.permissions import PermissionService
from reflect_guard.security.reflections import ReflectionPermissionChecker
from reflect_guard.security.subscriptions import SubscriptionCacheHandler
from reflect_guard.stores.sqlite import SQLiteAppStore

log = get_logger(__name__)


def build_moderation_router(
    permissions: PermissionService, config: ModerationConfig
) -> ModerationRouter:
    rules = [
        CustomRule(
            name=r.name,
            pattern=r.pattern,
            severity=Severity(r.severity),
            action=r.action,
            description=r.description,
        )
        for r in config.custom_rules
    ]
    thresholds = RiskThresholds(
        caps_ratio=config.caps_ratio_threshold,
        caps_min_length=config.caps_min_length,
        special_char_ratio=config.special_char_ratio_threshold,
        max_urls=config.max_urls,
        repeated_char_run=config.repeated_char_run,
    )
    return ModerationRouter(permissions, config.offensive_words, rules, thresholds)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (used in tests).

    Returns:
        A configured application.  Stores open on startup and close on
        shutdown, so tests should use ``TestClient`` as a context manager.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(
        level=settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )

    app = FastAPI(
        title="Reflect Guard",
        description="Permission, audit and moderation-routing service for premium content.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (outermost applied last)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Exception handlers
    app.add_exception_handler(ReflectGuardError, build_error_handler())  # type: ignore[arg-type]

    # Routers
    app.include_router(health.router)
    app.include_router(posts.router)
    app.include_router(connections.router)
    app.include_router(moderation.router)
    app.include_router(admin.router)

    # Object graph
    app_store = SQLiteAppStore(settings.stores.db_path)
    audit_store = AuditStore(settings.audit.db_path)
    cache = PermissionCache(
        default_ttl=settings.cache.permission_ttl_seconds,
        sweep_interval=settings.cache.sweep_interval_seconds,
    )
    permission_service = PermissionService(
        app_store,
        app_store,
        cache,
        premium_status_ttl=settings.cache.premium_status_ttl_seconds,
    )
    reflection_checker = ReflectionPermissionChecker(permission_service, app_store)
    connection_manager = ConnectionPermissionManager(permission_service)
    audit_service = AuditService(
        audit_store,
        window_seconds=settings.audit.suspicious_window_seconds,
        denial_threshold=settings.audit.denial_threshold,
        premium_probe_threshold=settings.audit.premium_probe_threshold,
        bypass_keyword=settings.audit.bypass_keyword,
    )
    guard = PermissionMiddleware(
        app_store,
        permission_service,
        reflection_checker,
        connection_manager,
        audit_service,
        AuditFallbackBuffer(settings.audit.fallback_capacity),
        background_writes=settings.audit.background_writes,
    )

    app.state.settings = settings
    app.state.app_store = app_store
    app.state.audit_store = audit_store
    app.state.permission_cache = cache
    app.state.permission_service = permission_service
    app.state.reflection_checker = reflection_checker
    app.state.connection_manager = connection_manager
    app.state.audit_service = audit_service
    app.state.guard = guard
    app.state.moderation_router = build_moderation_router(permission_service, settings.moderation)
    app.state.subscription_handler = SubscriptionCacheHandler(permission_service)

    # Startup / shutdown lifecycle
    @app.on_event("startup")
    async def startup() -> None:
        log.info("service_starting", version=__version__)
        await app_store.init()
        await audit_store.init()
        await cache.start()
        log.info(
            "service_ready",
            host=settings.server.host,
            port=settings.server.port,
            permission_ttl=settings.cache.permission_ttl_seconds,
        )

    @app.on_event("shutdown")
    async def shutdown() -> None:
        log.info("service_stopping")
        await guard.flush()
        app.state.subscription_handler.cancel_scheduled()
        await cache.stop()
        await audit_store.close()
        await app_store.close()

    return app
