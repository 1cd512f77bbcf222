"""GET /health — liveness plus cache and fallback-buffer sizes."""

from __future__ import annotations

from fastapi import APIRouter

from reflect_guard import __version__
from reflect_guard.api.dependencies import GuardDep, PermissionsDep
from reflect_guard.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health(permissions: PermissionsDep, guard: GuardDep) -> HealthResponse:
    stats = permissions.get_cache_stats()
    return HealthResponse(
        status="ok",
        version=__version__,
        cache_size=stats["size"],
        fallback_buffer_size=len(guard.get_fallback_logs()),
    )
