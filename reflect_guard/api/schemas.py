"""API layer — Request and response schemas.

Denial bodies keep the camelCase ``upgradePrompt`` key and the fixed error
codes that clients already depend on.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from reflect_guard import __version__


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Denial / failure body produced by the permission layer."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    upgrade_prompt: bool | None = Field(default=None, serialization_alias="upgradePrompt")
    request_id: str | None = None

    def body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateReflectionRequest(BaseModel):
    """POST /posts/{post_id}/reflections"""

    content: str = Field(default="", max_length=10_000)
    content_type: Literal["text", "audio"] = "text"


class ConnectionRequest(BaseModel):
    """POST /connections"""

    target_user_id: str


class ConnectionResponseRequest(BaseModel):
    """POST /connections/{connection_id}/respond"""

    action: Literal["accept", "decline"]


class ModerationDecisionRequest(BaseModel):
    """POST /moderation/decision"""

    content: str = ""
    content_type: Literal["text", "audio"] = "text"
    context: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = "ok"
    version: str = __version__
    cache_size: int = 0
    fallback_buffer_size: int = 0


class PostAccessResponse(BaseModel):
    post_id: str
    has_access: bool
    can_reflect: bool
    upgrade_prompt: bool = False
    is_premium: bool = False


class ReflectionAcceptedResponse(BaseModel):
    post_id: str
    moderation: dict[str, Any]


class ConnectionActionResponse(BaseModel):
    status: str
    can_request: bool
    can_respond: bool
    detail: dict[str, Any] = Field(default_factory=dict)


class ResolveAlertResponse(BaseModel):
    alert_id: int
    resolved: bool
