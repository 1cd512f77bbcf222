"""Security layer — ConnectionPermissionManager.

State machine over a connection's status with the actions a viewer sees:

    none     -> request                      (enabled iff premium)
    pending  -> accept / decline             (viewer is the recipient)
    pending  -> cancel                       (viewer is the requester)
    accepted -> (no actions)

``check_connection_action`` maps the four UI actions onto the two-action
model of ``PermissionService``: ``accept``/``decline`` -> ``respond`` and
``request`` -> ``request``.  ``cancel`` is always allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reflect_guard.logging import get_logger
from reflect_guard.security.models import CheckResult
from reflect_guard.security.permissions import (
    ACTION_NOT_RECOGNIZED,
    PERMISSION_CHECK_ERROR,
    PermissionService,
)
from reflect_guard.security.policies import PERMISSIVE_DEFAULT, RESTRICTIVE_DEFAULT

log = get_logger(__name__)


class ConnectionStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"


class ConnectionActionType(str, Enum):
    REQUEST = "request"
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"


_ACTION_TO_PERMISSION = {
    ConnectionActionType.REQUEST.value: "request",
    ConnectionActionType.ACCEPT.value: "respond",
    ConnectionActionType.DECLINE.value: "respond",
}


@dataclass(frozen=True)
class ConnectionAction:
    type: ConnectionActionType
    label: str
    enabled: bool
    requires_upgrade: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.label,
            "enabled": self.enabled,
            "requires_upgrade": self.requires_upgrade,
        }


@dataclass(frozen=True)
class ConnectionLimitations:
    can_request: bool
    can_respond: bool
    limitations: list[str] = field(default_factory=list)
    upgrade_prompt: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "can_request": self.can_request,
            "can_respond": self.can_respond,
            "limitations": list(self.limitations),
            "upgrade_prompt": self.upgrade_prompt,
        }


class ConnectionPermissionManager:
    def __init__(self, permissions: PermissionService) -> None:
        self._permissions = permissions

    async def can_request_connection(self, user_id: str) -> bool:
        result = await self._permissions.check_connection_permission(user_id, "request")
        return result.allowed

    async def can_respond_to_connection(self, user_id: str) -> bool:
        result = await self._permissions.check_connection_permission(user_id, "respond")
        return result.allowed

    async def get_connection_actions(
        self,
        user_id: str,
        status: ConnectionStatus | str = ConnectionStatus.NONE,
        is_recipient: bool = False,
    ) -> list[ConnectionAction]:
        """Return the actions *user_id* may see for a connection in *status*."""
        status = ConnectionStatus(status)

        if status is ConnectionStatus.NONE:
            can_request = await self.can_request_connection(user_id)
            return [
                ConnectionAction(
                    type=ConnectionActionType.REQUEST,
                    label="Solicitar Conexão",
                    enabled=can_request,
                    requires_upgrade=not can_request,
                )
            ]

        if status is ConnectionStatus.PENDING:
            if is_recipient and await self.can_respond_to_connection(user_id):
                return [
                    ConnectionAction(type=ConnectionActionType.ACCEPT, label="Aceitar", enabled=True),
                    ConnectionAction(type=ConnectionActionType.DECLINE, label="Recusar", enabled=True),
                ]
            return [
                ConnectionAction(type=ConnectionActionType.CANCEL, label="Cancelar Pedido", enabled=True)
            ]

        return []

    async def check_connection_action(self, user_id: str, action: str) -> CheckResult:
        if action == ConnectionActionType.CANCEL.value:
            return CheckResult.allow()

        permission_action = _ACTION_TO_PERMISSION.get(action)
        if permission_action is None:
            return CheckResult.deny(ACTION_NOT_RECOGNIZED)

        try:
            return await self._permissions.check_connection_permission(user_id, permission_action)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "check_connection_action",
                exc,
                CheckResult.deny(PERMISSION_CHECK_ERROR),
                user_id=user_id,
                action=action,
            )

    async def get_connection_limitations(self, user_id: str) -> ConnectionLimitations:
        try:
            permissions = await self._permissions.get_user_permissions(user_id)
        except Exception as exc:
            return PERMISSIVE_DEFAULT.recover(
                "get_connection_limitations",
                exc,
                ConnectionLimitations(
                    can_request=False,
                    can_respond=True,
                    limitations=["Erro ao verificar limitações"],
                ),
                user_id=user_id,
            )

        if permissions.can_request_connection:
            return ConnectionLimitations(can_request=True, can_respond=True)
        return ConnectionLimitations(
            can_request=False,
            can_respond=True,
            limitations=["Não pode solicitar novas conexões"],
            upgrade_prompt=True,
        )
