"""Unit tests — ConnectionPermissionManager."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from reflect_guard.security.connections import (
    ConnectionActionType,
    ConnectionPermissionManager,
    ConnectionStatus,
)
from reflect_guard.security.permissions import (
    ACTION_NOT_RECOGNIZED,
    CONNECTION_REQUEST_PREMIUM_ONLY,
    PERMISSION_CHECK_ERROR,
    PermissionService,
)


@pytest.fixture
def manager(permission_service: PermissionService) -> ConnectionPermissionManager:
    return ConnectionPermissionManager(permission_service)


@pytest.mark.unit
class TestCapabilities:
    async def test_free_user(self, manager: ConnectionPermissionManager) -> None:
        assert await manager.can_request_connection("free-user") is False
        assert await manager.can_respond_to_connection("free-user") is True

    async def test_premium_user(self, manager: ConnectionPermissionManager) -> None:
        assert await manager.can_request_connection("premium-user") is True
        assert await manager.can_respond_to_connection("premium-user") is True


@pytest.mark.unit
class TestConnectionActions:
    async def test_none_for_free_user_requires_upgrade(self, manager: ConnectionPermissionManager) -> None:
        actions = await manager.get_connection_actions("free-user", ConnectionStatus.NONE)
        assert len(actions) == 1
        action = actions[0]
        assert action.type is ConnectionActionType.REQUEST
        assert action.label == "Solicitar Conexão"
        assert action.enabled is False
        assert action.requires_upgrade is True

    async def test_none_for_premium_user(self, manager: ConnectionPermissionManager) -> None:
        [action] = await manager.get_connection_actions("premium-user", "none")
        assert action.enabled is True
        assert action.requires_upgrade is False

    async def test_pending_recipient(self, manager: ConnectionPermissionManager) -> None:
        actions = await manager.get_connection_actions("free-user", "pending", is_recipient=True)
        assert [a.type for a in actions] == [ConnectionActionType.ACCEPT, ConnectionActionType.DECLINE]
        assert [a.label for a in actions] == ["Aceitar", "Recusar"]

    async def test_pending_requester(self, manager: ConnectionPermissionManager) -> None:
        actions = await manager.get_connection_actions("premium-user", "pending", is_recipient=False)
        assert [a.type for a in actions] == [ConnectionActionType.CANCEL]
        assert actions[0].label == "Cancelar Pedido"

    async def test_accepted_has_no_actions(self, manager: ConnectionPermissionManager) -> None:
        assert await manager.get_connection_actions("premium-user", "accepted") == []

    async def test_unknown_status_rejected(self, manager: ConnectionPermissionManager) -> None:
        with pytest.raises(ValueError):
            await manager.get_connection_actions("premium-user", "blocked")


@pytest.mark.unit
class TestCheckConnectionAction:
    async def test_cancel_always_allowed(self, manager: ConnectionPermissionManager) -> None:
        assert (await manager.check_connection_action("free-user", "cancel")).allowed

    async def test_accept_and_decline_map_to_respond(self, manager: ConnectionPermissionManager) -> None:
        assert (await manager.check_connection_action("free-user", "accept")).allowed
        assert (await manager.check_connection_action("free-user", "decline")).allowed

    async def test_request_for_free_user(self, manager: ConnectionPermissionManager) -> None:
        result = await manager.check_connection_action("free-user", "request")
        assert result.allowed is False
        assert result.reason == CONNECTION_REQUEST_PREMIUM_ONLY
        assert result.upgrade_prompt is True

    async def test_unknown_action(self, manager: ConnectionPermissionManager) -> None:
        result = await manager.check_connection_action("premium-user", "block")
        assert result.allowed is False
        assert result.reason == ACTION_NOT_RECOGNIZED

    async def test_check_failure_fails_closed(self) -> None:
        service = AsyncMock(spec=PermissionService)
        service.check_connection_permission.side_effect = RuntimeError("boom")
        manager = ConnectionPermissionManager(service)
        result = await manager.check_connection_action("u-1", "request")
        assert result.allowed is False
        assert result.reason == PERMISSION_CHECK_ERROR


@pytest.mark.unit
class TestLimitations:
    async def test_free_user(self, manager: ConnectionPermissionManager) -> None:
        limits = await manager.get_connection_limitations("free-user")
        assert limits.to_dict() == {
            "can_request": False,
            "can_respond": True,
            "limitations": ["Não pode solicitar novas conexões"],
            "upgrade_prompt": True,
        }

    async def test_premium_user(self, manager: ConnectionPermissionManager) -> None:
        limits = await manager.get_connection_limitations("premium-user")
        assert limits.can_request is True
        assert limits.limitations == []
        assert limits.upgrade_prompt is False

    async def test_failure_is_permissive(self) -> None:
        service = AsyncMock(spec=PermissionService)
        service.get_user_permissions.side_effect = RuntimeError("boom")
        limits = await ConnectionPermissionManager(service).get_connection_limitations("u-1")
        assert limits.can_respond is True
        assert limits.can_request is False
        assert limits.limitations == ["Erro ao verificar limitações"]
