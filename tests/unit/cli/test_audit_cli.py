"""Unit tests — CLI audit commands."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from reflect_guard.cli.commands.audit import app

runner = CliRunner()


def _mock_client(json_data=None, status_code: int = 200) -> MagicMock:
    mock_resp = MagicMock()
    mock_resp.status_code = status_code
    mock_resp.json.return_value = json_data
    mock_resp.text = "error"

    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.get.return_value = mock_resp
    mock_client.post.return_value = mock_resp
    return mock_client


LOG_ENTRY = {
    "id": 1,
    "user_id": "u-1",
    "action": "post_access",
    "resource": "post",
    "resource_id": "p-1",
    "allowed": False,
    "reason": "Acesso negado",
    "timestamp": 1_700_000_000.0,
}

ALERT = {
    "id": 7,
    "user_id": "u-1",
    "alert_type": "suspicious_activity",
    "severity": "medium",
    "description": "muitas negações",
    "timestamp": 1_700_000_000.0,
    "resolved": False,
}


@pytest.mark.unit
class TestLogs:
    def test_logs_table(self) -> None:
        mock_client = _mock_client([LOG_ENTRY])
        with patch("httpx.Client", return_value=mock_client):
            result = runner.invoke(app, ["logs"])

        assert result.exit_code == 0
        assert "Audit Logs (1)" in result.output
        path = mock_client.get.call_args[0][0]
        assert path == "/admin/audit-logs"

    def test_logs_empty(self) -> None:
        with patch("httpx.Client", return_value=_mock_client([])):
            result = runner.invoke(app, ["logs"])

        assert result.exit_code == 0
        assert "No audit entries found." in result.output

    def test_denied_filter_and_user(self) -> None:
        mock_client = _mock_client([])
        with patch("httpx.Client", return_value=mock_client):
            runner.invoke(app, ["logs", "--denied", "--user", "u-1", "--limit", "5"])

        params = mock_client.get.call_args[1]["params"]
        assert params == {"user_id": "u-1", "limit": 5, "allowed": "false"}

    def test_admin_token_header(self) -> None:
        with patch("httpx.Client", return_value=_mock_client([])) as mock_cls:
            runner.invoke(app, ["logs", "--admin-token", "s3cret"])

        assert mock_cls.call_args[1]["headers"] == {"X-Admin-Token": "s3cret"}

    def test_request_failure_exits_1(self) -> None:
        mock_client = _mock_client([])
        mock_client.get.side_effect = Exception("connection refused")
        with patch("httpx.Client", return_value=mock_client):
            result = runner.invoke(app, ["logs"])

        assert result.exit_code == 1


@pytest.mark.unit
class TestAlerts:
    def test_alerts_table(self) -> None:
        with patch("httpx.Client", return_value=_mock_client([ALERT])):
            result = runner.invoke(app, ["alerts"])

        assert result.exit_code == 0
        assert "Security Alerts (1)" in result.output

    def test_unresolved_filter(self) -> None:
        mock_client = _mock_client([])
        with patch("httpx.Client", return_value=mock_client):
            result = runner.invoke(app, ["alerts", "--unresolved", "--severity", "high"])

        assert "No security alerts found." in result.output
        params = mock_client.get.call_args[1]["params"]
        assert params["resolved"] == "false"
        assert params["severity"] == "high"
        assert "user_id" not in params


@pytest.mark.unit
class TestResolve:
    def test_resolve_success(self) -> None:
        mock_client = _mock_client({"alert_id": 7, "resolved": True})
        with patch("httpx.Client", return_value=mock_client):
            result = runner.invoke(app, ["resolve", "7"])

        assert result.exit_code == 0
        assert "Alert 7 resolved." in result.output
        assert mock_client.post.call_args[0][0] == "/admin/security-alerts/7/resolve"

    def test_resolve_not_found(self) -> None:
        with patch("httpx.Client", return_value=_mock_client(None, status_code=404)):
            result = runner.invoke(app, ["resolve", "99"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_resolve_server_error(self) -> None:
        with patch("httpx.Client", return_value=_mock_client(None, status_code=500)):
            result = runner.invoke(app, ["resolve", "7"])

        assert result.exit_code == 1
