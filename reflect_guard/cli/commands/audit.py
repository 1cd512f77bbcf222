"""CLI — Audit trail and security-alert commands."""

from __future__ import annotations

import datetime
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(help="Inspect audit logs and resolve security alerts.")
console = Console()

HostOpt = typer.Option("127.0.0.1")
PortOpt = typer.Option(8400)
TokenOpt = typer.Option(None, "--admin-token", envvar="REFLECT_ADMIN_TOKEN", help="X-Admin-Token value.")


def _client(host: str, port: int, token: str | None) -> "httpx.Client":
    import httpx

    headers = {"X-Admin-Token": token} if token else {}
    return httpx.Client(base_url=f"http://{host}:{port}", headers=headers, timeout=30.0)


def _fetch(host: str, port: int, token: str | None, path: str, params: dict[str, Any]) -> Any:
    try:
        with _client(host, port, token) as client:
            resp = client.get(path, params={k: v for k, v in params.items() if v is not None})
            resp.raise_for_status()
            return resp.json()
    except Exception as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)


def _ts(value: float | None) -> str:
    if value is None:
        return "-"
    return datetime.datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M:%S")


@app.command("logs")
def list_logs(
    user_id: str | None = typer.Option(None, "--user", help="Filter by user id."),
    denied: bool = typer.Option(False, "--denied", help="Only denied decisions."),
    limit: int = typer.Option(20, help="Maximum number of entries to show."),
    host: str = HostOpt,
    port: int = PortOpt,
    token: str | None = TokenOpt,
) -> None:
    """List recent audit entries, newest first."""
    params: dict[str, Any] = {"user_id": user_id, "limit": limit}
    if denied:
        params["allowed"] = "false"
    entries = _fetch(host, port, token, "/admin/audit-logs", params)

    if not entries:
        console.print("[yellow]No audit entries found.[/yellow]")
        return

    table = Table(title=f"Audit Logs ({len(entries)})")
    table.add_column("Time", style="dim")
    table.add_column("User", style="cyan")
    table.add_column("Action")
    table.add_column("Resource")
    table.add_column("Allowed")
    table.add_column("Reason")
    for e in entries:
        allowed = "[green]yes[/green]" if e["allowed"] else "[red]no[/red]"
        table.add_row(
            _ts(e.get("timestamp")),
            e.get("user_id") or "-",
            e["action"],
            e["resource"] + (f":{e['resource_id']}" if e.get("resource_id") else ""),
            allowed,
            e.get("reason") or "",
        )
    console.print(table)


@app.command("alerts")
def list_alerts(
    user_id: str | None = typer.Option(None, "--user", help="Filter by user id."),
    severity: str | None = typer.Option(None, help="low | medium | high | critical"),
    unresolved: bool = typer.Option(False, "--unresolved", help="Only open alerts."),
    limit: int = typer.Option(20),
    host: str = HostOpt,
    port: int = PortOpt,
    token: str | None = TokenOpt,
) -> None:
    """List security alerts, newest first."""
    params: dict[str, Any] = {"user_id": user_id, "severity": severity, "limit": limit}
    if unresolved:
        params["resolved"] = "false"
    alerts = _fetch(host, port, token, "/admin/security-alerts", params)

    if not alerts:
        console.print("[yellow]No security alerts found.[/yellow]")
        return

    table = Table(title=f"Security Alerts ({len(alerts)})")
    table.add_column("ID", style="cyan")
    table.add_column("Time", style="dim")
    table.add_column("User")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Resolved")
    table.add_column("Description")
    for a in alerts:
        table.add_row(
            str(a.get("id")),
            _ts(a.get("timestamp")),
            a["user_id"],
            a["alert_type"],
            a["severity"],
            "yes" if a["resolved"] else "no",
            a["description"],
        )
    console.print(table)


@app.command("resolve")
def resolve_alert(
    alert_id: int = typer.Argument(help="Alert id to resolve."),
    host: str = HostOpt,
    port: int = PortOpt,
    token: str | None = TokenOpt,
) -> None:
    """Mark a security alert as resolved."""
    try:
        with _client(host, port, token) as client:
            resp = client.post(f"/admin/security-alerts/{alert_id}/resolve")
    except Exception as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    if resp.status_code == 404:
        console.print(f"[yellow]Alert {alert_id} not found or already resolved.[/yellow]")
        raise typer.Exit(1)
    if resp.status_code >= 400:
        console.print(f"[red]Error {resp.status_code}: {resp.text}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Alert {alert_id} resolved.[/green]")
