"""Reflect Guard CLI — Entry point.

Usage:
    reflect-guard serve
    reflect-guard status
    reflect-guard audit logs
    reflect-guard audit alerts
    reflect-guard audit resolve <alert_id>
"""

from __future__ import annotations

import typer

from reflect_guard import __version__
from reflect_guard.cli.commands import audit, server

app = typer.Typer(
    name="reflect-guard",
    help="Reflect Guard — permission, audit and moderation-routing service.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

app.command("serve")(server.serve)
app.command("status")(server.status)
app.add_typer(audit.app, name="audit")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"reflect-guard {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Show the installed version and exit.",
    ),
) -> None:
    """Query and run the authorization service."""


if __name__ == "__main__":
    app()
