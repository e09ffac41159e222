"""Transition commands: init, reset and status.

These run the same orchestration as the web front end, directly from a
shell on the admin node.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import Callable

import click

from ..bootstrap import (
    BootstrapAttempt,
    BootstrapOrchestrator,
    DatabaseAttributes,
    InstallerStatusClient,
)
from ..errors import Busy, ValidationError
from ..formatters import print_attempt, print_json, print_status


async def run_init(
    orchestrator: BootstrapOrchestrator,
    attrs: DatabaseAttributes | None,
    on_attempt: Callable[[int, str, str | None], None] | None = None,
) -> BootstrapAttempt:
    """Run Init; SIGINT/SIGTERM cancel the readiness wait."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # No signal support outside the main thread
            pass

    try:
        return await orchestrator.init(attrs, cancel_event=cancel_event, on_attempt=on_attempt)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def _show_attempt(attempt: int, phase: str, error: str | None) -> None:
    status = error or "checking..."
    click.echo(f"  Waiting for installer ({phase}) attempt {attempt}: {status}", err=True)


def _report(ctx: click.Context, attempt: BootstrapAttempt) -> None:
    if ctx.obj.get("json_output"):
        print_json(attempt.to_dict())
    else:
        print_attempt(attempt)
    if not attempt.succeeded:
        sys.exit(1)


@click.command("init")
@click.option("--username", help="Database user to provision before starting")
@click.option("--password", help="Database password")
@click.option("--host", help="External database host (connect instead of create)")
@click.option("--port", "db_port", help="External database port")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Give up waiting for the installer after this many seconds (default: wait forever)",
)
@click.pass_context
def init_command(
    ctx: click.Context,
    username: str | None,
    password: str | None,
    host: str | None,
    db_port: str | None,
    timeout: float | None,
) -> None:
    """Start Crowbar and switch Apache to the installer.

    \b
    Example usage:
      crowbar-init init
      crowbar-init init --username crowbar --password secret
      crowbar-init init --username crowbar --password secret --host db1 --port 5432
    """
    config = ctx.obj["config"]
    if timeout is not None:
        config.readiness_timeout = timeout

    attrs = None
    try:
        if username or password:
            if host or db_port:
                attrs = DatabaseAttributes.connect(username, password, host, db_port)
            else:
                attrs = DatabaseAttributes.create(username, password)
    except ValidationError as e:
        raise click.BadParameter(e.message) from e

    orchestrator = ctx.obj["orchestrator_factory"](config)
    try:
        progress = None if ctx.obj.get("json_output") else _show_attempt
        attempt = asyncio.run(run_init(orchestrator, attrs, progress))
    except Busy as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    _report(ctx, attempt)


@click.command("reset")
@click.pass_context
def reset_command(ctx: click.Context) -> None:
    """Stop Crowbar and switch Apache back to crowbar-init."""
    orchestrator = ctx.obj["orchestrator_factory"](ctx.obj["config"])
    try:
        attempt = asyncio.run(orchestrator.reset())
    except Busy as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    _report(ctx, attempt)


@click.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show the installer status document."""
    config = ctx.obj["config"]
    client = InstallerStatusClient(config.installer_url)
    status = asyncio.run(client.fetch("json"))

    if ctx.obj.get("json_output"):
        print_json(status)
    else:
        print_status(status, config.readiness_marker)

    if status["body"] is None:
        sys.exit(1)
