"""Database commands: create a local database or connect to an external one."""

from __future__ import annotations

import asyncio
import sys

import click

from ..bootstrap import DatabaseAttributes
from ..errors import BootstrapError
from ..formatters import print_json


def _provision(ctx: click.Context, attrs: DatabaseAttributes) -> None:
    orchestrator = ctx.obj["orchestrator_factory"](ctx.obj["config"])
    try:
        asyncio.run(orchestrator.provision_database(attrs))
    except BootstrapError as e:
        if ctx.obj.get("json_output"):
            print_json({"code": e.code, "body": {"error": e.message}})
        else:
            click.echo(f"✗ {e.message}", err=True)
        sys.exit(1)

    if ctx.obj.get("json_output"):
        print_json({"code": 200, "body": None})
    else:
        click.echo("✓ Database ready")


@click.group("database")
def database_group() -> None:
    """Provision the Crowbar database."""


@database_group.command("new")
@click.option("--username", required=True, help="Database user")
@click.option("--password", required=True, prompt=True, hide_input=True, help="Database password")
@click.pass_context
def database_new(ctx: click.Context, username: str, password: str) -> None:
    """Create a local PostgreSQL database for Crowbar."""
    try:
        attrs = DatabaseAttributes.create(username, password)
    except BootstrapError as e:
        raise click.BadParameter(e.message) from e
    _provision(ctx, attrs)


@database_group.command("connect")
@click.option("--username", required=True, help="Database user")
@click.option("--password", required=True, prompt=True, hide_input=True, help="Database password")
@click.option("--host", required=True, help="Database host")
@click.option("--port", "db_port", default="5432", show_default=True, help="Database port")
@click.pass_context
def database_connect(
    ctx: click.Context,
    username: str,
    password: str,
    host: str,
    db_port: str,
) -> None:
    """Connect Crowbar to an external PostgreSQL database."""
    try:
        attrs = DatabaseAttributes.connect(username, password, host, db_port)
    except BootstrapError as e:
        raise click.BadParameter(e.message) from e
    _provision(ctx, attrs)
