"""CLI main entry point."""

import asyncio
import sys

import click

from .bootstrap import BootstrapOrchestrator
from .commands import database_group, init_command, reset_command, status_command
from .config import load_config
from .errors import ConfigError
from .formatters import print_config_yaml, print_json
from .shared.logging import configure_logging

VERBOSITY_LEVELS = {0: "warning", 1: "info"}


@click.group()
@click.option("-c", "--config", "config_path", type=click.Path(), help="Config file path")
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: int, json_output: bool) -> None:
    """Crowbar bootstrap: database setup and installer switch-over."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.obj["json_output"] = json_output
    ctx.obj.setdefault("orchestrator_factory", BootstrapOrchestrator.from_config)

    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(config_path)
        except ConfigError as e:
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(1)

    configure_logging(VERBOSITY_LEVELS.get(verbose, "debug"))


@cli.command()
@click.option("--bind", type=str, default=None, help="Host to bind to (default: from config)")
@click.option("--port", type=int, default=None, help="Port to bind to (default: from config)")
@click.pass_context
def serve(ctx: click.Context, bind: str | None, port: int | None) -> None:
    """Start the crowbar-init web server."""
    import uvicorn

    from .web import create_app

    config = ctx.obj["config"]
    host = bind or config.bind
    port = port or config.port

    configure_logging(config.log_level, log_file=config.log_path, json_output=True)

    app = create_app(config, orchestrator=ctx.obj["orchestrator_factory"](config))

    click.echo(f"crowbar-init starting on http://{host}:{port}", err=True)
    click.echo(f"Logs: {config.log_path}", err=True)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=config.log_level,
            log_config=None,
            access_log=False,
        )
    )
    asyncio.run(server.serve())


@cli.group("config")
def config_group() -> None:
    """Inspect configuration."""


@config_group.command("show")
@click.option("--sources", is_flag=True, help="Show where each value came from")
@click.pass_context
def config_show(ctx: click.Context, sources: bool) -> None:
    """Show the effective configuration."""
    config = ctx.obj["config"]
    if ctx.obj.get("json_output"):
        print_json(config.to_dict())
    else:
        print_config_yaml(config, show_sources=sources)


cli.add_command(init_command)
cli.add_command(reset_command)
cli.add_command(status_command)
cli.add_command(database_group)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
