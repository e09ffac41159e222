"""CLI output formatting helpers."""

import json
from typing import Any

import click
import yaml

from .bootstrap import BootstrapAttempt
from .config import InitConfig


def print_json(data: Any) -> None:
    """Print data as indented JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def print_config_yaml(config: InitConfig, show_sources: bool = False) -> None:
    """Print configuration as YAML.

    Args:
        config: Loaded configuration
        show_sources: Append where each value came from
    """
    data = config.to_dict()
    if not show_sources:
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
        return

    for key, value in data.items():
        rendered = yaml.dump({key: value}, default_flow_style=True).strip().strip("{}")
        click.echo(f"{rendered}  # {config.get_source(key)}")


def print_attempt(attempt: BootstrapAttempt) -> None:
    """Print the steps and outcome of a transition.

    Args:
        attempt: Finished attempt
    """
    click.echo(f"{attempt.transition.value.capitalize()}:")
    for step in attempt.steps:
        mark = "✓" if step.succeeded else "✗"
        line = f"  {mark} {step.name}"
        if step.detail:
            line += f" ({step.detail})"
        click.echo(line)

    if attempt.succeeded:
        click.echo(f"\n✓ Done in {attempt.elapsed_seconds:.1f}s")
        if attempt.redirect_to:
            click.echo(f"  Continue at: {attempt.redirect_to}")
    elif attempt.error:
        click.echo(f"\n✗ {attempt.error.message}", err=True)


def print_status(status: dict[str, Any], marker: str) -> None:
    """Print the installer status summary.

    Args:
        status: ``{code, body}`` from InstallerStatusClient.fetch
        marker: Readiness marker
    """
    code = status.get("code")
    body = status.get("body")
    if body is None:
        click.echo(f"Installer unavailable (code {code})")
        return

    ready = marker in json.dumps(body)
    click.echo(f"Installer responded with code {code}")
    click.echo(f"Ready: {'yes' if ready else 'no'}")
