"""CLI commands for crowbar-init."""

from .bootstrap import init_command, reset_command, status_command
from .database import database_group

__all__ = ["init_command", "reset_command", "status_command", "database_group"]
