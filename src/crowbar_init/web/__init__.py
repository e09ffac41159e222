"""HTTP front end for crowbar-init."""

from .app import create_app

__all__ = ["create_app"]
