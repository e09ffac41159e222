"""Data model for bootstrap transitions.

A BootstrapAttempt records one run of a transition: the steps executed so
far, in order, and the final outcome. Attempts are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..errors import BootstrapError, ValidationError

# Fixed chef run list for database provisioning
POSTGRESQL_RUN_LIST = ["recipe[postgresql]"]


class Transition(Enum):
    """Named orchestration sequences."""

    INIT = "init"  # Bring the installed system up
    RESET = "reset"  # Tear down to pre-install state


class Outcome(Enum):
    """Final outcome of a transition."""

    SUCCESS = "success"
    FAILED = "failed"


class OrchestratorState(Enum):
    """State of the bootstrap orchestrator."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ServiceBackend(Enum):
    """Apache configuration partial currently linked as crowbar.conf."""

    PRE_INSTALL = "sinatra"  # This application
    INSTALLED = "rails"  # Crowbar framework

    @property
    def partial_name(self) -> str:
        """File name of the configuration partial for this backend."""
        return f"crowbar-{self.value}.conf.partial"


class ServiceAction(Enum):
    """systemctl actions used by the orchestrator."""

    START = "start"
    STOP = "stop"
    RELOAD = "reload"


class DatabaseMode(Enum):
    """How the Crowbar database is obtained."""

    CREATE = "create"  # Local PostgreSQL set up by chef
    CONNECT = "connect"  # Existing external server


@dataclass(frozen=True)
class StepResult:
    """Result of a single step of a transition."""

    name: str
    succeeded: bool
    detail: str | None = None


@dataclass
class BootstrapAttempt:
    """Record of one orchestration run."""

    transition: Transition
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    steps: list[StepResult] = field(default_factory=list)
    outcome: Outcome | None = None
    finished_at: datetime | None = None
    error: BootstrapError | None = None
    redirect_to: str | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the transition finished successfully."""
        return self.outcome == Outcome.SUCCESS

    @property
    def failed_step(self) -> StepResult | None:
        """Terminal step of a failed attempt."""
        if self.outcome != Outcome.FAILED or not self.steps:
            return None
        return self.steps[-1]

    @property
    def elapsed_seconds(self) -> float:
        """Run time so far, or total run time once finished."""
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def record(self, step: StepResult) -> None:
        """Append a completed step."""
        self.steps.append(step)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "transition": self.transition.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcome": self.outcome.value if self.outcome else None,
            "steps": [
                {"name": s.name, "succeeded": s.succeeded, "detail": s.detail}
                for s in self.steps
            ],
            "error": self.error.to_dict() if self.error else None,
            "redirect_to": self.redirect_to,
        }


@dataclass(frozen=True)
class DatabaseAttributes:
    """Desired database configuration supplied by the caller.

    Use ``create()`` or ``connect()``; both validate their input.
    """

    mode: DatabaseMode
    username: str
    password: str
    host: str | None = None
    port: str | None = None

    @classmethod
    def create(cls, username: str, password: str) -> DatabaseAttributes:
        """Attributes for a local database created by chef."""
        attrs = cls(DatabaseMode.CREATE, username or "", password or "")
        attrs.validate()
        return attrs

    @classmethod
    def connect(
        cls,
        username: str,
        password: str,
        host: str | None,
        port: str | int | None,
    ) -> DatabaseAttributes:
        """Attributes for an existing external database."""
        attrs = cls(
            DatabaseMode.CONNECT,
            username or "",
            password or "",
            host=(host or "").strip(),
            port=str(port).strip() if port is not None else "",
        )
        attrs.validate()
        return attrs

    def validate(self) -> None:
        """Check the invariants of the selected mode.

        Raises:
            ValidationError: If a required field is missing
        """
        if not self.username:
            raise ValidationError(message="Database username is required", step="validate")
        if not self.password:
            raise ValidationError(message="Database password is required", step="validate")
        if self.mode == DatabaseMode.CONNECT:
            if not self.host:
                raise ValidationError(
                    message="Database host is required to connect to an external database",
                    step="validate",
                )
            if not self.port:
                raise ValidationError(
                    message="Database port is required to connect to an external database",
                    step="validate",
                )
            if not self.port.isdigit() or not 0 < int(self.port) < 65536:
                raise ValidationError(
                    message=(
                        f"Database port must be a number between 1 and 65535, got {self.port!r}"
                    ),
                    step="validate",
                )

    def to_node_attributes(self) -> dict[str, Any]:
        """Chef node attributes for the postgresql recipe."""
        postgresql: dict[str, Any] = {
            "username": self.username,
            "password": self.password,
        }
        if self.mode == DatabaseMode.CONNECT:
            postgresql["host"] = self.host
            postgresql["port"] = self.port
        return {
            "postgresql": postgresql,
            "run_list": list(POSTGRESQL_RUN_LIST),
        }

    def __repr__(self) -> str:
        return (
            f"DatabaseAttributes(mode={self.mode.value}, username={self.username!r}, "
            f"host={self.host!r}, port={self.port!r})"
        )
