"""Error taxonomy for bootstrap transitions.

Every error carries the name of the step that raised it, so callers can tell
the operator which part of a transition failed.
"""

from dataclasses import dataclass, field
from typing import Any

from .shared.paths import CHEF_LOG

# Error codes (also used as the HTTP status of the front end response)
ERROR_VALIDATION = 500
ERROR_STEP_FAILED = 500
ERROR_BUSY = 409


@dataclass
class BootstrapError(Exception):
    """Base error class for bootstrap errors."""

    message: str
    step: str | None = None
    code: int = ERROR_STEP_FAILED
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON error body returned to callers."""
        body: dict[str, Any] = {"error": self.message}
        if self.step:
            body["step"] = self.step
        if self.data:
            body["data"] = self.data
        return body


@dataclass
class DatabaseError(BootstrapError):
    """Provisioning or cleanup of the database failed."""

    message: str = f"Database setup failed. Please have a look at {CHEF_LOG}"


@dataclass
class ServiceError(BootstrapError):
    """Starting or stopping a system service failed."""

    message: str = "Service control failed"


@dataclass
class ProxyError(BootstrapError):
    """Switching the proxy backend failed."""

    message: str = "Could not switch the web server configuration"


@dataclass
class ReloadInconsistent(ProxyError):
    """Symlink points at the new backend but the proxy was not reloaded."""

    message: str = (
        "Web server configuration was switched but the reload failed; "
        "the web server is still serving the previous backend"
    )


@dataclass
class TransportError(BootstrapError):
    """Status request to the installer failed at the transport level.

    Transient: the readiness poller retries instead of surfacing it.
    """

    message: str = "Installer status request failed"


@dataclass
class ReadinessError(BootstrapError):
    """Readiness wait was cancelled or ran past its deadline."""

    message: str = "Installer did not become ready"


@dataclass
class Busy(BootstrapError):
    """Another transition is already running."""

    message: str = "Another bootstrap transition is already running"
    code: int = ERROR_BUSY


@dataclass
class ValidationError(BootstrapError):
    """Caller supplied invalid input."""

    message: str = "Invalid input"
    code: int = ERROR_VALIDATION


class ConfigError(Exception):
    """Configuration file or value could not be loaded."""

    def __init__(self, message: str, path: str | None = None):
        self.message = message
        self.path = path
        super().__init__(message)
