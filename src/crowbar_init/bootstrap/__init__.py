"""Bootstrap package for switching Crowbar between pre-install and installed.

This package provides the orchestration behind `crowbar-init init` and
`crowbar-init reset`:
1. Provisions or cleans up the Crowbar database
2. Starts or stops the Crowbar framework service
3. Points Apache at the matching backend and reloads it
4. Waits for the installer to report readiness
"""

from .health import InstallerStatusClient, ReadinessPoller, ReadinessState
from .orchestrator import BootstrapOrchestrator
from .process import ProcessResult, ProcessRunner
from .provisioner import Provisioner
from .proxy import ProxyRouter
from .service import ServiceController
from .state import (
    BootstrapAttempt,
    DatabaseAttributes,
    DatabaseMode,
    OrchestratorState,
    Outcome,
    ServiceAction,
    ServiceBackend,
    StepResult,
    Transition,
)

__all__ = [
    # Data model
    "BootstrapAttempt",
    "DatabaseAttributes",
    "DatabaseMode",
    "OrchestratorState",
    "Outcome",
    "ServiceAction",
    "ServiceBackend",
    "StepResult",
    "Transition",
    # Components
    "ProcessResult",
    "ProcessRunner",
    "ServiceController",
    "ProxyRouter",
    "Provisioner",
    "InstallerStatusClient",
    "ReadinessPoller",
    "ReadinessState",
    # Orchestration
    "BootstrapOrchestrator",
]
