"""systemd service control for bootstrap transitions."""

from __future__ import annotations

import structlog

from .process import ProcessRunner
from .state import ServiceAction

logger = structlog.get_logger(__name__)

SYSTEMCTL = "systemctl"


class ServiceController:
    """Start, stop and reload system services through systemctl."""

    def __init__(self, runner: ProcessRunner):
        """Initialize service controller.

        Args:
            runner: ProcessRunner used to invoke systemctl.
        """
        self.runner = runner

    def apply(self, service_name: str, action: ServiceAction) -> bool:
        """Apply an action to a service.

        A non-zero systemctl exit for start/stop still counts as success when
        the unit is already in the requested state.

        Args:
            service_name: systemd unit (e.g. crowbar.service).
            action: Action to apply.

        Returns:
            True if systemctl succeeded or the unit already is in the target state.
        """
        logger.debug(f"{action.value.capitalize()}ing service", service=service_name)
        result = self.runner.run(SYSTEMCTL, [action.value, service_name], elevated=True)
        if result.success:
            return True

        if result.returncode is None:
            # systemctl itself could not be run; unit state is unknown
            logger.error("Service action failed", service=service_name, error=result.exit_info)
            return False

        if action == ServiceAction.START and self.is_active(service_name):
            logger.info("Service already running", service=service_name)
            return True
        if action == ServiceAction.STOP and not self.is_active(service_name):
            logger.info("Service already stopped", service=service_name)
            return True

        logger.error(
            "Service action failed",
            service=service_name,
            action=action.value,
            exit_info=result.exit_info,
        )
        return False

    def is_active(self, service_name: str) -> bool:
        """Check whether a service is running.

        Args:
            service_name: systemd unit.

        Returns:
            True if systemctl reports the unit as active.
        """
        result = self.runner.run(SYSTEMCTL, ["is-active", "--quiet", service_name])
        return result.success
