"""External command execution.

ProcessRunner is the lowest-level boundary of the bootstrap components: it
never raises, every failure becomes ``success=False``.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one external command."""

    success: bool
    command: tuple[str, ...]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def exit_info(self) -> str:
        """Short human-readable description of how the command ended."""
        if self.error:
            return self.error
        if self.returncode == 0:
            return "exit 0"
        detail = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
        return f"exit {self.returncode}: {detail}" if detail else f"exit {self.returncode}"


class ProcessRunner:
    """Run external commands synchronously."""

    def __init__(self, use_sudo: bool = False):
        """Initialize runner.

        Args:
            use_sudo: Prefix elevated commands with sudo unless already root.
        """
        self.use_sudo = use_sudo

    def elevation_prefix(self) -> list[str]:
        """Command prefix needed for commands that require root."""
        if self.use_sudo and os.geteuid() != 0:
            return ["sudo"]
        return []

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        elevated: bool = False,
    ) -> ProcessResult:
        """Run a command and wait for it to finish.

        Args:
            command: Executable to run.
            args: Arguments passed to the executable.
            cwd: Working directory.
            env: Extra environment variables, merged over the current environment.
            elevated: Run with the elevation prefix.

        Returns:
            ProcessResult; success is True only for exit code 0.
        """
        argv = [*(self.elevation_prefix() if elevated else []), command, *args]
        full_env = {**os.environ, **env} if env else None

        logger.debug("Executing command", command=argv, cwd=str(cwd) if cwd else None)

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            logger.warning("Command not found", command=argv)
            return ProcessResult(False, tuple(argv), error=f"{argv[0]}: command not found")
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Command could not be started", command=argv, error=str(e))
            return ProcessResult(False, tuple(argv), error=str(e))

        if result.stdout and result.stdout.strip():
            logger.debug("Command stdout", command=argv, stdout=result.stdout.strip())
        if result.stderr and result.stderr.strip():
            logger.debug("Command stderr", command=argv, stderr=result.stderr.strip())

        process_result = ProcessResult(
            success=result.returncode == 0,
            command=tuple(argv),
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
        if not process_result.success:
            logger.info(
                "Command failed", command=argv, exit_info=process_result.exit_info
            )
        return process_result
