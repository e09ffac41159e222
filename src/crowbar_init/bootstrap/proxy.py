"""Apache backend switching.

Apache includes ``crowbar.conf`` from its crowbar configuration directory.
That file is a symlink to one of two partials: one proxying to this
application (pre-install) and one proxying to the Crowbar framework
(installed). Switching repoints the symlink and reloads Apache.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from .process import ProcessRunner
from .service import ServiceController
from .state import ServiceAction, ServiceBackend

logger = structlog.get_logger(__name__)

LINK_NAME = "crowbar.conf"


class ProxyRouter:
    """Switch the active Apache backend."""

    def __init__(
        self,
        conf_dir: Path,
        runner: ProcessRunner,
        services: ServiceController,
        proxy_service: str = "apache2.service",
    ):
        """Initialize proxy router.

        Args:
            conf_dir: Directory holding crowbar.conf and the partials.
            runner: ProcessRunner for privileged filesystem changes.
            services: ServiceController used to reload Apache.
            proxy_service: systemd unit of the web server.
        """
        self.conf_dir = Path(conf_dir)
        self.runner = runner
        self.services = services
        self.proxy_service = proxy_service

    @property
    def link_path(self) -> Path:
        """Path of the managed symlink."""
        return self.conf_dir / LINK_NAME

    def _temp_link_path(self) -> Path:
        return self.conf_dir / f".{LINK_NAME}.{os.getpid()}.tmp"

    def current_backend(self) -> ServiceBackend | None:
        """Read back which partial crowbar.conf points at.

        Returns:
            The linked backend, or None if the link is missing or unknown.
        """
        try:
            target = os.readlink(self.link_path)
        except OSError:
            return None

        name = Path(target).name
        for backend in ServiceBackend:
            if backend.partial_name == name:
                return backend
        return None

    def switch_to(self, backend: ServiceBackend) -> bool:
        """Point crowbar.conf at the partial for ``backend``.

        The new link is created under a temporary name and renamed over the
        old one, so readers see either the old or the new target.

        Args:
            backend: Backend to activate.

        Returns:
            True if the link now points at the backend's partial.
        """
        target = backend.partial_name
        logger.debug(
            "Creating symbolic link",
            link=str(self.link_path),
            target=target,
        )

        if os.access(self.conf_dir, os.W_OK):
            switched = self._replace_link(target)
        else:
            switched = self._replace_link_elevated(target)

        if not switched:
            return False

        current = self.current_backend()
        if current != backend:
            logger.error(
                "Symbolic link does not point at the requested backend",
                link=str(self.link_path),
                expected=backend.value,
                actual=current.value if current else None,
            )
            return False
        return True

    def _replace_link(self, target: str) -> bool:
        tmp = self._temp_link_path()
        try:
            if tmp.is_symlink() or tmp.exists():
                tmp.unlink()
            os.symlink(target, tmp)
            os.replace(tmp, self.link_path)
        except OSError as e:
            logger.error("Could not replace symbolic link", link=str(self.link_path), error=str(e))
            tmp.unlink(missing_ok=True)
            return False
        return True

    def _replace_link_elevated(self, target: str) -> bool:
        tmp = str(self._temp_link_path())
        created = self.runner.run("ln", ["-sfn", target, tmp], elevated=True)
        if not created.success:
            logger.error("Could not create symbolic link", link=tmp, error=created.exit_info)
            return False

        # mv -T renames over the existing link with a single rename(2)
        moved = self.runner.run("mv", ["-Tf", tmp, str(self.link_path)], elevated=True)
        if not moved.success:
            logger.error(
                "Could not replace symbolic link",
                link=str(self.link_path),
                error=moved.exit_info,
            )
            self.runner.run("rm", ["-f", tmp], elevated=True)
            return False
        return True

    def reload(self) -> bool:
        """Reload Apache so it rereads crowbar.conf.

        Returns:
            True if the reload succeeded.
        """
        logger.debug("Reloading web server", service=self.proxy_service)
        return self.services.apply(self.proxy_service, ServiceAction.RELOAD)
