"""Unit tests for bootstrap proxy module."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from crowbar_init.bootstrap import (
    ProcessResult,
    ProcessRunner,
    ProxyRouter,
    ServiceAction,
    ServiceBackend,
    ServiceController,
)


def ok(*command: str) -> ProcessResult:
    return ProcessResult(True, command, returncode=0)


def failed(*command: str) -> ProcessResult:
    return ProcessResult(False, command, returncode=1, stderr="Operation not permitted")


@pytest.fixture
def runner() -> MagicMock:
    return MagicMock(spec=ProcessRunner)


@pytest.fixture
def services() -> MagicMock:
    mock = MagicMock(spec=ServiceController)
    mock.apply.return_value = True
    return mock


@pytest.fixture
def proxy(apache_dir: Path, runner, services) -> ProxyRouter:
    return ProxyRouter(apache_dir, runner, services)


class TestServiceBackend:
    """Tests for ServiceBackend enum."""

    def test_partial_names(self):
        assert ServiceBackend.PRE_INSTALL.partial_name == "crowbar-sinatra.conf.partial"
        assert ServiceBackend.INSTALLED.partial_name == "crowbar-rails.conf.partial"


class TestProxyRouter:
    """Tests for ProxyRouter."""

    def test_link_path(self, proxy, apache_dir):
        assert proxy.link_path == apache_dir / "crowbar.conf"

    def test_current_backend_missing(self, proxy):
        """Test a missing link has no backend."""
        assert proxy.current_backend() is None

    def test_current_backend_unknown_target(self, proxy, apache_dir):
        os.symlink("something-else.conf", apache_dir / "crowbar.conf")
        assert proxy.current_backend() is None

    def test_switch_creates_link(self, proxy, apache_dir):
        """Test switching when no link exists yet."""
        assert proxy.switch_to(ServiceBackend.INSTALLED) is True

        link = apache_dir / "crowbar.conf"
        assert link.is_symlink()
        assert os.readlink(link) == "crowbar-rails.conf.partial"
        assert proxy.current_backend() == ServiceBackend.INSTALLED

    def test_switch_replaces_link(self, proxy, apache_dir):
        """Test switching back and forth repoints the same link."""
        assert proxy.switch_to(ServiceBackend.INSTALLED) is True
        assert proxy.switch_to(ServiceBackend.PRE_INSTALL) is True

        assert os.readlink(apache_dir / "crowbar.conf") == "crowbar-sinatra.conf.partial"
        assert (apache_dir / "crowbar.conf").read_text().startswith("ProxyPass")

    def test_switch_is_idempotent(self, proxy, apache_dir):
        assert proxy.switch_to(ServiceBackend.PRE_INSTALL) is True
        assert proxy.switch_to(ServiceBackend.PRE_INSTALL) is True
        assert proxy.current_backend() == ServiceBackend.PRE_INSTALL

    def test_switch_leaves_no_temp_files(self, proxy, apache_dir):
        proxy.switch_to(ServiceBackend.INSTALLED)
        proxy.switch_to(ServiceBackend.PRE_INSTALL)

        names = sorted(p.name for p in apache_dir.iterdir())
        assert names == [
            "crowbar-rails.conf.partial",
            "crowbar-sinatra.conf.partial",
            "crowbar.conf",
        ]

    def test_switch_does_not_touch_services(self, proxy, services, runner):
        """Test switching only changes the link."""
        proxy.switch_to(ServiceBackend.INSTALLED)

        services.apply.assert_not_called()
        runner.run.assert_not_called()

    def test_switch_failure_keeps_old_link(self, proxy, apache_dir):
        """Test a failed rename leaves the previous target in place."""
        proxy.switch_to(ServiceBackend.PRE_INSTALL)

        with patch("os.replace", side_effect=PermissionError("Permission denied")):
            assert proxy.switch_to(ServiceBackend.INSTALLED) is False

        assert proxy.current_backend() == ServiceBackend.PRE_INSTALL
        assert not any(p.name.endswith(".tmp") for p in apache_dir.iterdir())

    def test_switch_readers_never_see_missing_link(self, proxy, apache_dir):
        """Test concurrent readers always see one of the two targets."""
        proxy.switch_to(ServiceBackend.PRE_INSTALL)
        link = apache_dir / "crowbar.conf"
        seen: set[str] = set()
        errors: list[OSError] = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                try:
                    seen.add(os.readlink(link))
                except OSError as e:
                    errors.append(e)

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for _ in range(200):
                proxy.switch_to(ServiceBackend.INSTALLED)
                proxy.switch_to(ServiceBackend.PRE_INSTALL)
        finally:
            stop.set()
            thread.join()

        assert errors == []
        assert seen <= {"crowbar-rails.conf.partial", "crowbar-sinatra.conf.partial"}

    def test_switch_elevated(self, proxy, apache_dir, runner):
        """Test an unwritable directory goes through ln and mv."""

        def run(command, args=(), **kwargs):
            if command == "ln":
                os.symlink(args[1], args[2])
            elif command == "mv":
                os.replace(args[1], args[2])
            return ok(command, *args)

        runner.run.side_effect = run

        with patch("os.access", return_value=False):
            assert proxy.switch_to(ServiceBackend.INSTALLED) is True

        commands = [c.args[0] for c in runner.run.call_args_list]
        assert commands == ["ln", "mv"]
        ln_args = runner.run.call_args_list[0].args[1]
        assert ln_args[:2] == ["-sfn", "crowbar-rails.conf.partial"]
        mv_args = runner.run.call_args_list[1].args[1]
        assert mv_args[0] == "-Tf"
        assert mv_args[2] == str(apache_dir / "crowbar.conf")
        for call in runner.run.call_args_list:
            assert call.kwargs["elevated"] is True
        assert proxy.current_backend() == ServiceBackend.INSTALLED

    def test_switch_elevated_ln_failure(self, proxy, runner):
        runner.run.return_value = failed("ln")

        with patch("os.access", return_value=False):
            assert proxy.switch_to(ServiceBackend.INSTALLED) is False

        runner.run.assert_called_once()

    def test_switch_elevated_mv_failure_removes_temp_link(self, proxy, runner):
        """Test the temporary link is removed when the rename fails."""
        runner.run.side_effect = [ok("ln"), failed("mv"), ok("rm")]

        with patch("os.access", return_value=False):
            assert proxy.switch_to(ServiceBackend.INSTALLED) is False

        rm_call = runner.run.call_args_list[2]
        assert rm_call.args[0] == "rm"
        assert rm_call.args[1][0] == "-f"

    def test_switch_not_verified(self, proxy, runner):
        """Test a switch whose link does not read back is a failure."""
        runner.run.return_value = ok()

        with patch("os.access", return_value=False):
            assert proxy.switch_to(ServiceBackend.INSTALLED) is False

    def test_reload(self, proxy, services):
        """Test reload goes through the service controller."""
        assert proxy.reload() is True
        services.apply.assert_called_once_with("apache2.service", ServiceAction.RELOAD)

    def test_reload_failure(self, proxy, services):
        services.apply.return_value = False
        assert proxy.reload() is False

    def test_custom_proxy_service(self, apache_dir, runner, services):
        router = ProxyRouter(apache_dir, runner, services, proxy_service="httpd.service")
        router.reload()
        services.apply.assert_called_once_with("httpd.service", ServiceAction.RELOAD)
