"""Shared test fixtures for crowbar-init tests.

This module provides:
- config: InitConfig pointing all filesystem paths into a temp directory
- Mocked bootstrap components (provisioner, services, router, poller)
- orchestrator: BootstrapOrchestrator wired to the mocks
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from crowbar_init.bootstrap import (
    BootstrapOrchestrator,
    Provisioner,
    ProxyRouter,
    ReadinessPoller,
    ServiceController,
)
from crowbar_init.config import InitConfig


@pytest.fixture
def apache_dir(tmp_path: Path) -> Path:
    """Apache crowbar include directory with both partials."""
    conf_dir = tmp_path / "apache"
    conf_dir.mkdir()
    (conf_dir / "crowbar-sinatra.conf.partial").write_text("ProxyPass / http://127.0.0.1:4567/\n")
    (conf_dir / "crowbar-rails.conf.partial").write_text("ProxyPass / http://127.0.0.1:3000/\n")
    return conf_dir


@pytest.fixture
def config(tmp_path: Path, apache_dir: Path) -> InitConfig:
    """Configuration with fast polling and temp paths."""
    return InitConfig(
        environment="test",
        root=tmp_path,
        installer_url="http://localhost:3000/installer/installer",
        poll_interval=0.01,
        settle_delay=0.01,
        use_sudo=False,
        apache_conf_dir=apache_dir,
        chef_config=tmp_path / "solo.rb",
        chef_log=Path("/var/log/chef/solo.log"),
        framework_dir=tmp_path,
    )


@pytest.fixture
def provisioner() -> MagicMock:
    """Provisioner whose operations succeed."""
    mock = MagicMock(spec=Provisioner)
    mock.provision.return_value = True
    mock.cleanup.return_value = True
    return mock


@pytest.fixture
def services() -> MagicMock:
    """ServiceController whose actions succeed."""
    mock = MagicMock(spec=ServiceController)
    mock.apply.return_value = True
    return mock


@pytest.fixture
def router(apache_dir: Path) -> MagicMock:
    """ProxyRouter whose switch and reload succeed."""
    mock = MagicMock(spec=ProxyRouter)
    mock.link_path = apache_dir / "crowbar.conf"
    mock.switch_to.return_value = True
    mock.reload.return_value = True
    return mock


@pytest.fixture
def poller() -> MagicMock:
    """ReadinessPoller that reports ready immediately."""
    mock = MagicMock(spec=ReadinessPoller)
    mock.wait_until_ready = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def orchestrator(config, provisioner, services, router, poller) -> BootstrapOrchestrator:
    """Orchestrator wired to mocked components."""
    return BootstrapOrchestrator(
        config=config,
        provisioner=provisioner,
        services=services,
        router=router,
        poller=poller,
    )
