"""Unit tests for crowbar_init.config module."""

import os
from pathlib import Path

import pytest

from crowbar_init.config import InitConfig, get_config_path, load_config
from crowbar_init.errors import ConfigError
from crowbar_init.shared.paths import get_chef_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove CROWBAR_INIT_* variables inherited from the environment."""
    for name in list(os.environ):
        if name.startswith("CROWBAR_INIT_"):
            monkeypatch.delenv(name)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "crowbar-init.yml"


class TestInitConfig:
    """Tests for InitConfig dataclass."""

    def test_defaults(self):
        config = InitConfig()
        assert config.environment == "production"
        assert config.port == 4567
        assert config.installer_url == "http://localhost:3000/installer/installer"
        assert config.readiness_marker == "installer-installers"
        assert config.poll_interval == 1.0
        assert config.settle_delay == 15.0
        assert config.readiness_timeout is None
        assert config.installer_service == "crowbar.service"
        assert config.proxy_service == "apache2.service"

    def test_status_url(self):
        config = InitConfig(installer_url="http://crowbar:3000/installer/installer/")
        assert config.status_url == "http://crowbar:3000/installer/installer/status.json"

    def test_installer_entry(self):
        """Test the redirect target is the path of the installer URL."""
        assert InitConfig().installer_entry == "/installer/installer"
        assert InitConfig(installer_url="http://localhost:3000").installer_entry == "/"

    def test_chef_config_path(self, tmp_path):
        """Test the packaged solo.rb is used unless chef_config is set."""
        assert InitConfig(root=tmp_path).chef_config_path == get_chef_config()
        explicit = tmp_path / "other.rb"
        assert InitConfig(chef_config=explicit).chef_config_path == explicit

    def test_log_path(self, tmp_path):
        config = InitConfig(environment="development", root=tmp_path)
        assert config.log_path == tmp_path / "log" / "development.log"
        config.log_file = tmp_path / "custom.log"
        assert config.log_path == tmp_path / "custom.log"

    def test_to_dict(self, tmp_path):
        data = InitConfig(root=tmp_path).to_dict()
        assert data["root"] == str(tmp_path)
        assert data["chef_config"] is None
        assert "_sources" not in data


class TestGetConfigPath:
    """Tests for get_config_path."""

    def test_explicit_path(self, tmp_path):
        assert get_config_path(tmp_path / "a.yml") == tmp_path / "a.yml"

    def test_env_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CROWBAR_INIT_CONFIG", str(tmp_path / "env.yml"))
        assert get_config_path() == tmp_path / "env.yml"

    def test_default_path(self):
        assert get_config_path() == Path("/etc/crowbar/crowbar-init.yml")


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_uses_defaults(self, config_file):
        config = load_config(config_file)
        assert config.port == 4567
        assert config.get_source("port") == "default"

    def test_file_values(self, config_file):
        """Test values from the YAML file are coerced to field types."""
        config_file.write_text(
            "environment: development\n"
            "port: 8080\n"
            "settle_delay: 2\n"
            "use_sudo: false\n"
            "apache_conf_dir: /tmp/apache\n"
            "readiness_timeout: 600\n"
        )

        config = load_config(config_file)

        assert config.environment == "development"
        assert config.port == 8080
        assert config.settle_delay == 2.0
        assert config.use_sudo is False
        assert config.apache_conf_dir == Path("/tmp/apache")
        assert config.readiness_timeout == 600.0
        assert config.get_source("port") == "config file"

    def test_env_overrides_file(self, config_file, monkeypatch):
        """Test environment variables take precedence over the file."""
        config_file.write_text("port: 8080\nuse_sudo: true\n")
        monkeypatch.setenv("CROWBAR_INIT_PORT", "9090")
        monkeypatch.setenv("CROWBAR_INIT_USE_SUDO", "no")

        config = load_config(config_file)

        assert config.port == 9090
        assert config.use_sudo is False
        assert config.get_source("port") == "environment"

    def test_config_path_from_env(self, config_file, monkeypatch):
        config_file.write_text("bind: 127.0.0.1\n")
        monkeypatch.setenv("CROWBAR_INIT_CONFIG", str(config_file))

        assert load_config().bind == "127.0.0.1"

    def test_nullable_value(self, config_file, monkeypatch):
        monkeypatch.setenv("CROWBAR_INIT_READINESS_TIMEOUT", "")
        assert load_config(config_file).readiness_timeout is None

    def test_unknown_keys_ignored(self, config_file):
        config_file.write_text("unknown: 1\nport: 5000\n")
        assert load_config(config_file).port == 5000

    def test_empty_file(self, config_file):
        config_file.write_text("")
        assert load_config(config_file).port == 4567

    def test_malformed_yaml(self, config_file):
        config_file.write_text("port: [8080\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(config_file)
        assert exc_info.value.path == str(config_file)

    def test_not_a_mapping(self, config_file):
        config_file.write_text("- port\n- bind\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_file)

    def test_invalid_number(self, config_file, monkeypatch):
        monkeypatch.setenv("CROWBAR_INIT_POLL_INTERVAL", "soon")
        with pytest.raises(ConfigError, match="poll_interval"):
            load_config(config_file)

    def test_invalid_bool(self, config_file):
        config_file.write_text("use_sudo: maybe\n")
        with pytest.raises(ConfigError, match="use_sudo"):
            load_config(config_file)

    def test_required_value_empty(self, config_file, monkeypatch):
        monkeypatch.setenv("CROWBAR_INIT_PORT", "")
        with pytest.raises(ConfigError, match="must not be empty"):
            load_config(config_file)
