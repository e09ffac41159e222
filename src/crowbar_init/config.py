"""crowbar-init configuration management.

Handles configuration stored in /etc/crowbar/crowbar-init.yml.
Supports environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from .errors import ConfigError
from .shared.paths import (
    APACHE_CONF_DIR,
    CHEF_LOG,
    CONFIG_FILE,
    FRAMEWORK_DIR,
    get_chef_config,
    get_log_file,
)

# Default values
DEFAULT_ENVIRONMENT = "production"
DEFAULT_BIND = "0.0.0.0"
DEFAULT_PORT = 4567
DEFAULT_INSTALLER_URL = "http://localhost:3000/installer/installer"
DEFAULT_READINESS_MARKER = "installer-installers"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_SETTLE_DELAY = 15.0
DEFAULT_INSTALLER_SERVICE = "crowbar.service"
DEFAULT_PROXY_SERVICE = "apache2.service"
DEFAULT_LOG_LEVEL = "info"

# Environment variables
CONFIG_ENV_VAR = "CROWBAR_INIT_CONFIG"
ENV_PREFIX = "CROWBAR_INIT_"


@dataclass
class InitConfig:
    """crowbar-init configuration."""

    environment: str = DEFAULT_ENVIRONMENT
    root: Path = field(default_factory=Path.cwd)  # development log root
    bind: str = DEFAULT_BIND
    port: int = DEFAULT_PORT

    # Downstream installer
    installer_url: str = DEFAULT_INSTALLER_URL
    readiness_marker: str = DEFAULT_READINESS_MARKER
    poll_interval: float = DEFAULT_POLL_INTERVAL
    settle_delay: float = DEFAULT_SETTLE_DELAY
    readiness_timeout: float | None = None  # None waits until the installer is ready

    # System services
    installer_service: str = DEFAULT_INSTALLER_SERVICE
    proxy_service: str = DEFAULT_PROXY_SERVICE
    use_sudo: bool = True

    # Filesystem
    apache_conf_dir: Path = APACHE_CONF_DIR
    chef_config: Path | None = None
    chef_log: Path = CHEF_LOG
    framework_dir: Path = FRAMEWORK_DIR

    # Logging
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Path | None = None

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    @property
    def status_url(self) -> str:
        """URL of the installer's JSON status document."""
        return f"{self.installer_url.rstrip('/')}/status.json"

    @property
    def installer_entry(self) -> str:
        """Path callers are redirected to once the installer is up."""
        return urlparse(self.installer_url).path or "/"

    @property
    def chef_config_path(self) -> Path:
        """chef-solo configuration file."""
        return self.chef_config or get_chef_config()

    @property
    def log_path(self) -> Path:
        """Server log file."""
        return self.log_file or get_log_file(self.environment, self.root)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (paths as strings)."""
        data: dict[str, Any] = {}
        for f in fields(self):
            if f.name.startswith("_"):
                continue
            value = getattr(self, f.name)
            data[f.name] = str(value) if isinstance(value, Path) else value
        return data


def get_config_path(path: str | Path | None = None) -> Path:
    """Get the config file path.

    Args:
        path: Explicit path (e.g. from --config)

    Returns:
        Explicit path, else $CROWBAR_INIT_CONFIG, else /etc/crowbar/crowbar-init.yml
    """
    if path:
        return Path(path).expanduser()
    if os.environ.get(CONFIG_ENV_VAR):
        return Path(os.environ[CONFIG_ENV_VAR]).expanduser()
    return CONFIG_FILE


def _coerce(name: str, value: Any, type_hint: str) -> Any:
    """Convert a raw file/environment value to the field's type."""
    if value is None or value == "":
        if "None" in type_hint:
            return None
        raise ConfigError(f"Config value '{name}' must not be empty")

    try:
        if type_hint.startswith("bool"):
            if isinstance(value, bool):
                return value
            lowered = str(value).strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(value)
        if type_hint.startswith("int"):
            return int(value)
        if type_hint.startswith("float"):
            return float(value)
        if type_hint.startswith("Path"):
            return Path(str(value)).expanduser()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{name}': {value!r}") from e

    return str(value)


def load_config(path: str | Path | None = None) -> InitConfig:
    """Load configuration.

    Precedence (highest to lowest):
    1. Environment variables (CROWBAR_INIT_<FIELD>)
    2. Config file
    3. Defaults

    Args:
        path: Explicit config file path

    Returns:
        InitConfig with values and sources

    Raises:
        ConfigError: If the config file is malformed or a value is invalid
    """
    config = InitConfig()
    sources: dict[str, str] = {}
    known = {f.name: str(f.type) for f in fields(InitConfig) if not f.name.startswith("_")}

    for key in known:
        sources[key] = "default"

    config_path = get_config_path(path)
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config file: {e}", path=str(config_path)) from e

        if not isinstance(file_config, dict):
            raise ConfigError("Config file must contain a mapping", path=str(config_path))

        for key, value in file_config.items():
            if key not in known:
                continue
            setattr(config, key, _coerce(key, value, known[key]))
            sources[key] = "config file"

    for key, type_hint in known.items():
        env_name = f"{ENV_PREFIX}{key.upper()}"
        if env_name in os.environ:
            setattr(config, key, _coerce(key, os.environ[env_name], type_hint))
            sources[key] = "environment"

    config._sources = sources
    return config
