"""Shared modules for crowbar-init.

This module provides functionality used by both the web server and the CLI:
- Logging setup
- Well-known filesystem locations
"""

from .logging import configure_logging, get_logger, log_request
from .paths import (
    APACHE_CONF_DIR,
    CHEF_LOG,
    CONFIG_FILE,
    FRAMEWORK_DIR,
    LOG_DIR,
    get_chef_config,
    get_log_file,
)

__all__ = [
    # Paths
    "CONFIG_FILE",
    "LOG_DIR",
    "CHEF_LOG",
    "APACHE_CONF_DIR",
    "FRAMEWORK_DIR",
    "get_log_file",
    "get_chef_config",
    # Logging
    "configure_logging",
    "get_logger",
    "log_request",
]
