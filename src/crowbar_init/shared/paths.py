"""Filesystem locations used by crowbar-init.

The web server writes its log next to the other Crowbar logs in production
and below the application root during development.
"""

from importlib.resources import files
from pathlib import Path

# System-wide configuration file
CONFIG_FILE = Path("/etc/crowbar/crowbar-init.yml")

# Production log directory
LOG_DIR = Path("/var/log/crowbar")

# chef-solo log, referenced in user-facing database errors
CHEF_LOG = Path("/var/log/chef/solo.log")

# Apache include directory holding the crowbar.conf symlink and its partials
APACHE_CONF_DIR = Path("/etc/apache2/conf.d/crowbar")

# Crowbar Rails application checkout
FRAMEWORK_DIR = Path("/opt/dell/crowbar_framework")


def get_log_file(environment: str, root: Path | None = None) -> Path:
    """Get path to the server log file for an environment.

    Args:
        environment: Runtime environment (development, production, ...)
        root: Application root used for the development log (default: cwd)

    Returns:
        Path to the log file
    """
    if environment == "development":
        return (root or Path.cwd()) / "log" / f"{environment}.log"
    return LOG_DIR / f"crowbar-init-{environment}.log"


def get_chef_config() -> Path:
    """Get path to the chef-solo configuration installed with the package."""
    return Path(str(files("crowbar_init").joinpath("chef").joinpath("solo.rb")))
