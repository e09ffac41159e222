"""Database provisioning through chef-solo.

The only job this module ever runs is the postgresql recipe; callers choose
the node attributes, never the run list.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import structlog

from .process import ProcessRunner
from .state import POSTGRESQL_RUN_LIST, DatabaseAttributes

logger = structlog.get_logger(__name__)

CHEF_SOLO = "chef-solo"


class Provisioner:
    """Run the database provisioning job and the schema cleanup task."""

    def __init__(
        self,
        runner: ProcessRunner,
        chef_config: Path,
        framework_dir: Path,
        rails_env: str = "production",
    ):
        """Initialize provisioner.

        Args:
            runner: ProcessRunner used for chef-solo and rake.
            chef_config: Path to solo.rb.
            framework_dir: Crowbar framework checkout containing bin/rake.
            rails_env: RAILS_ENV for the rake task.
        """
        self.runner = runner
        self.chef_config = Path(chef_config)
        self.framework_dir = Path(framework_dir)
        self.rails_env = rails_env

    def provision(self, attrs: DatabaseAttributes) -> bool:
        """Run chef-solo with the postgresql recipe.

        Args:
            attrs: Desired database configuration.

        Returns:
            True if the chef run succeeded.
        """
        node_attributes = attrs.to_node_attributes()
        logger.debug("Running chef solo", attributes=repr(attrs), run_list=POSTGRESQL_RUN_LIST)

        # Node attributes contain the database password
        fd, json_path = tempfile.mkstemp(prefix="crowbar-init-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(node_attributes, f)

            result = self.runner.run(
                CHEF_SOLO,
                [
                    "-c",
                    str(self.chef_config),
                    "-j",
                    json_path,
                    "-o",
                    ",".join(POSTGRESQL_RUN_LIST),
                ],
                elevated=True,
            )
        finally:
            Path(json_path).unlink(missing_ok=True)

        if not result.success:
            logger.error("Chef run failed", exit_info=result.exit_info)
        return result.success

    def cleanup(self) -> bool:
        """Clean up and migrate the Crowbar database schema.

        Returns:
            True if the rake task succeeded.
        """
        logger.debug("Cleaning up crowbar database", framework_dir=str(self.framework_dir))
        result = self.runner.run(
            "bin/rake",
            ["db:cleanup"],
            cwd=self.framework_dir,
            env={"RAILS_ENV": self.rails_env},
        )
        if not result.success:
            logger.error("Database cleanup failed", exit_info=result.exit_info)
        return result.success
