"""APT package installation through the command supervisor."""

import logging
import subprocess
from collections.abc import Callable, Iterable

from caddroid.core.result import InvocationError
from caddroid.core.supervisor import CommandSupervisor
from caddroid.utils.progress import IndicatorStatus

logger = logging.getLogger(__name__)

INSTALL_ESTIMATE = 20
UPDATE_ESTIMATE = 15


class PackageManager:
    def __init__(
        self,
        supervisor: CommandSupervisor,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.supervisor = supervisor
        self.runner = runner

    def is_installed(self, name: str) -> bool:
        """Check ``dpkg -l`` for an ``ii`` (installed) entry."""
        try:
            result = self.runner(
                ["dpkg", "-l", name],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.debug("dpkg query failed for %s: %s", name, e)
            return False

        if result.returncode != 0:
            return False
        return any(line.startswith("ii") for line in result.stdout.splitlines())

    def install(self, name: str, action: str = "install") -> int:
        if not name:
            raise InvocationError("install: Package name required")

        if self.is_installed(name):
            self.supervisor.indicator.stop(
                IndicatorStatus.SUCCESS, f"{name} (already installed)"
            )
            return 0

        result = self.supervisor.run_with_progress(
            f"{action} {name}",
            INSTALL_ESTIMATE,
            ["apt-get", "-y", action, name],
        )
        return result.exit_code

    def install_many(
        self, names: Iterable[str], action: str = "install"
    ) -> dict[str, int]:
        return {name: self.install(name, action) for name in names}

    def update(self) -> int:
        result = self.supervisor.run_with_progress(
            "Update package lists", UPDATE_ESTIMATE, ["apt-get", "update"]
        )
        return result.exit_code
