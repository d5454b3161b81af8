"""Checks for the external tools Pax needs."""

import shutil
from typing import Optional

from ..utils.logging import get_logger

logger = get_logger("system.platform")


class PlatformManager:
    """Locates the SSH client and the password helper."""

    def find_command(self, command: str) -> Optional[str]:
        """Return the full path of a command available in PATH."""
        path = shutil.which(command)
        if path is None:
            logger.debug(f"{command} not found in PATH")
        return path

    def check_required_tools(self) -> dict[str, bool]:
        """Check availability of the SSH client and the password helper."""
        return {
            "ssh": self.find_command("ssh") is not None,
            "sshpass": self.find_command("sshpass") is not None,
        }
