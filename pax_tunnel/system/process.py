"""Process management utilities."""

import os
import signal
import subprocess
from typing import Optional

import psutil

from ..utils.logging import get_logger

logger = get_logger("system.process")


class ProcessManager:
    """Manages child processes and local port ownership."""

    def find_process_by_port(self, port: int) -> Optional[str]:
        """
        Find process information for a given listening port.

        Args:
            port: Port number to check

        Returns:
            Process information string or None if not found
        """
        try:
            for conn in psutil.net_connections(kind="inet"):
                if conn.laddr and conn.laddr.port == port and conn.status == psutil.CONN_LISTEN:
                    if conn.pid is None:
                        return None
                    try:
                        return f"PID: {conn.pid}, Name: {psutil.Process(conn.pid).name()}"
                    except (psutil.AccessDenied, psutil.NoSuchProcess):
                        return f"PID: {conn.pid}"
        except psutil.AccessDenied:
            logger.debug(f"Not permitted to list connections while looking up port {port}")
        except psutil.Error as e:
            logger.error(f"Error finding process with psutil: {e}")

        return None

    def terminate(self, process: subprocess.Popen, grace_period: float = 5.0) -> Optional[int]:
        """
        Terminate a child process and its process group.

        Sends SIGTERM, waits up to ``grace_period`` seconds, then SIGKILL.

        Args:
            process: The child process
            grace_period: Seconds to wait for a graceful exit

        Returns:
            The process exit code
        """
        if process.poll() is not None:
            return process.returncode

        logger.debug(f"Sending SIGTERM to process {process.pid}")
        self._signal(process, signal.SIGTERM)

        try:
            return process.wait(timeout=grace_period)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {process.pid} didn't exit gracefully, forcing kill")

        self._signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        return process.wait()

    def _signal(self, process: subprocess.Popen, sig: int) -> None:
        """Signal the process group when possible, else the process itself."""
        try:
            if hasattr(os, "killpg"):
                os.killpg(os.getpgid(process.pid), sig)
            elif sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            logger.debug(f"Process {process.pid} already exited")
        except PermissionError as e:
            logger.warning(f"Cannot signal process group of {process.pid}: {e}")
            process.send_signal(sig)
