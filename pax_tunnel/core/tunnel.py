"""SSH tunnel process management for the dynamic SOCKS5 forward."""
import os
import queue
import subprocess
import time
from collections import deque
from dataclasses import dataclass, field
from threading import Event, Thread
from typing import Any, Callable, Optional

from ..config.models import AppConfig, AuthType, Credential
from ..core.keys import KeyKind, ResolvedKey
from ..core.network import is_port_in_use
from ..core.state import ConnectionState
from ..system.platform import PlatformManager
from ..system.process import ProcessManager
from ..utils.exceptions import LaunchError, PortInUseError
from ..utils.logging import get_logger

logger = get_logger("core.tunnel")

DEFAULT_SSH_OPTIONS = (
    "StrictHostKeyChecking=no",
    "UserKnownHostsFile=/dev/null",
    "ServerAliveInterval=15",
    "ServerAliveCountMax=3",
    "ConnectTimeout=10",
    "ExitOnForwardFailure=yes",
)

# Lines of ssh output kept per session
OUTPUT_HISTORY = 200


class OutputReader:
    """Reads the SSH client's output on a background thread."""

    def __init__(self, stream):
        self.stream = stream
        self._queue: "queue.Queue[str]" = queue.Queue()
        self._eof = Event()
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        self._thread = Thread(target=self._read, name="pax-ssh-output", daemon=True)
        self._thread.start()

    def _read(self) -> None:
        try:
            for line in iter(self.stream.readline, ""):
                line = line.rstrip()
                if line:
                    logger.debug(f"ssh: {line}")
                    self._queue.put(line)
        except (OSError, ValueError) as e:
            logger.debug(f"SSH output stream closed: {e}")
        finally:
            self._eof.set()

    def wait_closed(self, timeout: float) -> bool:
        """Wait for the writer side of the stream to close."""
        return self._eof.wait(timeout)

    def drain(self, timeout: float = 0.0) -> list[str]:
        """
        Collect pending output lines.

        Waits up to ``timeout`` seconds for the first line, never longer.
        """
        lines: list[str] = []
        try:
            if timeout > 0:
                lines.append(self._queue.get(timeout=timeout))
            else:
                lines.append(self._queue.get_nowait())
            while True:
                lines.append(self._queue.get_nowait())
        except queue.Empty:
            pass
        return lines

    def stop(self, timeout: float = 2.0) -> None:
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        try:
            self.stream.close()
        except (OSError, ValueError):
            pass


@dataclass
class TunnelSession:
    """One running SSH client invocation."""
    process: Any
    started_at: float
    local_host: str
    local_port: int
    state: ConnectionState = field(default_factory=ConnectionState.connecting)
    key: Optional[ResolvedKey] = None
    reader: Optional[OutputReader] = None
    output: "deque[str]" = field(default_factory=lambda: deque(maxlen=OUTPUT_HISTORY))
    terminated: bool = False

    @property
    def pid(self) -> int:
        return self.process.pid

    def returncode(self) -> Optional[int]:
        """Exit code of the process, or None while it is running."""
        return self.process.poll()

    def read_output(self, timeout: float = 0.0) -> list[str]:
        """Drain new output lines into the session history and return them."""
        if self.reader is None:
            if timeout > 0:
                time.sleep(timeout)
            return []
        lines = self.reader.drain(timeout)
        self.output.extend(lines)
        return lines

    def finish_output(self, timeout: float = 1.0) -> list[str]:
        """Collect the final output of an exited process."""
        if self.reader is not None:
            self.reader.wait_closed(timeout)
        return self.read_output()


class TunnelProcess:
    """Owns the lifecycle of the external SSH client."""

    def __init__(
            self,
            config: AppConfig,
            process_manager: Optional[ProcessManager] = None,
            platform_manager: Optional[PlatformManager] = None,
            clock: Callable[[], float] = time.monotonic
    ):
        self.config = config
        self.process_manager = process_manager or ProcessManager()
        self.platform_manager = platform_manager or PlatformManager()
        self.clock = clock

    def start(self, credential: Credential, key: Optional[ResolvedKey] = None) -> TunnelSession:
        """
        Spawn the SSH client in dynamic forwarding mode.

        Only the spawn is confirmed here; readiness is decided by the
        health monitor.

        Raises:
            LaunchError: If the process cannot be spawned
            PortInUseError: If the local SOCKS port is already taken
        """
        local_host = self.config.local_host
        local_port = self.config.local_port

        logger.info(f"Starting SSH tunnel to {credential.target} (SOCKS5 {local_host}:{local_port})")

        if is_port_in_use(local_port, local_host):
            raise PortInUseError(local_port, self.process_manager.find_process_by_port(local_port))

        if key is not None and key.kind is KeyKind.PATH and not os.access(key.path, os.R_OK):
            raise LaunchError(f"Private key file not readable: {key.path}")

        command, env = self.build_command(credential, key)

        for binary in self._required_binaries(command):
            if self.platform_manager.find_command(binary) is None:
                hint = " (required for password authentication)" if binary == "sshpass" else ""
                raise LaunchError(f"{binary} is not installed{hint}")

        logger.info(f"Executing SSH command: {' '.join(sanitize_command(command))}")

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
                env=env,
                preexec_fn=os.setsid if hasattr(os, 'setsid') else None
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to spawn SSH: {e}")
            raise LaunchError(f"Failed to spawn SSH: {e}") from e

        reader = OutputReader(process.stdout)
        reader.start()

        return TunnelSession(
            process=process,
            started_at=self.clock(),
            local_host=local_host,
            local_port=local_port,
            key=key,
            reader=reader,
        )

    def is_alive(self, session: TunnelSession) -> bool:
        """Check if the SSH client is still running."""
        return not session.terminated and session.returncode() is None

    def terminate(self, session: TunnelSession) -> None:
        """
        Stop the SSH client and release the session's resources.

        The process is gone before the key material is removed.
        """
        if session.terminated:
            return

        try:
            code = self.process_manager.terminate(session.process, self.config.grace_period)
            logger.info(f"SSH process {session.pid} stopped (exit code {code})")
        finally:
            if session.reader:
                session.reader.stop()
            if session.key:
                session.key.release()
            session.terminated = True

    def build_command(self, credential: Credential, key: Optional[ResolvedKey] = None) -> tuple[list[str], dict[str, str]]:
        """
        Build the SSH command line and its environment.

        Returns:
            Tuple of (argv, environment)
        """
        env = os.environ.copy()
        env.pop("SSHPASS", None)

        command = ["ssh", "-D", f"{self.config.local_host}:{self.config.local_port}", "-N", "-T"]

        if self.config.compression:
            command.append("-C")

        command.append("-q" if self.config.silent else "-v")

        options = list(DEFAULT_SSH_OPTIONS)
        wrapper: list[str] = []

        if credential.auth_type is AuthType.PASSWORD:
            options += ["PreferredAuthentications=password,keyboard-interactive", "PubkeyAuthentication=no"]
            wrapper = ["sshpass", "-e"]
            env["SSHPASS"] = credential.password or ""

        elif credential.auth_type is AuthType.KEY:
            if key is None:
                raise LaunchError("AuthType is key but no key material was resolved")

            command += ["-i", key.path]
            options.append("IdentitiesOnly=yes")

            if credential.password:
                wrapper = ["sshpass", "-e", "-P", "passphrase"]
                env["SSHPASS"] = credential.password
            else:
                options.append("BatchMode=yes")

        else:
            raise LaunchError(f"Invalid authentication method: {credential.auth_type}")

        options += self.config.ssh_options

        for option in options:
            command += ["-o", option]

        command += ["-p", str(credential.port), f"{credential.user}@{credential.host}"]

        return wrapper + command, env

    @staticmethod
    def _required_binaries(command: list[str]) -> list[str]:
        if command[0] == "sshpass":
            return ["sshpass", "ssh"]
        return [command[0]]


def sanitize_command(command: list[str]) -> list[str]:
    """Remove sensitive information from command for logging."""
    if not command:
        return []

    sanitized = []
    i = 0

    while i < len(command):
        current_arg = command[i]

        if current_arg == "-i":
            sanitized.append(current_arg)
            if i + 1 < len(command):
                sanitized.append("******")
                i += 2
            else:
                i += 1

        elif current_arg in ["-o", "--option"] and i + 1 < len(command):
            next_arg = command[i + 1]
            sanitized.append(current_arg)

            if any(pwd_opt in next_arg.lower() for pwd_opt in ["password=", "passwd="]):
                sanitized.append(next_arg.split("=")[0] + "=******")
            else:
                sanitized.append(next_arg)
            i += 2

        elif any(sensitive in current_arg.lower() for sensitive in ["password=", "passwd=", "pass="]):
            key_part = current_arg.split("=")[0]
            sanitized.append(f"{key_part}=******")
            i += 1

        else:
            sanitized.append(current_arg)
            i += 1

    return sanitized
