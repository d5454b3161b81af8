"""Tunnel health classification.

The SSH client may print nothing at all once connected, so output
matching only speeds things up; the authoritative signal is whether the
local SOCKS port accepts connections while the process is alive.
"""

import re
import time
from collections import deque
from threading import Event
from typing import Callable, Iterable, Optional

from ..core.network import probe_socks_port
from ..core.state import ConnectionState, FailureReason
from ..core.tunnel import OUTPUT_HISTORY, TunnelSession
from ..utils.logging import get_logger

logger = get_logger("core.health")

# sshpass exit status for a rejected password
SSHPASS_INCORRECT_PASSWORD = 5

FATAL_PATTERNS: tuple[tuple[re.Pattern, FailureReason], ...] = (
    (re.compile(r"permission denied", re.I), FailureReason.AUTH_REJECTED),
    (re.compile(r"too many authentication failures", re.I), FailureReason.AUTH_REJECTED),
    (re.compile(r"incorrect passphrase|bad passphrase", re.I), FailureReason.AUTH_REJECTED),
    (re.compile(r"host key verification failed", re.I), FailureReason.HOST_KEY_REJECTED),
)

TRANSIENT_PATTERNS: tuple[tuple[re.Pattern, FailureReason], ...] = (
    (re.compile(r"connection refused", re.I), FailureReason.CONNECTION_REFUSED),
    (re.compile(r"timed out", re.I), FailureReason.TIMEOUT),
    (re.compile(r"could not resolve hostname", re.I), FailureReason.HOST_UNREACHABLE),
    (re.compile(r"no route to host|network is unreachable", re.I), FailureReason.HOST_UNREACHABLE),
    (re.compile(r"connection closed by|connection reset|server .*not responding|broken pipe", re.I), FailureReason.LINK_LOST),
    (re.compile(r"address already in use|cannot listen to port", re.I), FailureReason.PORT_UNAVAILABLE),
)

SUCCESS_PATTERN = re.compile(
    r"authenticated to|authentication succeeded|entering interactive session|local connections to",
    re.I
)

# Per-channel errors concern proxied connections, not the tunnel itself
CHANNEL_NOISE = re.compile(r"\bchannel \d+:", re.I)

ProbeFunc = Callable[[str, int], bool]


def match_failure(lines: Iterable[str]) -> Optional[ConnectionState]:
    """Return the terminal state announced by the first failure line, if any."""
    for line in lines:
        if CHANNEL_NOISE.search(line):
            continue
        for pattern, reason in FATAL_PATTERNS:
            if pattern.search(line):
                return ConnectionState.failed(reason, line.strip())
        for pattern, reason in TRANSIENT_PATTERNS:
            if pattern.search(line):
                return ConnectionState.disconnected(reason, line.strip())
    return None


def _exit_state(code: int) -> ConnectionState:
    if code == SSHPASS_INCORRECT_PASSWORD:
        return ConnectionState.failed(FailureReason.AUTH_REJECTED, "password rejected by server")
    return ConnectionState.disconnected(FailureReason.PROCESS_EXITED, f"SSH process exited with code {code}")


class HealthMonitor:
    """Decides whether a tunnel session is connecting, connected or gone."""

    def __init__(
            self,
            connect_timeout: float = 10.0,
            poll_interval: float = 0.5,
            probe: Optional[ProbeFunc] = None,
            clock: Callable[[], float] = time.monotonic,
            max_probe_failures: int = 3
    ):
        self.connect_timeout = connect_timeout
        self.poll_interval = poll_interval
        self.probe = probe or (lambda host, port: probe_socks_port(host, port))
        self.clock = clock
        self.max_probe_failures = max_probe_failures

    def classify(self, session: TunnelSession, elapsed: float, output_events: Iterable[str]) -> ConnectionState:
        """
        Classify a session during the connect phase.

        Args:
            session: The running session
            elapsed: Seconds since the session started
            output_events: Output lines observed so far

        Returns:
            The session's current ConnectionState
        """
        lines = list(output_events)

        failure = match_failure(lines)
        if failure:
            return failure

        code = session.returncode()
        if code is not None:
            return _exit_state(code)

        if any(SUCCESS_PATTERN.search(line) for line in lines):
            return ConnectionState.connected("success marker in SSH output")

        if self.probe(session.local_host, session.local_port):
            return ConnectionState.connected("SOCKS5 port accepting connections")

        if elapsed >= self.connect_timeout:
            return ConnectionState.disconnected(
                FailureReason.CONNECT_TIMEOUT,
                f"SOCKS5 port not ready after {self.connect_timeout:g}s"
            )

        return ConnectionState.connecting()

    def wait_for_connection(self, session: TunnelSession, stop_event: Optional[Event] = None) -> ConnectionState:
        """
        Poll the session until it leaves the Connecting state.

        Returns Idle if ``stop_event`` is set first.
        """
        state = ConnectionState.connecting()
        session.state = state

        while not state.is_terminal and not state.is_connected:
            if stop_event is not None and stop_event.is_set():
                return ConnectionState.idle()

            session.read_output(self.poll_interval)
            if session.returncode() is not None:
                # Collect whatever the process printed before it died
                session.finish_output()

            elapsed = self.clock() - session.started_at
            state = self.classify(session, elapsed, session.output)
            session.state = state

        logger.debug(f"Connect phase finished: {state}")
        return state

    def watch(self, session: TunnelSession, stop_event: Optional[Event] = None) -> ConnectionState:
        """
        Monitor an established session until it fails.

        Output is only used to explain an exit; while the process runs,
        liveness is judged by probing the SOCKS port. Returns Idle if
        ``stop_event`` is set first.
        """
        probe_failures = 0
        recent: "deque[str]" = deque(maxlen=OUTPUT_HISTORY)

        while True:
            if stop_event is not None:
                if stop_event.wait(self.poll_interval):
                    return ConnectionState.idle()
            else:
                time.sleep(self.poll_interval)

            recent.extend(session.read_output())
            failure = None

            code = session.returncode()
            if code is not None:
                recent.extend(session.finish_output())
                failure = match_failure(recent) or _exit_state(code)
            elif self.probe(session.local_host, session.local_port):
                probe_failures = 0
            else:
                probe_failures += 1
                logger.debug(f"SOCKS5 probe failed ({probe_failures}/{self.max_probe_failures})")
                if probe_failures >= self.max_probe_failures:
                    failure = ConnectionState.disconnected(
                        FailureReason.LINK_LOST, "SOCKS5 port stopped accepting connections"
                    )

            if failure is not None:
                session.state = failure
                logger.warning(f"Tunnel lost: {failure}")
                return failure
