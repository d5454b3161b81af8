"""Shared fixtures for Pax tests."""

import io
from datetime import datetime, timezone

import pytest
from rich.console import Console

from pax_tunnel.config.models import AppConfig, AuthType, Credential
from pax_tunnel.core.state import ConnectionState
from pax_tunnel.core.status import StatusReporter
from pax_tunnel.core.tunnel import TunnelSession
from pax_tunnel.utils.console import PaxConsole


class FakeProcess:
    """Stands in for subprocess.Popen in tests that never spawn anything."""

    def __init__(self, returncode=None, pid=4242):
        self.returncode = returncode
        self.pid = pid

    def poll(self):
        return self.returncode


class RecordingReporter(StatusReporter):
    """StatusReporter writing to a buffer and recording notifications."""

    def __init__(self, now=None):
        self.buffer = io.StringIO()
        super().__init__(
            output=PaxConsole(Console(file=self.buffer, width=120, color_system=None)),
            now=now or (lambda: datetime(2025, 6, 1, tzinfo=timezone.utc)),
        )
        self.states: list[ConnectionState] = []
        self.delays: list[float] = []

    def state_changed(self, state):
        self.states.append(state)
        super().state_changed(state)

    def retrying(self, delay, state):
        self.delays.append(delay)
        super().retrying(delay, state)

    @property
    def text(self) -> str:
        return self.buffer.getvalue()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep PAX_* variables from the developer's shell out of tests."""
    for key in (
        "PAX_API_URL", "PAX_TIMEOUT", "PAX_HOST", "PAX_USER", "PAX_SSH_PORT",
        "PAX_PASSWORD", "PAX_PRIVATE_KEY", "PAX_LOCAL_HOST", "PAX_LOCAL_PORT",
        "PAX_CONNECT_TIMEOUT", "PAX_SILENT", "SSHPASS",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config():
    return AppConfig(
        api_url="https://api.example.test/auth.json",
        local_port=1080,
        connect_timeout=1.0,
        poll_interval=0.001,
        grace_period=0.5,
        backoff_initial=0.001,
        backoff_max=0.008,
    )


@pytest.fixture
def password_credential():
    return Credential(
        auth_type=AuthType.PASSWORD,
        host="1.1.1.1",
        user="root",
        port=22,
        password="secret",
    )


@pytest.fixture
def reporter():
    return RecordingReporter()


class ScriptedReader:
    """Stands in for OutputReader; each drain returns the next queued batch."""

    def __init__(self, batches=None):
        self.batches = list(batches or [])
        self.drains = 0

    def feed(self, *lines):
        self.batches.append(list(lines))

    def drain(self, timeout=0.0):
        self.drains += 1
        return self.batches.pop(0) if self.batches else []

    def wait_closed(self, timeout):
        return True

    def stop(self, timeout=2.0):
        pass


def make_session(returncode=None, output=None, port=1080, reader=None):
    session = TunnelSession(
        process=FakeProcess(returncode),
        started_at=0.0,
        local_host="127.0.0.1",
        local_port=port,
        reader=reader,
    )
    session.output.extend(output or [])
    return session
