"""Connection lifecycle states."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StateKind(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a tunnel attempt ended."""
    AUTH_REJECTED = "auth_rejected"
    HOST_KEY_REJECTED = "host_key_rejected"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    HOST_UNREACHABLE = "host_unreachable"
    PORT_UNAVAILABLE = "port_unavailable"
    PROCESS_EXITED = "process_exited"
    CONNECT_TIMEOUT = "connect_timeout"
    LINK_LOST = "link_lost"
    CREDENTIAL_UNAVAILABLE = "credential_unavailable"
    KEY_MATERIAL = "key_material"
    LAUNCH_FAILED = "launch_failed"


@dataclass(frozen=True)
class ConnectionState:
    """The single current state of the supervised connection."""
    kind: StateKind
    reason: Optional[FailureReason] = None
    detail: str = ""

    @classmethod
    def idle(cls) -> "ConnectionState":
        return cls(StateKind.IDLE)

    @classmethod
    def connecting(cls) -> "ConnectionState":
        return cls(StateKind.CONNECTING)

    @classmethod
    def connected(cls, detail: str = "") -> "ConnectionState":
        return cls(StateKind.CONNECTED, detail=detail)

    @classmethod
    def disconnected(cls, reason: FailureReason, detail: str = "") -> "ConnectionState":
        return cls(StateKind.DISCONNECTED, reason, detail)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str = "") -> "ConnectionState":
        return cls(StateKind.FAILED, reason, detail)

    @property
    def is_connected(self) -> bool:
        return self.kind is StateKind.CONNECTED

    @property
    def is_terminal(self) -> bool:
        """Disconnected and Failed states require teardown."""
        return self.kind in (StateKind.DISCONNECTED, StateKind.FAILED)

    def __str__(self) -> str:
        if self.kind is StateKind.FAILED and self.reason:
            text = f"Failed({self.reason.value})"
        elif self.kind is StateKind.DISCONNECTED and self.reason:
            text = f"Disconnected({self.reason.value})"
        else:
            text = self.kind.value.capitalize()
        return f"{text}: {self.detail}" if self.detail else text
