"""User-facing status reporting for the supervised tunnel."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from ..config.models import Credential
from ..core.state import ConnectionState, StateKind
from ..utils.console import PaxConsole, console as default_console
from ..utils.logging import get_logger

logger = get_logger("core.status")

EXPIRY_WARNING_WINDOW = timedelta(hours=24)


class ExpirationLevel(str, Enum):
    UNKNOWN = "unknown"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ExpirationStatus:
    level: ExpirationLevel
    hours_left: Optional[int] = None

    @property
    def warning(self) -> bool:
        return self.level in (ExpirationLevel.EXPIRING_SOON, ExpirationLevel.EXPIRED)


def check_expiration(expires_at: Optional[datetime], now: Optional[datetime] = None) -> ExpirationStatus:
    """
    Compare a credential's expiration with the current time.

    Args:
        expires_at: Timezone-aware expiration time, or None
        now: Current time; defaults to the local clock

    Returns:
        ExpirationStatus describing how much time is left
    """
    if expires_at is None:
        return ExpirationStatus(ExpirationLevel.UNKNOWN)

    now = now or datetime.now().astimezone()
    remaining = expires_at - now
    hours_left = int(remaining.total_seconds() // 3600)

    if remaining.total_seconds() < 0:
        return ExpirationStatus(ExpirationLevel.EXPIRED, hours_left)
    if remaining < EXPIRY_WARNING_WINDOW:
        return ExpirationStatus(ExpirationLevel.EXPIRING_SOON, hours_left)
    return ExpirationStatus(ExpirationLevel.VALID, hours_left)


class StatusReporter:
    """Renders connection state, node metadata and retry notices."""

    def __init__(self, output: Optional[PaxConsole] = None, now: Optional[Callable[[], datetime]] = None):
        self.output = output or default_console
        self.now = now or (lambda: datetime.now().astimezone())

    def state_changed(self, state: ConnectionState) -> None:
        if state.kind is StateKind.CONNECTING:
            self.output.print_step("Connecting...")
        elif state.kind is StateKind.FAILED:
            self.output.print_error(str(state))
        elif state.kind is StateKind.DISCONNECTED:
            self.output.print_warning(str(state))

    def connected(self, credential: Credential, local_host: str, local_port: int) -> ExpirationStatus:
        """Show node information once the tunnel is up."""
        self.output.print_success(f"Tunnel established. SOCKS5: {local_host}:{local_port}")
        return self.node_info(credential)

    def node_info(self, credential: Credential) -> ExpirationStatus:
        """Print node metadata and the credential's expiration status."""
        self.output.print_field("Node", credential.target)
        self.output.print_field(
            "Info", f"{credential.region or 'UNK'} ({credential.auth_type.value})", style="cyan"
        )
        if credential.source_ref:
            self.output.print_field("Ref ", credential.source_ref, style="blue underline")

        status = check_expiration(credential.expires_at, self.now())
        self._print_expiration(credential, status)
        return status

    def _print_expiration(self, credential: Credential, status: ExpirationStatus) -> None:
        if status.level is ExpirationLevel.UNKNOWN:
            return

        until = credential.expires_at.strftime("%Y-%m-%d %H:%M:%S")

        if status.level is ExpirationLevel.EXPIRED:
            self.output.print_banner("!!! ACCOUNT EXPIRED !!!")
            self.output.print_error(f"Expired at: {until}")
        elif status.level is ExpirationLevel.EXPIRING_SOON:
            self.output.print_banner("!!! WARNING: EXPIRING SOON !!! (< 24h)", style="bold red")
            self.output.print_warning(f"Remaining: {status.hours_left} hours (Until: {until})")
        else:
            self.output.print_field("Valid until", until)

    def retrying(self, delay: float, state: ConnectionState) -> None:
        self.output.print_info(f"Reconnecting in {delay:g} seconds... (last error: {state})")
