"""Configuration and credential data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..utils.exceptions import ValidationError

DEFAULT_API_URL = "https://example.com/api/auth.json"


class AuthType(str, Enum):
    """SSH authentication method."""
    PASSWORD = "password"
    KEY = "key"


def _valid_port(port: int) -> bool:
    return 1 <= port <= 65535


@dataclass(frozen=True)
class Credential:
    """Immutable SSH credential snapshot for one connection attempt."""
    auth_type: AuthType
    host: str
    user: str = "root"
    port: int = 22
    password: Optional[str] = None
    private_key: Optional[str] = None
    region: Optional[str] = None
    source_ref: Optional[str] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate the credential after initialization."""
        if not isinstance(self.auth_type, AuthType):
            raise ValidationError(f"Unknown auth_type: {self.auth_type!r}")

        if not self.host:
            raise ValidationError("host cannot be empty")

        if not self.user:
            raise ValidationError("user cannot be empty")

        if isinstance(self.port, bool) or not isinstance(self.port, int) or not _valid_port(self.port):
            raise ValidationError(f"port must be between 1 and 65535, got {self.port!r}")

        if self.auth_type is AuthType.KEY and not self.private_key:
            raise ValidationError("auth_type 'key' requires private_key")

        if self.auth_type is AuthType.PASSWORD and not self.password:
            raise ValidationError("auth_type 'password' requires password")

    @property
    def target(self) -> str:
        """Return ``user@host:port`` for display."""
        return f"{self.user}@{self.host}:{self.port}"


@dataclass
class AppConfig:
    """Complete application configuration."""
    api_url: str = DEFAULT_API_URL
    api_timeout: float = 10.0

    host: Optional[str] = None
    user: Optional[str] = None
    ssh_port: int = 22
    password: Optional[str] = None
    private_key: Optional[str] = None

    local_host: str = "127.0.0.1"
    local_port: int = 1080
    connect_timeout: float = 10.0
    silent: bool = False
    compression: bool = True
    ssh_options: list[str] = field(default_factory=list)

    grace_period: float = 5.0
    poll_interval: float = 0.5

    backoff_initial: float = 5.0
    backoff_max: float = 60.0
    backoff_factor: float = 2.0

    def __post_init__(self):
        """Validate complete configuration."""
        if not self.manual_mode and not self.api_url:
            raise ValueError("Either an API URL or a host must be provided")

        if self.api_timeout <= 0:
            raise ValueError("API timeout must be positive")

        if not _valid_port(self.ssh_port):
            raise ValueError("SSH port must be between 1 and 65535")

        if not _valid_port(self.local_port):
            raise ValueError("Local port must be between 1 and 65535")

        if self.connect_timeout <= 0:
            raise ValueError("Connect timeout must be positive")

        if self.grace_period < 0 or self.poll_interval <= 0:
            raise ValueError("Grace period and poll interval must be positive")

        if self.backoff_initial <= 0 or self.backoff_max < self.backoff_initial:
            raise ValueError("Backoff maximum must be at least the initial delay")

        if self.backoff_factor <= 1:
            raise ValueError("Backoff factor must be greater than 1")

    @property
    def manual_mode(self) -> bool:
        """Credentials come from local arguments rather than the API."""
        return bool(self.host)
