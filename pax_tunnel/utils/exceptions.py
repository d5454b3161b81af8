"""Custom exception classes for the Pax tunnel supervisor."""

from typing import Optional


class PaxError(Exception):
    """Base exception for all Pax related errors."""
    pass


class ConfigurationError(PaxError):
    """Exception raised when configuration is invalid."""
    pass


class ValidationError(ConfigurationError):
    """Exception raised when a credential violates its schema."""
    pass


class FetchError(PaxError):
    """Exception raised when credentials cannot be fetched from the API."""
    pass


class ParseError(PaxError):
    """Exception raised when the API response is not a single JSON object."""
    pass


class KeyMaterialError(PaxError):
    """Exception raised when a private key cannot be materialized securely."""
    pass


class LaunchError(PaxError):
    """Exception raised when the SSH client cannot be spawned."""
    pass


class PortInUseError(LaunchError):
    """Exception raised when the local SOCKS port is already in use."""

    def __init__(self, port: int, process_info: Optional[str] = None):
        self.port = port
        self.process_info = process_info
        message = f"Port {port} is already in use"
        if process_info:
            message += f" by {process_info}"
        super().__init__(message)
