"""Network utilities for local SOCKS port checks."""

import socket

from ..utils.logging import get_logger

logger = get_logger("core.network")


def is_port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """
    Check if a port is already in use.

    Args:
        port: Port number to check
        host: Host to check (default: 127.0.0.1)

    Returns:
        True if port is in use, False otherwise
    """
    try:
        with socket.create_connection((_probe_address(host), port), timeout=1):
            return True
    except ConnectionRefusedError:
        return False
    except OSError as e:
        logger.warning(f"Error checking port {port}: {e}")
        return False


def probe_socks_port(host: str = "127.0.0.1", port: int = 1080, timeout: float = 1.0) -> bool:
    """
    Test whether the local SOCKS5 listener accepts connections.

    Args:
        host: SOCKS5 proxy host
        port: SOCKS5 proxy port
        timeout: Connection timeout in seconds

    Returns:
        True if the listener is accepting connections
    """
    try:
        with socket.create_connection((_probe_address(host), port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug(f"SOCKS5 port {host}:{port} not accepting connections: {e}")
        return False


def _probe_address(host: str) -> str:
    """Map wildcard bind addresses to loopback for probing."""
    if host in ("", "0.0.0.0", "*"):
        return "127.0.0.1"
    if host == "::":
        return "::1"
    return host
