"""
Pax - a supervised SSH SOCKS5 proxy tunnel.

This package provides functionality to:
- Resolve SSH credentials from a remote API or local arguments
- Run ssh in dynamic port forwarding mode as a SOCKS5 proxy
- Detect disconnects and reconnect with backoff
"""

__version__ = "1.0.0"
