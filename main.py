#!/usr/bin/env python3
"""
Entry point for the Pax SSH SOCKS5 tunnel.
Allows running from a checkout without installing the package.
"""

from pax_tunnel.main import main

if __name__ == "__main__":
    main()
