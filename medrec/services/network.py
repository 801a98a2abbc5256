"""Local network discovery for clients on the same LAN."""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

# UDP connect never sends a packet; it only asks the kernel for a route.
_PROBE_ADDRESS = ("10.255.255.255", 1)


def get_lan_ip() -> str:
    """Return this host's first non-loopback IPv4 address, or ``localhost``."""

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(_PROBE_ADDRESS)
            address = probe.getsockname()[0]
    except OSError:
        logger.debug("no routable IPv4 interface found")
        return "localhost"
    if not address or address.startswith("127.") or address == "0.0.0.0":
        return "localhost"
    return address
