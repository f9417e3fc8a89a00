"""Utility functions used by WebThing-FastAPI."""

from __future__ import annotations
from datetime import datetime, timezone
import logging
import socket

_LOGGER = logging.getLogger(__name__)


def timestamp() -> str:
    """Get the current time as a string.

    Timestamps are always in UTC and are truncated to whole seconds, which
    is the format existing Web Thing clients expect.

    :return: The current time in the form ``YYYY-mm-ddTHH:MM:SS+00:00``.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


def get_addresses() -> list[str]:
    """List the IP addresses of this machine.

    These are used to build the list of acceptable ``Host`` headers. IPv6
    addresses are wrapped in square brackets, as they would appear in a URL.
    Lookup failures are logged and result in an empty list, as the loopback
    names are always allowed anyway.

    :return: a sorted list of addresses, without duplicates.
    """
    addresses: set[str] = set()
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None)
    except OSError as e:
        _LOGGER.warning("Could not look up local addresses: %s", e)
        return []
    for family, _type, _proto, _canonname, sockaddr in infos:
        address = str(sockaddr[0])
        if family == socket.AF_INET6:
            # Strip any scope ID, e.g. fe80::1%eth0
            address = f"[{address.split('%')[0]}]"
        addresses.add(address)
    return sorted(addresses)
