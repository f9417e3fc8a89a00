"""Tests for the utilities module."""

from datetime import datetime
import socket

from webthing_fastapi import utilities


def test_timestamp():
    """Timestamps are in UTC, to the nearest second."""
    stamp = utilities.timestamp()
    assert stamp.endswith("+00:00")
    parsed = datetime.fromisoformat(stamp)
    assert parsed.microsecond == 0
    assert parsed.utcoffset().total_seconds() == 0


def test_get_addresses(mocker):
    """IPv6 addresses are bracketed, and duplicates removed."""
    mocker.patch("socket.gethostname", return_value="myhost")
    mocker.patch(
        "socket.getaddrinfo",
        return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("192.168.1.2", 0)),
            (socket.AF_INET, socket.SOCK_DGRAM, 17, "", ("192.168.1.2", 0)),
            (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("fe80::1%eth0", 0, 0, 2)),
        ],
    )
    assert utilities.get_addresses() == ["192.168.1.2", "[fe80::1]"]


def test_get_addresses_failure(mocker, caplog):
    """A lookup failure is logged, and no addresses are returned."""
    mocker.patch("socket.getaddrinfo", side_effect=OSError("no network"))
    assert utilities.get_addresses() == []
    assert "no network" in caplog.text
