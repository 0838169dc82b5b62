"""Tests for connmon.collectors.windows."""

import platform

import pytest

from connmon.collectors.windows import IphlpapiTableSource
from connmon.models import AddressFamily, Protocol


@pytest.mark.skipif(platform.system() == "Windows", reason="checks the non-Windows guard")
def test_refuses_to_load_off_windows():
    with pytest.raises(OSError):
        IphlpapiTableSource()


@pytest.mark.skipif(platform.system() != "Windows", reason="needs the IP helper API")
def test_live_tcp_table_round_trip():
    """The live table decodes at the structure-derived offset without error."""
    from connmon.collectors.reader import ConnectionTableReader

    records = ConnectionTableReader(IphlpapiTableSource()).acquire_snapshot(Protocol.TCP, AddressFamily.IPV4)

    assert all(0 <= r.local_port <= 65535 and 0 <= r.remote_port <= 65535 for r in records)
