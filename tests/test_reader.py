"""Tests for connmon.collectors.reader."""

import logging

import pytest

from connmon.collectors.reader import ConnectionTableReader, scoped_buffer
from connmon.collectors.resolver import ProcessNameResolver
from connmon.models import AddressFamily, ConnectionState, Protocol, TcpConnectionRecord
from fakes import FakeTableSource
from tablebuf import table, tcp_row, udp_row

TCP4 = (Protocol.TCP, AddressFamily.IPV4)
UDP4 = (Protocol.UDP, AddressFamily.IPV4)


def reader_errors(caplog):
    return [r for r in caplog.records
            if r.name == "connmon.collectors.reader" and r.levelno >= logging.ERROR]


class TestAcquireSnapshot:
    """Successful two-phase reads."""

    def test_round_trip(self, resolver):
        """N well-formed rows come back as N named records."""
        source = FakeTableSource({TCP4: table([
            tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 100),
            tcp_row("10.0.0.5", 51001, "10.1.1.2", 80, 8, 200),
            tcp_row("10.0.0.5", 51002, "10.1.1.3", 8080, 11, 300),
        ])})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert records == [
            TcpConnectionRecord("10.0.0.5", 51000, "10.1.1.1", 443, ConnectionState.ESTABLISHED, 100, "alpha"),
            TcpConnectionRecord("10.0.0.5", 51001, "10.1.1.2", 80, ConnectionState.CLOSE_WAIT, 200, "beta"),
            TcpConnectionRecord("10.0.0.5", 51002, "10.1.1.3", 8080, ConnectionState.TIME_WAIT, 300, "svc.host"),
        ]

    def test_fill_uses_negotiated_size(self, resolver):
        """The second call gets exactly the size the first call reported."""
        data = table([tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 100)])
        source = FakeTableSource({TCP4: data}, extra=32)

        ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert source.fill_sizes == [len(data) + 32]
        assert len(source.allocated[0]) == len(data) + 32

    def test_oversized_buffer_stops_at_count(self, resolver):
        source = FakeTableSource({TCP4: table([tcp_row("10.0.0.5", 1, "10.1.1.1", 443, 5, 100)])}, extra=96)

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert len(records) == 1

    def test_identical_rows_are_collapsed(self, resolver):
        """Duplicate tuples collapse; first-seen order is kept."""
        a = tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 100)
        b = tcp_row("10.0.0.5", 51001, "10.1.1.1", 443, 5, 100)
        source = FakeTableSource({TCP4: table([a, b, a, b, a])})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert [r.local_port for r in records] == [51000, 51001]

    def test_rows_differing_only_in_pid_are_kept(self, resolver):
        source = FakeTableSource({TCP4: table([
            tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 100),
            tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 200),
        ])})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert len(records) == 2

    def test_unresolved_pid_is_kept(self, resolver):
        """A pid missing from the process list yields a record without a name."""
        source = FakeTableSource({TCP4: table([tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 4242)])})

        (record,) = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert record.owning_pid == 4242
        assert record.process_name is None

    def test_udp_table(self, resolver):
        source = FakeTableSource({UDP4: table([udp_row("0.0.0.0", 53, 100)])})

        (record,) = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.UDP)

        assert (record.local_address, record.local_port, record.process_name) == ("0.0.0.0", 53, "alpha")

    def test_process_list_read_once_per_snapshot(self):
        calls = []

        def lister():
            calls.append(1)
            return [(100, "alpha")]

        source = FakeTableSource({TCP4: table([
            tcp_row("10.0.0.5", p, "10.1.1.1", 443, 5, 100) for p in range(50000, 50010)
        ])})

        ConnectionTableReader(source, ProcessNameResolver(lister)).acquire_snapshot(Protocol.TCP)

        assert len(calls) == 1

    def test_buffer_released_on_success(self, resolver):
        source = FakeTableSource({TCP4: table([tcp_row("10.0.0.5", 1, "10.1.1.1", 443, 5, 100)])})

        ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert source.all_released


class TestAcquireSnapshotFailures:
    """Failures turn into empty or partial results, never exceptions."""

    def test_nonzero_status_gives_empty_result(self, resolver, caplog):
        """A failing fill returns [] with one logged error and no exception."""
        source = FakeTableSource({TCP4: table([tcp_row("10.0.0.5", 1, "10.1.1.1", 443, 5, 100)])}, status=122)

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert records == []
        assert len(reader_errors(caplog)) == 1
        assert "status 122" in reader_errors(caplog)[0].getMessage()
        assert source.all_released

    def test_partial_decode_keeps_leading_rows(self, resolver, caplog):
        """A short table gives the rows that fit and logs the decode error."""
        data = table([tcp_row("10.0.0.5", 1, "10.1.1.1", 443, 5, 100),
                      tcp_row("10.0.0.5", 2, "10.1.1.1", 443, 5, 100)], count=3)
        source = FakeTableSource({TCP4: data})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert [r.local_port for r in records] == [1, 2]
        assert all(r.process_name == "alpha" for r in records)
        assert len(reader_errors(caplog)) == 1
        assert source.all_released

    @pytest.mark.parametrize("stage", ["query_fill", "read"])
    def test_buffer_released_when_os_call_raises(self, resolver, caplog, stage):
        source = FakeTableSource({TCP4: table([])}, fail_on={stage: OSError(5, "access denied")})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert records == []
        assert source.all_released
        assert len(source.released) == 1
        assert len(reader_errors(caplog)) == 1

    def test_allocation_failure(self, resolver, caplog):
        source = FakeTableSource(fail_on={"allocate": MemoryError()})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert records == []
        assert source.released == []
        assert len(reader_errors(caplog)) == 1

    def test_size_query_failure(self, resolver, caplog):
        source = FakeTableSource(fail_on={"query_size": OSError(87, "bad parameter")})

        records = ConnectionTableReader(source, resolver).acquire_snapshot(Protocol.TCP)

        assert records == []
        assert source.allocated == []
        assert len(reader_errors(caplog)) == 1

    def test_process_list_failure_keeps_records(self, caplog):
        """A broken process list costs the names, never the snapshot."""
        def lister():
            raise RuntimeError("process list broke")

        source = FakeTableSource({TCP4: table([tcp_row("10.0.0.5", 51000, "10.1.1.1", 443, 5, 100)])})

        records = ConnectionTableReader(source, ProcessNameResolver(lister)).acquire_snapshot(Protocol.TCP)

        assert records == [
            TcpConnectionRecord("10.0.0.5", 51000, "10.1.1.1", 443, ConnectionState.ESTABLISHED, 100, None),
        ]
        assert source.all_released
        assert any(r.name == "connmon.collectors.resolver" and r.levelno == logging.ERROR
                   for r in caplog.records)


class TestScopedBuffer:
    """Tests for the scoped_buffer context manager."""

    def test_releases_when_body_raises(self):
        source = FakeTableSource()

        with pytest.raises(RuntimeError):
            with scoped_buffer(source, 16) as buf:
                assert len(buf) == 16
                raise RuntimeError("boom")

        assert source.all_released
