"""Tests for connmon.main."""

import pytest

from connmon import main as main_mod
from connmon.collectors import loop
from connmon.models import AddressFamily, ConnectionState, Protocol, TcpConnectionRecord
from fakes import FakeReader


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep main() from reconfiguring the root logger under pytest."""
    monkeypatch.setattr(main_mod, "configure_logging", lambda *a, **k: None)


class TestMain:
    """Tests for main()."""

    def test_once_prints_single_cycle(self, monkeypatch, capsys):
        records = [TcpConnectionRecord("10.0.0.2", 50000 + i, "10.9.9.9", 443,
                                       ConnectionState.ESTABLISHED, 1, "web") for i in range(3)]
        monkeypatch.setattr(loop, "build_reader", lambda: FakeReader({(Protocol.TCP, AddressFamily.IPV4): records}))

        rc = main_mod.main(["--once", "--min-connections", "2", "--interval", "5"])

        out = capsys.readouterr().out
        assert rc == 0
        assert "TCP/IPV4: 3 connections" in out
        assert "web443=3" in out
        assert "web=10.9.9.9:443 ESTABLISHED" in out

    def test_config_error_exits_2(self, caplog):
        rc = main_mod.main(["--min-connections", "2"])

        assert rc == 2
        assert "configuration error" in caplog.text

    def test_enter_stops_monitor(self, monkeypatch, capsys):
        started = []

        class Recorder:
            def __init__(self, cfg, board=None):
                self.cfg = cfg

            def start(self):
                started.append("start")

            def stop(self):
                started.append("stop")

        monkeypatch.setattr(main_mod, "MonitorScheduler", Recorder)
        monkeypatch.setattr("builtins.input", lambda: "")

        rc = main_mod.main(["--min-connections", "2", "--interval", "5"])

        assert rc == 0
        assert started == ["start", "stop"]
        assert "Press [Enter] to stop" in capsys.readouterr().out

    def test_bad_log_level_rejected_by_argparse(self):
        with pytest.raises(SystemExit):
            main_mod.parse_args(["--log-level", "chatty"])
