from __future__ import annotations
import logging, platform, threading
from typing import Callable, List, Optional

from ..config import CFG, ConfigError
from ..summary.aggregate import aggregate
from ..summary.snapshot import Report, ReportBoard
from .generic import PsutilConnectionReader
from .reader import ConnectionTableReader
from .resolver import ProcessNameResolver

logger = logging.getLogger(__name__)

IDLE, RUNNING, STOPPED = "idle", "running", "stopped"


def build_reader(resolver: Optional[ProcessNameResolver] = None):
    resolver = resolver or ProcessNameResolver()
    if platform.system() == 'Windows':
        from .windows import IphlpapiTableSource
        return ConnectionTableReader(IphlpapiTableSource(), resolver)
    return PsutilConnectionReader(resolver)


class MonitorScheduler:
    """Runs snapshot -> aggregate -> log cycles, one at a time.

    Each cycle is driven by a one-shot timer that is armed again only after
    the cycle has finished, so cycles never overlap and the schedule drifts
    by the cycle's own run time. ``stop()`` is cooperative: a timer that has
    already fired still enters its callback, sees the stop flag and returns.
    """

    def __init__(self, cfg: CFG, reader=None, board: Optional[ReportBoard] = None,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer):
        self.cfg = cfg
        self.reader = reader
        self.board = board if board is not None else ReportBoard()
        self.timer_factory = timer_factory
        self.state = IDLE
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def start(self) -> None:
        if self.state != IDLE:
            raise RuntimeError(f"monitor is {self.state}, cannot start")
        try:
            self.cfg.validate()
        except ConfigError as e:
            logger.error("invalid configuration, monitor not started: %s", e)
            raise
        logger.info("Start minimum_connection_count=%d monitor_interval_seconds=%d protocols=%s families=%s",
                    self.cfg.minimum_connection_count, self.cfg.monitor_interval_seconds,
                    ",".join(p.value for p in self.cfg.protocols),
                    ",".join(f.name.lower() for f in self.cfg.families))
        self.state = RUNNING
        self._arm()

    def stop(self) -> None:
        self._stop.set()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self.state != STOPPED:
            logger.info("Stop")
            self.state = STOPPED

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._stop.wait(timeout)

    def _arm(self) -> None:
        with self._lock:
            if self._stop.is_set():
                return
            timer = self.timer_factory(self.cfg.monitor_interval_seconds, self._on_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _on_timer(self) -> None:
        if self._stop.is_set():
            return
        try:
            self.run_cycle()
        except Exception:
            logger.exception("Timer error")
        self._arm()

    def run_cycle(self) -> List[Report]:
        if self.reader is None:
            self.reader = build_reader()
        reports: List[Report] = []
        for protocol in self.cfg.protocols:
            for family in self.cfg.families:
                records = self.reader.acquire_snapshot(protocol, family)
                details, totals = aggregate(records, self.cfg.minimum_connection_count)
                if totals:
                    logger.info("%s/%s totals:\n%s", protocol.name, family.name, "\n".join(totals))
                else:
                    logger.debug("%s/%s: no process above threshold", protocol.name, family.name)
                if details:
                    logger.debug("%s/%s connections:\n%s", protocol.name, family.name, "\n".join(details))
                reports.append(Report(protocol=protocol, family=family, record_count=len(records),
                                      detail_lines=details, totals_lines=totals))
        self.board.publish(reports)
        return reports
