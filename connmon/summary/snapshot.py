from __future__ import annotations
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from ..models import AddressFamily, Protocol


@dataclass
class Report:
    protocol: Protocol
    family: AddressFamily
    record_count: int
    detail_lines: List[str]
    totals_lines: List[str]
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol.value,
            "family": self.family.name.lower(),
            "taken_at": self.taken_at.isoformat(),
            "record_count": self.record_count,
            "totals": list(self.totals_lines),
            "details": list(self.detail_lines),
        }


class ReportBoard:
    """Latest report per protocol/family, shared between the monitor and the web view."""

    def __init__(self):
        self.lock = threading.Lock()
        self.reports: Dict[Tuple[Protocol, AddressFamily], Report] = {}
        self.cycles = 0

    def publish(self, reports: List[Report]) -> None:
        with self.lock:
            for r in reports:
                self.reports[(r.protocol, r.family)] = r
            self.cycles += 1

    def latest(self) -> List[Report]:
        with self.lock:
            return [self.reports[k] for k in sorted(self.reports, key=lambda k: (k[0].value, int(k[1])))]
