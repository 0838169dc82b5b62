from __future__ import annotations
from itertools import groupby
from typing import Dict, Iterable, List, Tuple

from ..models import Record
from .naming import group_key, simple_process_name


def _endpoint_port(r: Record) -> int:
    return r.endpoint[1]


def group_by_process(records: Iterable[Record], minimum_connection_count: int) -> List[Tuple[str, List[Record]]]:
    """Process groups holding at least ``minimum_connection_count`` records, sorted by name ignoring case."""
    groups: Dict[str, List[Record]] = {}
    for r in records:
        groups.setdefault(group_key(r.process_name), []).append(r)
    return sorted(((k, v) for k, v in groups.items() if len(v) >= minimum_connection_count),
                  key=lambda kv: (kv[0].casefold(), kv[0]))


def detail_lines(groups: List[Tuple[str, List[Record]]]) -> List[str]:
    lines: List[str] = []
    for name, recs in groups:
        for r in sorted(recs, key=_endpoint_port):
            address, port = r.endpoint
            lines.append(f"{name}={address}:{port} {r.state_label}")
    return lines


def totals_lines(groups: List[Tuple[str, List[Record]]], minimum_connection_count: int) -> List[str]:
    # strictly more than the threshold: busy endpoints inside an already busy process
    lines: List[str] = []
    for name, recs in groups:
        simple = simple_process_name(name)
        parts = []
        for port, same_port in groupby(sorted(recs, key=_endpoint_port), key=_endpoint_port):
            count = len(list(same_port))
            if count > minimum_connection_count:
                parts.append(f"{simple}{port}={count}")
        if parts:
            lines.append(", ".join(parts))
    return lines


def aggregate(records: Iterable[Record], minimum_connection_count: int) -> Tuple[List[str], List[str]]:
    groups = group_by_process(records, minimum_connection_count)
    return detail_lines(groups), totals_lines(groups, minimum_connection_count)
