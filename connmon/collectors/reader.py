from __future__ import annotations
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Iterable, Iterator, Optional

from ..models import AddressFamily, Protocol, Record
from .layout import TableDecodeError, iter_records, layout_for
from .resolver import ProcessNameResolver

logger = logging.getLogger(__name__)


class TableSource:
    """OS connection-table query, split into the two-call size negotiation.

    ``query_size`` reports how many bytes the table needs right now;
    ``query_fill`` writes the table into a buffer of that size and returns 0
    on success. Any other status means the table is not available this time.
    Buffers come from ``allocate`` and must go back through ``release``.
    """

    def query_size(self, protocol: Protocol, family: AddressFamily) -> int:
        raise NotImplementedError

    def allocate(self, size: int) -> Any:
        raise NotImplementedError

    def query_fill(self, protocol: Protocol, family: AddressFamily, buffer: Any, size: int) -> int:
        raise NotImplementedError

    def read(self, buffer: Any, size: int) -> bytes:
        raise NotImplementedError

    def release(self, buffer: Any) -> None:
        raise NotImplementedError


@contextmanager
def scoped_buffer(source: TableSource, size: int) -> Iterator[Any]:
    buffer = source.allocate(size)
    try:
        yield buffer
    finally:
        source.release(buffer)


def enrich_and_dedupe(records: Iterable[Record], resolver: ProcessNameResolver) -> list[Record]:
    """Attach process names, then collapse records with identical fields (first one wins)."""
    resolver.refresh()
    named = (replace(r, process_name=resolver.resolve(r.owning_pid)) for r in records)
    return list(dict.fromkeys(named))


class ConnectionTableReader:
    def __init__(self, source: TableSource, resolver: Optional[ProcessNameResolver] = None):
        self.source = source
        self.resolver = resolver or ProcessNameResolver()

    def _read_table(self, protocol: Protocol, family: AddressFamily) -> Optional[bytes]:
        size = self.source.query_size(protocol, family)
        with scoped_buffer(self.source, size) as buffer:
            status = self.source.query_fill(protocol, family, buffer, size)
            if status != 0:
                logger.error("%s/%s table query returned status %d, no data this cycle",
                             protocol.name, family.name, status)
                return None
            return self.source.read(buffer, size)

    def acquire_snapshot(self, protocol: Protocol = Protocol.TCP,
                         family: AddressFamily = AddressFamily.IPV4) -> list[Record]:
        """Read, decode and name one table. Never raises; failures give an empty or partial list."""
        records: list[Record] = []
        try:
            layout = layout_for(protocol, family)
            data = self._read_table(protocol, family)
            if data is None:
                return []
            for record in iter_records(data, layout):
                records.append(record)
        except TableDecodeError:
            logger.exception("%s/%s table decode stopped after %d rows",
                             protocol.name, family.name, len(records))
        except MemoryError:
            logger.error("could not allocate the %s/%s table buffer", protocol.name, family.name)
            return []
        except Exception:
            logger.exception("%s/%s table query failed", protocol.name, family.name)
            return []
        return enrich_and_dedupe(records, self.resolver)
