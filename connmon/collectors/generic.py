from __future__ import annotations
import logging
from typing import Optional

import psutil

from ..models import (AddressFamily, ConnectionState, Protocol, Record,
                      TcpConnectionRecord, UdpConnectionRecord)
from .reader import enrich_and_dedupe
from .resolver import ProcessNameResolver

logger = logging.getLogger(__name__)

PSUTIL_STATE = {
    psutil.CONN_CLOSE: ConnectionState.CLOSED,
    psutil.CONN_LISTEN: ConnectionState.LISTENING,
    psutil.CONN_SYN_SENT: ConnectionState.SYN_SENT,
    psutil.CONN_SYN_RECV: ConnectionState.SYN_RCVD,
    psutil.CONN_ESTABLISHED: ConnectionState.ESTABLISHED,
    psutil.CONN_FIN_WAIT1: ConnectionState.FIN_WAIT1,
    psutil.CONN_FIN_WAIT2: ConnectionState.FIN_WAIT2,
    psutil.CONN_CLOSE_WAIT: ConnectionState.CLOSE_WAIT,
    psutil.CONN_CLOSING: ConnectionState.CLOSING,
    psutil.CONN_LAST_ACK: ConnectionState.LAST_ACK,
    psutil.CONN_TIME_WAIT: ConnectionState.TIME_WAIT,
    "DELETE_TCB": ConnectionState.DELETE_TCB,
}

KIND = {
    (Protocol.TCP, AddressFamily.IPV4): "tcp4",
    (Protocol.TCP, AddressFamily.IPV6): "tcp6",
    (Protocol.UDP, AddressFamily.IPV4): "udp4",
    (Protocol.UDP, AddressFamily.IPV6): "udp6",
}
UNSPECIFIED = {AddressFamily.IPV4: "0.0.0.0", AddressFamily.IPV6: "::"}


def _addr(a, family: AddressFamily) -> tuple[str, int]:
    # unconnected sockets report an empty raddr; the OS tables show the wildcard
    if not a:
        return (UNSPECIFIED[family], 0)
    return (a.ip if hasattr(a, 'ip') else a[0], a.port if hasattr(a, 'port') else a[1])


def to_record(c, protocol: Protocol, family: AddressFamily) -> Optional[Record]:
    if not c.pid:
        return None
    lip, lport = _addr(c.laddr, family)
    if protocol == Protocol.UDP:
        return UdpConnectionRecord(local_address=lip, local_port=lport, owning_pid=c.pid)
    rip, rport = _addr(c.raddr, family)
    return TcpConnectionRecord(local_address=lip, local_port=lport, remote_address=rip,
                               remote_port=rport, state=PSUTIL_STATE.get(c.status, ConnectionState.NONE),
                               owning_pid=c.pid)


class PsutilConnectionReader:
    """Portable stand-in for the IP helper reader, built on psutil.net_connections.

    Rows without an owning pid (sockets of other users without privileges)
    are skipped.
    """

    def __init__(self, resolver: Optional[ProcessNameResolver] = None):
        self.resolver = resolver or ProcessNameResolver()

    def acquire_snapshot(self, protocol: Protocol = Protocol.TCP,
                         family: AddressFamily = AddressFamily.IPV4) -> list[Record]:
        try:
            conns = psutil.net_connections(kind=KIND[(protocol, family)])
        except (psutil.Error, OSError):
            logger.exception("%s/%s connection list unavailable", protocol.name, family.name)
            return []
        records = [r for r in (to_record(c, protocol, family) for c in conns) if r is not None]
        return enrich_and_dedupe(records, self.resolver)
