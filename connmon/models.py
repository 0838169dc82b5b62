from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Tuple, Union


class Protocol(str, Enum):
    TCP = "tcp"
    UDP = "udp"


class AddressFamily(IntEnum):
    IPV4 = 2   # AF_INET
    IPV6 = 23  # AF_INET6 as the Windows IP helper API numbers it


class ConnectionState(IntEnum):
    NONE = 0
    CLOSED = 1
    LISTENING = 2
    SYN_SENT = 3
    SYN_RCVD = 4
    ESTABLISHED = 5
    FIN_WAIT1 = 6
    FIN_WAIT2 = 7
    CLOSE_WAIT = 8
    CLOSING = 9
    LAST_ACK = 10
    TIME_WAIT = 11
    DELETE_TCB = 12

    @classmethod
    def from_raw(cls, value: int) -> "ConnectionState":
        try:
            return cls(value)
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class TcpConnectionRecord:
    local_address: str
    local_port: int
    remote_address: str
    remote_port: int
    state: ConnectionState
    owning_pid: int
    process_name: Optional[str] = None

    @property
    def endpoint(self) -> Tuple[str, int]:
        return (self.remote_address, self.remote_port)

    @property
    def state_label(self) -> str:
        return self.state.name


@dataclass(frozen=True)
class UdpConnectionRecord:
    local_address: str
    local_port: int
    owning_pid: int
    process_name: Optional[str] = None

    # a UDP listener row has no remote side; report on the bound endpoint
    @property
    def endpoint(self) -> Tuple[str, int]:
        return (self.local_address, self.local_port)

    @property
    def state_label(self) -> str:
        return "UDP"


Record = Union[TcpConnectionRecord, UdpConnectionRecord]
