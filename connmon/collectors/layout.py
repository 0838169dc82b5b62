"""Byte layout of the IP helper owner-pid connection tables.

Each table starts with a DWORD entry count followed by ``count`` rows of a
fixed stride. The structures below mirror the Windows definitions and are
declared little-endian so the same decoders run on any host. Decoding works
on a plain ``bytes`` copy of the table; nothing here touches the OS.
"""
from __future__ import annotations
import ctypes
from dataclasses import dataclass
from typing import Callable, Iterator, Type

from ..models import (AddressFamily, ConnectionState, Protocol,
                      Record, TcpConnectionRecord, UdpConnectionRecord)
from ..utils.net import address_text, port_from_field

DWORD = ctypes.c_uint32
PORT_FIELD = ctypes.c_ubyte * 4
IN_ADDR = ctypes.c_ubyte * 4
IN6_ADDR = ctypes.c_ubyte * 16
COUNT_SIZE = ctypes.sizeof(DWORD)


class TableDecodeError(ValueError):
    """The buffer does not hold the rows its entry count announces."""


class MIB_TCPROW_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("state", DWORD), ("localAddr", IN_ADDR), ("localPort", PORT_FIELD),
                ("remoteAddr", IN_ADDR), ("remotePort", PORT_FIELD), ("owningPid", DWORD)]

class MIB_TCPTABLE_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("dwNumEntries", DWORD), ("table", MIB_TCPROW_OWNER_PID * 1)]

class MIB_UDPROW_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("localAddr", IN_ADDR), ("localPort", PORT_FIELD), ("owningPid", DWORD)]

class MIB_UDPTABLE_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("dwNumEntries", DWORD), ("table", MIB_UDPROW_OWNER_PID * 1)]

class MIB_TCP6ROW_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("localAddr", IN6_ADDR), ("localScopeId", DWORD), ("localPort", PORT_FIELD),
                ("remoteAddr", IN6_ADDR), ("remoteScopeId", DWORD), ("remotePort", PORT_FIELD),
                ("state", DWORD), ("owningPid", DWORD)]

class MIB_TCP6TABLE_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("dwNumEntries", DWORD), ("table", MIB_TCP6ROW_OWNER_PID * 1)]

class MIB_UDP6ROW_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("localAddr", IN6_ADDR), ("localScopeId", DWORD), ("localPort", PORT_FIELD),
                ("owningPid", DWORD)]

class MIB_UDP6TABLE_OWNER_PID(ctypes.LittleEndianStructure):
    _fields_ = [("dwNumEntries", DWORD), ("table", MIB_UDP6ROW_OWNER_PID * 1)]


def _tcp4(row: MIB_TCPROW_OWNER_PID) -> TcpConnectionRecord:
    return TcpConnectionRecord(
        local_address=address_text(row.localAddr), local_port=port_from_field(row.localPort),
        remote_address=address_text(row.remoteAddr), remote_port=port_from_field(row.remotePort),
        state=ConnectionState.from_raw(row.state), owning_pid=int(row.owningPid))

def _udp4(row: MIB_UDPROW_OWNER_PID) -> UdpConnectionRecord:
    return UdpConnectionRecord(
        local_address=address_text(row.localAddr), local_port=port_from_field(row.localPort),
        owning_pid=int(row.owningPid))

def _tcp6(row: MIB_TCP6ROW_OWNER_PID) -> TcpConnectionRecord:
    return TcpConnectionRecord(
        local_address=address_text(row.localAddr), local_port=port_from_field(row.localPort),
        remote_address=address_text(row.remoteAddr), remote_port=port_from_field(row.remotePort),
        state=ConnectionState.from_raw(row.state), owning_pid=int(row.owningPid))

def _udp6(row: MIB_UDP6ROW_OWNER_PID) -> UdpConnectionRecord:
    return UdpConnectionRecord(
        local_address=address_text(row.localAddr), local_port=port_from_field(row.localPort),
        owning_pid=int(row.owningPid))


@dataclass(frozen=True)
class TableLayout:
    table: Type[ctypes.Structure]
    row: Type[ctypes.Structure]
    to_record: Callable[[ctypes.Structure], Record]

    @property
    def row_offset(self) -> int:
        # offset of the first row inside the one-row table struct, so any
        # padding after the count field is taken into account
        return self.table.table.offset

    @property
    def stride(self) -> int:
        return ctypes.sizeof(self.row)


LAYOUTS = {
    (Protocol.TCP, AddressFamily.IPV4): TableLayout(MIB_TCPTABLE_OWNER_PID, MIB_TCPROW_OWNER_PID, _tcp4),
    (Protocol.UDP, AddressFamily.IPV4): TableLayout(MIB_UDPTABLE_OWNER_PID, MIB_UDPROW_OWNER_PID, _udp4),
    (Protocol.TCP, AddressFamily.IPV6): TableLayout(MIB_TCP6TABLE_OWNER_PID, MIB_TCP6ROW_OWNER_PID, _tcp6),
    (Protocol.UDP, AddressFamily.IPV6): TableLayout(MIB_UDP6TABLE_OWNER_PID, MIB_UDP6ROW_OWNER_PID, _udp6),
}


def layout_for(protocol: Protocol, family: AddressFamily) -> TableLayout:
    try:
        return LAYOUTS[(Protocol(protocol), AddressFamily(family))]
    except (KeyError, ValueError):
        raise ValueError(f"no table layout for {protocol!r}/{family!r}") from None


def decode_count(data: bytes) -> int:
    if len(data) < COUNT_SIZE:
        raise TableDecodeError(f"table of {len(data)} bytes has no entry count")
    return int.from_bytes(bytes(data[:COUNT_SIZE]), "little")


def iter_records(data: bytes, layout: TableLayout) -> Iterator[Record]:
    """Yield exactly ``count`` records; trailing bytes past the last row are ignored."""
    count = decode_count(data)
    stride = layout.stride
    for i in range(count):
        offset = layout.row_offset + i * stride
        if offset + stride > len(data):
            raise TableDecodeError(
                f"row {i} of {count} needs bytes {offset}..{offset + stride}, table holds {len(data)}")
        yield layout.to_record(layout.row.from_buffer_copy(data, offset))
