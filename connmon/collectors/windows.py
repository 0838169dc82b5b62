from __future__ import annotations
import ctypes, platform
from typing import Optional

from ..models import AddressFamily, Protocol
from .reader import TableSource

TCP_TABLE_OWNER_PID_ALL = 5
UDP_TABLE_OWNER_PID = 1
ERROR_INSUFFICIENT_BUFFER = 122


class IphlpapiTableSource(TableSource):
    """GetExtendedTcpTable / GetExtendedUdpTable over process-heap buffers."""

    def __init__(self, sort: bool = True):
        if platform.system() != "Windows":
            raise OSError("the IP helper table source needs Windows")
        self.sort = sort
        iphlpapi = ctypes.WinDLL("Iphlpapi.dll")
        kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)

        self._tcp = iphlpapi.GetExtendedTcpTable
        self._udp = iphlpapi.GetExtendedUdpTable
        for fn in (self._tcp, self._udp):
            fn.argtypes = [ctypes.c_void_p, ctypes.POINTER(ctypes.c_ulong), ctypes.c_int,
                           ctypes.c_ulong, ctypes.c_int, ctypes.c_ulong]
            fn.restype = ctypes.c_ulong

        kernel32.GetProcessHeap.restype = ctypes.c_void_p
        self._heap_alloc = kernel32.HeapAlloc
        self._heap_alloc.argtypes = [ctypes.c_void_p, ctypes.c_ulong, ctypes.c_size_t]
        self._heap_alloc.restype = ctypes.c_void_p
        self._heap_free = kernel32.HeapFree
        self._heap_free.argtypes = [ctypes.c_void_p, ctypes.c_ulong, ctypes.c_void_p]
        self._heap_free.restype = ctypes.c_int
        self._heap = kernel32.GetProcessHeap()

    def _call(self, protocol: Protocol, family: AddressFamily,
              buffer: Optional[int], size: ctypes.c_ulong) -> int:
        if protocol == Protocol.TCP:
            return self._tcp(buffer, ctypes.byref(size), self.sort, int(family), TCP_TABLE_OWNER_PID_ALL, 0)
        return self._udp(buffer, ctypes.byref(size), self.sort, int(family), UDP_TABLE_OWNER_PID, 0)

    def query_size(self, protocol: Protocol, family: AddressFamily) -> int:
        size = ctypes.c_ulong(0)
        status = self._call(protocol, family, None, size)
        if status not in (0, ERROR_INSUFFICIENT_BUFFER):
            raise OSError(status, f"{protocol.name} table size query failed")
        return size.value

    def allocate(self, size: int) -> int:
        ptr = self._heap_alloc(self._heap, 0, max(size, 1))
        if not ptr:
            raise MemoryError(f"HeapAlloc of {size} bytes failed")
        return ptr

    def query_fill(self, protocol: Protocol, family: AddressFamily, buffer: int, size: int) -> int:
        # the OS may shrink/grow the size in place; the caller keeps its own n
        return self._call(protocol, family, buffer, ctypes.c_ulong(size))

    def read(self, buffer: int, size: int) -> bytes:
        return ctypes.string_at(buffer, size)

    def release(self, buffer: int) -> None:
        if not self._heap_free(self._heap, 0, buffer):
            raise ctypes.WinError(ctypes.get_last_error())
