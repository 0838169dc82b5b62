from __future__ import annotations
import ipaddress


def port_from_field(raw: bytes) -> int:
    """Recover a port from a 4-byte table field.

    The low two bytes carry the port in network order, so they are swapped
    back; the upper two bytes are padding.
    """
    return (raw[0] << 8) | raw[1]


def address_text(b: bytes) -> str:
    # 4 bytes -> dotted quad, 16 bytes -> compressed IPv6
    return str(ipaddress.ip_address(bytes(b)))
