"""Discovery of an interface's hardware, IPv4 and IPv6 addresses."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Iterable, Optional, Tuple

import psutil

HW_ADDR_LEN = 6

FOUND_HW_ADDR = 0x01
FOUND_IP_ADDR = 0x02
FOUND_IP6_ADDR = 0x04

_DEV_PREFIX = "/dev/"


@dataclass(frozen=True)
class InterfaceAddresses:
    """What could be learned about one interface; missing parts are None."""

    name: str
    hw_addr: Optional[bytes] = None
    ip_addr: Optional[IPv4Address] = None
    ip6_addr: Optional[IPv6Address] = None

    @property
    def flags(self) -> int:
        """Bit 1: hardware address, bit 2: IPv4 address, bit 4: IPv6 address."""
        found = 0
        if self.hw_addr is not None:
            found |= FOUND_HW_ADDR
        if self.ip_addr is not None:
            found |= FOUND_IP_ADDR
        if self.ip6_addr is not None:
            found |= FOUND_IP6_ADDR
        return found


def _warn(message: str) -> None:
    print(message, file=sys.stderr)


def _parse_hw_addr(text: str) -> Optional[bytes]:
    digits = text.replace(":", "").replace("-", "").replace(".", "")
    try:
        raw = bytes.fromhex(digits)
    except ValueError:
        return None
    return raw if len(raw) == HW_ADDR_LEN else None


def _parse_ip6(text: str) -> Optional[IPv6Address]:
    try:
        address = ip_address(text.split("%", 1)[0])
    except ValueError:
        return None
    return address if isinstance(address, IPv6Address) else None


def _parse_ip4(text: str) -> Optional[IPv4Address]:
    try:
        address = ip_address(text)
    except ValueError:
        return None
    return address if isinstance(address, IPv4Address) else None


def _scan(interface: str, entries: Iterable) -> InterfaceAddresses:
    hw_addr: Optional[bytes] = None
    ip_addr: Optional[IPv4Address] = None
    ip6_addr: Optional[IPv6Address] = None

    for entry in entries:
        if hw_addr is not None and ip_addr is not None and ip6_addr is not None:
            break
        family = entry.family
        if family == psutil.AF_LINK:
            if hw_addr is None:
                hw_addr = _parse_hw_addr(entry.address or "")
        elif family == _AF_INET:
            if ip_addr is None:
                ip_addr = _parse_ip4(entry.address or "")
        elif family == _AF_INET6:
            if ip6_addr is None:
                candidate = _parse_ip6(entry.address or "")
                if candidate is not None and not (
                    candidate.is_link_local or candidate.is_site_local
                ):
                    ip6_addr = candidate

    if hw_addr is None:
        _warn(f"Error getting hardware address for interface: {interface}")
    if ip_addr is None:
        _warn(f"Unable to get IP address for interface: {interface}")
    return InterfaceAddresses(interface, hw_addr, ip_addr, ip6_addr)


import socket as _socket  # noqa: E402

_AF_INET = _socket.AF_INET
_AF_INET6 = _socket.AF_INET6


def get_interface_addresses(interface: str) -> InterfaceAddresses:
    """Look up the addresses of the named interface.

    A leading "/dev/" is accepted and ignored. Parts that cannot be found are
    reported on stderr and left as None; OSError propagates if the system
    cannot be queried at all.
    """
    name = interface[len(_DEV_PREFIX):] if interface.startswith(_DEV_PREFIX) else interface
    _warn(f"interface: {name}")
    table = psutil.net_if_addrs()
    return _scan(name, table.get(name, ()))


def split_device_name(device: str) -> Tuple[str, int]:
    """Split a device name such as "/dev/ge0" into ("/dev/ge", 0).

    Raises ValueError when the name does not end in a unit number.
    """
    stem = device.rstrip("0123456789")
    digits = device[len(stem):]
    if not digits:
        raise ValueError(f"{device} missing unit number")
    return stem, int(digits)


def format_mac(hw_addr: bytes) -> str:
    """Colon-separated lower-case hex form of a 6-byte hardware address."""
    raw = bytes(hw_addr)
    if len(raw) != HW_ADDR_LEN:
        raise ValueError(f"hardware address must be {HW_ADDR_LEN} bytes, got {len(raw)}")
    return ":".join(f"{octet:02x}" for octet in raw)