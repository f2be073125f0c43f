"""Per-flow traffic history: direction finding and accounting of IP packets."""

from __future__ import annotations

import socket
from array import array
from dataclasses import dataclass, field, replace
from enum import Enum
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Any, Callable, Optional, Tuple, Union

from .hashing import AddrPair, BucketTable, addr_table
from .protocols import tcp_ports

HISTORY_LENGTH = 65000
RESOLUTION = 2

IPV4_HEADER_LEN = 20
IPV6_HEADER_LEN = 40

_IPPROTO_TCP = 6
_IPPROTO_UDP = 17

IPAddress = Union[IPv4Address, IPv6Address]
Resolver = Callable[[IPAddress], Any]


class BandwidthUnit(Enum):
    """What a packet adds to the counters."""

    BITS = "bits"
    BYTES = "bytes"
    PACKETS = "packets"


@dataclass
class FilterOptions:
    """Settings that steer how packets are attributed to flows."""

    netfilter: bool = False
    netfilter_net: IPv4Address = IPv4Address(0)
    netfilter_mask: IPv4Address = IPv4Address(0)
    netfilter6: bool = False
    netfilter6_net: IPv6Address = IPv6Address(0)
    netfilter6_mask: IPv6Address = IPv6Address(0)
    link_local: bool = False
    promiscuous_but_choosy: bool = False
    bandwidth_unit: BandwidthUnit = BandwidthUnit.BITS


@dataclass(frozen=True)
class LocalInterface:
    """Addresses of the interface being watched; unknown parts are None."""

    hw_addr: Optional[bytes] = None
    ip_addr: Optional[IPv4Address] = None
    ip6_addr: Optional[IPv6Address] = None


def _zeroed() -> array:
    return array("q", [0]) * HISTORY_LENGTH


@dataclass
class HistoryRecord:
    """Counts per history slot for one flow, plus running totals."""

    recv: array = field(default_factory=_zeroed)
    sent: array = field(default_factory=_zeroed)
    total_sent: int = 0
    total_recv: int = 0
    last_write: int = 0


@dataclass(frozen=True)
class _IPHeader:
    version: int
    protocol: int
    src: IPAddress
    dst: IPAddress
    transport_offset: int


def _parse_header(packet: bytes) -> Optional[_IPHeader]:
    if not packet:
        return None
    version = packet[0] >> 4
    if version == 4 and len(packet) >= IPV4_HEADER_LEN:
        return _IPHeader(
            version=4,
            protocol=packet[9],
            src=ip_address(bytes(packet[12:16])),
            dst=ip_address(bytes(packet[16:20])),
            transport_offset=(packet[0] & 0x0F) * 4,
        )
    if version == 6 and len(packet) >= IPV6_HEADER_LEN:
        return _IPHeader(
            version=6,
            protocol=packet[6],
            src=ip_address(bytes(packet[8:24])),
            dst=ip_address(bytes(packet[24:40])),
            transport_offset=IPV6_HEADER_LEN,
        )
    return None


def _ports(packet: bytes, header: _IPHeader) -> Tuple[int, int]:
    if header.protocol not in (_IPPROTO_TCP, _IPPROTO_UDP):
        return 0, 0
    try:
        return tcp_ports(packet, header.transport_offset)
    except ValueError:
        return 0, 0


def _pair_from_header(packet: bytes, header: Optional[_IPHeader], flip: bool) -> AddrPair:
    if header is None:
        return AddrPair(af=0)
    af = socket.AF_INET if header.version == 4 else socket.AF_INET6
    src_port, dst_port = _ports(packet, header)
    if not flip:
        return AddrPair(af=af, src=header.src, src_port=src_port,
                        dst=header.dst, dst_port=dst_port)
    return AddrPair(af=af, src=header.dst, src_port=dst_port,
                    dst=header.src, dst_port=src_port)


def assign_addr_pair(packet: bytes, flip: bool) -> AddrPair:
    """Flow key for an IP packet, with source and destination swapped if flip.

    Ports are taken from TCP and UDP headers only. Packets that are not
    IPv4 or IPv6 give an all-zero key with address family 0.
    """
    return _pair_from_header(packet, _parse_header(packet), flip)


def _masked(address: IPAddress, mask: IPAddress) -> int:
    return int(address) & int(mask)


class TrafficHistory:
    """Flow table and totals, updated packet by packet and rotated each interval."""

    def __init__(
        self,
        options: Optional[FilterOptions] = None,
        local: Optional[LocalInterface] = None,
        resolver: Optional[Resolver] = None,
    ) -> None:
        self.options = options or FilterOptions()
        self.local = local or LocalInterface()
        self.resolver = resolver
        self.history: BucketTable = addr_table()
        self.totals = HistoryRecord()
        self.pos = 0
        self.length = 1

    def _in_filter_net(self, address: IPAddress) -> bool:
        opts = self.options
        return _masked(address, opts.netfilter_mask) == int(opts.netfilter_net)

    def _in_filter_net6(self, address: IPAddress) -> bool:
        opts = self.options
        return _masked(address, opts.netfilter6_mask) == int(opts.netfilter6_net)

    def _direction_from_hosts(
        self, header: Optional[_IPHeader], hw_dir: int
    ) -> Optional[Tuple[bool, int]]:
        """(flip, direction) when the netfilter is off; None to drop."""
        if hw_dir == 1:
            return False, 1
        if hw_dir == 0:
            return True, 0
        if header is None:
            return None
        local = self.local
        if header.version == 4:
            if local.ip_addr is not None and header.src == local.ip_addr:
                return False, 1
            if local.ip_addr is not None and header.dst == local.ip_addr:
                return True, 0
        else:
            if local.ip6_addr is not None and header.src == local.ip6_addr:
                return False, 1
            if local.ip6_addr is not None and header.dst == local.ip6_addr:
                return True, 0
        if header.dst.is_multicast:
            return True, 0
        if self.options.promiscuous_but_choosy:
            return None
        if header.version == 4:
            # Neither end is ours: order the pair by address and count as incoming.
            return int(header.src) < int(header.dst), 0
        return None

    def handle_ip_packet(self, packet: bytes, hw_dir: int, payload_len: int) -> None:
        """Account one IP packet.

        hw_dir is 1 for a packet leaving the interface, 0 for one arriving
        and -1 when the link layer could not tell.
        """
        packet = bytes(packet)
        if payload_len < IPV4_HEADER_LEN or not packet:
            return
        version = packet[0] >> 4
        if version == 6 and payload_len < IPV6_HEADER_LEN:
            return
        header = _parse_header(packet)
        if header is None and version in (4, 6):
            return
        opts = self.options

        pair = AddrPair(af=0)
        direction = 0

        if (version == 4 and not opts.netfilter) or (version == 6 and not opts.netfilter6):
            choice = self._direction_from_hosts(header, hw_dir)
            if choice is None:
                return
            flip, direction = choice
            pair = _pair_from_header(packet, header, flip)

        if version == 4 and opts.netfilter:
            src_in = self._in_filter_net(header.src)
            dst_in = self._in_filter_net(header.dst)
            if src_in and not dst_in:
                pair, direction = _pair_from_header(packet, header, False), 1
            elif dst_in and not src_in:
                pair, direction = _pair_from_header(packet, header, True), 0
            else:
                return

        if version == 6 and opts.netfilter6:
            src_in = self._in_filter_net6(header.src)
            dst_in = self._in_filter_net6(header.dst)
            if src_in and not dst_in:
                pair, direction = _pair_from_header(packet, header, False), 1
            elif dst_in and not src_in:
                pair, direction = _pair_from_header(packet, header, True), 0
            else:
                return

        if (
            version == 6
            and not opts.link_local
            and (header.dst.is_link_local or header.src.is_link_local)
        ):
            return

        if header is not None:
            pair = replace(pair, protocol=header.protocol)
            if self.resolver is not None:
                self.resolver(header.dst)
                self.resolver(header.src)

        try:
            record = self.history.find(pair)
        except KeyError:
            record = HistoryRecord()
            self.history.insert(pair, record)

        if opts.bandwidth_unit is BandwidthUnit.PACKETS:
            amount = 1
        else:
            amount = payload_len

        record.last_write = self.pos
        if header is not None and header.src == pair.src:
            record.sent[self.pos] += amount
            record.total_sent += amount
        else:
            record.recv[self.pos] += amount
            record.total_recv += amount

        if direction == 0:
            self.totals.recv[self.pos] += amount
            self.totals.total_recv += amount
        else:
            self.totals.sent[self.pos] += amount
            self.totals.total_sent += amount

    def rotate(self) -> None:
        """Move to the next history slot, dropping flows idle for a full cycle."""
        self.pos = (self.pos + 1) % HISTORY_LENGTH
        for key, record in self.history.items():
            if record.last_write == self.pos:
                self.history.delete(key)
            else:
                record.recv[self.pos] = 0
                record.sent[self.pos] = 0
        self.totals.sent[self.pos] = 0
        self.totals.recv[self.pos] = 0
        if self.length < HISTORY_LENGTH:
            self.length += 1