"""Link-layer decoding: strip each datalink's framing and pass IP payloads on."""

from __future__ import annotations

from typing import Any, Callable, Optional

from .protocols import (
    LLC_HDRLEN,
    OUI_APPLETALK,
    OUI_CISCO_90,
    OUI_ENCAP_ETHER,
    PPP_ADDRESS,
    PPP_IP,
    TOKEN_FC_LLC,
    TOKEN_HDRLEN,
    LlcHeader,
    TokenHeader,
    extract_16bits,
    extract_le_16bits,
)

# A sink receives (ip_packet, hw_dir, payload_len); hw_dir is 1 for outgoing,
# 0 for incoming and -1 when the link layer cannot tell.
Sink = Callable[[bytes, int, int], Any]
Handler = Callable[..., None]

ETHER_HDRLEN = 14
VLAN_HDRLEN = 4
ETHERTYPE_IP = 0x0800
ETHERTYPE_IPV6 = 0x86DD
ETHERTYPE_8021Q = 0x8100
ETHERTYPE_ATALK = 0x809B

NULL_HDRLEN = 4
SLL_HDR_LEN = 16
LINUX_SLL_HOST = 0
LINUX_SLL_OUTGOING = 4
RADIOTAP_MAC_LEN = 34
BPF_ALIGNMENT = 4

DLT_NULL = 0
DLT_EN10MB = 1
DLT_IEEE802 = 6
DLT_PPP = 9
DLT_RAW = 12
DLT_LOOP = 108
DLT_LINUX_SLL = 113
DLT_PFLOG = 117
DLT_IEEE802_11_RADIO = 127

BROADCAST_MAC = b"\xff" * 6
_NO_HW_ADDR = b"\x00" * 6

DIR_OUTGOING = 1
DIR_INCOMING = 0
DIR_UNKNOWN = -1


def ethernet_direction(packet: bytes, hw_addr: Optional[bytes]) -> int:
    """Direction implied by an Ethernet frame's MAC addresses.

    hw_addr is the interface's own address, or None when it is unknown;
    broadcast frames count as incoming.
    """
    dhost = bytes(packet[0:6])
    shost = bytes(packet[6:12])
    if hw_addr is not None and shost == bytes(hw_addr):
        return DIR_OUTGOING
    if hw_addr is not None and dhost == bytes(hw_addr):
        return DIR_INCOMING
    if dhost == BROADCAST_MAC:
        return DIR_INCOMING
    return DIR_UNKNOWN


def handle_ethernet(sink: Sink, packet: bytes, length: int, hw_addr: Optional[bytes] = None) -> None:
    """Pass on IPv4 and IPv6 payloads of an Ethernet frame, 802.1Q tags included."""
    packet = bytes(packet)
    if len(packet) < ETHER_HDRLEN:
        return
    ether_type = extract_16bits(packet, 12)
    hdrlen = ETHER_HDRLEN
    if ether_type == ETHERTYPE_8021Q:
        if len(packet) < hdrlen + VLAN_HDRLEN:
            return
        ether_type = extract_16bits(packet, hdrlen + 2)
        hdrlen += VLAN_HDRLEN
    if ether_type in (ETHERTYPE_IP, ETHERTYPE_IPV6):
        direction = ethernet_direction(packet, hw_addr)
        sink(packet[hdrlen:], direction, length - hdrlen)


def handle_raw(sink: Sink, packet: bytes, length: int) -> None:
    """Raw IP: the whole capture is the IP packet."""
    sink(bytes(packet), DIR_UNKNOWN, length)


def handle_null(sink: Sink, packet: bytes, length: int) -> None:
    """BSD loopback: a 4-byte family word precedes the IP packet."""
    sink(bytes(packet)[NULL_HDRLEN:], DIR_UNKNOWN, length)


def handle_pflog(sink: Sink, packet: bytes, length: int) -> None:
    """Packet-filter log: a header whose first byte gives its length."""
    packet = bytes(packet)
    if not packet:
        return
    hdrlen = (packet[0] + BPF_ALIGNMENT - 1) & ~(BPF_ALIGNMENT - 1)
    sink(packet[hdrlen:], DIR_UNKNOWN, length - hdrlen)


def handle_llc(sink: Sink, packet: bytes, direction: int, length: int) -> None:
    """Pass on the payload of an LLC/SNAP frame carrying encapsulated Ethernet."""
    packet = bytes(packet)
    try:
        llc = LlcHeader.parse(packet)
    except ValueError:
        return
    if not llc.is_snap():
        return
    payload = packet[LLC_HDRLEN:]
    payload_len = length - LLC_HDRLEN
    if llc.orgcode in (OUI_ENCAP_ETHER, OUI_CISCO_90):
        sink(payload, direction, payload_len)
    elif llc.orgcode == OUI_APPLETALK and llc.ethertype == ETHERTYPE_ATALK:
        sink(payload, direction, payload_len)


def handle_tokenring(sink: Sink, packet: bytes, length: int, hw_addr: Optional[bytes] = None) -> None:
    """Token Ring: skip the MAC header and routing field, then decode LLC."""
    packet = bytes(packet)
    try:
        header = TokenHeader.parse(packet)
    except ValueError:
        return
    hdrlen = TOKEN_HDRLEN
    if header.is_source_routed():
        hdrlen += header.rif_length()

    own = bytes(hw_addr) if hw_addr is not None else _NO_HW_ADDR
    direction = DIR_UNKNOWN
    if header.shost == own:
        direction = DIR_OUTGOING
    elif header.dhost == own or header.dhost == BROADCAST_MAC:
        direction = DIR_INCOMING

    if header.frame_type() == TOKEN_FC_LLC:
        handle_llc(sink, packet[hdrlen:], direction, length - hdrlen)


def handle_ppp(sink: Sink, packet: bytes, length: int) -> None:
    """PPP with address and control bytes, carrying IPv4 or IPv6."""
    packet = bytes(packet)
    if len(packet) < 2:
        return
    if packet[0] != PPP_ADDRESS:
        return
    if len(packet) < 4:
        return
    proto = extract_16bits(packet, 2)
    if proto in (PPP_IP, ETHERTYPE_IP, ETHERTYPE_IPV6):
        sink(packet[4:], DIR_UNKNOWN, length - 4)


def handle_cooked(sink: Sink, packet: bytes, length: int) -> None:
    """Linux cooked capture: the packet type gives the direction."""
    packet = bytes(packet)
    if len(packet) < 2:
        return
    pkttype = extract_16bits(packet, 0)
    direction = DIR_UNKNOWN
    if pkttype == LINUX_SLL_HOST:
        direction = DIR_INCOMING
    elif pkttype == LINUX_SLL_OUTGOING:
        direction = DIR_OUTGOING
    sink(packet[SLL_HDR_LEN:], direction, length - SLL_HDR_LEN)


def handle_radiotap(sink: Sink, packet: bytes, length: int) -> None:
    """802.11 with a radiotap header, followed by a fixed-size MAC header."""
    packet = bytes(packet)
    if len(packet) < 4:
        return
    hdrlen = extract_le_16bits(packet, 2) + RADIOTAP_MAC_LEN
    sink(packet[hdrlen:], DIR_UNKNOWN, length - hdrlen)


def _with_hw(handler: Callable[..., None]) -> Handler:
    def run(sink: Sink, packet: bytes, length: int, hw_addr: Optional[bytes] = None) -> None:
        handler(sink, packet, length, hw_addr)

    return run


def _without_hw(handler: Callable[..., None]) -> Handler:
    def run(sink: Sink, packet: bytes, length: int, hw_addr: Optional[bytes] = None) -> None:
        handler(sink, packet, length)

    return run


_HANDLERS = {
    DLT_EN10MB: _with_hw(handle_ethernet),
    DLT_PFLOG: _without_hw(handle_pflog),
    DLT_RAW: _without_hw(handle_raw),
    DLT_NULL: _without_hw(handle_null),
    DLT_LOOP: _without_hw(handle_null),
    DLT_IEEE802_11_RADIO: _without_hw(handle_radiotap),
    DLT_IEEE802: _with_hw(handle_tokenring),
    DLT_PPP: _without_hw(handle_ppp),
    DLT_LINUX_SLL: _without_hw(handle_cooked),
}


def handler_for_datalink(dlt: int) -> Handler:
    """Decoder for a datalink type, called as handler(sink, packet, length, hw_addr).

    Raises ValueError for a datalink type that is not supported.
    """
    try:
        return _HANDLERS[dlt]
    except KeyError:
        raise ValueError(f"Unsupported datalink type: {dlt}") from None


def filter_expression(filter_code: Optional[str] = None) -> str:
    """Capture filter restricting the user's filter to IPv4 and IPv6 traffic."""
    if filter_code:
        return f"({filter_code}) and (ip or ip6)"
    return "ip or ip6"