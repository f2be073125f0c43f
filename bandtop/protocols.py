"""Link and transport header layouts: field extraction, Token Ring, LLC, PPP, TCP."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

# Token Ring
TOKEN_HDRLEN = 14
TOKEN_RING_MAC_LEN = 6
ROUTING_SEGMENT_MAX = 16
TOKEN_FC_LLC = 1

# LLC
LLC_HDRLEN = 8

LLC_U_FMT = 3
LLC_GSAP = 1
LLC_S_FMT = 1

LLC_U_POLL = 0x10
LLC_IS_POLL = 0x0100
LLC_XID_FI = 0x81

LLC_UI = 0x03
LLC_UA = 0x63
LLC_DISC = 0x43
LLC_DM = 0x0F
LLC_SABME = 0x6F
LLC_TEST = 0xE3
LLC_XID = 0xAF
LLC_FRMR = 0x87

LLC_RR = 0x0001
LLC_RNR = 0x0005
LLC_REJ = 0x0009

LLCSAP_NULL = 0x00
LLCSAP_GLOBAL = 0xFF
LLCSAP_8021B_I = 0x02
LLCSAP_8021B_G = 0x03
LLCSAP_IP = 0x06
LLCSAP_PROWAYNM = 0x0E
LLCSAP_8021D = 0x42
LLCSAP_RS511 = 0x4E
LLCSAP_ISO8208 = 0x7E
LLCSAP_PROWAY = 0x8E
LLCSAP_SNAP = 0xAA
LLCSAP_IPX = 0xE0
LLCSAP_NETBEUI = 0xF0
LLCSAP_ISONS = 0xFE

OUI_ENCAP_ETHER = 0x000000
OUI_CISCO = 0x00000C
ETHERTYPE_CISCO_CDP = 0x2000
OUI_CISCO_90 = 0x0000F8
OUI_APPLETALK = 0x080007

# PPP
PPP_HDRLEN = 4
PPP_ADDRESS = 0xFF
PPP_CONTROL = 0x03

PPP_IP = 0x0021
PPP_OSI = 0x0023
PPP_NS = 0x0025
PPP_DECNET = 0x0027
PPP_APPLE = 0x0029
PPP_IPX = 0x002B
PPP_VJC = 0x002D
PPP_VJNC = 0x002F
PPP_BRPDU = 0x0031
PPP_STII = 0x0033
PPP_VINES = 0x0035
PPP_IPV6 = 0x0057
PPP_COMP = 0x00FD

PPP_HELLO = 0x0201
PPP_LUXCOM = 0x0231
PPP_SNS = 0x0233

PPP_IPCP = 0x8021
PPP_OSICP = 0x8023
PPP_NSCP = 0x8025
PPP_DECNETCP = 0x8027
PPP_APPLECP = 0x8029
PPP_IPXCP = 0x802B
PPP_STIICP = 0x8033
PPP_VINESCP = 0x8035
PPP_IPV6CP = 0x8057
PPP_CCP = 0x80FD

PPP_LCP = 0xC021
PPP_PAP = 0xC023
PPP_LQM = 0xC025
PPP_CHAP = 0xC223
PPP_BACP = 0xC02B
PPP_BAP = 0xC02D
PPP_MP = 0xC03D

# TCP
TH_FIN = 0x01
TH_SYN = 0x02
TH_RST = 0x04
TH_PUSH = 0x08
TH_ACK = 0x10
TH_URG = 0x20
TH_ECNECHO = 0x40
TH_CWR = 0x80

TCPOPT_EOL = 0
TCPOPT_NOP = 1
TCPOPT_MAXSEG = 2
TCPOLEN_MAXSEG = 4
TCPOPT_WSCALE = 3
TCPOPT_SACKOK = 4
TCPOPT_SACK = 5
TCPOPT_ECHO = 6
TCPOPT_ECHOREPLY = 7
TCPOPT_TIMESTAMP = 8
TCPOLEN_TIMESTAMP = 10
TCPOLEN_TSTAMP_APPA = TCPOLEN_TIMESTAMP + 2
TCPOPT_CC = 11
TCPOPT_CCNEW = 12
TCPOPT_CCECHO = 13
TCPOPT_TSTAMP_HDR = (
    TCPOPT_NOP << 24 | TCPOPT_NOP << 16 | TCPOPT_TIMESTAMP << 8 | TCPOLEN_TIMESTAMP
)


def _field(data: bytes, offset: int, size: int) -> bytes:
    if offset < 0:
        raise ValueError(f"negative offset {offset}")
    chunk = bytes(data[offset : offset + size])
    if len(chunk) < size:
        raise ValueError(
            f"need {size} bytes at offset {offset}, only {len(chunk)} available"
        )
    return chunk


def extract_16bits(data: bytes, offset: int = 0) -> int:
    """Big-endian 16-bit value at offset."""
    return int.from_bytes(_field(data, offset, 2), "big")


def extract_24bits(data: bytes, offset: int = 0) -> int:
    """Big-endian 24-bit value at offset."""
    return int.from_bytes(_field(data, offset, 3), "big")


def extract_32bits(data: bytes, offset: int = 0) -> int:
    """Big-endian 32-bit value at offset."""
    return int.from_bytes(_field(data, offset, 4), "big")


def extract_le_16bits(data: bytes, offset: int = 0) -> int:
    """Little-endian 16-bit value at offset."""
    return int.from_bytes(_field(data, offset, 2), "little")


def extract_le_32bits(data: bytes, offset: int = 0) -> int:
    """Little-endian 32-bit value at offset."""
    return int.from_bytes(_field(data, offset, 4), "little")


def tcp_ports(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Source and destination ports of a TCP or UDP header starting at offset."""
    return extract_16bits(data, offset), extract_16bits(data, offset + 2)


@dataclass(frozen=True)
class TokenHeader:
    """An IEEE 802.5 Token Ring MAC header with its routing information."""

    ac: int
    fc: int
    dhost: bytes
    shost: bytes
    rcf: int = 0
    rseg: Tuple[int, ...] = ()

    @classmethod
    def parse(cls, data: bytes) -> "TokenHeader":
        """Read a header from the start of data; ValueError if it is too short."""
        if len(data) < TOKEN_HDRLEN:
            raise ValueError(
                f"Token Ring header needs {TOKEN_HDRLEN} bytes, got {len(data)}"
            )
        rcf = extract_16bits(data, TOKEN_HDRLEN) if len(data) >= TOKEN_HDRLEN + 2 else 0
        segments_start = TOKEN_HDRLEN + 2
        available = max(0, (len(data) - segments_start) // 2)
        rseg = tuple(
            extract_16bits(data, segments_start + 2 * index)
            for index in range(min(available, ROUTING_SEGMENT_MAX))
        )
        return cls(
            ac=data[0],
            fc=data[1],
            dhost=bytes(data[2 : 2 + TOKEN_RING_MAC_LEN]),
            shost=bytes(data[2 + TOKEN_RING_MAC_LEN : TOKEN_HDRLEN]),
            rcf=rcf,
            rseg=rseg,
        )

    def is_source_routed(self) -> bool:
        return bool(self.shost[0] & 0x80)

    def frame_type(self) -> int:
        return (self.fc & 0xC0) >> 6

    def rif_length(self) -> int:
        """Length in bytes of the routing information field."""
        return (self.rcf & 0x1F00) >> 8

    def broadcast(self) -> int:
        return (self.rcf & 0xE000) >> 13

    def direction(self) -> int:
        return (self.rcf & 0x0080) >> 7

    def largest_frame(self) -> int:
        return (self.rcf & 0x0070) >> 4

    def segment_count(self) -> int:
        return (self.rif_length() - 2) // 2

    def ring_number(self, index: int) -> int:
        return (self.rseg[index] & 0xFFF0) >> 4

    def bridge_number(self, index: int) -> int:
        return self.rseg[index] & 0x000F


@dataclass(frozen=True)
class LlcHeader:
    """An 802.2 LLC header, read with its SNAP extension."""

    dsap: int
    ssap: int
    control: int
    orgcode: int
    ethertype: int

    @classmethod
    def parse(cls, data: bytes) -> "LlcHeader":
        """Read a header from the start of data; ValueError if it is too short."""
        if len(data) < LLC_HDRLEN:
            raise ValueError(f"LLC header needs {LLC_HDRLEN} bytes, got {len(data)}")
        return cls(
            dsap=data[0],
            ssap=data[1],
            control=data[2],
            orgcode=extract_24bits(data, 3),
            ethertype=extract_16bits(data, 6),
        )

    def is_snap(self) -> bool:
        """True for an unnumbered-information SNAP frame."""
        return (
            self.ssap == LLCSAP_SNAP
            and self.dsap == LLCSAP_SNAP
            and self.control == LLC_UI
        )