"""Per-host byte counters for a local network, logged to daily files."""

from __future__ import annotations

import argparse
import os
import socket
import struct
import sys
import time
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv4Network
from typing import Any, Callable, Optional, Sequence, TextIO, Union

from .config import Config
from .hashing import BucketTable, counter_table
from .interfaces import format_mac, get_interface_addresses
from .linklayer import handle_ethernet

DUMP_RESOLUTION = 300
COUNTER_LIMIT = 2147483648
CAPTURE_LENGTH = 72
DEFAULT_LOG_DIR = "/var/bandwidth"
DEFAULT_CONFIG_FILE = "~/.bandtoprc"

_IPV4_HEADER_LEN = 20
_ETH_P_ALL = 0x0003
_SOL_PACKET = 263
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1

Clock = Callable[[], float]
AddressLike = Union[str, int, IPv4Address]


@dataclass
class TrafficCounter:
    """Bytes sent from and received by one local host."""

    sent: int = 0
    recv: int = 0


class DumpRecorder:
    """Counts traffic crossing the boundary of a network and logs it per host."""

    def __init__(
        self,
        net: AddressLike,
        mask: AddressLike,
        log_dir: Union[str, "os.PathLike[str]"] = DEFAULT_LOG_DIR,
        clock: Optional[Clock] = None,
    ) -> None:
        self.net = IPv4Address(net)
        self.mask = IPv4Address(mask)
        self.log_dir = os.fspath(log_dir)
        self.clock: Clock = clock or time.time
        self.counters: BucketTable = counter_table()
        self.last_timestamp = int(self.clock())
        self.last_day = 0
        self._log: Optional[TextIO] = None

    def __enter__(self) -> "DumpRecorder":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def log_path(self) -> str:
        """Path of the log file for the clock's current local date."""
        stamp = time.strftime("%Y%m%d", time.localtime(self.clock()))
        return os.path.join(self.log_dir, f"bw-{stamp}")

    def _open_log(self) -> None:
        path = self.log_path
        try:
            self._log = open(path, "w+", encoding="ascii")
        except OSError as exc:
            raise OSError(exc.errno, f"Could not open log file: {exc.strerror}", path) from exc

    def close(self) -> None:
        """Close the current log file, if one is open."""
        if self._log is not None:
            self._log.close()
        self._log = None

    def _print_counter(self, address: IPv4Address, counter: TrafficCounter) -> None:
        if self._log is None:
            self._open_log()
        self._log.write(f"{int(self.clock())} {address} {counter.sent} {counter.recv}\n")
        self._log.flush()

    def _in_filter_net(self, address: IPv4Address) -> bool:
        return int(address) & int(self.mask) == int(self.net)

    def handle_ip_packet(self, packet: bytes, hw_dir: int = -1) -> None:
        """Account one IPv4 packet to the local host at its end.

        Packets with both or neither end inside the network are dropped.
        hw_dir is accepted for symmetry with the link-layer decoders and unused.
        """
        packet = bytes(packet)
        if len(packet) < _IPV4_HEADER_LEN or packet[0] >> 4 != 4:
            return
        src = IPv4Address(packet[12:16])
        dst = IPv4Address(packet[16:20])
        src_in = self._in_filter_net(src)
        dst_in = self._in_filter_net(dst)
        if src_in and not dst_in:
            local, outgoing = src, True
        elif dst_in and not src_in:
            local, outgoing = dst, False
        else:
            return

        try:
            counter = self.counters.find(local)
        except KeyError:
            counter = TrafficCounter()
            self.counters.insert(local, counter)
            self._print_counter(local, counter)

        length = int.from_bytes(packet[2:4], "big")
        if outgoing:
            counter.sent += length
        else:
            counter.recv += length

        if counter.recv > COUNTER_LIMIT or counter.sent > COUNTER_LIMIT:
            self._print_counter(local, counter)
            counter.recv = counter.sent = 0
            self._print_counter(local, counter)

    def tick(self) -> None:
        """Every DUMP_RESOLUTION seconds log all counters, starting a new file on a new day."""
        now = int(self.clock())
        if now - self.last_timestamp < DUMP_RESOLUTION:
            return
        local = time.localtime(now)
        day = (local.tm_yday - 1) + (local.tm_year - 1900) * 366
        if day != self.last_day:
            self.close()
            self._open_log()
        self.last_day = day
        self.last_timestamp = now
        for address, counter in self.counters.items():
            self._print_counter(address, counter)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bandtop-dump",
        description="Log per-host traffic crossing a network boundary.",
    )
    parser.add_argument("-i", dest="interface", help="interface to listen on")
    parser.add_argument("-F", dest="net_filter", help="local network as net/mask")
    parser.add_argument("-f", dest="filter_code", help="capture filter code")
    parser.add_argument("-p", dest="promiscuous", action="store_true",
                        help="run in promiscuous mode")
    parser.add_argument("-c", dest="config_file", help="configuration file")
    parser.add_argument("-d", dest="log_dir", default=DEFAULT_LOG_DIR,
                        help="directory for the daily log files")
    return parser.parse_args(argv)


def _default_interface() -> Optional[str]:
    import psutil

    for name, stats in psutil.net_if_stats().items():
        if stats.isup and not name.startswith("lo"):
            return name
    return None


def _open_capture(interface: str, promiscuous: bool) -> socket.socket:
    if not hasattr(socket, "AF_PACKET"):
        raise OSError("packet capture is not available on this platform")
    sock = socket.socket(socket.AF_PACKET, socket.SOCK_RAW, socket.htons(_ETH_P_ALL))
    try:
        sock.bind((interface, 0))
        if promiscuous:
            request = struct.pack(
                "iHH8s", socket.if_nametoindex(interface), _PACKET_MR_PROMISC, 0, b""
            )
            sock.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, request)
    except OSError:
        sock.close()
        raise
    return sock


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command entry point; returns the exit status."""
    args = _parse_args(argv)

    config = Config()
    if args.interface:
        config.set_string("interface", args.interface)
    if args.net_filter:
        config.set_string("net-filter", args.net_filter)
    if args.filter_code:
        config.set_string("filter-code", args.filter_code)
    if args.promiscuous:
        config.set_string("promiscuous", "true")
    config_file = args.config_file or os.path.expanduser(DEFAULT_CONFIG_FILE)
    config.read_file(config_file, args.config_file is not None)

    net_filter = config.get_string("net-filter")
    if not net_filter:
        print("netfilter option must be specified for bandtop-dump", file=sys.stderr)
        return 1
    try:
        network = IPv4Network(net_filter, strict=False)
    except ValueError as exc:
        print(f"Invalid net filter \"{net_filter}\": {exc}", file=sys.stderr)
        return 1

    if config.get_string("filter-code"):
        print("set_filter_code: filter code is not supported by this capture",
              file=sys.stderr)
        return 1

    interface = config.get_string("interface") or _default_interface()
    if not interface:
        print("No suitable interface found", file=sys.stderr)
        return 1

    try:
        addresses = get_interface_addresses(interface)
    except OSError as exc:
        print(f"{interface}: {exc}", file=sys.stderr)
        return 1
    if addresses.ip_addr is not None:
        print(f"IP address is: {addresses.ip_addr}", file=sys.stderr)
    if addresses.hw_addr is not None:
        print(f"MAC address is: {format_mac(addresses.hw_addr)}", file=sys.stderr)

    try:
        capture = _open_capture(interface, config.get_bool("promiscuous"))
    except OSError as exc:
        print(f"capture on {interface}: {exc}", file=sys.stderr)
        return 1

    recorder = DumpRecorder(network.network_address, network.netmask, args.log_dir)

    def sink(packet: bytes, hw_dir: int, length: int) -> None:
        recorder.handle_ip_packet(packet, hw_dir)

    try:
        with capture, recorder:
            while True:
                frame = capture.recv(CAPTURE_LENGTH)
                recorder.tick()
                handle_ethernet(sink, frame, len(frame), addresses.hw_addr)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())