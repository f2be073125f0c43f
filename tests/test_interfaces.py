import socket
from collections import namedtuple
from ipaddress import IPv4Address, IPv6Address
from unittest import mock

import psutil
import pytest

from bandtop.interfaces import (
    InterfaceAddresses,
    format_mac,
    get_interface_addresses,
    split_device_name,
)

Snic = namedtuple("Snic", "family address netmask broadcast ptp")

MAC_TEXT = "02:00:00:00:00:01"
MAC_BYTES = bytes([0x02, 0, 0, 0, 0, 0x01])


def _link(address):
    return Snic(psutil.AF_LINK, address, None, None, None)


def _v4(address):
    return Snic(socket.AF_INET, address, "255.255.255.0", None, None)


def _v6(address):
    return Snic(socket.AF_INET6, address, None, None, None)


def _patched(table):
    return mock.patch("psutil.net_if_addrs", return_value=table)


def test_all_addresses_found():
    table = {"eth0": [_link(MAC_TEXT), _v4("192.0.2.10"), _v6("2001:db8::1")]}
    with _patched(table):
        result = get_interface_addresses("eth0")
    assert result.hw_addr == MAC_BYTES
    assert result.ip_addr == IPv4Address("192.0.2.10")
    assert result.ip6_addr == IPv6Address("2001:db8::1")
    assert result.flags == 7


def test_link_and_site_local_ipv6_are_skipped():
    table = {
        "eth0": [
            _v6("fe80::1%eth0"),
            _v6("fec0::1"),
            _v6("2001:db8::2"),
        ]
    }
    with _patched(table):
        result = get_interface_addresses("eth0")
    assert result.ip6_addr == IPv6Address("2001:db8::2")
    assert result.flags == 4


def test_first_ipv4_address_wins():
    table = {"eth0": [_v4("192.0.2.1"), _v4("192.0.2.2")]}
    with _patched(table):
        result = get_interface_addresses("eth0")
    assert result.ip_addr == IPv4Address("192.0.2.1")
    assert result.flags == 2


def test_unknown_interface_finds_nothing():
    table = {"eth0": [_link(MAC_TEXT), _v4("192.0.2.1")]}
    with _patched(table):
        result = get_interface_addresses("wlan9")
    assert result == InterfaceAddresses("wlan9")
    assert result.flags == 0


def test_dev_prefix_is_ignored():
    table = {"ge0": [_link(MAC_TEXT)]}
    with _patched(table):
        result = get_interface_addresses("/dev/ge0")
    assert result.name == "ge0"
    assert result.hw_addr == MAC_BYTES
    assert result.flags == 1


def test_query_failure_propagates():
    with mock.patch("psutil.net_if_addrs", side_effect=OSError("boom")):
        with pytest.raises(OSError):
            get_interface_addresses("eth0")


def test_split_device_name_single_digit():
    assert split_device_name("/dev/ge0") == ("/dev/ge", 0)


def test_split_device_name_multiple_digits():
    stem, unit = split_device_name("/dev/bge12")
    assert stem == "/dev/bge"
    assert unit == 12
    assert stem + str(unit) == "/dev/bge12"


@pytest.mark.parametrize("device", ["/dev/ge", "", "eth"])
def test_split_device_name_without_unit(device):
    with pytest.raises(ValueError):
        split_device_name(device)


def test_format_mac_pins_layout():
    assert format_mac(MAC_BYTES) == MAC_TEXT


def test_format_mac_round_trip_through_lookup():
    with _patched({"eth0": [_link(MAC_TEXT.upper())]}):
        result = get_interface_addresses("eth0")
    assert format_mac(result.hw_addr) == MAC_TEXT


@pytest.mark.parametrize("raw", [b"", b"\x01\x02\x03", bytes(7)])
def test_format_mac_wrong_length(raw):
    with pytest.raises(ValueError):
        format_mac(raw)