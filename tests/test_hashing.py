import socket
from ipaddress import IPv4Address, IPv6Address

import pytest

from bandtop.hashing import (
    AddrPair,
    BucketTable,
    TABLE_SIZE,
    addr_bucket,
    addr_table,
    counter_bucket,
    counter_table,
)


def _pair(src, sport, dst, dport, protocol=6):
    return AddrPair(protocol=protocol, src_port=sport, src=src, dst_port=dport, dst=dst)


def test_addr_pair_coerces_strings():
    pair = _pair("10.0.0.1", 80, "10.0.0.2", 443)
    assert pair.src == IPv4Address("10.0.0.1")
    assert pair == _pair(IPv4Address("10.0.0.1"), 80, IPv4Address("10.0.0.2"), 443)


def test_ipv6_pairs_compare_by_value():
    a = AddrPair(af=socket.AF_INET6, protocol=17, src_port=53, src="2001:db8::1",
                 dst_port=5353, dst="2001:db8::2")
    b = AddrPair(af=socket.AF_INET6, protocol=17, src_port=53, src=IPv6Address("2001:db8::1"),
                 dst_port=5353, dst=IPv6Address("2001:db8::2"))
    assert a == b
    assert addr_bucket(a) == addr_bucket(b)


def test_zero_pair_lands_in_first_bucket():
    assert addr_bucket(AddrPair()) == 0


def test_addr_bucket_symmetric_in_endpoints():
    forward = _pair("192.0.2.10", 1234, "198.51.100.7", 80)
    reverse = _pair("198.51.100.7", 80, "192.0.2.10", 1234)
    assert addr_bucket(forward) == addr_bucket(reverse)


@pytest.mark.parametrize("src,dst", [("255.255.255.255", "255.255.255.255"),
                                     ("1.2.3.4", "5.6.7.8"),
                                     ("2001:db8::ffff", "ff02::1")])
def test_addr_bucket_in_range(src, dst):
    af = socket.AF_INET6 if ":" in src else socket.AF_INET
    pair = AddrPair(af=af, src=src, dst=dst, src_port=65535, dst_port=65535)
    assert 0 <= addr_bucket(pair) < 255


def test_counter_bucket_depends_on_first_octet():
    assert counter_bucket("192.168.1.1") == counter_bucket("192.0.2.7")
    assert counter_bucket("0.0.0.0") == 0


def test_insert_find_round_trip():
    table = addr_table()
    key = _pair("10.0.0.1", 80, "10.0.0.2", 443)
    table.insert(key, "record")
    assert table.find(key) == "record"
    assert key in table
    assert len(table) == 1


def test_find_missing_raises():
    table = addr_table()
    with pytest.raises(KeyError):
        table.find(_pair("10.0.0.1", 1, "10.0.0.2", 2))


def test_delete_missing_raises():
    table = counter_table()
    with pytest.raises(KeyError):
        table.delete(IPv4Address("10.1.1.1"))


def test_delete_removes_entry():
    table = counter_table()
    first = IPv4Address("10.1.1.1")
    second = IPv4Address("10.1.1.2")
    table.insert(first, "a")
    table.insert(second, "b")
    table.delete(first)
    assert first not in table
    assert table.find(second) == "b"
    assert len(table) == 1


def test_newer_entry_shadows_older():
    table = addr_table()
    key = _pair("10.0.0.1", 80, "10.0.0.2", 443)
    table.insert(key, "old")
    table.insert(key, "new")
    assert len(table) == 2
    assert table.find(key) == "new"
    table.delete(key)
    assert table.find(key) == "old"


def test_items_in_bucket_order():
    table = addr_table()
    keys = [_pair(f"10.0.{n}.{n * 3 % 250}", n * 7, "10.9.9.9", 80) for n in range(40)]
    for key in keys:
        table.insert(key, str(key))
    buckets = [addr_bucket(key) for key, _ in table.items()]
    assert buckets == sorted(buckets)
    assert set(table) == set(keys)


def test_items_snapshot_allows_deletion():
    table = counter_table()
    for n in range(1, 20):
        table.insert(IPv4Address(f"10.0.0.{n}"), n)
    for key, rec in table.items():
        if rec % 2:
            table.delete(key)
    assert sorted(rec for _, rec in table.items()) == list(range(2, 20, 2))


def test_clear_empties_table():
    table = addr_table()
    table.insert(AddrPair(), 1)
    table.clear()
    assert len(table) == 0
    assert list(table) == []


def test_out_of_range_hash_rejected():
    table = BucketTable(lambda key: TABLE_SIZE, TABLE_SIZE)
    with pytest.raises(ValueError):
        table.insert("x", 1)


def test_non_positive_size_rejected():
    with pytest.raises(ValueError):
        BucketTable(lambda key: 0, 0)