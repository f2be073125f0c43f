"""Chained hash tables keyed on address pairs and on single addresses."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Any, Callable, Iterator, List, Tuple, Union

IPAddress = Union[IPv4Address, IPv6Address]

TABLE_SIZE = 256
_MODULUS = 0xFF


def _as_address(value: Any) -> IPAddress:
    if isinstance(value, (IPv4Address, IPv6Address)):
        return value
    return ip_address(value)


@dataclass(frozen=True)
class AddrPair:
    """A flow key: address family, protocol and both endpoints."""

    af: int = socket.AF_INET
    protocol: int = 0
    src_port: int = 0
    src: IPAddress = IPv4Address(0)
    dst_port: int = 0
    dst: IPAddress = IPv4Address(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "src", _as_address(self.src))
        object.__setattr__(self, "dst", _as_address(self.dst))


def _octet_sum(address: IPAddress, af: int) -> int:
    packed = address.packed
    if af != socket.AF_INET6:
        packed = packed[:4]
    return sum(packed)


def addr_bucket(pair: AddrPair) -> int:
    """Bucket for an address pair: octet and port sums folded modulo 255."""
    bucket = (_octet_sum(pair.src, pair.af) + pair.src_port) % _MODULUS
    return (bucket + _octet_sum(pair.dst, pair.af) + pair.dst_port) % _MODULUS


def counter_bucket(addr: Any) -> int:
    """Bucket for a single address; only its first octet counts."""
    first_octet = _as_address(addr).packed[0]
    return (4 * first_octet) % _MODULUS


class BucketTable:
    """A fixed-size table of chains; newer entries sit at the head of a chain."""

    def __init__(self, hash_func: Callable[[Any], int], size: int = TABLE_SIZE) -> None:
        if size <= 0:
            raise ValueError("table size must be positive")
        self._hash = hash_func
        self.size = size
        self._buckets: List[List[Tuple[Any, Any]]] = [[] for _ in range(size)]
        self._count = 0

    def _chain(self, key: Any) -> List[Tuple[Any, Any]]:
        index = self._hash(key)
        if not 0 <= index < self.size:
            raise ValueError(f"hash value {index} outside table of size {self.size}")
        return self._buckets[index]

    def insert(self, key: Any, rec: Any) -> None:
        """Add a record under key, ahead of any existing entry for it."""
        self._chain(key).insert(0, (key, rec))
        self._count += 1

    def delete(self, key: Any) -> None:
        """Remove the first entry for key; raise KeyError if there is none."""
        chain = self._chain(key)
        for position, (stored, _) in enumerate(chain):
            if stored == key:
                del chain[position]
                self._count -= 1
                return
        raise KeyError(key)

    def find(self, key: Any) -> Any:
        """Return the record stored under key; raise KeyError if absent."""
        for stored, rec in self._chain(key):
            if stored == key:
                return rec
        raise KeyError(key)

    def items(self) -> List[Tuple[Any, Any]]:
        """Snapshot of (key, record) pairs in bucket order, then chain order."""
        return [entry for chain in self._buckets for entry in chain]

    def clear(self) -> None:
        for chain in self._buckets:
            chain.clear()
        self._count = 0

    def __iter__(self) -> Iterator[Any]:
        return (key for key, _ in self.items())

    def __len__(self) -> int:
        return self._count

    def __contains__(self, key: Any) -> bool:
        try:
            self.find(key)
        except KeyError:
            return False
        return True


def addr_table() -> BucketTable:
    """A table keyed on AddrPair values."""
    return BucketTable(addr_bucket, TABLE_SIZE)


def counter_table() -> BucketTable:
    """A table keyed on single IP addresses."""
    return BucketTable(counter_bucket, TABLE_SIZE)