# bandtop

`bandtop` accounts network traffic per connection and per host. It decodes
captured frames from several link layers (Ethernet with 802.1Q VLAN tags,
raw IP, BSD loopback, pflog, Token Ring with LLC/SNAP, PPP, Linux cooked
capture and radiotap), works out which way each packet is travelling relative
to the local interface, and keeps a rolling history of amounts sent and
received for every source/destination pair.

It also ships a recorder, `bandtop-dump`, that writes per-host sent/received
byte totals for the hosts of one network to a log file that rolls over every
day.

## Installation

```
pip install .
```

Run the test suite with:

```
pip install .[test]
pytest
```

## The recorder

```
bandtop-dump -F 192.168.1.0/24
```

`bandtop-dump` watches IPv4 traffic crossing the boundary of a filter network
and keeps a counter of bytes sent and received by each local host (the IP
total-length field of each packet is counted). Packets whose source and
destination are both inside, or both outside, the network are ignored.

A line `<unix time> <host address> <sent> <received>` is written to the log
file when a host is first seen, and every 300 seconds one such line is written
for every host. A counter that passes 2147483648 bytes is logged, reset to
zero and logged again. Log files are named `bw-YYYYMMDD` after the local date;
a new file is started when the day changes.

Options:

| Option | Meaning |
| --- | --- |
| `-i IFACE` | interface to listen on (default: the first interface that is up and not loopback) |
| `-F NET/MASK` | the local network; required, here or as `net-filter` in the configuration file |
| `-p` | put the interface into promiscuous mode |
| `-c FILE` | configuration file (default `~/.bandtoprc`; a missing default file is not an error) |
| `-d DIR` | directory for the log files (default `/var/bandwidth`) |
| `-f CODE` | capture filter code; not supported, the command exits with an error when it is given |

Values given on the command line take precedence over the configuration file.
Capture uses a Linux packet socket on an Ethernet interface, so the command
runs on Linux only and needs the privileges to open a raw socket. It stops on
Ctrl-C.

## Using the library

### Configuration files

Configuration files hold `key: value` lines. `#` starts a comment, a line
ending in a backslash continues on the next one, and only known directives
(`interface`, `filter-code`, `net-filter`, `net-filter6`, `sort`,
`max-bandwidth`, `num-lines`, `http-port` and the rest) are accepted; unknown
or repeated ones produce a warning on stderr. The first value given for a
directive wins.

```python
from bandtop.config import Config, is_valid_directive

cfg = Config()
cfg.read_file("/etc/bandtop.conf", True)    # False if the file can't be opened

interface = cfg.get_string("interface")     # None when unset
promiscuous = cfg.get_bool("promiscuous")   # true only for "yes" or "true"
lines = cfg.get_int("num-lines")            # None when unset, ValueError if malformed
scale = cfg.get_float("max-bandwidth")
order = cfg.get_enum("sort", {"2s": 0, "10s": 1, "40s": 2})
cfg.set_string("interface", "eth0")         # replaces any earlier value

is_valid_directive("sort")                  # True
```

### Traffic history

`bandtop.traffic.TrafficHistory(options, local, resolver)` takes a
`FilterOptions` (IPv4 and IPv6 net filters, whether link-local IPv6 traffic is
counted, whether packets between two other hosts are dropped, and the
`BandwidthUnit`), a `LocalInterface` with the addresses of the interface
being watched, and an optional resolver callable that is handed the
destination and source address of every accounted packet.

Feed it IP packets with `handle_ip_packet(packet, hw_dir, payload_len)`, where
`hw_dir` is `1` for outgoing, `0` for incoming and `-1` when the link layer
cannot tell. Each flow is kept as a `HistoryRecord` under an `AddrPair` key in
`history`; overall totals are in `totals`. Call `rotate()` once per interval
to move on to the next of the 65000 history slots; flows not written to for
a whole cycle are dropped. With `BandwidthUnit.PACKETS` each packet counts
one; with `BITS` or `BYTES` it counts its payload length in bytes (any
conversion to bits is left to the caller).

`assign_addr_pair(packet, flip)` builds the flow key for a single packet.

### Link-layer decoders

The decoders in `bandtop.linklayer` (`handle_ethernet`, `handle_raw`,
`handle_null`, `handle_pflog`, `handle_tokenring`, `handle_llc`,
`handle_ppp`, `handle_cooked`, `handle_radiotap`) strip their headers and
call a sink with `(ip_packet, hw_dir, payload_len)`, for instance
`TrafficHistory.handle_ip_packet`. `handler_for_datalink(dlt)` picks the
decoder for a datalink type number and raises `ValueError` for unsupported
ones; `ethernet_direction` gives the direction implied by an Ethernet frame's
MAC addresses; `filter_expression(filter_code)` builds a capture filter
expression restricting a user's filter to IPv4 and IPv6.

### Interface addresses

```python
from bandtop.interfaces import get_interface_addresses, format_mac

addrs = get_interface_addresses("eth0")
if addrs.hw_addr is not None:
    print(format_mac(addrs.hw_addr))
```

`get_interface_addresses` returns an `InterfaceAddresses` with whatever
hardware, IPv4 and IPv6 address (link-local and site-local IPv6 addresses
are skipped) could be found; missing parts are `None` and are reported on
stderr. `split_device_name("/dev/ge0")` gives `("/dev/ge", 0)`.

### Other pieces

- `bandtop.hashing`: the bucketed tables used for connection and host
  lookups (`BucketTable`, `addr_table()`, `counter_table()`), keyed by
  `AddrPair` or by host address.
- `bandtop.protocols`: network-order and little-endian field extraction,
  `tcp_ports`, and the `TokenHeader` and `LlcHeader` layouts with the Token
  Ring, LLC, PPP and TCP constants.
- `bandtop.lineedit`: a one-line text editor for curses screens
  (`LineEditor`, `edline`), with the usual Ctrl-A/E/U/W bindings.

## What it does not do

There is no live, top-style display of connections and no web endpoint: the
traffic history is a library for a front end to read, and the only command is
the `bandtop-dump` recorder. Addresses are not resolved to host names unless
a resolver is supplied, and capture filter expressions are built but not
compiled or applied.