import time
from ipaddress import IPv4Address

import pytest

from bandtop.dump import (
    COUNTER_LIMIT,
    DUMP_RESOLUTION,
    DumpRecorder,
    TrafficCounter,
    main,
)

T0 = 1_000_000_000


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


def ipv4_packet(src, dst, total_length=60, version=4):
    header = bytearray(20)
    header[0] = (version << 4) | 5
    header[2:4] = total_length.to_bytes(2, "big")
    header[9] = 6
    header[12:16] = IPv4Address(src).packed
    header[16:20] = IPv4Address(dst).packed
    return bytes(header)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder(tmp_path, clock):
    rec = DumpRecorder("10.0.0.0", "255.255.255.0", tmp_path, clock)
    yield rec
    rec.close()


def log_lines(recorder):
    with open(recorder.log_path, encoding="ascii") as handle:
        return handle.read().splitlines()


def test_outgoing_packet_counts_as_sent(recorder):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60), 1)
    counter = recorder.counters.find(IPv4Address("10.0.0.5"))
    assert counter == TrafficCounter(sent=60, recv=0)


def test_incoming_packet_counts_as_received(recorder):
    recorder.handle_ip_packet(ipv4_packet("192.0.2.1", "10.0.0.7", 100), 0)
    recorder.handle_ip_packet(ipv4_packet("192.0.2.9", "10.0.0.7", 40), -1)
    counter = recorder.counters.find(IPv4Address("10.0.0.7"))
    assert (counter.sent, counter.recv) == (0, 140)
    assert len(recorder.counters) == 1


def test_new_host_logged_before_counting(recorder):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60))
    assert log_lines(recorder) == [f"{T0} 10.0.0.5 0 0"]


@pytest.mark.parametrize(
    "src, dst",
    [("10.0.0.1", "10.0.0.2"), ("192.0.2.1", "198.51.100.1")],
)
def test_packets_not_crossing_boundary_are_dropped(recorder, src, dst):
    recorder.handle_ip_packet(ipv4_packet(src, dst))
    assert len(recorder.counters) == 0


def test_non_ipv4_and_short_packets_are_dropped(recorder):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", version=6))
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1")[:19])
    assert len(recorder.counters) == 0


def test_log_file_named_for_local_date(recorder, tmp_path):
    expected = tmp_path / ("bw-" + time.strftime("%Y%m%d", time.localtime(T0)))
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1"))
    assert recorder.log_path == str(expected)
    assert expected.exists()


def test_tick_before_resolution_writes_nothing(recorder, clock):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60))
    clock.now = T0 + DUMP_RESOLUTION - 1
    recorder.tick()
    assert log_lines(recorder) == [f"{T0} 10.0.0.5 0 0"]


def test_tick_after_resolution_starts_file_and_logs_counters(recorder, clock):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60))
    recorder.handle_ip_packet(ipv4_packet("192.0.2.1", "10.0.0.5", 40))
    clock.now = T0 + DUMP_RESOLUTION
    recorder.tick()
    assert log_lines(recorder) == [f"{T0 + DUMP_RESOLUTION} 10.0.0.5 60 40"]
    assert recorder.last_timestamp == T0 + DUMP_RESOLUTION


def test_second_tick_same_day_appends(recorder, clock):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60))
    clock.now = T0 + DUMP_RESOLUTION
    recorder.tick()
    clock.now = T0 + 2 * DUMP_RESOLUTION
    recorder.tick()
    assert log_lines(recorder) == [
        f"{T0 + DUMP_RESOLUTION} 10.0.0.5 60 0",
        f"{T0 + 2 * DUMP_RESOLUTION} 10.0.0.5 60 0",
    ]


def test_counter_reset_past_limit(recorder):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60))
    counter = recorder.counters.find(IPv4Address("10.0.0.5"))
    counter.sent = COUNTER_LIMIT
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1", 60))
    assert counter == TrafficCounter(0, 0)
    assert log_lines(recorder)[-2:] == [
        f"{T0} 10.0.0.5 {COUNTER_LIMIT + 60} 0",
        f"{T0} 10.0.0.5 0 0",
    ]


def test_unwritable_log_dir_raises(tmp_path, clock):
    rec = DumpRecorder("10.0.0.0", "255.255.255.0", tmp_path / "missing", clock)
    with pytest.raises(OSError):
        rec.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1"))


def test_close_then_reopen_on_next_write(recorder):
    recorder.handle_ip_packet(ipv4_packet("10.0.0.5", "192.0.2.1"))
    recorder.close()
    recorder.handle_ip_packet(ipv4_packet("10.0.0.6", "192.0.2.1"))
    assert log_lines(recorder) == [f"{T0} 10.0.0.6 0 0"]


def test_main_requires_net_filter(tmp_path):
    assert main(["-c", str(tmp_path / "none.conf"), "-i", "lo"]) == 1


def test_main_rejects_bad_net_filter(tmp_path):
    assert main(["-c", str(tmp_path / "none.conf"), "-F", "not-a-net"]) == 1


def test_main_rejects_filter_code(tmp_path):
    argv = ["-c", str(tmp_path / "none.conf"), "-F", "10.0.0.0/24", "-f", "tcp"]
    assert main(argv) == 1


def test_main_reads_net_filter_from_config(tmp_path):
    conf = tmp_path / "dump.conf"
    conf.write_text("net-filter: bogus\nfilter-code: tcp\n")
    assert main(["-c", str(conf)]) == 1
    conf.write_text("net-filter: 10.0.0.0/24\nfilter-code: tcp\n")
    assert main(["-c", str(conf)]) == 1