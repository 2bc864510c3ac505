import logging
import threading
import time

from backendify.stats import Metric, StatsClient


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _lines(packets):
    return [line for packet in packets for line in packet.decode().split("\n")]


def test_increment_counts():
    packets = []
    client = StatsClient(interval=60, transport=packets.append)
    try:
        for _ in range(7):
            client.increment(Metric.ACCESS)
        assert client.value(Metric.ACCESS) == 7
        assert client.value(Metric.ERROR) == 0
    finally:
        client.shutdown()


def test_set_value():
    client = StatsClient(interval=60, transport=[].append)
    try:
        client.set(Metric.CACHE_MISS, 42)
        assert client.value(Metric.CACHE_MISS) == 42
    finally:
        client.shutdown()


def test_concurrent_increments():
    client = StatsClient(interval=60, transport=[].append)
    workers, per_worker = 4, 250

    def bump():
        for _ in range(per_worker):
            client.increment(Metric.CACHE_HIT)

    threads = [threading.Thread(target=bump) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    try:
        assert client.value(Metric.CACHE_HIT) == workers * per_worker
    finally:
        client.shutdown()


def test_shutdown_flushes_counter():
    packets = []
    client = StatsClient(interval=60, transport=packets.append)
    for _ in range(3):
        client.increment(Metric.CACHE_HIT)
    client.shutdown()
    assert _lines(packets) == ["metric.1:3|c"]


def test_only_deltas_are_sent():
    packets = []
    client = StatsClient(interval=0.02, transport=packets.append)
    client.set(Metric.ERROR, 10)
    assert _wait_for(lambda: packets)
    client.set(Metric.ERROR, 15)
    client.shutdown()
    assert _lines(packets) == [f"{Metric.ERROR.value}:10|c", f"{Metric.ERROR.value}:5|c"]


def test_nothing_sent_without_changes():
    packets = []
    client = StatsClient(interval=0.01, transport=packets.append)
    time.sleep(0.05)
    client.shutdown()
    client.shutdown()
    assert packets == []


def test_transport_failure_is_logged(caplog):
    def broken(packet):
        raise OSError("unreachable")

    client = StatsClient(interval=60, logger=logging.getLogger("test.stats"), transport=broken)
    client.increment(Metric.ERROR)
    with caplog.at_level(logging.ERROR, logger="test.stats"):
        client.shutdown()
    assert any("Failed to send" in record.getMessage() for record in caplog.records)
    assert client.value(Metric.ERROR) == 1


def test_from_env_parses_address(monkeypatch):
    monkeypatch.setenv("STATSD_SERVER", "statsd.example.com:9125")
    client = StatsClient.from_env(logging.getLogger("test.stats"))
    try:
        assert client.address == ("statsd.example.com", 9125)
    finally:
        client.shutdown()


def test_from_env_default(monkeypatch):
    monkeypatch.delenv("STATSD_SERVER", raising=False)
    client = StatsClient.from_env(logging.getLogger("test.stats"))
    try:
        assert client.address == ("localhost", 8125)
    finally:
        client.shutdown()