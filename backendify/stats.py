"""StatsD counters, sent as deltas once a second."""

from __future__ import annotations

import logging
import os
import socket
import threading
from collections.abc import Callable, Iterator
from enum import Enum

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8125
MAX_PACKET_SIZE = 1400
SHUTDOWN_TIMEOUT = 3.0


class Metric(str, Enum):
    """The counters the service reports."""

    CACHE_HIT = "metric.1"
    CACHE_MISS = "metric.2"
    ACCESS = "metric.3"
    ERROR = "metric.4"


def _packets(lines: list[str]) -> Iterator[bytes]:
    current = b""
    for line in lines:
        encoded = line.encode()
        if current and len(current) + 1 + len(encoded) > MAX_PACKET_SIZE:
            yield current
            current = b""
        current = current + b"\n" + encoded if current else encoded
    if current:
        yield current


class StatsClient:
    """Thread-safe counters flushed to StatsD by a background thread."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        logger: logging.Logger | None = None,
        *,
        interval: float = 1.0,
        transport: Callable[[bytes], object] | None = None,
    ) -> None:
        self.address = (host, port)
        self._logger = logger or logging.getLogger(__name__)
        self._interval = interval
        self._lock = threading.Lock()
        self._values = dict.fromkeys(Metric, 0)
        self._sent = dict.fromkeys(Metric, 0)
        self._socket: socket.socket | None = None
        self._target: tuple | None = None
        self._transport = transport or self._send_udp
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name="statsd-sender", daemon=True)
        self._thread.start()

    @classmethod
    def from_env(cls, logger: logging.Logger | None = None) -> StatsClient:
        """Create a client for the ``STATSD_SERVER`` address (``host:port``)."""
        logger = logger or logging.getLogger(__name__)
        server = os.environ.get("STATSD_SERVER") or f"{DEFAULT_HOST}:{DEFAULT_PORT}"
        host, port = server, str(DEFAULT_PORT)
        if ":" in server:
            parts = server.split(":")
            host, port = parts[0], parts[1]
        logger.info("Initializing StatsD client to %s:%s", host, port)
        return cls(host, int(port), logger)

    def set(self, metric: Metric, value: int) -> None:
        """Set ``metric`` to ``value``."""
        with self._lock:
            self._values[Metric(metric)] = value

    def increment(self, metric: Metric) -> None:
        """Add one to ``metric``."""
        metric = Metric(metric)
        self._logger.debug("Incrementing %s by 1", metric.value)
        with self._lock:
            self._values[metric] += 1

    def value(self, metric: Metric) -> int:
        """Current value of ``metric``."""
        with self._lock:
            return self._values[Metric(metric)]

    def shutdown(self) -> None:
        """Stop the sender after a final flush, waiting up to three seconds."""
        if self._done.is_set():
            return
        self._logger.info("Shutting down StatsClient...")
        self._done.set()
        self._thread.join(SHUTDOWN_TIMEOUT)
        if self._thread.is_alive():
            self._logger.warning("StatsClient shutdown timed out after %s seconds", SHUTDOWN_TIMEOUT)
            return
        if self._socket is not None:
            self._socket.close()
        self._logger.info("StatsClient shutdown complete")

    def __enter__(self) -> StatsClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _send_udp(self, packet: bytes) -> None:
        if self._socket is None:
            family, kind, proto, _, target = socket.getaddrinfo(
                *self.address, type=socket.SOCK_DGRAM
            )[0]
            self._socket = socket.socket(family, kind, proto)
            self._target = target
        self._socket.sendto(packet, self._target)

    def _run(self) -> None:
        self._logger.debug("Periodic send loop is running")
        while not self._done.wait(self._interval):
            self._flush()
        self._flush()
        self._logger.debug("Final counter deltas sent, sender stopping")

    def _flush(self) -> None:
        with self._lock:
            current = dict(self._values)
        deltas = {metric: current[metric] - self._sent[metric] for metric in Metric}
        self._sent = current
        lines = [f"{metric.value}:{delta}|c" for metric, delta in deltas.items() if delta]
        if not lines:
            return
        try:
            for packet in _packets(lines):
                self._transport(packet)
        except Exception:
            self._logger.exception("Failed to send counter deltas")