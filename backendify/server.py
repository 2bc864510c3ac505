"""The HTTP front end: a worker pool answering company lookups."""

from __future__ import annotations

import dataclasses
import json
import logging
import queue
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Protocol
from urllib.parse import parse_qs, urlsplit

from backendify.config import ServerConfiguration
from backendify.endpoint import EndpointError, Status
from backendify.http_client import HTTPClient
from backendify.models import CompanyResponse, Result
from backendify.stats import Metric, StatsClient

SHUTDOWN_TIMEOUT = 5.0
_POLL_INTERVAL = 0.1
_JSON_HEADERS = {"Content-Type": "application/json"}

_Reply = tuple[int, dict[str, str], bytes]


class _CompanySource(Protocol):
    """What the server needs from a country's endpoint."""

    @property
    def status(self) -> Status: ...

    def fetch_company(self, client: HTTPClient, company_id: str) -> CompanyResponse: ...

    def close(self) -> None: ...

    def get_cache_entry_as_json(self, company_id: str) -> str | None: ...


def _text_reply(status: int) -> _Reply:
    headers = {
        "Content-Type": "text/plain; charset=utf-8",
        "X-Content-Type-Options": "nosniff",
    }
    return status, headers, f"{HTTPStatus(status).phrase}\n".encode()


def _query_value(query: str | Mapping[str, Any], name: str) -> str:
    if isinstance(query, str):
        query = parse_qs(query, keep_blank_values=True)
    value = query.get(name, "")
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    return str(value)


@dataclass
class Job:
    """A company lookup waiting for a worker."""

    company_id: str
    country_code: str
    responses: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1))
    cancelled: threading.Event = field(default_factory=threading.Event)


@dataclass
class ServerHealth:
    """Endpoint availability and queue load."""

    live_endpoints: str = ""
    inactive_endpoints: str = ""
    dead_endpoints: str = ""
    queue_length: int = 0

    def to_json(self) -> str:
        """Compact JSON form."""
        return json.dumps(dataclasses.asdict(self), separators=(",", ":"))


class Server:
    """Answers ``/company`` and ``/status`` requests through a pool of workers."""

    def __init__(
        self,
        client: HTTPClient | None = None,
        sla: float = 0.0,
        port: int = 0,
        max_workers: int = 0,
        logger: logging.Logger | None = None,
        endpoints: Mapping[str, _CompanySource] | None = None,
        queue_timeout: float = 0,
        stats_client: StatsClient | None = None,
        queue_size: int | None = None,
    ) -> None:
        self.client = client
        self.sla = sla
        self.port = port
        self.max_workers = max_workers
        self.queue_timeout = queue_timeout
        self.endpoints: dict[str, _CompanySource] = dict(endpoints or {})
        self.logger = logger or logging.getLogger(__name__)
        self._stats = stats_client
        self._queue_size = queue_size
        self._jobs: queue.Queue | None = None
        self._lock = threading.Lock()
        self._started = False
        self._stopped = True
        self._halt = threading.Event()
        self._httpd: ThreadingHTTPServer | None = None
        self._serve_thread: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        config: ServerConfiguration,
        logger: logging.Logger | None = None,
        client: HTTPClient | None = None,
        stats_client: StatsClient | None = None,
    ) -> Server:
        """Build a stopped server from its configuration."""
        server = cls(
            client=client,
            sla=config.sla,
            port=config.port,
            max_workers=config.max_workers,
            logger=logger,
            queue_timeout=config.queue_timeout,
            stats_client=stats_client,
        )
        server.logger.info(
            "Server created: port %d, SLA %f seconds, max workers %d",
            config.port, config.sla, config.max_workers,
        )
        return server

    def _register(self, metric: Metric) -> None:
        if self._stats is not None:
            self._stats.increment(metric)

    def health(self) -> ServerHealth:
        """Country codes grouped by endpoint status, and the queue length."""
        groups: dict[Status, list[str]] = {status: [] for status in Status}
        with self._lock:
            for country, endpoint in list(self.endpoints.items()):
                status = endpoint.status
                if status in groups:
                    groups[Status(status)].append(country)
            length = self._jobs.qsize() if self._jobs is not None else 0
        return ServerHealth(
            live_endpoints=",".join(groups[Status.ACTIVE]),
            inactive_endpoints=",".join(groups[Status.INACTIVE]),
            dead_endpoints=",".join(groups[Status.DEAD]),
            queue_length=length,
        )

    def is_healthy(self) -> bool:
        """True while the server is started and not stopped."""
        with self._lock:
            return self._started and not self._stopped

    def is_stopped(self) -> bool:
        """True before start and after stop."""
        with self._lock:
            return self._stopped

    def start(self) -> None:
        """Start the workers and begin listening; raise if already started."""
        with self._lock:
            if self._started:
                raise RuntimeError("server already started")
            self._log_endpoint_configuration()
            if self._jobs is None:
                size = self._queue_size if self._queue_size is not None else self.max_workers * 10
                self._jobs = queue.Queue(maxsize=size)
            try:
                httpd = ThreadingHTTPServer(("", self.port), self._handler_class())
            except OSError:
                self.logger.exception("Server startup failed")
                raise
            httpd.daemon_threads = True
            self.port = httpd.server_address[1]

            self._halt = threading.Event()
            for number in range(1, self.max_workers + 1):
                threading.Thread(
                    target=self._worker,
                    args=(self._halt, self._jobs),
                    name=f"worker-{number}",
                    daemon=True,
                ).start()
            self.logger.info("All %d workers successfully initialized", self.max_workers)

            self._httpd = httpd
            self._serve_thread = threading.Thread(
                target=httpd.serve_forever, name="http-server", daemon=True
            )
            self._serve_thread.start()
            self._started = True
            self._stopped = False
            self.logger.info("Server successfully started on port %d", self.port)

    def stop(self) -> None:
        """Answer queued jobs with 503, stop listening and close the endpoints."""
        self.logger.info("Stopping server")
        with self._lock:
            if self._stopped:
                return
            self._drain_job_queue()
            self._halt.set()
            httpd, thread = self._httpd, self._serve_thread
            self._httpd = self._serve_thread = None
            if httpd is not None:
                httpd.shutdown()
                httpd.server_close()
            if thread is not None:
                thread.join(SHUTDOWN_TIMEOUT)
            for endpoint in self.endpoints.values():
                endpoint.close()
            self._stopped = True
            self._started = False
        self.logger.info("Server stopped")

    def submit(self, job: Job) -> None:
        """Put ``job`` on the queue, waiting for room."""
        if self._jobs is None:
            raise RuntimeError("server has no job queue; start it first")
        self._jobs.put(job)

    def fetch_company(self, company_id: str, country_code: str) -> tuple[CompanyResponse, int]:
        """Look a company up through its country's endpoint; failures give 404."""
        self._register(Metric.ACCESS)
        endpoint = self.endpoints.get(country_code.lower())
        if endpoint is None:
            self.logger.error("No endpoint configured for country code: %s", country_code)
            return CompanyResponse(), int(HTTPStatus.NOT_FOUND)
        try:
            company = endpoint.fetch_company(self.client, company_id)
        except EndpointError as exc:
            self._register(Metric.ERROR)
            self.logger.error(
                "Endpoint returned error for %s (status %d): %s",
                country_code, exc.status_code, exc,
            )
            return CompanyResponse(), int(HTTPStatus.NOT_FOUND)
        return company, int(HTTPStatus.OK)

    def get_cached_response(self, company_id: str, country_code: str) -> str | None:
        """The cached company as JSON, or None."""
        endpoint = self.endpoints.get(country_code.lower())
        if endpoint is None:
            return None
        return endpoint.get_cache_entry_as_json(company_id)

    def health_response(self) -> _Reply:
        """Status, headers and body for ``/status``."""
        with self._lock:
            started = self._started
        if not started:
            self.logger.warning("HealthCheck: Server is not started")
            return int(HTTPStatus.SERVICE_UNAVAILABLE), {}, b""
        health = self.health()
        if not self.is_healthy():
            self.logger.warning("HealthCheck: Server is overloaded or unhealthy")
            return int(HTTPStatus.TOO_MANY_REQUESTS), {}, b""
        body = health.to_json()
        self.logger.info("Health info: %s", body)
        return int(HTTPStatus.OK), dict(_JSON_HEADERS), body.encode()

    def company_response(self, query: str | Mapping[str, Any]) -> _Reply:
        """Status, headers and body for ``/company`` with the given query."""
        if self.is_stopped():
            return int(HTTPStatus.OK), {}, b""
        started_at = time.monotonic()
        company_id = _query_value(query, "id")
        country_code = _query_value(query, "country_iso")
        self.logger.info("Received /company request with id: %s, country_iso: %s", company_id, country_code)
        if not company_id or not country_code:
            self.logger.warning("Missing parameters in /company request")
            return _text_reply(HTTPStatus.NOT_FOUND)

        cached = self.get_cached_response(company_id, country_code)
        if cached is not None:
            self._register(Metric.CACHE_HIT)
            self.logger.info("Serving cached response for id: %s, country_iso: %s", company_id, country_code)
            return int(HTTPStatus.OK), dict(_JSON_HEADERS), cached.encode()
        self._register(Metric.CACHE_MISS)

        deadline = started_at + self.sla
        job = Job(company_id, country_code)
        jobs = self._jobs
        if jobs is None:
            return _text_reply(HTTPStatus.NOT_FOUND)
        try:
            jobs.put(job, timeout=max(0.0, float(self.queue_timeout)))
        except queue.Full:
            self.logger.error(
                "Job queue full or timeout. Dropping request for id: %s, country_iso: %s",
                company_id, country_code,
            )
            return _text_reply(HTTPStatus.NOT_FOUND)
        self.logger.debug("Time to queue job %s: %.6fs", company_id, time.monotonic() - started_at)

        try:
            result: Result = job.responses.get(timeout=max(0.0, deadline - time.monotonic()))
        except queue.Empty:
            job.cancelled.set()
            self._register(Metric.ERROR)
            self.logger.error(
                "Request timed out after %.2f seconds for id: %s, country_iso: %s (queue %d/%d)",
                self.sla, company_id, country_code, jobs.qsize(), jobs.maxsize,
            )
            return _text_reply(HTTPStatus.NOT_FOUND)

        self.logger.debug("Total processing time for id %s: %.6fs", company_id, time.monotonic() - started_at)
        if result.status_code != HTTPStatus.OK:
            self.logger.warning(
                "Backend returned non-OK status for id: %s, country_iso: %s, StatusCode: %d",
                company_id, country_code, result.status_code,
            )
            return _text_reply(HTTPStatus.NOT_FOUND)
        return int(HTTPStatus.OK), dict(_JSON_HEADERS), (result.data.to_json() + "\n").encode()

    def _log_endpoint_configuration(self) -> None:
        if not self.endpoints:
            self.logger.warning("No endpoints configured!")
        for country in self.endpoints:
            self.logger.info("Endpoint for country %s is configured", country)

    def _drain_job_queue(self) -> None:
        if self._jobs is None:
            return
        drained = 0
        while True:
            try:
                job = self._jobs.get_nowait()
            except queue.Empty:
                break
            try:
                job.responses.put_nowait(Result(status_code=int(HTTPStatus.SERVICE_UNAVAILABLE)))
            except queue.Full:
                self.logger.warning("Could not send result for job - channel full")
            drained += 1
        self.logger.info("Job queue drained, processed %d jobs", drained)

    def _worker(self, halt: threading.Event, jobs: queue.Queue) -> None:
        while not halt.is_set():
            try:
                job = jobs.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self._process(job)
            except Exception:
                self.logger.exception("Recovered from failure in worker")

    def _process(self, job: Job) -> None:
        if job.cancelled.is_set():
            self.logger.info("Skipping cancelled job for CompanyID: %s", job.company_id)
            return
        started_at = time.monotonic()
        company, code = self.fetch_company(job.company_id, job.country_code)
        self.logger.info(
            "Worker finished job for CompanyID: %s, CountryCode: %s, Status: %d, Duration: %.6fs",
            job.company_id, job.country_code, code, time.monotonic() - started_at,
        )
        if code != HTTPStatus.OK:
            self._register(Metric.ERROR)
        if job.cancelled.is_set():
            self.logger.info("Job was cancelled during processing for CompanyID: %s", job.company_id)
            return
        try:
            job.responses.put_nowait(Result(data=company, status_code=code))
        except queue.Full:
            self.logger.warning("Could not send result for %s - channel full", job.company_id)

    def _route(self, target: str) -> _Reply:
        parts = urlsplit(target)
        if parts.path == "/status":
            return self.health_response()
        if parts.path == "/company":
            return self.company_response(parts.query)
        return int(HTTPStatus.OK), {}, b""

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        server = self

        class Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"

            def do_GET(self) -> None:
                try:
                    status, headers, body = server._route(self.path)
                except Exception:
                    server.logger.exception("Failure in HTTP handler: %s %s", self.command, self.path)
                    status, headers, body = _text_reply(HTTPStatus.INTERNAL_SERVER_ERROR)
                self.send_response(status)
                for name, value in headers.items():
                    self.send_header(name, value)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            do_POST = do_GET

            def log_message(self, format: str, *args: Any) -> None:
                server.logger.debug("%s - %s", self.address_string(), format % args)

        return Handler