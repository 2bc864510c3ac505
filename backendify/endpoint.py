"""A country's company backend, with caching and retry bookkeeping."""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
import time
from enum import Enum
from collections.abc import Iterable, Mapping
from urllib.parse import urlsplit

from cachetools import LRUCache

from backendify.args import parse_args
from backendify.config import Config
from backendify.country_code import validate_country_code
from backendify.http_client import ContentType, HTTPClient, RequestError, get_http, ping_http
from backendify.lock import try_lock
from backendify.models import CompanyResponse
from backendify.responses import V1Response, V2Response

SUPPORTED_RETRY_INTERVALS: tuple[int, ...] = (1, 10, 30, 60, 90)
LOCK_TIMEOUT = 0.05

_log = logging.getLogger(__name__)


class Status(str, Enum):
    """Availability of an endpoint."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DEAD = "DEAD"


class EndpointError(Exception):
    """A company could not be fetched; ``status_code`` says how it failed."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class Endpoint:
    """One backend serving company records for a country."""

    def __init__(
        self,
        url: str = "",
        path_template: str = "",
        port: str = "80",
        status: Status = Status.ACTIVE,
        last_retry: float = 0.0,
        retry_attempts: int = 0,
        sla: float = 0.0,
        cache: LRUCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.url = url
        self.path_template = path_template
        self.port = port
        self.last_retry = last_retry
        self.sla = sla
        self.cache = cache
        self.logger = logger or _log
        self._status = Status(status)
        self._retry_attempts = retry_attempts
        self._lock = threading.Lock()
        self._cache_lock = threading.Lock()

    @property
    def status(self) -> Status:
        with self._lock:
            return self._status

    @status.setter
    def status(self, status: Status) -> None:
        with self._lock:
            self._status = Status(status)

    @property
    def retry_attempts(self) -> int:
        with self._lock:
            return self._retry_attempts

    @retry_attempts.setter
    def retry_attempts(self, count: int) -> None:
        with self._lock:
            self._retry_attempts = count

    @property
    def sla_seconds(self) -> float:
        """The request timeout in whole seconds."""
        return float(int(self.sla))

    def close(self) -> None:
        """Drop cached entries and mark the endpoint dead."""
        with self._cache_lock:
            if self.cache is not None:
                self.cache.clear()
        with self._lock:
            self._status = Status.DEAD

    def base_url(self) -> str:
        """Scheme, host and port, without a trailing slash."""
        return f"{self.url.rstrip('/')}:{self.port}"

    def url_for_company(self, company_id: str) -> str:
        """Full URL of the company record ``company_id``."""
        path = self.path_template.replace("%s", company_id, 1).lstrip("/")
        return f"{self.base_url()}/{path}"

    def process_error(self, status_code: int) -> None:
        """Record a server-side failure, stepping towards DEAD."""
        if status_code < 500:
            return
        with self._lock:
            self.last_retry = time.time()
            if self._retry_attempts >= len(SUPPORTED_RETRY_INTERVALS):
                self._status = Status.DEAD
                self._retry_attempts = 0
            else:
                self._status = Status.INACTIVE
                self._retry_attempts += 1

    def kill(self) -> None:
        """Mark the endpoint dead and reset its retries."""
        with self._lock:
            self._retry_attempts = 0
            self._status = Status.DEAD

    def reactivate(self) -> None:
        """Mark the endpoint active and reset its retries."""
        with self._lock:
            self._retry_attempts = 0
            self._status = Status.ACTIVE

    def should_retry(self) -> bool:
        """Whether a request may be sent now; False if the state is locked too long."""
        if not try_lock(self._lock, LOCK_TIMEOUT):
            self.logger.warning("Lock acquisition timeout in should_retry()")
            return False
        try:
            if self._status is Status.ACTIVE:
                return True
            if self._status is Status.DEAD:
                return False
            if self._retry_attempts >= len(SUPPORTED_RETRY_INTERVALS):
                return False
            interval = SUPPORTED_RETRY_INTERVALS[self._retry_attempts]
            return time.time() > self.last_retry + interval
        finally:
            self._lock.release()

    def _cached(self, company_id: str) -> CompanyResponse | None:
        if self.cache is None:
            return None
        with self._cache_lock:
            return self.cache.get(company_id)

    def get_cache_entry_as_json(self, company_id: str) -> str | None:
        """The cached company as JSON, or None if it is not cached."""
        cached = self._cached(company_id)
        return None if cached is None else cached.to_json()

    def fetch_company(self, client: HTTPClient, company_id: str) -> CompanyResponse:
        """Fetch a company from the cache or the backend; raise EndpointError on failure."""
        self.logger.info("FetchCompany initiated for id: %s, endpoint: %s", company_id, self.url)
        cached = self._cached(company_id)
        if cached is not None:
            self.logger.info("FetchCompany cache hit for id: %s, endpoint: %s", company_id, self.url)
            return dataclasses.replace(cached)

        status = self.status
        if status is Status.DEAD:
            self.logger.warning("Endpoint dead for id: %s, endpoint: %s", company_id, self.url)
            raise EndpointError("endpoint unavailable", 404)
        if status is Status.INACTIVE:
            if not self.should_retry():
                self.logger.warning("Endpoint awaiting retry for id: %s, endpoint: %s", company_id, self.url)
                raise EndpointError("endpoint awaiting retry", 404)
            self.logger.info("Endpoint retry for id: %s, endpoint: %s", company_id, self.url)
            self.reactivate()

        target_url = self.url_for_company(company_id)
        try:
            code, content_type, body = get_http(client, target_url, self.sla_seconds)
        except RequestError as exc:
            self.logger.error("%s for id: %s, endpoint: %s", exc, company_id, target_url)
            self.process_error(exc.status_code)
            raise EndpointError(str(exc), exc.status_code) from exc

        if not body:
            self.logger.error("Endpoint received empty body for id: %s, endpoint: %s", company_id, target_url)
        else:
            self.logger.info(
                "Endpoint request returned status %d with content type %s for id: %s, endpoint: %s",
                code, content_type, company_id, target_url,
            )

        parsers = {ContentType.V1.value: V1Response, ContentType.V2.value: V2Response}
        parser = parsers.get(content_type)
        if parser is None:
            self.logger.warning("Invalid content type for %s", company_id)
            raise EndpointError(f"invalid content type version {content_type}", 500)
        try:
            result = parser.from_dict(json.loads(body)).to_company_response()
        except ValueError as exc:
            self.logger.warning("Failed to decode response for id: %s", company_id)
            raise EndpointError(str(exc), 500) from exc

        result.id = company_id
        if self.cache is not None:
            with self._cache_lock:
                self.cache[company_id] = result
        return dataclasses.replace(result)


def create_endpoint(
    http_client: HTTPClient,
    logger: logging.Logger | None,
    endpoint_url: str,
    endpoint_timeout: float,
    path_template: str,
    cache_size: int,
    perform_health_checks: bool,
) -> Endpoint:
    """Build an endpoint for ``endpoint_url``; raise ValueError if it does not parse."""
    logger = logger or _log
    logger.info("Creating new endpoint for URL: %s", endpoint_url)
    try:
        parsed = urlsplit(endpoint_url)
        port_number = parsed.port
    except ValueError as exc:
        raise ValueError(f"failed to parse URL: {exc}") from exc

    host = parsed.hostname or ""
    if port_number is None:
        port = "443" if parsed.scheme == "https" else "80"
    else:
        port = str(port_number)

    endpoint = Endpoint(
        url=f"{parsed.scheme}://{host}".rstrip("/"),
        path_template=path_template,
        port=port,
        sla=endpoint_timeout,
        cache=LRUCache(cache_size) if cache_size > 0 else None,
        logger=logger,
        last_retry=time.time(),
    )

    if perform_health_checks:
        ping_url = endpoint.url_for_company("ping")
        logger.info("Pinging endpoint for URL: %s", endpoint_url)
        try:
            code = ping_http(http_client, ping_url, float(int(endpoint_timeout)))
        except RequestError as exc:
            code = exc.status_code
            if code >= 500:
                endpoint.status = Status.INACTIVE
        logger.info("Ping result for URL: %s, code: %d", ping_url, code)
    return endpoint


def get_endpoints(
    client: HTTPClient,
    logger: logging.Logger | None,
    app_config: Config,
    argv: Iterable[str] | None = None,
) -> dict[str, Endpoint]:
    """Endpoints from ``country=url`` arguments, keyed by lower-case country code.

    Raise ValueError on an unknown country code; URLs that fail to parse are skipped.
    """
    logger = logger or _log
    arguments: Mapping[str, str] = parse_args(argv)
    endpoints: dict[str, Endpoint] = {}
    for country_code, endpoint_url in arguments.items():
        if not validate_country_code(country_code):
            raise ValueError(f"Illegal country code: {country_code}")
        try:
            endpoint = create_endpoint(
                client,
                logger,
                endpoint_url,
                app_config.endpoint_timeout,
                app_config.endpoint_path_template,
                app_config.default_cache_size,
                app_config.perform_endpoint_health_checks,
            )
        except ValueError:
            logger.warning(
                "Endpoint construction failed for country code: %s, endpoint: %s",
                country_code, endpoint_url,
            )
            continue
        endpoints[country_code.lower()] = endpoint
    return endpoints