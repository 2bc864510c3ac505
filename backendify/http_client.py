"""HTTP access to the company backends."""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Protocol

import requests
from requests.adapters import HTTPAdapter

CONNECT_TIMEOUT = 5.0
POOL_CONNECTIONS = 50
POOL_MAXSIZE = 200


class ContentType(str, Enum):
    """Content types the backends answer with."""

    V1 = "application/x-company-v1"
    V2 = "application/x-company-v2"


@dataclass
class HttpResponse:
    """A complete HTTP response."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


class RequestError(Exception):
    """A request failed; ``response`` holds whatever answer came back."""

    def __init__(self, message: str, response: HttpResponse | None = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> int:
        """The response's status, or 503 when no response arrived."""
        if self.response is None:
            return int(HTTPStatus.SERVICE_UNAVAILABLE)
        return self.response.status_code

    @property
    def content_type(self) -> str:
        """The response's content type, or an empty string."""
        if self.response is None:
            return ""
        return _header(self.response.headers, "Content-Type")


class HTTPClient(Protocol):
    """Anything that can perform a GET with a timeout in seconds."""

    def get(self, url: str, timeout: float) -> HttpResponse:
        """Fetch ``url``; raise RequestError on failure."""
        ...


class RealHTTPClient:
    """HTTP client over a pooled session with jittered timeouts."""

    def __init__(self, connect_timeout: float = CONNECT_TIMEOUT) -> None:
        self._connect_timeout = connect_timeout
        self._session = requests.Session()
        self._session.trust_env = False
        adapter = HTTPAdapter(pool_connections=POOL_CONNECTIONS, pool_maxsize=POOL_MAXSIZE)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def get(self, url: str, timeout: float) -> HttpResponse:
        """GET ``url`` with ``timeout`` seconds, jittered by up to 20% either way."""
        limit = timeout * (0.8 + 0.4 * random.random())
        try:
            response = self._session.get(url, timeout=(min(self._connect_timeout, limit), limit))
        except requests.RequestException as exc:
            raise RequestError(str(exc)) from exc
        return HttpResponse(response.status_code, response.headers, response.content)

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def __enter__(self) -> RealHTTPClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def ping_http(client: HTTPClient, url: str, sla: float) -> int:
    """GET ``url`` and return the status code; RequestError carries it on failure."""
    return client.get(url, sla).status_code


def get_http(client: HTTPClient, target_url: str, timeout: float) -> tuple[int, str, bytes]:
    """GET ``target_url`` and return status code, content type and body."""
    response = client.get(target_url, timeout)
    return response.status_code, _header(response.headers, "Content-Type"), bytes(response.body)