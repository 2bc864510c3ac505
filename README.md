# backendify

backendify is a small HTTP service that sits in front of several
country-specific company registries. Each registry answers in one of two
formats, `application/x-company-v1` or `application/x-company-v2`. backendify
sends each lookup to the backend for the requested country and returns the
answer in a single JSON shape. It caches the companies it has fetched, and it
holds back calls to a backend for a while after a call to it has failed.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration

At startup the service reads `config.json` from the current directory:

```json
{
  "server": {
    "port": 9000,
    "max_workers": 50,
    "sla": 1.0,
    "queue_timeout": 1
  },
  "endpoint_path": "/companies/%s",
  "default_cache_size": 10000,
  "endpoint_timeout": 1,
  "perform_endpoint_health_checks": true
}
```

Missing keys take zero, empty or false values; unknown keys are ignored. A
value of the wrong type stops the service at startup.

- `server.port`: the port the service listens on (`0` picks a free port).
- `server.max_workers`: the number of worker threads. The job queue holds ten
  times this many jobs.
- `server.sla`: how many seconds a `/company` request may take before the
  service gives up and answers 404.
- `server.queue_timeout`: how many seconds a request may wait for a place in the
  job queue.
- `endpoint_path`: the path on a backend for a company lookup. The first `%s`
  is replaced by the company id.
- `default_cache_size`: how many companies each backend's LRU cache holds. A
  size of zero or less turns the cache off.
- `endpoint_timeout`: the timeout for calls to a backend, in whole seconds
  (a fraction is dropped). Each call's timeout gets a random jitter of ±20%.
- `perform_endpoint_health_checks`: at startup, request the company `ping` from
  every backend. A backend that cannot be reached starts out inactive.

The keys `retry_delays` and `spawn_localhost_mocks` are read and accepted, but
see "What it does not do" below.

Counters are sent over UDP to the StatsD server named by the `STATSD_SERVER`
environment variable (`host:port`), or to `localhost:8125` when it is not set.
Once a second the changes since the last send are reported as counters:
`metric.1` cache hits, `metric.2` cache misses, `metric.3` lookups and
`metric.4` errors.

Logging goes to standard output.

## Running

Give each backend on the command line as `COUNTRY=URL`, where `COUNTRY` is an
ISO 3166-1 alpha-2 code in either case:

```
backendify us=http://localhost:9001 ru=http://localhost:9002
```

Arguments without `=`, or with an empty country or URL, are ignored. An unknown
country code stops the service at startup with exit status 1; a URL that does
not parse is skipped with a warning. When no port is given in the URL, 80 is
used (443 for `https`). The service runs until SIGINT or SIGTERM and then shuts
down, answering any jobs still queued with a failure.

## HTTP API

### `GET /company?id=<id>&country_iso=<cc>`

On success the service answers `200` with `Content-Type: application/json`:

```json
{"id":"COMP123","name":"Example Ltd","active":false,"active_until":"2022-12-31T23:59:59Z"}
```

`active_until` is present only when the backend reported a closing or
dissolution date in RFC 3339 form. A company counts as active while that date
is still in the future; a company with no such date is active. A date that does
not parse gives an inactive company with no `active_until`.

The service answers `404` (`Not Found` as plain text) when a parameter is
missing, no backend is configured for the country, the backend call failed or
is being held back, the backend answered with an unknown content type or a body
that does not decode, the job queue stayed full for `queue_timeout` seconds, or
the SLA ran out.

### `GET /status`

While the server is running this answers `200` with a JSON summary of the
backends, by country code, and of the job queue:

```json
{"live_endpoints":"us","inactive_endpoints":"","dead_endpoints":"ru","queue_length":0}
```

Before startup and after shutdown it answers `503`.

Any other path gets an empty `200` answer.

## Backend failure handling

A backend call that fails outright (no connection, or a timeout) counts as a
503 and makes the backend *inactive*. While it is inactive, lookups that are not
in the cache answer 404 without calling the backend. The waiting time is taken
from the steps 1, 10, 30, 60 and 90 seconds by the backend's retry count; once
the wait is over, the next lookup reactivates the backend, resets its retry
count and calls it again, so in practice a failed backend is retried ten
seconds after each failure. A backend marked *dead* (through
`Endpoint.kill()`, or `Endpoint.process_error()` once the retry count has
reached five) is never called again. Companies already in the cache are served
whatever state the backend is in.

## Using it from Python

```python
import logging

from backendify.config import load_config
from backendify.endpoint import get_endpoints
from backendify.http_client import RealHTTPClient
from backendify.server import Server
from backendify.stats import StatsClient

logger = logging.getLogger("backendify")
config = load_config("config.json")

with RealHTTPClient() as client, StatsClient.from_env(logger) as stats:
    server = Server.from_config(config.server, logger, client, stats)
    server.endpoints = get_endpoints(client, logger, config, ["us=http://localhost:9001"])
    server.start()
    try:
        company, status = server.fetch_company("COMP123", "US")
        print(status, company.to_json())
    finally:
        server.stop()
```

The pieces can be used on their own:

- `backendify.endpoint.Endpoint.fetch_company(client, company_id)` returns a
  `CompanyResponse` or raises `EndpointError`, whose `status_code` says how it
  failed.
- Any object with a `get(url, timeout)` method returning an
  `backendify.http_client.HttpResponse`, and raising `RequestError` on failure,
  can stand in for `RealHTTPClient`.
- `Server.company_response(query)` and `Server.health_response()` return the
  status, headers and body the HTTP server would send, without a network
  round trip.

## What it does not do

- It does not start local mock backends. With `spawn_localhost_mocks` set to
  true the service logs a warning and uses the configured URLs as they are.
- `retry_delays` from the configuration is not used; the waiting steps are
  fixed at 1, 10, 30, 60 and 90 seconds.
- A backend that answers with an error status (rather than failing to answer)
  is not taken out of service; that lookup simply answers 404.