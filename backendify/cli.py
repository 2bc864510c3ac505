"""Command that runs the company lookup service until it is signalled to stop."""

from __future__ import annotations

import contextlib
import logging
import signal
import sys
import threading
from collections.abc import Iterable, Iterator

from backendify.config import Config, load_config
from backendify.endpoint import get_endpoints
from backendify.http_client import RealHTTPClient
from backendify.server import Server
from backendify.stats import StatsClient

CONFIG_PATH = "config.json"
_WAIT_INTERVAL = 0.2
_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _configure_logging() -> logging.Logger:
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.INFO,
        format="%(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
    )
    return logging.getLogger("backendify")


@contextlib.contextmanager
def _stop_on_signals(stop: threading.Event, logger: logging.Logger) -> Iterator[None]:
    """Set ``stop`` on SIGINT or SIGTERM while the block runs."""

    def handle(signum: int, frame: object) -> None:
        stop.set()

    previous = {}
    try:
        for signum in _STOP_SIGNALS:
            previous[signum] = signal.signal(signum, handle)
    except ValueError:
        logger.warning("Signal handlers can only be installed from the main thread")
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _read_config(logger: logging.Logger) -> Config | None:
    try:
        return load_config(CONFIG_PATH)
    except OSError as exc:
        logger.critical("Failed to read config file: %s", exc)
    except ValueError as exc:
        logger.critical("Failed to unmarshal config: %s", exc)
    return None


def _run(argv: Iterable[str] | None, logger: logging.Logger, stats: StatsClient | None) -> int:
    config = _read_config(logger)
    if config is None:
        return 1
    if config.spawn_localhost_mocks:
        logger.warning("Local mock backends are not available; using the configured URLs as they are")

    with RealHTTPClient() as client:
        server = Server.from_config(config.server, logger, client, stats)
        try:
            server.endpoints = get_endpoints(client, logger, config, argv)
        except ValueError as exc:
            logger.critical("%s", exc)
            return 1

        stop = threading.Event()
        with _stop_on_signals(stop, logger):
            logger.info("Starting server")
            try:
                server.start()
            except (OSError, RuntimeError) as exc:
                logger.error("Server Error: %s", exc)

            while not stop.wait(_WAIT_INTERVAL):
                pass
            logger.info("Server shutting down")

            try:
                server.stop()
            except Exception:
                logger.exception("Error shutting down server")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Serve company lookups for the ``country=url`` backends in ``argv``.

    Reads ``config.json`` from the working directory and runs until SIGINT or
    SIGTERM. Returns the process exit status.
    """
    logger = _configure_logging()
    stats: StatsClient | None
    try:
        stats = StatsClient.from_env(logger)
    except (ValueError, OSError):
        logger.warning("Failed to create stats client")
        stats = None

    try:
        return _run(argv, logger, stats)
    except Exception:
        logger.critical("FATAL failure, application cannot continue", exc_info=True)
        return 1
    finally:
        if stats is not None:
            stats.shutdown()


if __name__ == "__main__":
    sys.exit(main())