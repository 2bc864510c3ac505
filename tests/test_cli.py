import json
import logging
import signal
import socket
import threading
import time
import urllib.error
import urllib.request

import pytest

from backendify.cli import main


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STATSD_SERVER", "127.0.0.1:8125")
    return tmp_path


def _write_config(directory, port=0):
    config = {
        "server": {"port": port, "max_workers": 2, "sla": 1, "queue_timeout": 1},
        "retry_delays": [1, 10],
        "endpoint_path": "companies/%s",
        "default_cache_size": 10,
        "endpoint_timeout": 1,
        "spawn_localhost_mocks": False,
        "perform_endpoint_health_checks": False,
    }
    (directory / "config.json").write_text(json.dumps(config), encoding="utf-8")


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_missing_config_fails(workdir, caplog):
    caplog.set_level(logging.INFO)
    assert main([]) == 1
    assert "Failed to read config file" in caplog.text


def test_invalid_json_config_fails(workdir, caplog):
    caplog.set_level(logging.INFO)
    (workdir / "config.json").write_text("{not json", encoding="utf-8")
    assert main([]) == 1
    assert "Failed to unmarshal config" in caplog.text


def test_wrongly_typed_config_fails(workdir, caplog):
    caplog.set_level(logging.INFO)
    (workdir / "config.json").write_text(json.dumps({"server": {"port": "x"}}), encoding="utf-8")
    assert main([]) == 1
    assert "Failed to unmarshal config" in caplog.text


def test_illegal_country_code_fails(workdir, caplog):
    caplog.set_level(logging.INFO)
    _write_config(workdir)
    assert main(["ZZ=http://localhost:9001"]) == 1
    assert "Illegal country code: ZZ" in caplog.text


def test_serves_until_signalled(workdir, caplog):
    caplog.set_level(logging.INFO)
    port = _free_port()
    _write_config(workdir, port)
    results = {}
    opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def probe():
        deadline = time.monotonic() + 5
        try:
            while time.monotonic() < deadline:
                try:
                    with opener.open(f"http://127.0.0.1:{port}/status", timeout=1) as response:
                        results["status"] = response.status
                        results["body"] = json.loads(response.read())
                        break
                except (OSError, urllib.error.URLError):
                    time.sleep(0.05)
        finally:
            signal.raise_signal(signal.SIGTERM)

    prober = threading.Thread(target=probe)
    prober.start()
    code = main(["us=http://localhost:9001"])
    prober.join(10)

    assert code == 0
    assert results["status"] == 200
    assert results["body"]["live_endpoints"] == "us"
    assert results["body"]["dead_endpoints"] == ""
    assert "Server shutting down" in caplog.text
    assert "Endpoint for country us is configured" in caplog.text