import json

import pytest

from backendify.config import Config, ServerConfiguration, load_config

SAMPLE = {
    "server": {"port": 9000, "max_workers": 50, "sla": 0.9, "queue_timeout": 2},
    "retry_delays": [1, 10, 30],
    "endpoint_path": "companies/%s",
    "default_cache_size": 1000,
    "endpoint_timeout": 5.5,
    "spawn_localhost_mocks": True,
    "perform_endpoint_health_checks": False,
    "unrelated": "ignored",
}


def test_from_dict_reads_every_field():
    config = Config.from_dict(SAMPLE)
    server = SAMPLE["server"]
    assert config.server == ServerConfiguration(
        port=server["port"],
        max_workers=server["max_workers"],
        sla=server["sla"],
        queue_timeout=server["queue_timeout"],
    )
    assert config.retry_delays == SAMPLE["retry_delays"]
    assert config.endpoint_path_template == SAMPLE["endpoint_path"]
    assert config.default_cache_size == SAMPLE["default_cache_size"]
    assert config.endpoint_timeout == SAMPLE["endpoint_timeout"]
    assert config.spawn_localhost_mocks is True
    assert config.perform_endpoint_health_checks is False


def test_missing_keys_take_defaults():
    assert Config.from_dict({}) == Config()
    assert ServerConfiguration.from_dict({"port": 8080}) == ServerConfiguration(port=8080)


def test_integer_sla_becomes_float():
    server = ServerConfiguration.from_dict({"sla": 1})
    assert isinstance(server.sla, float)
    assert server.sla == 1


@pytest.mark.parametrize(
    "data",
    [
        {"server": {"port": "9000"}},
        {"server": {"max_workers": 1.5}},
        {"default_cache_size": True},
        {"retry_delays": [1, "ten"]},
        {"spawn_localhost_mocks": "yes"},
        {"server": []},
    ],
)
def test_wrong_types_rejected(data):
    with pytest.raises(ValueError):
        Config.from_dict(data)


def test_load_config_round_trip(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(SAMPLE), encoding="utf-8")
    assert load_config(path) == Config.from_dict(SAMPLE)


def test_load_config_rejects_bad_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.json")