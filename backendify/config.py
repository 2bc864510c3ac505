"""Application configuration read from JSON."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from os import PathLike
from typing import Any


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected a JSON object, got {type(data).__name__}")
    return data


def _int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    return value


def _float(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    return float(value)


def _bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected a boolean, got {value!r}")
    return value


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {value!r}")
    return value


def _int_list(data: Mapping[str, Any], key: str) -> list[int]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key}: expected a list, got {value!r}")
    return [_int({key: item}, key) for item in value]


@dataclass
class ServerConfiguration:
    """Settings of the HTTP front end."""

    port: int = 0
    max_workers: int = 0
    sla: float = 0.0
    queue_timeout: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerConfiguration:
        """Build from the ``server`` object of the configuration file."""
        data = _require_mapping(data, "server")
        return cls(
            port=_int(data, "port"),
            max_workers=_int(data, "max_workers"),
            sla=_float(data, "sla"),
            queue_timeout=_int(data, "queue_timeout"),
        )


@dataclass
class Config:
    """The whole application configuration."""

    server: ServerConfiguration = field(default_factory=ServerConfiguration)
    retry_delays: list[int] = field(default_factory=list)
    endpoint_path_template: str = ""
    default_cache_size: int = 0
    endpoint_timeout: float = 0.0
    spawn_localhost_mocks: bool = False
    perform_endpoint_health_checks: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Build from the decoded configuration file; unknown keys are ignored."""
        data = _require_mapping(data, "config")
        server = data.get("server")
        return cls(
            server=ServerConfiguration() if server is None else ServerConfiguration.from_dict(server),
            retry_delays=_int_list(data, "retry_delays"),
            endpoint_path_template=_str(data, "endpoint_path"),
            default_cache_size=_int(data, "default_cache_size"),
            endpoint_timeout=_float(data, "endpoint_timeout"),
            spawn_localhost_mocks=_bool(data, "spawn_localhost_mocks"),
            perform_endpoint_health_checks=_bool(data, "perform_endpoint_health_checks"),
        )


def load_config(path: str | PathLike[str] = "config.json") -> Config:
    """Read and decode the JSON configuration file at ``path``."""
    with open(path, encoding="utf-8") as handle:
        return Config.from_dict(json.load(handle))