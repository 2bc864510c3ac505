"""Company records in the two formats the backends speak."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from backendify.models import CompanyResponse

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(\.\d+)?(Z|[+-]\d{2}:\d{2})\Z"
)


def _parse_rfc3339(text: str) -> datetime | None:
    """Parse an RFC 3339 timestamp, or return None if it is not one."""
    match = _RFC3339.match(text)
    if match is None:
        return None
    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    fraction = match.group(7)
    micro = int((fraction[1:] + "000000")[:6]) if fraction else 0
    zone = match.group(8)
    if zone == "Z":
        tz = timezone.utc
    else:
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours > 23 or minutes > 59:
            return None
        offset = timedelta(hours=hours, minutes=minutes)
        tz = timezone(-offset if zone[0] == "-" else offset)
    try:
        return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)
    except ValueError:
        return None


def _string_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        wanted = key.lower()
        value = next(
            (item for name, item in data.items() if isinstance(name, str) and name.lower() == wanted),
            None,
        )
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {value!r}")
    return value


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _company(name: str, ends_on: str) -> CompanyResponse:
    if not ends_on:
        return CompanyResponse(name=name, active=True)
    moment = _parse_rfc3339(ends_on)
    if moment is None:
        return CompanyResponse(name=name)
    return CompanyResponse(
        name=name,
        active=datetime.now(timezone.utc) < moment,
        active_until=ends_on,
    )


@dataclass
class V1Response:
    """A company in the first backend format."""

    cn: str = ""
    created_on: str = ""
    closed_on: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> V1Response:
        """Build from a decoded JSON object; raise ValueError on wrong types."""
        if data is None:
            return cls()
        data = _require_mapping(data)
        return cls(
            cn=_string_field(data, "cn"),
            created_on=_string_field(data, "created_on"),
            closed_on=_string_field(data, "closed_on"),
        )

    def to_company_response(self) -> CompanyResponse:
        """The company as the service reports it, without an id."""
        return _company(self.cn, self.closed_on)


@dataclass
class V2Response:
    """A company in the second backend format."""

    company_name: str = ""
    tin: str = ""
    dissolved_on: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> V2Response:
        """Build from a decoded JSON object; raise ValueError on wrong types."""
        if data is None:
            return cls()
        data = _require_mapping(data)
        return cls(
            company_name=_string_field(data, "company_name"),
            tin=_string_field(data, "tin"),
            dissolved_on=_string_field(data, "dissolved_on"),
        )

    def to_company_response(self) -> CompanyResponse:
        """The company as the service reports it, without an id."""
        return _company(self.company_name, self.dissolved_on)