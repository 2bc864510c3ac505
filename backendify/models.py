"""Data returned to the service's callers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class CompanyResponse:
    """A company as the service reports it."""

    id: str = ""
    name: str = ""
    active: bool = False
    active_until: str = ""

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping; ``active_until`` is left out when empty."""
        data: dict[str, Any] = {"id": self.id, "name": self.name, "active": self.active}
        if self.active_until:
            data["active_until"] = self.active_until
        return data

    def to_json(self) -> str:
        """Compact JSON with HTML-sensitive characters escaped."""
        text = json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)
        return "".join(_ESCAPES.get(char, char) for char in text)


@dataclass
class Result:
    """A worker's answer to a job."""

    data: CompanyResponse = field(default_factory=CompanyResponse)
    status_code: int = 0