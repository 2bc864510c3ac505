"""Parsing of ``key=value`` command-line arguments."""

from __future__ import annotations

import sys
from collections.abc import Iterable


def parse_args(argv: Iterable[str] | None = None) -> dict[str, str]:
    """Collect ``key=value`` arguments into a dict.

    Only the first ``=`` separates key from value. Arguments without ``=``
    or with an empty key or value are ignored, and a later key replaces an
    earlier one. ``argv`` excludes the program name and defaults to
    ``sys.argv[1:]``.
    """
    if argv is None:
        argv = sys.argv[1:]
    parsed: dict[str, str] = {}
    for arg in argv:
        key, separator, value = arg.partition("=")
        if separator and key and value:
            parsed[key] = value
    return parsed