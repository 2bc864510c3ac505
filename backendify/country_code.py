"""ISO 3166-1 alpha-2 country code validation."""

from __future__ import annotations

# Assigned codes, keyed by first letter; each value lists the second letters.
_SECOND_LETTERS: dict[str, str] = {
    "A": "DEFGILMOQRSTUWXZ",
    "B": "ABDEFGHIJLMNOQRSTVWYZ",
    "C": "ACDFGHIKLMNORUVWXYZ",
    "D": "EJKMOZ",
    "E": "CEGHRST",
    "F": "IJKMOR",
    "G": "ABDEFGHILMNPQRSTUWY",
    "H": "KMNRTU",
    "I": "DELMNOQRST",
    "J": "EMOP",
    "K": "EGHIMNPRWYZ",
    "L": "ABCIKRSTUVY",
    "M": "ACDEFGHKLMNOPQRSTUVWXYZ",
    "N": "ACEFGILOPRUZ",
    "O": "M",
    "P": "AEFGHKLMNRSTWY",
    "Q": "A",
    "R": "EOSUW",
    "S": "ABCDEGHIJKLMNORSTVXYZ",
    "T": "CDFGHJKLMNORTVWZ",
    "U": "AGMSYZ",
    "V": "ACEGINU",
    "W": "FS",
    "Y": "ET",
    "Z": "AMW",
}

COUNTRY_CODES: tuple[str, ...] = tuple(
    first + second
    for first, seconds in sorted(_SECOND_LETTERS.items())
    for second in seconds
)

_CODES = frozenset(COUNTRY_CODES)


def _upper(text: str) -> str:
    # Upper-case character by character, keeping characters whose upper
    # case would expand to several characters.
    return "".join(c.upper() if len(c.upper()) == 1 else c for c in text)


def validate_country_code(cc: str) -> bool:
    """Return True if ``cc`` is a known two-letter country code, in any case."""
    return _upper(cc) in _CODES