"""Read-time conversion of stored configuration values."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


@dataclass(frozen=True)
class ParseResult:
    """Outcome of a conversion attempt."""

    ok: bool
    value: Any = None


_FAILED = ParseResult(ok=False)


def parse_str(value: Any) -> ParseResult:
    if isinstance(value, str):
        return ParseResult(True, value)
    if isinstance(value, bool):
        return ParseResult(True, "true" if value else "false")
    if isinstance(value, (int, float)):
        return ParseResult(True, str(value))
    return _FAILED


def parse_int(value: Any) -> ParseResult:
    """Accept ints, integral floats and numeric strings. Booleans are rejected."""
    if isinstance(value, bool):
        return _FAILED
    if isinstance(value, int):
        return ParseResult(True, value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return ParseResult(True, int(value))
        return _FAILED
    if isinstance(value, str):
        try:
            return ParseResult(True, int(value.strip()))
        except ValueError:
            return _FAILED
    return _FAILED


def parse_float(value: Any) -> ParseResult:
    if isinstance(value, bool):
        return _FAILED
    if isinstance(value, (int, float)):
        return ParseResult(True, float(value))
    if isinstance(value, str):
        try:
            return ParseResult(True, float(value.strip()))
        except ValueError:
            return _FAILED
    return _FAILED


def parse_bool(value: Any) -> ParseResult:
    if isinstance(value, bool):
        return ParseResult(True, value)
    if isinstance(value, int) and value in (0, 1):
        return ParseResult(True, bool(value))
    if isinstance(value, str):
        folded = value.strip().casefold()
        if folded in _TRUE_STRINGS:
            return ParseResult(True, True)
        if folded in _FALSE_STRINGS:
            return ParseResult(True, False)
    return _FAILED


def parse_list(value: Any) -> ParseResult:
    if isinstance(value, (list, tuple)):
        return ParseResult(True, list(value))
    return _FAILED


def parse_dict(value: Any) -> ParseResult:
    if isinstance(value, Mapping):
        return ParseResult(True, dict(value))
    return _FAILED


def parse_raw(value: Any) -> ParseResult:
    """Return the stored value unchanged."""
    return ParseResult(True, value)


_PARSERS: dict[type, Callable[[Any], ParseResult]] = {
    str: parse_str,
    int: parse_int,
    float: parse_float,
    bool: parse_bool,
    list: parse_list,
    dict: parse_dict,
    object: parse_raw,
}


def coerce(value: Any, target_type: type | None) -> ParseResult:
    """Convert ``value`` to ``target_type``.

    ``None`` or ``object`` keeps the raw value. Types without a dedicated
    parser only accept values that are already instances of them.
    """
    if target_type is None:
        return parse_raw(value)
    parser = _PARSERS.get(target_type)
    if parser is not None:
        return parser(value)
    if isinstance(value, target_type):
        return ParseResult(True, value)
    return _FAILED
