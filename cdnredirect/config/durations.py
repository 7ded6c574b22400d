"""Parsing of duration option values.

Durations arrive either as Go-style strings ("20m", "1h30m", "1.5h",
"300ms") or as numbers of seconds, or already as timedelta values.
"""

import re
from datetime import timedelta


_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # noqa: RUF001
    "μs": 1e-6,  # noqa: RUF001
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT_PATTERN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")  # noqa: RUF001


def parse_duration(value: object) -> timedelta:
    """Parse a duration option value.

    Args:
        value: A timedelta, a number of seconds, or a duration string such as
            "20m" or "1h30m". A bare "0" is accepted.

    Returns:
        The parsed duration.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        msg = f"invalid duration: {value!r}"
        raise ValueError(msg)
    if isinstance(value, int | float):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        msg = f"invalid duration: {value!r}"
        raise ValueError(msg)

    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        msg = f"invalid duration: {value!r}"
        raise ValueError(msg)

    total = 0.0
    position = 0
    for match in _COMPONENT_PATTERN.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text):
        msg = f"invalid duration: {value!r}"
        raise ValueError(msg)

    return timedelta(seconds=sign * total)
