"""
Parsing for rotation interval literals.

Accepts the forms a configuration file is likely to carry: a timedelta,
a number of seconds, a short suffix form ("1d", "24h", "30m", "90s", "2w")
or anything pydantic reads as a timedelta, such as an ISO-8601 duration
("P1D", "PT12H").
"""

import re
from datetime import timedelta
from typing import Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import InvalidIntervalError

_SHORTHAND = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw])\s*$", re.IGNORECASE)
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}
_TIMEDELTA = TypeAdapter(timedelta)

IntervalLike = Union[timedelta, int, float, str]


def parse_interval(value: IntervalLike) -> timedelta:
    """
    Convert an interval literal to a timedelta.

    Positivity is not checked here; the clock gate owns that rule.

    Raises:
        InvalidIntervalError: If the value cannot be parsed
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise InvalidIntervalError(f"Unsupported interval value: {value!r}", value=str(value))
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str) or not value.strip():
        raise InvalidIntervalError(f"Unparseable rotation interval: {value!r}", value=str(value))

    match = _SHORTHAND.match(value)
    if match:
        amount, unit = match.groups()
        return timedelta(**{_UNITS[unit.lower()]: float(amount)})

    try:
        return _TIMEDELTA.validate_python(value.strip())
    except PydanticValidationError as e:
        raise InvalidIntervalError(
            f"Unparseable rotation interval: {value!r}", value=value, cause=e
        ) from e
