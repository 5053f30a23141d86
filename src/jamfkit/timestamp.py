"""The single timestamp coercion used for both API generations.

Timestamps are held as timezone-aware UTC :class:`~datetime.datetime`
objects with millisecond precision.
Sub-millisecond digits are truncated, never rounded,
so a coerced value may be up to 999 microseconds earlier than its input.
The truncation is applied to every input form, which makes
``coerce(dump(coerce(x))) == coerce(x)`` hold for all accepted ``x``.

Accepted inputs:

* :class:`~datetime.datetime` (naive values are taken to be UTC)
* ints or digit strings as unix epochs.
  Values of ``EPOCH_WITH_MSECS`` or higher are epoch milliseconds,
  smaller ones epoch seconds.
* ISO 8601 strings, with ``Z`` or a numeric offset,
  with or without fractional seconds
* ``None`` or ``""``: the unset timestamp, coerced to ``None``
"""
import re
from datetime import datetime, timedelta, timezone

from .errors import InvalidData

__all__ = ["coerce", "dump", "to_epoch_ms", "EPOCH_WITH_MSECS"]

EPOCH_WITH_MSECS = 1_000_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ISO_RE = re.compile(
    r"^(?P<date>[0-9]{4}-[0-9]{2}-[0-9]{2})"
    r"(?:[T ](?P<time>[0-9]{2}:[0-9]{2}(?::[0-9]{2})?)"
    r"(?:\.(?P<frac>[0-9]+))?)?"
    r"(?P<tz>Z|[+-][0-9]{2}:?[0-9]{2})?\Z",
    re.IGNORECASE,
)


def _invalid(value, attr_name):
    return InvalidData(
        "{}not a valid timestamp: {!r}".format(
            attr_name + ": " if attr_name else "", value
        )
    )


def _truncate(dt):
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def _from_epoch_ms(millis):
    return _EPOCH + timedelta(milliseconds=millis)


def _parse_iso(text, attr_name):
    match = _ISO_RE.match(text.strip())
    if not match:
        raise _invalid(text, attr_name)
    time_part = match.group("time") or "00:00:00"
    if time_part.count(":") == 1:
        time_part += ":00"
    frac = (match.group("frac") or "").ljust(6, "0")[:6]
    tz = match.group("tz") or "+00:00"
    if tz.upper() == "Z":
        tz = "+00:00"
    elif ":" not in tz:
        tz = tz[:3] + ":" + tz[3:]
    try:
        parsed = datetime.fromisoformat(
            "{}T{}.{}{}".format(match.group("date"), time_part, frac, tz)
        )
    except ValueError as e:
        raise _invalid(text, attr_name) from e
    return parsed.astimezone(timezone.utc)


def coerce(value, attr_name=None):
    """Coerce a value to a UTC datetime with millisecond precision.

    Parameters
    ----------
    value: datetime or int or str or None
        the value to coerce
    attr_name: str or None
        used in the error message

    Returns
    -------
    ~datetime.datetime or None
        ``None`` for the unset timestamp

    Raises
    ------
    ~jamfkit.errors.InvalidData
        if the value cannot be read as a timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return _truncate(value.astimezone(timezone.utc))
    if isinstance(value, str):
        digits = value.strip()
        if digits.isascii() and digits.isdigit():
            value = int(digits)
    if isinstance(value, int) and not isinstance(value, bool):
        millis = value if value >= EPOCH_WITH_MSECS else value * 1000
        try:
            return _from_epoch_ms(millis)
        except (ValueError, OverflowError) as e:
            raise _invalid(value, attr_name) from e
    if isinstance(value, str):
        return _truncate(_parse_iso(value, attr_name))
    raise _invalid(value, attr_name)


def dump(value):
    """Render a timestamp as ISO 8601 UTC with milliseconds,
    e.g. ``2021-06-01T12:30:00.250Z``.
    The unset timestamp renders as ``None``.
    """
    if value is None:
        return None
    value = coerce(value)
    return "{}.{:03d}Z".format(
        value.strftime("%Y-%m-%dT%H:%M:%S"), value.microsecond // 1000
    )


def to_epoch_ms(value):
    """Render a timestamp as integer unix epoch milliseconds"""
    value = coerce(value)
    if value is None:
        return None
    delta = value - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1000 + (
        delta.microseconds // 1000
    )
