"""Stateless validation and coercion of primitive values.

Each function takes a candidate value, returns its canonical form,
or raises :class:`~jamfkit.errors.InvalidData`.
All accept an ``attr_name`` (used to prefix the error message)
and a custom ``msg``.
"""
import enum
import numbers
import re
from collections.abc import Mapping

from .errors import AlreadyExists, InvalidData, MissingData

__all__ = [
    "boolean",
    "integer",
    "number",
    "float_",
    "string",
    "j_id",
    "non_empty_string",
    "mac_address",
    "ip_address",
    "uuid",
    "email_address",
    "hash_",
    "not_nil",
    "in_enum",
    "matches_pattern",
    "min_length",
    "max_length",
    "minimum",
    "maximum",
    "multiple_of",
    "min_items",
    "max_items",
    "unique_items",
    "doesnt_already_exist",
]

MAC_ADDR_RE = re.compile(r"^[a-f0-9]{2}(:[a-f0-9]{2}){5}\Z", re.IGNORECASE)
UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\Z",
    re.IGNORECASE,
)
EMAIL_RE = re.compile(r"^\S+@\S+\.\S+\Z")
TRUE_RE = re.compile(r"^(t(rue)?|y(es)?)\Z", re.IGNORECASE)
FALSE_RE = re.compile(r"^(f(alse)?|no?)\Z", re.IGNORECASE)
INTEGER_RE = re.compile(r"^-?[0-9]+\Z")
FLOAT_RE = re.compile(r"^-?[0-9]*\.[0-9]+\Z")
IP_SEGMENT_RE = re.compile(r"^[0-9]{1,3}\Z")
IP_SEGMENT_RANGE = range(0, 256)


def _fail(default, value, attr_name=None, msg=None, exc=InvalidData):
    text = msg or default
    if attr_name:
        text = "{}: {}".format(attr_name, text)
    raise exc("{} (got {!r})".format(text, value))


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _symbol_text(value):
    return value.value if isinstance(value, enum.Enum) else value


def boolean(value, attr_name=None, msg=None):
    """Coerce to a real boolean.

    Accepts ``True``/``False`` and the case-insensitive spellings
    ``true/false/yes/no/t/f/y/n`` (as strings or string-valued enums).
    """
    if isinstance(value, bool):
        return value
    text = _symbol_text(value)
    if isinstance(text, str):
        if TRUE_RE.match(text):
            return True
        if FALSE_RE.match(text):
            return False
    _fail(
        "value must be boolean true or false, or an equivalent string",
        value,
        attr_name,
        msg,
    )


def integer(value, attr_name=None, msg=None):
    """Coerce an int, or a string of decimal digits, to an int"""
    if _is_int(value):
        return value
    if isinstance(value, str) and INTEGER_RE.match(value.strip()):
        return int(value)
    _fail("value must be an integer", value, attr_name, msg)


def number(value, attr_name=None, msg=None):
    """Coerce to an int or float, accepting numeric strings"""
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if INTEGER_RE.match(stripped):
            return int(stripped)
        if FLOAT_RE.match(stripped):
            return float(stripped)
    _fail("value must be a number", value, attr_name, msg)


def float_(value, attr_name=None, msg=None):
    """Coerce to a float, accepting ints and numeric strings"""
    return float(number(value, attr_name, msg or "value must be a float"))


def string(value, attr_name=None, msg=None):
    """Coerce to a string.

    ``None`` becomes the empty string,
    enum members become their value's string form.
    """
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, str):
        return value
    _fail("value must be a string", value, attr_name, msg)


def j_id(value, attr_name=None, msg=None):
    """Coerce an identifier to its canonical string form.

    Accepts an int, or a string of decimal digits
    with an optional leading minus.
    """
    if _is_int(value):
        return str(value)
    if isinstance(value, str) and INTEGER_RE.match(value):
        return value
    _fail(
        "value must be an integer or an integer in a string",
        value,
        attr_name,
        msg,
    )


def non_empty_string(value, attr_name=None, msg=None):
    if isinstance(value, str) and value:
        return value
    _fail("value must be a non-empty string", value, attr_name, msg)


def mac_address(value, attr_name=None, msg=None):
    """Six colon-separated hex octets, any case"""
    if isinstance(value, str) and MAC_ADDR_RE.match(value):
        return value
    _fail("not a valid MAC address", value, attr_name, msg)


def ip_address(value, attr_name=None, msg=None):
    """An IPv4 address: four dot-separated integers in 0..255"""
    if isinstance(value, str):
        stripped = value.strip()
        parts = stripped.split(".")
        if len(parts) == 4 and all(
            IP_SEGMENT_RE.match(p) and int(p) in IP_SEGMENT_RANGE
            for p in parts
        ):
            return stripped
    _fail("not a valid IPv4 address", value, attr_name, msg)


def uuid(value, attr_name=None, msg=None):
    if isinstance(value, str) and UUID_RE.match(value):
        return value
    _fail("value must be a valid uuid", value, attr_name, msg)


def email_address(value, attr_name=None, msg=None):
    text = str(value)
    if EMAIL_RE.match(text):
        return text
    _fail("not formatted as a valid email address", value, attr_name, msg)


def hash_(value, attr_name=None, msg=None):
    if isinstance(value, Mapping):
        return dict(value)
    _fail("value must be a mapping", value, attr_name, msg)


def not_nil(value, attr_name=None, msg=None):
    if value is None:
        _fail("value may not be null", value, attr_name, msg, MissingData)
    return value


def in_enum(value, enum, attr_name=None, msg=None):
    """Check ``value`` is one of the members of ``enum``"""
    if value in enum:
        return value
    _fail(
        "value must be one of: {}".format(", ".join(sorted(map(str, enum)))),
        value,
        attr_name,
        msg,
    )


def matches_pattern(value, pattern, attr_name=None, msg=None):
    if re.search(pattern, value):
        return value
    _fail("value must match {}".format(pattern), value, attr_name, msg)


def min_length(value, min, attr_name=None, msg=None):
    if len(value) >= min:
        return value
    _fail("length must be at least {}".format(min), value, attr_name, msg)


def max_length(value, max, attr_name=None, msg=None):
    if len(value) <= max:
        return value
    _fail("length must be at most {}".format(max), value, attr_name, msg)


def minimum(value, min, exclusive=False, attr_name=None, msg=None):
    ok = value > min if exclusive else value >= min
    if ok:
        return value
    _fail(
        "value must be {} {}".format(
            "greater than" if exclusive else "at least", min
        ),
        value,
        attr_name,
        msg,
    )


def maximum(value, max, exclusive=False, attr_name=None, msg=None):
    ok = value < max if exclusive else value <= max
    if ok:
        return value
    _fail(
        "value must be {} {}".format(
            "less than" if exclusive else "at most", max
        ),
        value,
        attr_name,
        msg,
    )


def multiple_of(value, multiplier, attr_name=None, msg=None):
    if value % multiplier == 0:
        return value
    _fail(
        "value must be a multiple of {}".format(multiplier),
        value,
        attr_name,
        msg,
    )


def min_items(value, min, attr_name=None, msg=None):
    if len(value) >= min:
        return value
    _fail("must have at least {} items".format(min), value, attr_name, msg)


def max_items(value, max, attr_name=None, msg=None):
    if len(value) <= max:
        return value
    _fail("must have at most {} items".format(max), value, attr_name, msg)


def unique_items(value, attr_name=None, msg=None):
    seen = []
    for item in value:
        if item in seen:
            _fail("items must be unique", value, attr_name, msg)
        seen.append(item)
    return value


def doesnt_already_exist(cls, cnx, ident, value, msg=None):
    """Check no ``cls`` resource on the connection already has ``value``
    as its ``ident``. String comparison ignores case.

    Parameters
    ----------
    cls: type
        a :class:`~jamfkit.resources.CollectionResource` subclass
    cnx: ~jamfkit.connection.Connection
        the connection to look on
    ident: str
        the identifier attribute name
    value
        the candidate value

    Raises
    ------
    ~jamfkit.errors.AlreadyExists
    """
    existing = cls.all_values(cnx, ident, refresh=True)
    if isinstance(value, str):
        taken = any(
            isinstance(v, str) and v.casefold() == value.casefold()
            for v in existing
        )
    else:
        taken = value in existing
    if taken:
        raise AlreadyExists(
            msg
            or "A {} already exists with {} {!r}".format(
                cls.__name__, ident, value
            )
        )
    return value
