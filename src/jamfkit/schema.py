"""Attribute descriptors and the compile step
turning them into coercion functions.

A record class declares its attributes as an ordered mapping
of name to options. Each entry is compiled once, when the class
is defined, into an immutable :class:`Attribute` whose
:meth:`~Attribute.coerce` and :meth:`~Attribute.dump`
are plain pre-built callables.
"""
import typing as t
from dataclasses import dataclass, field
from functools import partial

from . import timestamp, validate
from .errors import InvalidData, MissingData

__all__ = ["Attribute", "KindRegistry", "KINDS", "PRIMARY"]

PRIMARY = "primary"


def _identity(obj):
    return obj


def _any(value, attr_name=None):
    return value


class KindRegistry:
    """A registry of primitive kinds, each with a coerce and a dump function.

    Parameters
    ----------
    kinds: ~typing.Mapping[str, ~typing.Tuple[Callable, Callable]]
        the initial kinds
    """

    def __init__(self, kinds=()):
        self._kinds = dict(kinds)

    def register(self, name, coerce, dump=_identity):
        """Add or replace a kind

        Parameters
        ----------
        name: str
            the kind name used in schemas
        coerce: ~typing.Callable[[object, str], object]
            called with ``(value, attr_name)``, returns the canonical value
            or raises :class:`~jamfkit.errors.InvalidData`
        dump: ~typing.Callable[[object], object]
            converts the canonical value to its JSON form
        """
        self._kinds[name] = (coerce, dump)

    def __contains__(self, name):
        return name in self._kinds

    def __call__(self, name):
        try:
            return self._kinds[name]
        except KeyError:
            raise LookupError("unknown attribute kind {!r}".format(name))


KINDS = KindRegistry(
    {
        "string": (validate.string, _identity),
        "integer": (validate.integer, _identity),
        "number": (validate.number, _identity),
        "float": (validate.float_, _identity),
        "boolean": (validate.boolean, _identity),
        "j_id": (validate.j_id, _identity),
        "hash": (validate.hash_, _identity),
        "timestamp": (timestamp.coerce, timestamp.dump),
        "any": (_any, _identity),
    }
)


def _is_record_class(kind):
    return isinstance(kind, type) and hasattr(kind, "from_api")


@dataclass(frozen=True)
class Attribute:
    """The immutable description of one attribute of a record class.

    Parameters
    ----------
    name: str
        The attribute name, also its JSON key
    kind: str or type
        A primitive kind registered in :data:`KINDS`,
        or a :class:`~jamfkit.model.JSONObject` subclass
        for nested records
    multi: bool
        The value is a list of ``kind``
    read_only: bool
        Only the server may set it. Never serialized.
    required: bool
        Must be present when a record is constructed
    nil_ok: bool
        Callers may set the value to ``None``
    enum: ~typing.FrozenSet or None
        The closed set of allowed values
    aliases: ~typing.Tuple[str, ...]
        Alternate accessor names, also accepted as JSON keys
    identifier: bool or str
        ``True`` for a unique identifier,
        ``"primary"`` for the one identifier used in resource paths
    filter_key: bool
        The attribute may be used in server-side filter expressions
    validator: str or ~typing.Callable or None
        An extra validation, either the name of a function
        in :mod:`jamfkit.validate` or a callable ``(value, attr_name)``
    """

    name: str
    kind: t.Any = "string"
    multi: bool = False
    read_only: bool = False
    required: bool = False
    nil_ok: bool = False
    enum: t.Optional[t.FrozenSet] = None
    aliases: t.Tuple[str, ...] = ()
    identifier: t.Any = False
    filter_key: bool = False
    validator: t.Any = None
    pattern: t.Optional[str] = None
    min_length: t.Optional[int] = None
    max_length: t.Optional[int] = None
    minimum: t.Any = None
    maximum: t.Any = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    multiple_of: t.Any = None
    min_items: t.Optional[int] = None
    max_items: t.Optional[int] = None
    unique_items: bool = False
    _coerce_item: t.Callable = field(
        default=None, repr=False, compare=False
    )
    _load_item: t.Callable = field(default=None, repr=False, compare=False)
    _dump_item: t.Callable = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self.enum is not None and not isinstance(self.enum, frozenset):
            object.__setattr__(self, "enum", frozenset(self.enum))
        if isinstance(self.aliases, str):
            object.__setattr__(self, "aliases", (self.aliases,))
        else:
            object.__setattr__(self, "aliases", tuple(self.aliases))
        coerce, load, dump = _compile(self)
        object.__setattr__(self, "_coerce_item", coerce)
        object.__setattr__(self, "_load_item", load)
        object.__setattr__(self, "_dump_item", dump)

    @property
    def nested(self):
        """Whether the kind is a record class"""
        return _is_record_class(self.kind)

    @property
    def primary(self):
        return self.identifier == PRIMARY

    @property
    def keys(self):
        """The JSON keys under which the value may be found"""
        return (self.name,) + self.aliases

    def coerce(self, value, loading=False):
        """Coerce and validate a value for this attribute.

        Parameters
        ----------
        value
            the candidate value
        loading: bool
            whether the value comes from the server.
            Server data may carry ``None`` for any attribute.

        Returns
        -------
        object
            the canonical value; a list for ``multi`` attributes

        Raises
        ------
        ~jamfkit.errors.InvalidData
            the value does not satisfy the attribute's constraints
        ~jamfkit.errors.MissingData
            ``None`` was given where it is not allowed
        """
        if value is None:
            if loading or self.nil_ok:
                return None
            raise MissingData("{}: value may not be None".format(self.name))
        coerce_item = self._load_item if loading else self._coerce_item
        if not self.multi:
            return coerce_item(value)
        if isinstance(value, (str, bytes)) or not isinstance(
            value, (list, tuple)
        ):
            raise InvalidData(
                "{}: value must be a list (got {!r})".format(self.name, value)
            )
        return self.check_items([coerce_item(v) for v in value])

    def coerce_item(self, value):
        """Coerce one element of a ``multi`` attribute"""
        if value is None and not self.nil_ok:
            raise MissingData("{}: items may not be None".format(self.name))
        return None if value is None else self._coerce_item(value)

    def check_items(self, items):
        """Validate the item-count and uniqueness constraints of a list"""
        if self.min_items is not None:
            validate.min_items(items, self.min_items, attr_name=self.name)
        if self.max_items is not None:
            validate.max_items(items, self.max_items, attr_name=self.name)
        if self.unique_items:
            validate.unique_items(items, attr_name=self.name)
        return items

    def dump(self, value):
        """Convert a canonical value to its JSON form"""
        if value is None:
            return None
        if self.multi:
            return [self._dump_item(v) for v in value]
        return self._dump_item(value)


def _nested_coercer(cls, attr_name, loading):
    def _coerce(value):
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls.from_api(value) if loading else cls(**value)
        raise InvalidData(
            "{}: value must be a {} or a dict (got {!r})".format(
                attr_name, cls.__name__, value
            )
        )

    return _coerce


def _dump_nested(record):
    return record.to_api()


def _resolve_validator(validator):
    if validator is None or callable(validator):
        return validator
    try:
        return getattr(validate, validator)
    except AttributeError:
        raise LookupError("unknown validator {!r}".format(validator))


def _compile(attr):
    """Build the (coerce_item, load_item, dump_item) triple for an attribute,
    chaining the base coercion with every configured constraint.

    Only nested records load differently: server data may omit
    or null anything, while caller data goes through the constructor.
    """
    if _is_record_class(attr.kind):
        return (
            _nested_coercer(attr.kind, attr.name, loading=False),
            _nested_coercer(attr.kind, attr.name, loading=True),
            _dump_nested,
        )
    coerce, dump = KINDS(attr.kind)
    name = attr.name
    steps = [partial(coerce, attr_name=name)]
    if attr.pattern is not None:
        steps.append(
            partial(
                validate.matches_pattern, pattern=attr.pattern, attr_name=name
            )
        )
    if attr.min_length is not None:
        steps.append(
            partial(validate.min_length, min=attr.min_length, attr_name=name)
        )
    if attr.max_length is not None:
        steps.append(
            partial(validate.max_length, max=attr.max_length, attr_name=name)
        )
    if attr.minimum is not None:
        steps.append(
            partial(
                validate.minimum,
                min=attr.minimum,
                exclusive=attr.exclusive_minimum,
                attr_name=name,
            )
        )
    if attr.maximum is not None:
        steps.append(
            partial(
                validate.maximum,
                max=attr.maximum,
                exclusive=attr.exclusive_maximum,
                attr_name=name,
            )
        )
    if attr.multiple_of is not None:
        steps.append(
            partial(
                validate.multiple_of,
                multiplier=attr.multiple_of,
                attr_name=name,
            )
        )
    extra = _resolve_validator(attr.validator)
    if extra is not None:
        steps.append(partial(extra, attr_name=name))
    if attr.enum is not None:
        steps.append(partial(validate.in_enum, enum=attr.enum, attr_name=name))

    if len(steps) == 1:
        return steps[0], steps[0], dump

    def _coerce(value):
        for step in steps:
            value = step(value)
        return value

    return _coerce, _coerce, dump
