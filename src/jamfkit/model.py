"""Typed records built from a declarative schema"""
import json
import weakref
from collections.abc import Mapping, MutableSequence
from types import MappingProxyType

from .errors import (
    InvalidConnection,
    InvalidData,
    MissingData,
    UnsupportedOperation,
)
from .schema import Attribute

__all__ = ["JSONObject", "TrackedList", "UNSET"]


class _Unset:
    __slots__ = ()

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()
"""Marks an attribute which was never set, as opposed to set to ``None``"""


def _public(value):
    if value is UNSET:
        return None
    if isinstance(value, list):
        return tuple(value)
    return value


class _AttributeAccessor:
    """Data descriptor installed for every attribute name and alias"""

    __slots__ = ("attr",)

    def __init__(self, attr):
        self.attr = attr

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self.attr
        return obj._read(self.attr)

    def __set__(self, obj, value):
        obj._write(self.attr, value)


class TrackedList(MutableSequence):
    """A live, validating view on a multi-valued attribute.

    Every mutation is validated against the attribute
    and recorded as an unsaved change of the owning record.
    The underlying list is replaced, never modified in place,
    so earlier snapshots in the change log stay accurate.
    """

    __slots__ = ("_record", "_attr")

    def __init__(self, record, attr):
        self._record, self._attr = record, attr

    @property
    def _items(self):
        return self._record._values.get(self._attr.name) or []

    def _commit(self, items):
        self._record._replace(self._attr, self._attr.check_items(items))

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self):
        return len(self._items)

    def __setitem__(self, index, value):
        items = list(self._items)
        if isinstance(index, slice):
            items[index] = [self._attr.coerce_item(v) for v in value]
        else:
            items[index] = self._attr.coerce_item(value)
        self._commit(items)

    def __delitem__(self, index):
        items = list(self._items)
        del items[index]
        self._commit(items)

    def insert(self, index, value):
        items = list(self._items)
        items.insert(index, self._attr.coerce_item(value))
        self._commit(items)

    def __eq__(self, other):
        if isinstance(other, (TrackedList, list, tuple)):
            return list(self) == list(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self):
        return "TrackedList({!r})".format(self._items)


def _find_in_mro(cls, name):
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass.__dict__[name]
    return None


class JSONObject:
    """Base class for records described by a ``SCHEMA``.

    Subclasses declare ``SCHEMA``, an ordered mapping of attribute name
    to :class:`~jamfkit.schema.Attribute` options.
    When the subclass is defined, the schema is compiled into
    :attr:`ATTRIBUTES` and one accessor per name and alias.

    Example
    -------

    >>> class Location(JSONObject):
    ...     SCHEMA = {
    ...         "username": {"kind": "string"},
    ...         "buildingId": {"kind": "j_id", "nil_ok": True},
    ...     }
    >>> loc = Location(username="jdoe")
    >>> loc.buildingId = 3
    >>> loc.buildingId
    '3'

    Records are created from server data with :meth:`from_api`,
    or by callers through the keyword constructor.
    Either way, construction is all-or-nothing.
    """

    SCHEMA = {}
    MUTABLE = True
    ATTRIBUTES = MappingProxyType({})
    _lookup = MappingProxyType({})

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        attributes = dict(cls.ATTRIBUTES)
        for name, options in cls.__dict__.get("SCHEMA", {}).items():
            if name.startswith("_"):
                raise TypeError(
                    "{}: attribute names may not start with '_' ({!r})".format(
                        cls.__name__, name
                    )
                )
            if isinstance(options, Attribute):
                attributes[name] = options
            else:
                attributes[name] = Attribute(name, **options)

        primaries = [a.name for a in attributes.values() if a.primary]
        if len(primaries) > 1:
            raise TypeError(
                "{} declares more than one primary identifier: {}".format(
                    cls.__name__, ", ".join(primaries)
                )
            )

        lookup = {}
        for attr in attributes.values():
            for key in attr.keys:
                existing = _find_in_mro(cls, key)
                if existing is not None and not isinstance(
                    existing, _AttributeAccessor
                ):
                    raise TypeError(
                        "{}: attribute {!r} would shadow {!r}".format(
                            cls.__name__, key, existing
                        )
                    )
                if key in lookup:
                    raise TypeError(
                        "{}: duplicate attribute name or alias {!r}".format(
                            cls.__name__, key
                        )
                    )
                setattr(cls, key, _AttributeAccessor(attr))
                lookup[key] = attr

        cls.ATTRIBUTES = MappingProxyType(attributes)
        cls._lookup = MappingProxyType(lookup)

    def __init__(self, **attrs):
        cls = type(self)
        values = {}
        for key, raw in attrs.items():
            attr = cls.attribute(key)
            if attr.read_only:
                raise UnsupportedOperation(
                    "{}.{} is read-only".format(cls.__name__, attr.name)
                )
            values[attr.name] = attr.coerce(raw)
        missing = [
            a.name
            for a in cls.ATTRIBUTES.values()
            if a.required and not a.read_only and a.name not in values
        ]
        if missing:
            raise MissingData(
                "{}: missing required attribute(s): {}".format(
                    cls.__name__, ", ".join(missing)
                )
            )
        self._setup(values, None)

    @classmethod
    def from_api(cls, data, cnx=None):
        """Build a record from server data.

        Keys are looked up by attribute name, then by alias.
        Unknown keys are ignored.

        Parameters
        ----------
        data: Mapping
            the decoded JSON object
        cnx: ~jamfkit.connection.Connection or None
            the connection the data came from

        Raises
        ------
        ~jamfkit.errors.MissingData
            a required attribute is absent
        ~jamfkit.errors.InvalidData
            a value fails its attribute's validation
        """
        if not isinstance(data, Mapping):
            raise InvalidData(
                "{} data must be a JSON object (got {!r})".format(
                    cls.__name__, data
                )
            )
        values = {}
        for attr in cls.ATTRIBUTES.values():
            for key in attr.keys:
                if key in data:
                    values[attr.name] = attr.coerce(data[key], loading=True)
                    break
            else:
                if attr.required:
                    raise MissingData(
                        "{}: missing required attribute {!r}".format(
                            cls.__name__, attr.name
                        )
                    )
        record = cls.__new__(cls)
        record._setup(values, cnx)
        for attr in cls.ATTRIBUTES.values():
            if attr.read_only or not cls.MUTABLE:
                for item in record._records_in(attr):
                    item._freeze()
        return record

    def _setup(self, values, cnx):
        self._values = values
        self._changes = {}
        self._frozen = False
        self._cnx_ref = None if cnx is None else weakref.ref(cnx)

    def _records_in(self, attr):
        """The nested records held by an attribute"""
        if not attr.nested:
            return []
        value = self._values.get(attr.name)
        if value is None:
            return []
        items = value if attr.multi else [value]
        return [item for item in items if item is not None]

    def _freeze(self):
        # held by a read-only attribute, or by an immutable record
        self._frozen = True
        for attr in self.ATTRIBUTES.values():
            for item in self._records_in(attr):
                item._freeze()

    @classmethod
    def attribute(cls, name):
        """Look up an attribute by name or alias

        Raises
        ------
        ~jamfkit.errors.InvalidData
            there is no such attribute
        """
        try:
            return cls._lookup[name]
        except KeyError:
            raise InvalidData(
                "{} has no attribute {!r}".format(cls.__name__, name)
            )

    @classmethod
    def identifiers(cls):
        """The names of the identifying attributes, primary first"""
        idents = [a for a in cls.ATTRIBUTES.values() if a.identifier]
        idents.sort(key=lambda a: not a.primary)
        return [a.name for a in idents]

    @classmethod
    def primary_identifier(cls):
        for attr in cls.ATTRIBUTES.values():
            if attr.primary:
                return attr.name
        return None

    @property
    def cnx(self):
        """The connection this record was loaded from or saved through

        Raises
        ------
        ~jamfkit.errors.InvalidConnection
            the record is unbound, or its connection no longer exists
        """
        if self._cnx_ref is None:
            raise InvalidConnection(
                "this {} is not bound to a connection".format(
                    type(self).__name__
                )
            )
        cnx = self._cnx_ref()
        if cnx is None:
            raise InvalidConnection(
                "the connection of this {} no longer exists".format(
                    type(self).__name__
                )
            )
        return cnx

    def _bind(self, cnx):
        self._cnx_ref = weakref.ref(cnx)

    def is_set(self, name):
        """Whether the attribute was ever given a value (``None`` included)"""
        return type(self).attribute(name).name in self._values

    def _read(self, attr):
        value = self._values.get(attr.name, UNSET)
        if attr.multi:
            if attr.read_only or not self.MUTABLE or self._frozen:
                return tuple(value or ())
            return TrackedList(self, attr)
        return None if value is UNSET else value

    def _write(self, attr, value):
        if not self.MUTABLE:
            raise UnsupportedOperation(
                "{} objects are immutable".format(type(self).__name__)
            )
        if self._frozen:
            raise UnsupportedOperation(
                "this {} belongs to a read-only attribute".format(
                    type(self).__name__
                )
            )
        if attr.read_only:
            raise UnsupportedOperation(
                "{}.{} is read-only".format(type(self).__name__, attr.name)
            )
        self._replace(attr, attr.coerce(value))

    def _replace(self, attr, new):
        name = attr.name
        old = self._values.get(name, UNSET)
        if name in self._changes:
            entry = self._changes[name]
            if entry["old"] is not UNSET and entry["old"] == new:
                del self._changes[name]
            else:
                entry["new"] = new
        elif old is UNSET or old != new:
            self._changes[name] = {"old": old, "new": new}
        self._values[name] = new

    @property
    def unsaved_changes(self):
        """Changes since loading or the last save, as
        ``{name: {"old": ..., "new": ...}}``.
        For nested records with their own changes,
        the value is the nested record's ``unsaved_changes``
        (keyed by list index for multi-valued attributes).
        """
        if not self.MUTABLE or self._frozen:
            return {}
        changes = {
            name: {"old": _public(c["old"]), "new": _public(c["new"])}
            for name, c in self._changes.items()
        }
        for attr in self.ATTRIBUTES.values():
            if not attr.nested or attr.name in changes:
                continue
            value = self._values.get(attr.name)
            if value is None:
                continue
            if attr.multi:
                sub = {
                    i: item.unsaved_changes
                    for i, item in enumerate(value)
                    if item is not None and item.has_unsaved_changes
                }
            else:
                sub = value.unsaved_changes
            if sub:
                changes[attr.name] = sub
        return changes

    @property
    def has_unsaved_changes(self):
        return bool(self.unsaved_changes)

    def clear_unsaved_changes(self):
        """Forget all recorded changes, nested records included"""
        self._changes = {}
        for attr in self.ATTRIBUTES.values():
            for item in self._records_in(attr):
                item.clear_unsaved_changes()

    def to_api(self, changes_only=False):
        """The JSON-ready payload of this record.

        Read-only and never-set attributes are left out.

        Parameters
        ----------
        changes_only: bool
            only include changed attributes (for partial updates).
            Changed attributes set to ``None`` are left out as well.

        Returns
        -------
        dict
        """
        if changes_only:
            return self._changes_to_api()
        data = {}
        for attr in self.ATTRIBUTES.values():
            if attr.read_only:
                continue
            value = self._values.get(attr.name, UNSET)
            if value is UNSET:
                continue
            data[attr.name] = attr.dump(value)
        return data

    def _changes_to_api(self):
        data = {}
        for name in self.unsaved_changes:
            attr = self.ATTRIBUTES[name]
            if attr.read_only:
                continue
            value = self._values.get(name)
            if value is None:
                continue
            if name in self._changes or attr.multi:
                data[name] = attr.dump(value)
            else:
                data[name] = value.to_api(changes_only=True)
        return data

    def to_json(self, **kwargs):
        """The :meth:`to_api` payload as a JSON string"""
        return json.dumps(self.to_api(), **kwargs)

    def __eq__(self, other):
        if isinstance(other, self.__class__):
            return self._values == other._values
        return NotImplemented

    __hash__ = None

    def __repr__(self):
        return "<{}: {}>".format(
            type(self).__name__,
            ", ".join(
                "{}={!r}".format(name, value)
                for name, value in self._values.items()
            ),
        )
