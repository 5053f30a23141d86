"""Resource protocols for the resource API: collections and singletons"""
import logging

from .errors import (
    APIError,
    InvalidData,
    NoSuchItem,
    UnsupportedOperation,
)
from .model import JSONObject
from .pagination import DEFAULT_PAGE_SIZE, Pager
from .validate import INTEGER_RE

__all__ = [
    "Resource",
    "CollectionResource",
    "SingletonResource",
    "ResourceRegistry",
    "RESOURCES",
    "lookup",
    "ext_attr_definitions",
]

logger = logging.getLogger(__name__)

ALL_VERBS = frozenset(["get", "post", "put", "patch", "delete"])


class ResourceRegistry:
    """Resource classes by name. Calling the registry looks one up.

    Example
    -------

    >>> RESOURCES('Building')
    <class 'jamfkit.objects.Building'>
    """

    def __init__(self):
        self._classes = {}

    def register(self, cls):
        self._classes[cls.__name__] = cls
        return cls

    def __call__(self, name):
        try:
            return self._classes[name]
        except KeyError:
            raise NoSuchItem("no resource class named {!r}".format(name))

    def __contains__(self, name):
        return name in self._classes

    def __iter__(self):
        return iter(self._classes.values())

    def __len__(self):
        return len(self._classes)


RESOURCES = ResourceRegistry()
lookup = RESOURCES


class Resource(JSONObject):
    """Base for records which are resources on the server
    rather than parts of one"""

    VERBS = frozenset()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        unknown = set(cls.VERBS) - ALL_VERBS
        if unknown:
            raise TypeError(
                "{}: unknown verbs {}".format(cls.__name__, sorted(unknown))
            )
        if cls._is_concrete():
            RESOURCES.register(cls)

    @classmethod
    def _is_concrete(cls):
        return False

    @classmethod
    def _require_verb(cls, verb, action):
        if verb not in cls.VERBS:
            raise UnsupportedOperation(
                "{} objects cannot be {}".format(cls.__name__, action)
            )

    def save(self, cnx=None):
        raise NotImplementedError()


class CollectionResource(Resource):
    """A resource of which the server holds many,
    listed at ``LIST_PATH`` and addressed by id.

    Subclasses declare, besides their ``SCHEMA``:

    LIST_PATH
        the list, e.g. ``v1/buildings``
    GET_PATH, POST_PATH, PUT_PATH, PATCH_PATH, DELETE_PATH
        where these differ from ``LIST_PATH``
    VERBS
        the supported operations, from
        ``{"get", "post", "put", "patch", "delete"}``
    ALT_IDENTIFIERS
        unique attributes besides the schema's identifiers
    FILTER_KEYS
        attributes the list can be filtered on server-side.
        By default, the attributes declared with ``filter_key``.
    OBJECT_NAME_ATTR
        the attribute ``name=`` lookups resolve to, if not ``name``

    All class operations take the connection as first argument.
    """

    LIST_PATH = None
    GET_PATH = None
    POST_PATH = None
    PUT_PATH = None
    PATCH_PATH = None
    DELETE_PATH = None
    VERBS = frozenset(["get", "post", "put", "delete"])
    ALT_IDENTIFIERS = ()
    FILTER_KEYS = ()
    OBJECT_NAME_ATTR = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "FILTER_KEYS" not in cls.__dict__:
            cls.FILTER_KEYS = tuple(
                a.name for a in cls.ATTRIBUTES.values() if a.filter_key
            )

    @classmethod
    def _is_concrete(cls):
        return "LIST_PATH" in cls.__dict__ and cls.LIST_PATH is not None

    def _setup(self, values, cnx):
        super()._setup(values, cnx)
        self._deleted = False

    def __repr__(self):
        return "<{}: {}={!r}>".format(
            type(self).__name__,
            self.primary_identifier(),
            self._values.get(self.primary_identifier()),
        )

    # paths
    #########

    @classmethod
    def _path(cls, verb):
        return getattr(cls, verb.upper() + "_PATH") or cls.LIST_PATH

    @classmethod
    def _update_verb(cls):
        for verb in ("put", "patch"):
            if verb in cls.VERBS:
                return verb
        return None

    # class operations
    ####################

    @classmethod
    def identifiers(cls):
        """The names of the attributes which identify one resource"""
        idents = super().identifiers()
        idents += [
            i
            for i in cls.ALT_IDENTIFIERS
            if i in cls.ATTRIBUTES and i not in idents
        ]
        return idents

    @classmethod
    def _filter(cls, filter):
        if filter and not cls.FILTER_KEYS:
            raise UnsupportedOperation(
                "{} lists cannot be filtered".format(cls.__name__)
            )
        return filter

    @classmethod
    def all(
        cls, cnx, sort=None, filter=None, instantiate=False, refresh=False
    ):
        """The full list, as raw data or as records.

        The unsorted, unfiltered list is cached on the connection.

        Parameters
        ----------
        cnx: ~jamfkit.connection.Connection
            the connection to list on
        sort: str or ~typing.Sequence[str] or None
            sort keys, e.g. ``"name:asc"``
        filter: str or None
            an RSQL filter expression
        instantiate: bool
            return records instead of raw data
        refresh: bool
            re-read the cached list from the server

        Returns
        -------
        list
        """
        filter = cls._filter(filter)
        if sort or filter:
            data = Pager.all_pages(
                cnx, cls.LIST_PATH, sort=sort, filter=filter
            )
        else:
            if refresh:
                cnx.collection_cache.pop(cls, None)
            if cls not in cnx.collection_cache:
                cnx.collection_cache[cls] = Pager.all_pages(cnx, cls.LIST_PATH)
                logger.debug("cached the %s list", cls.__name__)
            data = cnx.collection_cache[cls]
        if instantiate:
            return [cls.from_api(item, cnx) for item in data]
        return list(data)

    @classmethod
    def pager(
        cls,
        cnx,
        page_size=DEFAULT_PAGE_SIZE,
        sort=None,
        filter=None,
        instantiate=False,
    ):
        """A :class:`~jamfkit.pagination.Pager` over the list"""
        return Pager(
            cnx,
            cls.LIST_PATH,
            page_size=page_size,
            sort=sort,
            filter=cls._filter(filter),
            instantiate=cls.from_api if instantiate else None,
        )

    @classmethod
    def _raw_by_id(cls, cnx, ident):
        try:
            return cnx.jp_get("{}/{}".format(cls._path("get"), ident))
        except APIError as e:
            if e.status == 404 or e.has_code("INVALID_ID"):
                return None
            raise

    @classmethod
    def _raw_by_other(cls, cnx, ident, value):
        if ident in cls.FILTER_KEYS:
            results = cls.pager(
                cnx, page_size=1, filter='{}=="{}"'.format(ident, value)
            ).page("first")
            return results[0] if results else None
        wanted = str(value).casefold()
        for item in cls.all(cnx):
            if str(item.get(ident)).casefold() == wanted:
                return item
        return None

    @classmethod
    def _raw_data(cls, cnx, searchterm=None, **ident_and_value):
        primary = cls.primary_identifier()
        if searchterm is not None:
            if INTEGER_RE.match(str(searchterm)):
                return cls._raw_by_id(cnx, searchterm)
            for ident in cls.identifiers():
                if ident == primary:
                    continue
                data = cls._raw_by_other(cnx, ident, searchterm)
                if data is not None:
                    return data
            return None
        if len(ident_and_value) != 1:
            raise ValueError(
                "Give a search term, or exactly one identifier=value"
            )
        (ident, value), = ident_and_value.items()
        if ident == "name" and cls.OBJECT_NAME_ATTR:
            ident = cls.OBJECT_NAME_ATTR
        if ident == primary:
            return cls._raw_by_id(cnx, value)
        if ident not in cls.identifiers():
            raise InvalidData(
                "{} is not an identifier of {}".format(ident, cls.__name__)
            )
        return cls._raw_by_other(cnx, ident, value)

    @classmethod
    def fetch(cls, cnx, searchterm=None, **ident_and_value):
        """Fetch one resource.

        Parameters
        ----------
        cnx: ~jamfkit.connection.Connection
            the connection to fetch from
        searchterm: str or int or None
            an id, or a value of any other identifier
        **ident_and_value
            exactly one identifier and its value, e.g. ``name="Main"``

        Raises
        ------
        ~jamfkit.errors.NoSuchItem
            there is no matching resource
        """
        cls._require_verb("get", "fetched")
        data = cls._raw_data(cnx, searchterm, **ident_and_value)
        if data is None:
            raise NoSuchItem("No matching {}".format(cls.__name__))
        return cls.from_api(data, cnx)

    @classmethod
    def valid_id(cls, cnx, searchterm=None, **ident_and_value):
        """The id of the matching resource, or ``None``"""
        data = cls._raw_data(cnx, searchterm, **ident_and_value)
        if data is None:
            return None
        return data.get(cls.primary_identifier())

    @classmethod
    def create(cls, cnx, **attrs):
        """A new, unsaved resource bound to ``cnx``.
        Call :meth:`save` to create it on the server."""
        cls._require_verb("post", "created")
        attrs.pop(cls.primary_identifier(), None)
        record = cls(**attrs)
        record._bind(cnx)
        return record

    @classmethod
    def delete_ids(cls, cnx, *ids):
        """Delete resources by id.

        Ids that do not exist are skipped.

        Returns
        -------
        list[~jamfkit.errors.ApiErrorCause]
            the errors of the skipped ids
        """
        cls._require_verb("delete", "deleted")
        skipped = []
        try:
            for ident in ids:
                try:
                    cnx.jp_delete("{}/{}".format(cls._path("delete"), ident))
                except APIError as e:
                    if e.status != 404:
                        raise
                    skipped.extend(e.errors)
        finally:
            cnx.flushcache(cls)
        return skipped

    @classmethod
    def map_all(cls, cnx, ident, to, refresh=False):
        """Map every resource's ``ident`` to its ``to`` attribute

        Raises
        ------
        ~jamfkit.errors.InvalidData
            ``ident`` is not an identifier
        ~jamfkit.errors.NoSuchItem
            there is no attribute ``to``
        """
        if ident not in cls.identifiers():
            raise InvalidData(
                "No identifier {!r} for class {}".format(ident, cls.__name__)
            )
        if to not in cls.ATTRIBUTES:
            raise NoSuchItem(
                "No attribute {!r} for class {}".format(to, cls.__name__)
            )
        attr = cls.ATTRIBUTES[to]
        return {
            item.get(ident): attr.coerce(item.get(to), loading=True)
            for item in cls.all(cnx, refresh=refresh)
        }

    @classmethod
    def all_values(cls, cnx, ident, refresh=False):
        """The values of one identifier across all resources,
        e.g. ``Building.all_values(cnx, "name")``"""
        if ident == "name" and cls.OBJECT_NAME_ATTR:
            ident = cls.OBJECT_NAME_ATTR
        if ident not in cls.identifiers():
            raise InvalidData(
                "No identifier {!r} for class {}".format(ident, cls.__name__)
            )
        return [item.get(ident) for item in cls.all(cnx, refresh=refresh)]

    # instance operations
    #######################

    @property
    def exists(self):
        """Whether the resource has been created on the server"""
        return (
            not self._deleted
            and self._values.get(self.primary_identifier()) is not None
        )

    def _check_not_deleted(self):
        if self._deleted:
            raise UnsupportedOperation(
                "this {} has been deleted".format(type(self).__name__)
            )

    def save(self, cnx=None):
        """Create the resource on the server, or update it with
        the unsaved changes. Does nothing if there are none.

        Parameters
        ----------
        cnx: ~jamfkit.connection.Connection or None
            bind an unbound record to this connection first

        Returns
        -------
        str
            the id
        """
        self._check_not_deleted()
        if not self.MUTABLE:
            raise UnsupportedOperation(
                "{} objects cannot be changed".format(type(self).__name__)
            )
        if cnx is not None:
            self._bind(cnx)
        cnx = self.cnx
        primary = self.primary_identifier()
        if self.exists:
            if not self.has_unsaved_changes:
                return self._values[primary]
            self._update(cnx)
        else:
            self._require_verb("post", "created")
            result = cnx.jp_post(self._path("post"), self.to_api())
            self._values[primary] = self.ATTRIBUTES[primary].coerce(
                result["id"], loading=True
            )
            logger.info(
                "created %s %s", type(self).__name__, self._values[primary]
            )
        self.clear_unsaved_changes()
        cnx.flushcache(type(self))
        return self._values[primary]

    def _update(self, cnx):
        verb = self._update_verb()
        if verb is None:
            raise UnsupportedOperation(
                "{} objects cannot be updated".format(type(self).__name__)
            )
        ident = self._values[self.primary_identifier()]
        path = "{}/{}".format(self._path(verb), ident)
        if verb == "put":
            cnx.jp_put(path, self.to_api())
        else:
            cnx.jp_patch(path, self.to_api(changes_only=True))

    def delete(self):
        """Delete the resource on the server.
        This record cannot be saved afterwards."""
        self._check_not_deleted()
        self._require_verb("delete", "deleted")
        if not self.exists:
            raise UnsupportedOperation(
                "this {} has not been created".format(type(self).__name__)
            )
        cnx = self.cnx
        cnx.jp_delete(
            "{}/{}".format(
                self._path("delete"), self._values[self.primary_identifier()]
            )
        )
        self._deleted = True
        cnx.flushcache(type(self))


class SingletonResource(Resource):
    """A resource of which the server holds exactly one,
    at ``RSRC_PATH``.

    ``UPDATE_METHOD`` is ``"put"``, ``"patch"``,
    or ``None`` for read-only resources.
    """

    RSRC_PATH = None
    UPDATE_METHOD = None

    @classmethod
    def _is_concrete(cls):
        return "RSRC_PATH" in cls.__dict__ and cls.RSRC_PATH is not None

    @classmethod
    def fetch(cls, cnx, refresh=False):
        """The resource, read once per connection unless ``refresh``"""
        if refresh:
            cnx.singleton_cache.pop(cls, None)
        if cls not in cnx.singleton_cache:
            cnx.singleton_cache[cls] = cnx.jp_get(cls.RSRC_PATH)
        return cls.from_api(cnx.singleton_cache[cls], cnx)

    def save(self, cnx=None):
        """Send the unsaved changes to the server, if any"""
        if self.UPDATE_METHOD is None or not self.MUTABLE:
            raise UnsupportedOperation(
                "{} objects cannot be changed".format(type(self).__name__)
            )
        if cnx is not None:
            self._bind(cnx)
        cnx = self.cnx
        if not self.has_unsaved_changes:
            return
        if self.UPDATE_METHOD == "put":
            cnx.jp_put(self.RSRC_PATH, self.to_api())
        else:
            cnx.jp_patch(self.RSRC_PATH, self.to_api(changes_only=True))
        self.clear_unsaved_changes()
        cnx.flushcache(type(self))


def ext_attr_definitions(cnx, ea_class, refresh=False):
    """The extension attribute definitions of one kind, by name.

    Cached on the connection, keyed by the class name.

    Parameters
    ----------
    cnx: ~jamfkit.connection.Connection
        the connection to read from
    ea_class: type
        a :class:`CollectionResource` for the definitions,
        e.g. :class:`~jamfkit.objects.ComputerExtensionAttribute`
    refresh: bool
        re-read the definitions from the server

    Returns
    -------
    dict
        definition records by name
    """
    key = ea_class.__name__
    if refresh:
        cnx.ext_attr_cache.pop(key, None)
    if key not in cnx.ext_attr_cache:
        name_attr = ea_class.OBJECT_NAME_ATTR or "name"
        cnx.ext_attr_cache[key] = {
            getattr(ea, name_attr): ea
            for ea in ea_class.all(cnx, instantiate=True, refresh=refresh)
        }
    return cnx.ext_attr_cache[key]
