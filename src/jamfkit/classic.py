"""Resources of the classic API: JSON reads, XML writes"""
import logging
import xml.etree.ElementTree as ET
from urllib.parse import quote

from .errors import (
    APIError,
    ApiErrorCause,
    InvalidData,
    NoSuchItem,
    UnsupportedOperation,
)
from .resources import Resource

__all__ = ["ClassicResource", "to_xml"]

logger = logging.getLogger(__name__)

NEW_ID = 0


def _singular(tag):
    return tag[:-1] if tag.endswith("s") and len(tag) > 1 else tag


def _fill(elem, value):
    if isinstance(value, dict):
        for key, sub in value.items():
            _fill(ET.SubElement(elem, key), sub)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _fill(ET.SubElement(elem, _singular(elem.tag)), item)
    elif isinstance(value, bool):
        elem.text = "true" if value else "false"
    elif value is not None:
        elem.text = str(value)


def _created_id(reply, response):
    try:
        new_id = ET.fromstring(reply).findtext("id")
    except ET.ParseError:
        new_id = None
    if not new_id:
        raise APIError(
            None,
            [
                ApiErrorCause(
                    "INVALID_RESPONSE", None, "no id in the server's reply"
                )
            ],
            response,
        )
    return new_id


def to_xml(root_tag, data):
    """Render JSON-shaped data as a classic API XML document.

    Lists become repeated child elements named after
    the singular form of their parent.

    Example
    -------

    >>> to_xml("site", {"name": "Main"})
    '<?xml version="1.0" encoding="UTF-8"?><site><name>Main</name></site>'
    """
    root = ET.Element(root_tag)
    _fill(root, data)
    return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(
        root, encoding="unicode"
    )


class ClassicResource(Resource):
    """A collection resource of the classic API.

    Subclasses declare, besides their ``SCHEMA``:

    RSRC_BASE
        the resource path under ``JSSResource/``, e.g. ``sites``
    RSRC_LIST_KEY
        the key of the list in the list response, e.g. ``sites``
    RSRC_OBJECT_KEY
        the key of the object in its own response,
        also the XML root element, e.g. ``site``
    """

    RSRC_BASE = None
    RSRC_LIST_KEY = None
    RSRC_OBJECT_KEY = None
    VERBS = frozenset(["get", "post", "put", "delete"])

    @classmethod
    def _is_concrete(cls):
        return "RSRC_BASE" in cls.__dict__ and cls.RSRC_BASE is not None

    def _setup(self, values, cnx):
        super()._setup(values, cnx)
        self._deleted = False

    @classmethod
    def all(cls, cnx, refresh=False):
        """The summary list, cached on the connection"""
        if refresh:
            cnx.collection_cache.pop(cls, None)
        if cls not in cnx.collection_cache:
            cnx.collection_cache[cls] = cnx.c_get(cls.RSRC_BASE)[
                cls.RSRC_LIST_KEY
            ]
        return list(cnx.collection_cache[cls])

    @classmethod
    def all_values(cls, cnx, ident, refresh=False):
        if ident not in cls.identifiers():
            raise InvalidData(
                "No identifier {!r} for class {}".format(ident, cls.__name__)
            )
        return [item.get(ident) for item in cls.all(cnx, refresh=refresh)]

    @classmethod
    def fetch(cls, cnx, id=None, name=None):
        """Fetch one resource by ``id`` or by ``name``

        Raises
        ------
        ~jamfkit.errors.NoSuchItem
            there is no such resource
        """
        if (id is None) == (name is None):
            raise ValueError("Give exactly one of id and name")
        if id is not None:
            rsrc = "{}/id/{}".format(cls.RSRC_BASE, id)
        else:
            rsrc = "{}/name/{}".format(cls.RSRC_BASE, quote(name, safe=""))
        try:
            data = cnx.c_get(rsrc)
        except APIError as e:
            if e.status == 404:
                raise NoSuchItem(
                    "No {} with {}".format(
                        cls.__name__,
                        "id {}".format(id) if id is not None else
                        "name {!r}".format(name),
                    )
                ) from e
            raise
        return cls.from_api(data[cls.RSRC_OBJECT_KEY], cnx)

    @classmethod
    def create(cls, cnx, **attrs):
        """A new, unsaved resource bound to ``cnx``"""
        cls._require_verb("post", "created")
        attrs.pop(cls.primary_identifier(), None)
        record = cls(**attrs)
        record._bind(cnx)
        return record

    @property
    def exists(self):
        return (
            not self._deleted
            and self._values.get(self.primary_identifier()) is not None
        )

    def _rsrc(self, ident):
        return "{}/id/{}".format(self.RSRC_BASE, ident)

    def to_xml(self):
        return to_xml(self.RSRC_OBJECT_KEY, self.to_api())

    def save(self, cnx=None):
        """Create or update the resource. Returns its id."""
        if self._deleted:
            raise UnsupportedOperation(
                "this {} has been deleted".format(type(self).__name__)
            )
        if cnx is not None:
            self._bind(cnx)
        cnx = self.cnx
        primary = self.primary_identifier()
        if self.exists:
            if not self.has_unsaved_changes:
                return self._values[primary]
            self._require_verb("put", "updated")
            cnx.c_put(self._rsrc(self._values[primary]), self.to_xml())
        else:
            self._require_verb("post", "created")
            reply = cnx.c_post(self._rsrc(NEW_ID), self.to_xml())
            new_id = _created_id(reply, cnx.last_http_response)
            self._values[primary] = self.ATTRIBUTES[primary].coerce(
                new_id.strip(), loading=True
            )
            logger.info(
                "created %s %s", type(self).__name__, self._values[primary]
            )
        self.clear_unsaved_changes()
        cnx.flushcache(type(self))
        return self._values[primary]

    def delete(self):
        """Delete the resource. This record cannot be saved afterwards."""
        if self._deleted or not self.exists:
            raise UnsupportedOperation(
                "this {} does not exist on the server".format(
                    type(self).__name__
                )
            )
        self._require_verb("delete", "deleted")
        cnx = self.cnx
        cnx.c_delete(self._rsrc(self._values[self.primary_identifier()]))
        self._deleted = True
        cnx.flushcache(type(self))
