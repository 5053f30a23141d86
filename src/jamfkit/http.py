"""Immutable request and response values exchanged with the server.

Query strings are part of the resource path
(e.g. ``v1/buildings?page-size=100&page=0``),
so requests carry no separate query parameters.
"""
import json
from base64 import b64encode
from functools import partial
from http import HTTPStatus
from operator import methodcaller
from types import MappingProxyType

__all__ = [
    "Request",
    "Response",
    "prefix_adder",
    "basic_auth",
    "bearer_auth",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
]

JSON_CONTENT = "application/json"
XML_CONTENT = "application/xml"
MERGE_PATCH_CONTENT = "application/merge-patch+json"

_NO_HEADERS = MappingProxyType({})


class _Value:
    __slots__ = ()
    __hash__ = None

    def _fields(self):
        return {name: getattr(self, name) for name in self.__slots__}

    def __eq__(self, other):
        if isinstance(other, self.__class__):
            return self._fields() == other._fields()
        return NotImplemented

    def replace(self, **changes):
        """A copy with some fields replaced"""
        return type(self)(**{**self._fields(), **changes})


class Request(_Value):
    """A request to one of the server's APIs.

    Parameters
    ----------
    method: str
        The HTTP method
    url: str
        A resource path relative to an API base,
        until a transport adds the base with :meth:`with_prefix`
    content: bytes or None
        The request body
    headers: Mapping
        Request headers. Stored as a read-only mapping.
    """

    __slots__ = "method", "url", "content", "headers"

    def __init__(self, method, url, content=None, headers=_NO_HEADERS):
        self.method = method
        self.url = url
        self.content = content
        self.headers = MappingProxyType(dict(headers))

    def with_headers(self, headers):
        """A copy with ``headers`` added, overriding existing ones"""
        return self.replace(headers={**self.headers, **headers})

    def with_prefix(self, prefix):
        """A copy with ``prefix`` put before the url,
        e.g. the API base ``https://jamf.example.com:8443/api/``"""
        return self.replace(url=prefix + self.url)

    def with_body(self, content, content_type):
        """A copy carrying ``content`` of the given content type"""
        if isinstance(content, str):
            content = content.encode("utf-8")
        return self.replace(content=content).with_headers(
            {"Content-Type": content_type}
        )

    def with_json(self, data):
        """A copy carrying ``data`` as a JSON body"""
        return self.with_body(json.dumps(data), JSON_CONTENT)

    def __repr__(self):
        return "<Request: {0.method} {0.url}>".format(self)


class Response(_Value):
    """A response from the server.

    Parameters
    ----------
    status_code: int
        The HTTP status code
    content: bytes or None
        The response body
    headers: Mapping
        The response headers, as given by the HTTP client
    """

    __slots__ = "status_code", "content", "headers"

    def __init__(self, status_code, content=None, headers=_NO_HEADERS):
        self.status_code = status_code
        self.content = content
        self.headers = headers

    @property
    def ok(self):
        """Whether the status is in the 2xx range"""
        return 200 <= self.status_code < 300

    @property
    def reason(self):
        """The standard reason phrase of the status code,
        empty for non-standard codes"""
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ""

    def json(self):
        """Decode the body as JSON. An empty body decodes to ``None``

        Raises
        ------
        ValueError
            if the body is not valid JSON
        """
        if not self.content:
            return None
        return json.loads(self.content)

    def __repr__(self):
        return "<Response: {0.status_code}>".format(self)


def basic_auth(credentials):
    """Authenticate requests with a user name and password.
    Only the token endpoint accepts these.

    Parameters
    ----------
    credentials: ~typing.Tuple[str, str]
        ``(user, pw)``

    Returns
    -------
    ~typing.Callable[[Request], Request]
    """
    encoded = b64encode(":".join(credentials).encode("utf-8")).decode()
    return methodcaller("with_headers", {"Authorization": "Basic " + encoded})


def bearer_auth(token):
    """Authenticate requests with a bearer token

    Parameters
    ----------
    token: str or ~typing.Callable[[], str]
        The token string, or a callable returning the current one.
        A callable is evaluated for every request,
        so a refreshed token is picked up.

    Returns
    -------
    ~typing.Callable[[Request], Request]
    """
    current = token if callable(token) else (lambda: token)

    def _authenticate(request):
        return request.with_headers(
            {"Authorization": "Bearer " + current()}
        )

    return _authenticate


prefix_adder = partial(methodcaller, "with_prefix")
prefix_adder.__doc__ = """
Make a callable which puts an API base before a request's path

Example
-------

>>> func = jamfkit.prefix_adder('https://jamf.example.com/api/')
>>> func(jamfkit.GET('v1/buildings')).url
'https://jamf.example.com/api/v1/buildings'
"""
GET = partial(Request, "GET")
POST = partial(Request, "POST")
PUT = partial(Request, "PUT")
PATCH = partial(Request, "PATCH")
DELETE = partial(Request, "DELETE")
