"""Types and functionality relating to queries"""
import typing as t

import requests

from .clients import send
from .errors import APIError, ApiErrorCause
from .http import basic_auth

__all__ = [
    "Query",
    "JSONQuery",
    "RawQuery",
    "execute",
    "load_json",
]

T = t.TypeVar("T")


def _identity(obj):
    return obj


class Query(t.Generic[T]):
    """Abstract base class for query-like objects.
    Any object whose :meth:`~object.__iter__`
    returns a :class:`~jamfkit.http.Request`/:class:`~jamfkit.http.Response`
    generator implements it.

    Note
    ----
    Generator iterators themselves also implement this interface
    (i.e. :meth:`~object.__iter__` returns the generator itself).

    Examples
    --------

    Creating a query from a generator function:

    >>> def jamf_version() -> jamfkit.Query[str]:
    ...    response = yield jamfkit.GET('v1/jamf-pro-version')
    ...    return response.json()['version']
    """

    def __iter__(self):
        """A generator iterator which resolves the query

        Returns
        -------
        ~typing.Generator[Request, Response, T]
        """
        raise NotImplementedError()

    def __execute__(self, client, auth, **send_kwargs):
        """Default execution logic for a query,
        which uses the query's :meth:`~Query.__iter__`.

        Parameters
        ----------
        client
            the client instance passed to :func:`execute`
        auth: ~typing.Callable[[Request], Request]
            a callable to authenticate a :class:`~jamfkit.http.Request`
        **send_kwargs
            passed on to :func:`~jamfkit.clients.send`

        Returns
        -------
        T
            the query result
        """
        gen = iter(self)
        request = next(gen)
        while True:
            response = send(client, auth(request), **send_kwargs)
            try:
                request = gen.send(response)
            except StopIteration as e:
                return e.value


def load_json(response):
    """Decode a JSON response body

    Raises
    ------
    ~jamfkit.errors.APIError
        the body is not valid JSON
    """
    try:
        return response.json()
    except ValueError as e:
        raise APIError(
            response.status_code,
            [
                ApiErrorCause(
                    code="INVALID_RESPONSE",
                    description="malformed response body: {}".format(e),
                )
            ],
            response=response,
        ) from e


class JSONQuery(Query[t.Any]):
    """A single request whose successful response is decoded as JSON.

    Parameters
    ----------
    request: ~jamfkit.http.Request
        the request to send
    on_error: ~typing.Callable[[Response], Exception]
        builds the error raised for a non-success response
    """

    def __init__(self, request, on_error=APIError.from_response):
        self.request, self.on_error = request, on_error

    def __iter__(self):
        response = yield self.request
        if not response.ok:
            raise self.on_error(response)
        return self.load(response)

    def load(self, response):
        return load_json(response)

    def __repr__(self):
        return "{}({!r})".format(type(self).__name__, self.request)


class RawQuery(JSONQuery):
    """A single request returning the raw response body"""

    def load(self, response):
        return response.content


def _make_auth(auth):
    if auth is None:
        return _identity
    elif callable(auth):
        return auth
    else:
        return basic_auth(auth)


def execute(query, auth=None, client=None, **send_kwargs):
    """Execute a query, returning its result

    Parameters
    ----------
    query: Query[T]
        The query to resolve
    auth: ~typing.Tuple[str, str] \
        or ~typing.Callable[[Request], Request] or None
        This may be:

        * A (username, password)-tuple for basic authentication
        * A callable to authenticate requests.
        * ``None`` (no authentication)
    client
        The HTTP client to use.
        Its type must have been registered
        with :func:`~jamfkit.clients.send`.
        If not given, a new :class:`requests.Session` is used.
    **send_kwargs
        passed on to :func:`~jamfkit.clients.send` (e.g. ``timeout``)

    Returns
    -------
    T
        the query result
    """
    if client is None:
        client = requests.Session()
    exec_fn = getattr(type(query), "__execute__", Query.__execute__)
    return exec_fn(query, client, _make_auth(auth), **send_kwargs)
