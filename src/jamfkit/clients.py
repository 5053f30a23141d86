"""Functions for dealing with HTTP clients in a unified manner.

Whatever the client, transport failures leave :func:`send` as
:class:`~jamfkit.errors.RequestTimeout`,
:class:`~jamfkit.errors.InvalidConnection`
or :class:`~jamfkit.errors.APIError`.
"""
import socket
import urllib.request
from functools import singledispatch
from urllib.error import HTTPError, URLError

import requests

from .errors import (
    APIError,
    ApiErrorCause,
    InvalidConnection,
    RequestTimeout,
)
from .http import Response

__all__ = ["send"]


@singledispatch
def send(client, request, **kwargs):
    """Given a client, send a :class:`~jamfkit.http.Request`,
    returning a :class:`~jamfkit.http.Response`.

    A :func:`~functools.singledispatch` function.

    Parameters
    ----------
    client: any registered client type
        The client with which to send the request.

        Client types registered by default:

        * :class:`requests.Session`
        * :class:`urllib.request.OpenerDirector`
          (e.g. from :func:`~urllib.request.build_opener`)
        * :class:`httpx.Client`
          (if `httpx <https://www.python-httpx.org/>`_ is installed)

    request: Request
        The request to send
    **kwargs
        Transport options. Registered clients understand
        ``timeout``, an ``(open_timeout, read_timeout)`` tuple in seconds.

    Returns
    -------
    Response
        the resulting response


    Example of registering a new HTTP client:

    >>> @send.register(MyClientClass)
    ... def _send(client, request: Request, **kwargs) -> Response:
    ...     r = client.send(request)
    ...     return Response(r.status, r.read(), headers=r.get_headers())
    """
    raise TypeError("client {!r} not registered".format(client))


def _transport_error(exc, request):
    return APIError(
        None,
        [
            ApiErrorCause(
                code="TRANSPORT_ERROR",
                description="{} {}: {}".format(
                    request.method, request.url, exc
                ),
            )
        ],
    )


def _timeout_error(exc, request, timeout):
    return RequestTimeout(
        "{} {} timed out: {}".format(request.method, request.url, exc),
        timeout=timeout,
    )


def _connection_error(exc, request):
    return InvalidConnection(
        "could not connect for {} {}: {}".format(
            request.method, request.url, exc
        )
    )


@send.register(requests.Session)
def _requests_send(session, req, timeout=None):
    """send a request with the `requests` library"""
    try:
        res = session.request(
            req.method,
            req.url,
            data=req.content,
            headers=req.headers,
            timeout=timeout,
        )
    except requests.Timeout as e:
        raise _timeout_error(e, req, timeout) from e
    except requests.ConnectionError as e:
        raise _connection_error(e, req) from e
    except requests.RequestException as e:
        raise _transport_error(e, req) from e
    return Response(res.status_code, res.content, headers=res.headers)


@send.register(urllib.request.OpenerDirector)
def _urllib_send(opener, req, timeout=None):
    """Send a request with an :mod:`urllib` opener"""
    if req.content and not any(
        h.lower() == "content-type" for h in req.headers
    ):
        req = req.with_headers({"Content-Type": "application/octet-stream"})
    raw_req = urllib.request.Request(
        req.url, req.content, headers=dict(req.headers)
    )
    raw_req.method = req.method
    kwargs = {} if timeout is None else {"timeout": max(timeout)}
    try:
        res = opener.open(raw_req, **kwargs)
    except HTTPError as http_err:
        res = http_err
    except socket.timeout as e:
        raise _timeout_error(e, req, timeout) from e
    except URLError as e:
        if isinstance(e.reason, socket.timeout):
            raise _timeout_error(e, req, timeout) from e
        raise _connection_error(e, req) from e
    return Response(res.getcode(), content=res.read(), headers=res.headers)


try:
    import httpx
except ImportError:  # pragma: no cover
    pass
else:

    @send.register(httpx.Client)
    def _httpx_send(client, req, timeout=None):
        """send a request with the `httpx` library"""
        kwargs = {}
        if timeout is not None:
            open_timeout, read_timeout = timeout
            kwargs["timeout"] = httpx.Timeout(
                read_timeout, connect=open_timeout
            )
        try:
            res = client.request(
                req.method,
                req.url,
                content=req.content,
                headers=req.headers,
                **kwargs
            )
        except httpx.TimeoutException as e:
            raise _timeout_error(e, req, timeout) from e
        except httpx.ConnectError as e:
            raise _connection_error(e, req) from e
        except httpx.HTTPError as e:
            raise _transport_error(e, req) from e
        return Response(res.status_code, res.content, headers=res.headers)
