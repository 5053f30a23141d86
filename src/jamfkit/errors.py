"""Exception types raised by jamfkit"""
import json
from collections import namedtuple
from http import HTTPStatus

__all__ = [
    "JamfError",
    "MissingData",
    "InvalidData",
    "AlreadyExists",
    "NoSuchItem",
    "InvalidConnection",
    "AuthenticationError",
    "UnsupportedOperation",
    "APIError",
    "RequestTimeout",
    "ApiErrorCause",
]

RSRC_NOT_FOUND = "Resource Not Found"


class JamfError(Exception):
    """Base class for all errors raised by jamfkit"""


class MissingData(JamfError, ValueError):
    """A required value was not given"""


class InvalidData(JamfError, ValueError):
    """A value was given, but failed type, format or enum validation"""


class AlreadyExists(JamfError, ValueError):
    """A uniqueness constraint would be violated"""


class NoSuchItem(JamfError, LookupError):
    """The referenced remote object does not exist"""


class InvalidConnection(JamfError, ConnectionError):
    """The connection is not usable: never connected, disconnected,
    expired, or talking to an unsupported server version"""


class AuthenticationError(InvalidConnection):
    """The server refused the credentials"""


class UnsupportedOperation(JamfError, TypeError):
    """The operation is not valid for this resource or attribute"""


ApiErrorCause = namedtuple("ApiErrorCause", "code field description id")
ApiErrorCause.__new__.__defaults__ = (None, None, None, None)
ApiErrorCause.__doc__ = """\
One entry of the ``errors`` list the server sends with a failed request"""


def _cause_str(cause):
    out = ""
    if cause.field:
        out += " Field: {}".format(cause.field)
    if cause.code is not None or cause.description is not None:
        out += ", Error:"
    if cause.code is not None:
        out += ", {}".format(cause.code)
    if cause.description is not None:
        out += ", {}".format(cause.description)
    if cause.id is not None:
        out += ", Object ID: '{}'".format(cause.id)
    return out


def _reason(status):
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown Status"


class APIError(JamfError):
    """The server answered with a non-success status.

    Parameters
    ----------
    status: int or None
        The HTTP status code
    errors: ~typing.Iterable[ApiErrorCause]
        The structured causes the server reported
    response: ~jamfkit.http.Response or None
        The response which triggered the error
    """

    def __init__(self, status, errors=(), response=None):
        self.status = status
        self.errors = list(errors)
        self.response = response
        super().__init__(str(self))

    @classmethod
    def from_response(cls, response):
        """Create an error from a failed response,
        synthesizing a single cause when the body has none.

        Parameters
        ----------
        response: ~jamfkit.http.Response
            the failed response

        Returns
        -------
        APIError
        """
        return cls(
            response.status_code,
            parse_causes(response.content) or synthesized_causes(response),
            response=response,
        )

    def __str__(self):
        msg = "HTTP {}".format(self.status)
        if self.errors:
            msg += ":" + "; ".join(map(_cause_str, self.errors))
        return msg

    def has_code(self, code):
        """Whether any of the causes carries the given error code"""
        return any(e.code == code for e in self.errors)


class RequestTimeout(APIError):
    """A request (or opening its connection) took longer than allowed"""

    def __init__(self, message, timeout=None):
        self.message = message
        self.timeout = timeout
        super().__init__(None)

    def __str__(self):
        return self.message


def parse_causes(content):
    """Read the ``errors`` list from a JSON error body.

    Parameters
    ----------
    content: bytes or str or None
        the raw body

    Returns
    -------
    ~typing.List[ApiErrorCause]
        the causes, empty if the body has no structured errors
    """
    if not content:
        return []
    try:
        data = json.loads(content)
    except ValueError:
        return []
    if not isinstance(data, dict) or not isinstance(
        data.get("errors"), list
    ):
        return []
    return [
        ApiErrorCause(
            code=e.get("code"),
            field=e.get("field"),
            description=e.get("description"),
            id=e.get("id"),
        )
        for e in data["errors"]
        if isinstance(e, dict)
    ]


def synthesized_causes(response):
    """The single cause used when the server sent no structured errors"""
    status = response.status_code
    if status == 403:
        return [ApiErrorCause("INVALID_PRIVILEGE", "", "Forbidden")]
    if status == 404:
        return [ApiErrorCause("NOT_FOUND", "", RSRC_NOT_FOUND)]
    return [ApiErrorCause(str(status), "", _reason(status))]
