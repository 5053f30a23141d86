"""Connections to a Jamf Pro server, over both of its APIs"""
import logging
import os
import plistlib
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from urllib.parse import urlsplit

import requests

from .configuration import Configuration
from .errors import (
    APIError,
    ApiErrorCause,
    InvalidConnection,
    InvalidData,
    JamfError,
    MissingData,
    RSRC_NOT_FOUND,
)
from .http import (
    DELETE,
    GET,
    JSON_CONTENT,
    MERGE_PATCH_CONTENT,
    PATCH,
    POST,
    PUT,
    XML_CONTENT,
    prefix_adder,
)
from .query import execute, load_json
from .token import DFT_REFRESH_BUFFER, Token

__all__ = ["Connection", "classic_error", "client_defaults"]

logger = logging.getLogger(__name__)

HTTPS_SCHEME = "https"
HTTPS_SSL_PORT = 443
ON_PREM_SSL_PORT = 8443
JAMFCLOUD_DOMAIN = ".jamfcloud.com"
JAMFCLOUD_PORT = HTTPS_SSL_PORT
DFT_TIMEOUT = 60
DFT_OPEN_TIMEOUT = 60
DFT_SSL_VERSION = "TLSv1_2"
TOKEN_REUSE_MIN_LIFE = 60
MIN_JAMF_VERSION = (10, 35, 0)
CLASSIC_RSRC_BASE = "JSSResource"
PRO_RSRC_BASE = "api"
GET_FORMATS = ("json", "xml")
CLIENT_PLIST = "/Library/Preferences/com.jamfsoftware.jamf.plist"

_CLASSIC_ERROR_PATTERNS = [
    re.compile(r"<p>(The server has not .*?)(<|$)", re.DOTALL),
    re.compile(r"<p>Error: (.*?)</p>", re.DOTALL),
    re.compile(r"<p>(Unable to complete file upload.*?)(<|$)", re.DOTALL),
    re.compile(
        r">Bad Request</p>\n<p>(.*?)</p>\n<p>You can get technical detail",
        re.DOTALL,
    ),
]


def _utcnow():
    return datetime.now(timezone.utc)


def _strip_rsrc(rsrc):
    if not rsrc:
        raise MissingData("a resource path is required")
    return rsrc.lstrip("/")


def classic_error(response):
    """Map a failed classic API response to an error.

    The classic API reports errors as HTML pages;
    the description is lifted from the page where possible.

    Returns
    -------
    ~jamfkit.errors.JamfError
    """
    body = (response.content or b"").decode("utf-8", "replace")
    status = response.status_code
    if status == 401 and "INVALID_TOKEN" in body:
        return InvalidConnection("Connection token is not valid")
    if status == 404:
        return APIError(
            status, [ApiErrorCause("NOT_FOUND", "", RSRC_NOT_FOUND)], response
        )
    description = None
    for pattern in _CLASSIC_ERROR_PATTERNS:
        match = pattern.search(body)
        if match:
            description = match.group(1).strip()
            break
    if description is None:
        if status == 401:
            description = "You are not authorized to do that."
        elif status >= 500:
            description = "There was an internal server error"
        else:
            description = response.reason or (
                "There was an error processing your request"
            )
    return APIError(
        status, [ApiErrorCause(str(status), "", description)], response
    )


def client_defaults(path=None):
    """The host and port the local Jamf client is enrolled with.

    Parameters
    ----------
    path: str or None
        the client's preference plist. Defaults to the
        ``JAMF_CLIENT_PLIST`` environment variable,
        then the standard location.

    Returns
    -------
    dict
        ``host`` and ``port``, or empty if there is no enrolled client
    """
    path = path or os.environ.get("JAMF_CLIENT_PLIST", CLIENT_PLIST)
    try:
        with open(path, "rb") as rfile:
            prefs = plistlib.load(rfile)
    except (OSError, plistlib.InvalidFileException):
        return {}
    url = urlsplit(prefs.get("jss_url", ""))
    if not url.hostname:
        return {}
    return {"host": url.hostname, "port": url.port or HTTPS_SSL_PORT}


def _exchange(request):
    response = yield request
    return response


class _Transport:
    """One API generation: its base URL, default headers and error mapping,
    authenticated with the connection's token"""

    def __init__(self, client, base_url, token, on_error, headers):
        self.client = client
        self.base_url = base_url
        self.token = token
        self.on_error = on_error
        self.headers = headers

    def _auth(self, request):
        return self.token.auth(prefix_adder(self.base_url)(request))

    def send(self, request, **send_kwargs):
        request = request.replace(headers={**self.headers, **request.headers})
        return execute(
            _exchange(request),
            auth=self._auth,
            client=self.client,
            **send_kwargs
        )


@dataclass(frozen=True)
class _State:
    host: str
    port: int
    user: str
    base_url: str
    token: Token
    client: object
    pro: _Transport
    classic: _Transport
    timeout: int
    open_timeout: int
    verify_cert: bool
    ssl_version: str
    login_time: datetime
    name: str


class Connection:
    """A connection to a Jamf Pro server.

    Either fully connected (a valid token and both API transports),
    or fully disconnected.
    Connects immediately if a ``url`` or parameters are given.

    Not safe for concurrent use across threads:
    use one connection per thread.

    Parameters
    ----------
    url: str or None
        see :meth:`connect`
    client
        The HTTP client to use, registered with
        :func:`~jamfkit.clients.send`.
        If not given, a :class:`requests.Session` is created on connect.
    config: ~jamfkit.configuration.Configuration or Mapping or None
        Defaults for :meth:`connect`.
        If not given, :meth:`Configuration.load()
        <jamfkit.configuration.Configuration.load>` is used.
    scheduler
        Passed to the :class:`~jamfkit.token.Token`, runs its keep-alive
    clock: ~typing.Callable[[], ~datetime.datetime]
        Passed to the :class:`~jamfkit.token.Token`
    **params
        see :meth:`connect`
    """

    def __init__(
        self,
        url=None,
        client=None,
        config=None,
        scheduler=None,
        clock=_utcnow,
        **params
    ):
        self._client = client
        self._config = config
        self._scheduler = scheduler
        self._clock = clock
        self._state = None
        self.last_http_response = None
        self._reset_caches()
        if url is not None or params:
            self.connect(url, **params)

    def _reset_caches(self):
        self.collection_cache = {}
        self.singleton_cache = {}
        self.ext_attr_cache = {}

    def __repr__(self):
        if self._state is None:
            return "<Connection: not connected>"
        return "<Connection: {}>".format(self._state.name)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.disconnect()

    # connecting
    ##############

    def connect(self, url=None, **params):
        """Connect to a server, replacing any current connection.

        Parameters
        ----------
        url: str or None
            ``https://user:pw@host:port/path``; all parts but the host
            are optional. Parts given here override ``params``.
        host: str
            the server name (``server`` is accepted as well)
        port: int
            default 443 for Jamf Cloud, otherwise 8443
        user: str
            the user name (``client_id`` is accepted as well)
        pw: str
            the password (``client_secret`` is accepted as well)
        token: str or ~jamfkit.token.Token
            an existing token to use instead of user and password
        server_path: str
            a path prefix on the server
        timeout: int
            seconds to wait for a response
        open_timeout: int
            seconds to wait for a connection
        keep_alive: bool
            keep the token refreshed automatically (default ``True``)
        token_refresh_buffer: int
            seconds before expiry to refresh the token
        pw_fallback: bool
            keep the password, to get a new token if refreshing fails
        verify_cert: bool
            verify the server's TLS certificate (default ``True``)
        ssl_version: str
            recorded for information; TLS negotiation is left
            to the HTTP client
        name: str
            a name for the connection, default ``user@host:port``

        Returns
        -------
        Connection
            this connection

        Raises
        ------
        ~jamfkit.errors.MissingData
            no host, or no credentials
        ~jamfkit.errors.InvalidConnection
            an unusable token, failed authentication,
            or an unsupported server version
        ValueError
            the url is not an https url
        """
        if url is None and not params:
            raise ValueError("No url or connection parameters provided")
        self.disconnect()

        params = dict(params)
        token = params.pop("token", None)
        reused = token if isinstance(token, Token) else None
        if reused is not None:
            self._verify_token(reused)
        self._parse_url(url, params)
        self._apply_defaults(params, reused)
        self._verify_basic_params(params, reused, token)

        base_url = self._build_base_url(params)
        client = self._client or self._make_client(params)
        timeout = (params["open_timeout"], params["timeout"])
        if reused is None:
            token = Token(
                base_url + PRO_RSRC_BASE + "/",
                client,
                user=params.get("user"),
                pw=params.get("pw"),
                token_string=token,
                refresh_buffer=params["token_refresh_buffer"],
                pw_fallback=params.get("pw_fallback", True),
                timeout=timeout,
                clock=self._clock,
                scheduler=self._scheduler,
            )
        else:
            token = reused
        try:
            self._verify_server_version(token)
        except JamfError:
            if reused is None:
                token.invalidate()
            raise

        state = _State(
            host=params["host"],
            port=params["port"],
            user=token.user,
            base_url=base_url,
            token=token,
            client=client,
            pro=_Transport(
                client,
                base_url + PRO_RSRC_BASE + "/",
                token,
                APIError.from_response,
                {"Accept": JSON_CONTENT},
            ),
            classic=_Transport(
                client,
                base_url + CLASSIC_RSRC_BASE + "/",
                token,
                classic_error,
                {},
            ),
            timeout=params["timeout"],
            open_timeout=params["open_timeout"],
            verify_cert=params["verify_cert"],
            ssl_version=params["ssl_version"],
            login_time=self._clock(),
            name=params.get("name")
            or "{}@{}:{}".format(token.user, params["host"], params["port"]),
        )
        if params.get("keep_alive", True):
            token.start_keep_alive()
        self._state = state
        logger.info("connected to %s", state.name)
        return self

    login = connect

    @staticmethod
    def _verify_token(token):
        if token.expired:
            raise InvalidConnection("Cannot use token: it has expired")
        if not token.valid:
            raise InvalidConnection("Cannot use token: it is invalid")
        if token.secs_remaining < TOKEN_REUSE_MIN_LIFE:
            raise InvalidConnection(
                "Cannot use token: it expires in less than {} seconds".format(
                    TOKEN_REUSE_MIN_LIFE
                )
            )

    @staticmethod
    def _parse_url(url, params):
        if url is None:
            return
        parts = urlsplit(str(url))
        if parts.scheme != HTTPS_SCHEME:
            raise ValueError("Invalid url, scheme must be https")
        params["host"] = parts.hostname
        if parts.port:
            params["port"] = parts.port
        if parts.path.strip("/"):
            params["server_path"] = parts.path
        if parts.username:
            params["user"] = parts.username
        if parts.password:
            params["pw"] = parts.password

    def _config_params(self):
        config = self._config
        if config is None:
            config = Configuration.load()
        if hasattr(config, "as_connect_params"):
            return config.as_connect_params()
        return dict(config)

    def _apply_defaults(self, params, reused):
        if reused is not None:
            split = urlsplit(reused.base_url)
            params.setdefault("host", split.hostname)
            params.setdefault("port", split.port or HTTPS_SSL_PORT)
            prefix = split.path.rstrip("/")
            if prefix.endswith("/" + PRO_RSRC_BASE):
                prefix = prefix[: -len(PRO_RSRC_BASE) - 1]
            if prefix:
                params.setdefault("server_path", prefix)
        if not params.get("host"):
            params["host"] = params.get("server")
        if not params.get("port") and str(params.get("host")).endswith(
            JAMFCLOUD_DOMAIN
        ):
            params["port"] = JAMFCLOUD_PORT
        if not params.get("user"):
            params["user"] = params.get("client_id")
        if not params.get("pw"):
            params["pw"] = params.get("client_secret")

        for sources in (self._config_params(), client_defaults()):
            for key, value in sources.items():
                if params.get(key) is None:
                    params[key] = value

        module_defaults = {
            "port": ON_PREM_SSL_PORT,
            "timeout": DFT_TIMEOUT,
            "open_timeout": DFT_OPEN_TIMEOUT,
            "ssl_version": DFT_SSL_VERSION,
            "token_refresh_buffer": DFT_REFRESH_BUFFER,
            "verify_cert": True,
        }
        for key, value in module_defaults.items():
            if params.get(key) is None:
                params[key] = value

    @staticmethod
    def _verify_basic_params(params, reused, token):
        if reused is not None:
            return
        if not params.get("host"):
            raise MissingData(
                "No Jamf host specified in params or configuration."
            )
        if isinstance(token, str):
            return
        if token is not None:
            raise InvalidData(
                "token must be a string or a Token (got {!r})".format(token)
            )
        if not params.get("user"):
            raise MissingData(
                "No Jamf user specified in params or configuration."
            )
        if not params.get("pw"):
            raise MissingData(
                "No pw specified for user {!r}".format(params["user"])
            )

    @staticmethod
    def _build_base_url(params):
        path = (params.get("server_path") or "").strip("/")
        return "{}://{}:{}/{}".format(
            HTTPS_SCHEME,
            params["host"],
            params["port"],
            path + "/" if path else "",
        )

    @staticmethod
    def _make_client(params):
        session = requests.Session()
        session.verify = params["verify_cert"]
        return session

    @staticmethod
    def _verify_server_version(token):
        version = token.jamf_version
        if version < MIN_JAMF_VERSION:
            raise InvalidConnection(
                "Jamf Pro {} is not supported, the minimum is {}".format(
                    ".".join(map(str, version)),
                    ".".join(map(str, MIN_JAMF_VERSION)),
                )
            )

    def disconnect(self):
        """Stop the token keep-alive, flush all caches,
        and forget the connection state"""
        state, self._state = self._state, None
        self._reset_caches()
        if state is not None:
            state.token.stop_keep_alive()
            logger.info("disconnected from %s", state.name)

    def logout(self):
        """Invalidate the token on the server, then disconnect"""
        state = self._state
        try:
            if state is not None:
                state.token.invalidate()
        finally:
            self.disconnect()

    # state
    #########

    def _require_connected(self):
        state = self._state
        if state is None:
            raise InvalidConnection(
                "Not Connected. Use .connect() first."
            )
        return state

    @property
    def connected(self):
        return self._state is not None

    def _get(self, name):
        return None if self._state is None else getattr(self._state, name)

    name = property(lambda self: self._get("name"))
    host = property(lambda self: self._get("host"))
    port = property(lambda self: self._get("port"))
    user = property(lambda self: self._get("user"))
    base_url = property(lambda self: self._get("base_url"))
    token = property(lambda self: self._get("token"))
    login_time = property(lambda self: self._get("login_time"))
    verify_cert = property(lambda self: self._get("verify_cert"))
    ssl_version = property(lambda self: self._get("ssl_version"))
    connect_time = login_time

    @property
    def timeout(self):
        """Seconds to wait for a response; applies to subsequent calls"""
        return self._get("timeout")

    @timeout.setter
    def timeout(self, value):
        self._state = replace(self._require_connected(), timeout=value)

    @property
    def open_timeout(self):
        """Seconds to wait for a connection; applies to subsequent calls"""
        return self._get("open_timeout")

    @open_timeout.setter
    def open_timeout(self, value):
        self._state = replace(self._require_connected(), open_timeout=value)

    @property
    def keep_alive(self):
        return self._state is not None and self._state.token.keep_alive

    @keep_alive.setter
    def keep_alive(self, value):
        token = self._require_connected().token
        if value:
            token.start_keep_alive()
        else:
            token.stop_keep_alive()

    @property
    def jamf_version(self):
        return self._require_connected().token.jamf_version

    @property
    def jamf_build(self):
        return self._require_connected().token.jamf_build

    # caches
    ##########

    def flushcache(self, key=None):
        """Flush the cached lists and definitions of one class,
        or of all classes if ``key`` is ``None``"""
        if key is None:
            self._reset_caches()
            logger.debug("flushed all caches of %s", self.name)
            return
        self.collection_cache.pop(key, None)
        self.singleton_cache.pop(key, None)
        self.ext_attr_cache.pop(getattr(key, "__name__", key), None)

    # verbs
    #########

    def _send(self, api, request):
        state = self._require_connected()
        state.token.ensure_valid()
        transport = state.pro if api == "pro" else state.classic
        response = transport.send(
            request, timeout=(state.open_timeout, state.timeout)
        )
        self.last_http_response = response
        if not response.ok:
            raise transport.on_error(response)
        return response

    def _pro(self, request, raw=False):
        response = self._send("pro", request)
        return response.content if raw else load_json(response)

    def jp_get(self, rsrc):
        """GET a resource API path, returning the decoded JSON"""
        return self._pro(GET(_strip_rsrc(rsrc)))

    def jp_post(self, rsrc, data=None):
        """POST JSON data to a resource API path,
        returning the decoded response"""
        request = POST(_strip_rsrc(rsrc))
        if data is not None:
            request = request.with_json(data)
        return self._pro(request)

    def jp_put(self, rsrc, data):
        return self._pro(PUT(_strip_rsrc(rsrc)).with_json(data))

    def jp_patch(self, rsrc, data):
        """PATCH a resource API path with a JSON merge-patch"""
        return self._pro(
            PATCH(_strip_rsrc(rsrc))
            .with_json(data)
            .with_headers({"Content-Type": MERGE_PATCH_CONTENT})
        )

    def jp_delete(self, rsrc):
        return self._pro(DELETE(_strip_rsrc(rsrc)))

    def jp_download(self, rsrc):
        """GET a resource API path, returning the raw body as bytes"""
        return self._pro(
            GET(_strip_rsrc(rsrc), headers={"Accept": "*/*"}), raw=True
        )

    get = jp_get
    post = jp_post
    put = jp_put
    patch = jp_patch
    delete = jp_delete
    download = jp_download

    def c_get(self, rsrc, fmt="json", raw=False):
        """GET a classic API path.

        Parameters
        ----------
        rsrc: str
            the path after ``JSSResource/``
        fmt: str
            ``"json"`` or ``"xml"``
        raw: bool
            return the JSON body undecoded.
            XML is always returned as a string.
        """
        rsrc = _strip_rsrc(rsrc)
        if fmt not in GET_FORMATS:
            raise InvalidData("fmt must be 'json' or 'xml'")
        response = self._send(
            "classic",
            GET(
                rsrc,
                headers={
                    "Accept": JSON_CONTENT if fmt == "json" else XML_CONTENT
                },
            ),
        )
        if fmt == "json" and not raw:
            return load_json(response)
        return (response.content or b"").decode("utf-8")

    def _classic_write(self, method, rsrc, xml):
        rsrc = _strip_rsrc(rsrc)
        if isinstance(xml, bytes):
            xml = xml.decode("utf-8")
        request = method(rsrc, headers={"Accept": XML_CONTENT})
        if xml is not None:
            request = request.with_body(
                xml.replace("\r", "&#13;"), XML_CONTENT
            )
        response = self._send("classic", request)
        return (response.content or b"").decode("utf-8")

    def c_post(self, rsrc, xml):
        """POST an XML document to a classic API path,
        returning the server's XML reply"""
        return self._classic_write(POST, rsrc, xml)

    def c_put(self, rsrc, xml):
        """PUT an XML document to a classic API path,
        returning the server's XML reply"""
        return self._classic_write(PUT, rsrc, xml)

    def c_delete(self, rsrc):
        return self._classic_write(DELETE, rsrc, None)
