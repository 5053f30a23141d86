"""API tokens and their keep-alive"""
import logging
import re
import threading
from datetime import datetime, timezone

from . import timestamp
from .errors import (
    APIError,
    AuthenticationError,
    InvalidConnection,
    InvalidData,
    JamfError,
    MissingData,
)
from .http import GET, POST, basic_auth, bearer_auth, prefix_adder
from .query import JSONQuery, RawQuery, execute

__all__ = [
    "Token",
    "ThreadScheduler",
    "parse_version",
    "REFRESH_RESULTS",
]

logger = logging.getLogger(__name__)

NEW_TOKEN_RSRC = "v1/auth/token"
KEEP_ALIVE_RSRC = "v1/auth/keep-alive"
INVALIDATE_RSRC = "v1/auth/invalidate-token"
AUTH_RSRC = "v1/auth"
JAMF_VERSION_RSRC = "v1/jamf-pro-version"

DFT_REFRESH_BUFFER = 300
RETRY_DELAY = 30
MIN_KEEP_ALIVE_DELAY = 1

REFRESH_RESULTS = {
    "refreshed": "Refreshed",
    "refreshed_pw": "Refresh failed, but new token created with cached pw",
    "refresh_failed": "Refresh failed, could not create new token "
    "with cached pw",
    "refresh_failed_no_pw_fallback": "Refresh failed, "
    "but pw_fallback was false",
    "expired_refreshed": "Expired, but new token created with cached pw",
    "expired_failed": "Expired, could not create new token with cached pw",
    "expired_no_pw_fallback": "Expired, but pw_fallback was false",
}

_VERSION_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)*)(?:-(.*))?\Z")


def _utcnow():
    return datetime.now(timezone.utc)


def parse_version(text):
    """Split a server version string into a comparable tuple and a build.

    Example
    -------

    >>> parse_version('10.42.1-t1667834640')
    ((10, 42, 1), 't1667834640')
    """
    match = _VERSION_RE.match(text.strip())
    if not match:
        raise InvalidData("not a valid version: {!r}".format(text))
    numbers, build = match.groups()
    return tuple(int(n) for n in numbers.split(".")), build


class ThreadScheduler:
    """Runs callables after a delay on daemon :class:`threading.Timer`
    threads. The handle returned by :meth:`schedule` has a ``cancel()``.
    """

    def schedule(self, delay, func):
        timer = threading.Timer(delay, func)
        timer.daemon = True
        timer.start()
        return timer


class Token:
    """A bearer token for the resource API, acquired on construction.

    Parameters
    ----------
    base_url: str
        The resource API base, e.g. ``https://jamf.example.com:8443/api/``
    client
        An HTTP client registered with :func:`~jamfkit.clients.send`
    user: str or None
        The user to authenticate as
    pw: str or None
        The password of ``user``
    token_string: str or None
        An existing token to use instead of ``user``/``pw``.
        It is checked with the server and then refreshed,
        to learn its expiry. When given, ``pw`` only serves
        as the fallback.
    refresh_buffer: int or float
        The keep-alive refreshes this many seconds before expiry
    pw_fallback: bool
        Keep ``pw`` in memory, and use it to create a new token
        when refreshing fails or the token has expired
    timeout: ~typing.Tuple[float, float] or None
        ``(open_timeout, read_timeout)`` for token requests
    clock: ~typing.Callable[[], ~datetime.datetime]
        Returns the current, timezone-aware time
    scheduler
        Runs the keep-alive; any object with a
        ``schedule(delay, func)`` method returning a cancellable handle.
        Defaults to a :class:`ThreadScheduler`.
    """

    def __init__(
        self,
        base_url,
        client,
        user=None,
        pw=None,
        token_string=None,
        refresh_buffer=DFT_REFRESH_BUFFER,
        pw_fallback=True,
        timeout=None,
        clock=_utcnow,
        scheduler=None,
    ):
        self.base_url = base_url
        self.user = user
        self.refresh_buffer = refresh_buffer
        self.pw_fallback = pw_fallback
        self.timeout = timeout
        self._client = client
        self._clock = clock
        self._scheduler = scheduler or ThreadScheduler()
        self._pw = pw
        self._string = None
        self._invalidated = False
        self._keep_alive = False
        self._handle = None
        self._lock = threading.Lock()
        self._account = None
        self._version = None
        self.expires = None
        self.login_time = None
        self.last_refresh = None
        self.last_refresh_error = None
        self._last_refresh_result = None

        if token_string:
            self._init_from_token_string(token_string)
        elif user and pw:
            self._init_from_pw()
        else:
            raise MissingData(
                "either user and pw, or token_string, are required"
            )
        if not pw_fallback:
            self._pw = None

    def __repr__(self):
        return "<Token: user={0.user!r}, expires={0.expires}>".format(self)

    def _execute(self, query, auth):
        return execute(
            query,
            auth=lambda r: auth(prefix_adder(self.base_url)(r)),
            client=self._client,
            timeout=self.timeout,
        )

    def _bearer(self):
        return bearer_auth(self._string)

    def _auth_error(self, response):
        if response.status_code == 401:
            return AuthenticationError("Incorrect name or password")
        return AuthenticationError(
            "An error occurred while authenticating: {}".format(
                APIError.from_response(response)
            )
        )

    def _apply(self, data):
        try:
            string, expires = data["token"], data["expires"]
        except (KeyError, TypeError):
            raise InvalidConnection(
                "malformed token response from {}".format(self.base_url)
            )
        self._string = string
        self.expires = timestamp.coerce(expires, "expires")
        self.last_refresh = self._clock()
        self._invalidated = False

    def _init_from_pw(self):
        self._apply(
            self._execute(
                JSONQuery(POST(NEW_TOKEN_RSRC), on_error=self._auth_error),
                basic_auth((self.user, self._pw)),
            )
        )
        self.login_time = self.last_refresh
        logger.debug("new token for %s at %s", self.user, self.base_url)

    def _init_from_token_string(self, token_string):
        self._string = token_string
        try:
            data = self._execute(JSONQuery(GET(AUTH_RSRC)), self._bearer())
        except APIError as e:
            raise AuthenticationError(
                "Token is not valid: {}".format(e)
            ) from e
        self._account = data
        self.user = (data or {}).get("account", {}).get("username")
        self.login_time = self._clock()
        self._keep_alive_refresh()

    @property
    def string(self):
        """The raw token string"""
        return self._string

    def auth(self, request):
        """Add this token's ``Authorization`` header to a request"""
        return bearer_auth(self._string)(request)

    @property
    def secs_remaining(self):
        """Seconds until expiry, negative once expired"""
        return (self.expires - self._clock()).total_seconds()

    @property
    def expired(self):
        return self._clock() >= self.expires

    @property
    def valid(self):
        """Not expired, and not invalidated"""
        return not self._invalidated and not self.expired

    @property
    def invalidated(self):
        return self._invalidated

    @property
    def pw_cached(self):
        return self._pw is not None

    @property
    def last_refresh_result(self):
        """A description of the outcome of the last refresh,
        or ``None`` if never refreshed"""
        return REFRESH_RESULTS.get(self._last_refresh_result)

    def _refresh_with_pw(self, success, failure):
        try:
            self._init_from_pw()
        except JamfError:
            self._last_refresh_result = failure
            raise
        self._last_refresh_result = success

    def _keep_alive_refresh(self):
        self._apply(
            self._execute(JSONQuery(POST(KEEP_ALIVE_RSRC)), self._bearer())
        )

    def refresh(self):
        """Exchange the token for a new one with a new expiry.

        Falls back to the cached password
        when the token has expired or the exchange fails.

        Returns
        -------
        ~datetime.datetime
            the new expiry

        Raises
        ------
        ~jamfkit.errors.InvalidConnection
            the token was invalidated, or could not be refreshed
        """
        if self._invalidated:
            raise InvalidConnection("the token has been invalidated")
        if self.expired:
            if self._pw is not None:
                self._refresh_with_pw("expired_refreshed", "expired_failed")
                return self.expires
            self._last_refresh_result = "expired_no_pw_fallback"
            raise InvalidConnection("the token has expired")
        try:
            self._keep_alive_refresh()
        except JamfError as e:
            if self._pw is not None:
                logger.info("token refresh failed (%s), using password", e)
                self._refresh_with_pw("refreshed_pw", "refresh_failed")
                return self.expires
            self._last_refresh_result = "refresh_failed_no_pw_fallback"
            raise InvalidConnection(
                "an error occurred while refreshing the token: {}".format(e)
            ) from e
        self._last_refresh_result = "refreshed"
        logger.debug("token refreshed, expires %s", self.expires)
        return self.expires

    def ensure_valid(self):
        """Refresh an expired token if possible.

        Raises
        ------
        ~jamfkit.errors.InvalidConnection
            the token is invalidated, or expired and cannot be renewed
        """
        if self._invalidated:
            raise InvalidConnection("the token has been invalidated")
        if self.expired:
            self.refresh()

    def invalidate(self):
        """Make the token permanently unusable,
        telling the server if the token is still live"""
        self.stop_keep_alive()
        live = self.valid
        self._invalidated = True
        self._pw = None
        if live:
            self._execute(RawQuery(POST(INVALIDATE_RSRC)), self._bearer())
            logger.debug("token for %s invalidated", self.user)

    @property
    def account(self):
        """The details of the account the token belongs to"""
        if self._account is None:
            self._account = self._execute(
                JSONQuery(GET(AUTH_RSRC)), self._bearer()
            )
        return self._account

    def _fetch_version(self):
        if self._version is None:
            data = self._execute(
                JSONQuery(GET(JAMF_VERSION_RSRC)), self._bearer()
            )
            try:
                self._version = parse_version(data["version"])
            except (KeyError, TypeError):
                raise InvalidConnection(
                    "unable to read the server version from {}".format(
                        self.base_url
                    )
                )
        return self._version

    @property
    def jamf_version(self):
        """The server version as a tuple of ints, e.g. ``(10, 42, 1)``"""
        return self._fetch_version()[0]

    @property
    def jamf_build(self):
        return self._fetch_version()[1]

    @property
    def keep_alive(self):
        """Whether the keep-alive is running"""
        return self._keep_alive

    def start_keep_alive(self):
        """Schedule automatic refreshes ``refresh_buffer`` seconds before
        expiry. Does nothing if already running.

        A buffer longer than the remaining life refreshes at once.
        Later refreshes then wait half the token's remaining life.

        Raises
        ------
        ~jamfkit.errors.InvalidConnection
            the token is no longer valid
        """
        if self._keep_alive:
            return
        if not self.valid:
            raise InvalidConnection("token expired, cannot refresh")
        self._keep_alive = True
        self._schedule(max(0.0, self.secs_remaining - self.refresh_buffer))
        logger.debug("keep-alive started for %s", self.user)

    def stop_keep_alive(self):
        """Cancel any pending automatic refresh. Idempotent."""
        with self._lock:
            running, self._keep_alive = self._keep_alive, False
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        if running:
            logger.debug("keep-alive stopped for %s", self.user)

    def _next_delay(self):
        remaining = self.secs_remaining
        if remaining - self.refresh_buffer > 0:
            return remaining - self.refresh_buffer
        return max(MIN_KEEP_ALIVE_DELAY, remaining / 2)

    def _schedule(self, delay):
        # the flag is set before the timer exists,
        # so a timer firing at once still sees it
        with self._lock:
            if self._keep_alive:
                self._handle = self._scheduler.schedule(delay, self._tick)

    def _tick(self):
        if not self._keep_alive or self._invalidated:
            return
        try:
            self.refresh()
        except JamfError as e:
            self.last_refresh_error = e
            if self._invalidated or self.expired:
                with self._lock:
                    self._keep_alive, self._handle = False, None
                logger.warning(
                    "keep-alive stopped, token for %s expired: %s",
                    self.user,
                    e,
                )
                return
            logger.warning(
                "keep-alive refresh failed for %s, retrying: %s", self.user, e
            )
            self._schedule(min(RETRY_DELAY, max(0.0, self.secs_remaining)))
            return
        self.last_refresh_error = None
        self._schedule(self._next_delay())
