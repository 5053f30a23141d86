import time
from datetime import datetime, timedelta, timezone

import pytest

import jamfkit
from jamfkit.token import RETRY_DELAY, ThreadScheduler, Token, parse_version

from fakes import PRO_URL, START, FakeClock, FakeJamf, ManualScheduler


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def server(clock):
    return FakeJamf(clock)


def make_token(server, clock, scheduler, **kwargs):
    kwargs.setdefault("user", "admin")
    kwargs.setdefault("pw", "secret")
    return Token(
        PRO_URL, server, clock=clock, scheduler=scheduler, **kwargs
    )


class TestInit:
    def test_with_pw(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)

        assert token.string == "token-1"
        assert token.expires == START + timedelta(seconds=1800)
        assert token.login_time == START
        assert token.valid
        assert token.pw_cached
        [req] = server.sent("POST", "api/v1/auth/token")
        assert req.headers["Authorization"] == "Basic YWRtaW46c2VjcmV0"

    def test_wrong_pw(self, server, clock, scheduler):
        server.routes[("POST", "api/v1/auth/token")] = jamfkit.Response(401)

        with pytest.raises(
            jamfkit.AuthenticationError, match="Incorrect name or password"
        ):
            make_token(server, clock, scheduler)

    def test_other_auth_failure(self, server, clock, scheduler):
        server.routes[("POST", "api/v1/auth/token")] = jamfkit.Response(500)

        with pytest.raises(jamfkit.AuthenticationError, match="500"):
            make_token(server, clock, scheduler)

    def test_malformed_token_response(self, server, clock, scheduler):
        server.routes[("POST", "api/v1/auth/token")] = jamfkit.Response(
            200, b'{"nope": 1}'
        )

        with pytest.raises(jamfkit.InvalidConnection, match="malformed"):
            make_token(server, clock, scheduler)

    def test_missing_credentials(self, server, clock, scheduler):
        with pytest.raises(jamfkit.MissingData):
            make_token(server, clock, scheduler, pw=None)
        assert server.requests == []

    def test_with_token_string(self, server, clock, scheduler):
        token = make_token(
            server, clock, scheduler, user=None, pw=None, token_string="abc"
        )

        assert token.user == "admin"
        assert token.string == "token-1"
        assert not token.pw_cached
        [check] = server.sent("GET", "api/v1/auth")
        assert check.headers["Authorization"] == "Bearer abc"

    def test_with_invalid_token_string(self, server, clock, scheduler):
        server.routes[("GET", "api/v1/auth")] = jamfkit.Response(401)

        with pytest.raises(jamfkit.AuthenticationError, match="not valid"):
            make_token(
                server,
                clock,
                scheduler,
                user=None,
                pw=None,
                token_string="abc",
            )

    def test_no_pw_fallback_forgets_pw(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, pw_fallback=False)
        assert not token.pw_cached

    def test_token_string_preferred_over_pw(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, token_string="abc")

        assert server.sent("POST", "api/v1/auth/token") == []
        [check] = server.sent("GET", "api/v1/auth")
        assert check.headers["Authorization"] == "Bearer abc"
        assert token.pw_cached


class TestRefresh:
    def test_refresh(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        clock.advance(600)

        assert token.refresh() == clock() + timedelta(seconds=1800)
        assert token.string == "token-2"
        assert token.last_refresh == clock()
        assert token.last_refresh_result == "Refreshed"
        [req] = server.sent("POST", "api/v1/auth/keep-alive")
        assert req.headers["Authorization"] == "Bearer token-1"

    def test_failure_falls_back_to_pw(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        server.routes[("POST", "api/v1/auth/keep-alive")] = jamfkit.Response(
            401
        )

        token.refresh()
        assert token.string == "token-2"
        assert token.last_refresh_result == (
            "Refresh failed, but new token created with cached pw"
        )

    def test_failure_without_pw_fallback(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, pw_fallback=False)
        server.routes[("POST", "api/v1/auth/keep-alive")] = jamfkit.Response(
            401
        )

        with pytest.raises(jamfkit.InvalidConnection, match="refreshing"):
            token.refresh()
        assert token.string == "token-1"
        assert token.last_refresh_result == (
            "Refresh failed, but pw_fallback was false"
        )

    def test_failure_and_pw_failure(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        server.routes[("POST", "api/v1/auth/keep-alive")] = jamfkit.Response(
            500
        )
        server.routes[("POST", "api/v1/auth/token")] = jamfkit.Response(401)

        with pytest.raises(jamfkit.AuthenticationError):
            token.refresh()
        assert token.last_refresh_result == (
            "Refresh failed, could not create new token with cached pw"
        )

    def test_expired_with_pw(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        clock.advance(1801)

        assert token.expired
        token.refresh()
        assert not token.expired
        assert server.sent("POST", "api/v1/auth/keep-alive") == []
        assert token.last_refresh_result == (
            "Expired, but new token created with cached pw"
        )

    def test_expired_without_pw(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, pw_fallback=False)
        clock.advance(1801)

        with pytest.raises(jamfkit.InvalidConnection, match="expired"):
            token.refresh()
        assert token.last_refresh_result == (
            "Expired, but pw_fallback was false"
        )

    def test_ensure_valid(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)

        token.ensure_valid()
        assert server.tokens_issued == 1

        clock.advance(1801)
        token.ensure_valid()
        assert server.tokens_issued == 2
        assert token.valid

    def test_secs_remaining(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        clock.advance(1000)
        assert token.secs_remaining == 800


class TestInvalidate:
    def test_invalidate(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        token.start_keep_alive()

        token.invalidate()
        assert token.invalidated
        assert not token.valid
        assert not token.keep_alive
        assert not token.pw_cached
        [req] = server.sent("POST", "api/v1/auth/invalidate-token")
        assert req.headers["Authorization"] == "Bearer token-1"

        with pytest.raises(jamfkit.InvalidConnection, match="invalidated"):
            token.refresh()
        with pytest.raises(jamfkit.InvalidConnection, match="invalidated"):
            token.ensure_valid()

    def test_expired_token_not_sent(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        clock.advance(2000)

        token.invalidate()
        assert token.invalidated
        assert server.sent("POST", "api/v1/auth/invalidate-token") == []


class TestKeepAlive:
    def test_schedules_before_expiry(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, refresh_buffer=300)

        token.start_keep_alive()
        assert token.keep_alive
        [handle] = scheduler.pending
        assert handle.delay == 1500

    def test_start_twice(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        token.start_keep_alive()
        token.start_keep_alive()
        assert len(scheduler.pending) == 1

    def test_short_life_refreshes_once(self, clock, scheduler):
        server = FakeJamf(clock, token_life=60)
        token = make_token(server, clock, scheduler, refresh_buffer=120)

        token.start_keep_alive()
        [handle] = scheduler.pending
        assert handle.delay == 0

        assert scheduler.run_pending() == 1
        assert len(server.sent("POST", "api/v1/auth/keep-alive")) == 1
        # the new token is no longer than the buffer either:
        # wait half its life instead of refreshing again at once
        [handle] = scheduler.pending
        assert handle.delay == 30

        clock.advance(30)
        assert scheduler.run_pending() == 1
        assert len(server.sent("POST", "api/v1/auth/keep-alive")) == 2
        [handle] = scheduler.pending
        assert handle.delay == 30

    def test_reschedules_before_next_expiry(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, refresh_buffer=300)
        token.start_keep_alive()
        clock.advance(1500)

        scheduler.run_pending()
        assert token.last_refresh_result == "Refreshed"
        [handle] = scheduler.pending
        assert handle.delay == 1500

    def test_stopped_never_refreshes(self, clock, scheduler):
        server = FakeJamf(clock, token_life=60)
        token = make_token(server, clock, scheduler, refresh_buffer=120)
        token.start_keep_alive()

        token.stop_keep_alive()
        token.stop_keep_alive()
        assert not token.keep_alive
        assert scheduler.pending == []
        scheduler.run_pending()
        assert server.sent("POST", "api/v1/auth/keep-alive") == []

    def test_failed_tick_retries(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, pw_fallback=False)
        token.start_keep_alive()
        server.routes[("POST", "api/v1/auth/keep-alive")] = jamfkit.Response(
            500
        )
        clock.advance(1500)

        scheduler.run_pending()
        assert isinstance(token.last_refresh_error, jamfkit.InvalidConnection)
        assert token.keep_alive
        [handle] = scheduler.pending
        assert handle.delay == RETRY_DELAY

    def test_tick_stops_once_expired(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler, pw_fallback=False)
        token.start_keep_alive()
        clock.advance(1900)

        scheduler.run_pending()
        assert not token.keep_alive
        assert scheduler.pending == []

    def test_cannot_start_on_expired(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        clock.advance(1801)

        with pytest.raises(jamfkit.InvalidConnection):
            token.start_keep_alive()


class TestServerInfo:
    def test_version(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)

        assert token.jamf_version == (10, 50, 0)
        assert token.jamf_build == "t1700000000"
        assert len(server.sent("GET", "api/v1/jamf-pro-version")) == 1

    def test_account(self, server, clock, scheduler):
        token = make_token(server, clock, scheduler)
        assert token.account["account"]["username"] == "admin"


class TestParseVersion:
    @pytest.mark.parametrize(
        "text, expect",
        [
            ("10.42.1-t1667834640", ((10, 42, 1), "t1667834640")),
            ("11.0.0", ((11, 0, 0), None)),
            (" 10.35.0-b2 ", ((10, 35, 0), "b2")),
        ],
    )
    def test_valid(self, text, expect):
        assert parse_version(text) == expect

    def test_invalid(self):
        with pytest.raises(jamfkit.InvalidData):
            parse_version("ten")


def _utcnow():
    return datetime.now(timezone.utc)


def _wait_for(condition, timeout=5):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.01)
    return True


class TestThreadScheduler:
    def test_short_life_refreshes_once(self):
        server = FakeJamf(_utcnow, token_life=60)
        token = Token(
            PRO_URL,
            server,
            user="admin",
            pw="secret",
            refresh_buffer=120,
            clock=_utcnow,
            scheduler=ThreadScheduler(),
        )
        try:
            token.start_keep_alive()
            assert _wait_for(lambda: server.tokens_issued == 2)
            time.sleep(0.2)
            assert server.tokens_issued == 2
            assert token.keep_alive
        finally:
            token.stop_keep_alive()
        assert not token.keep_alive

    def test_stop_before_firing(self):
        server = FakeJamf(_utcnow)
        token = Token(
            PRO_URL,
            server,
            user="admin",
            pw="secret",
            refresh_buffer=1799.8,
            clock=_utcnow,
            scheduler=ThreadScheduler(),
        )
        token.start_keep_alive()
        token.stop_keep_alive()
        time.sleep(0.4)
        assert server.tokens_issued == 1
