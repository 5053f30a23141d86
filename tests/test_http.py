import json

import pytest

import jamfkit


class AlwaysEquals:
    def __eq__(self, other):
        return True

    def __ne__(self, other):
        return False


class TestRequest:
    def test_defaults(self):
        req = jamfkit.Request("GET", "v1/buildings")
        assert req == jamfkit.Request("GET", "v1/buildings", headers={})
        assert req.content is None

    def test_with_headers(self):
        req = jamfkit.GET("v1/buildings", headers={"Accept": "text/xml"})
        assert req.with_headers({"X-Other": "3"}) == jamfkit.GET(
            "v1/buildings", headers={"Accept": "text/xml", "X-Other": "3"}
        )

    def test_with_headers_overrides(self):
        req = jamfkit.GET("v1/buildings", headers={"Accept": "text/xml"})
        added = req.with_headers({"Accept": "application/json"})
        assert added.headers == {"Accept": "application/json"}

    def test_headers_read_only(self):
        headers = {"Accept": "text/xml"}
        req = jamfkit.GET("v1/buildings", headers=headers)
        headers["Accept"] = "changed"
        assert req.headers["Accept"] == "text/xml"
        with pytest.raises(TypeError):
            req.headers["Accept"] = "changed"

    def test_with_prefix(self):
        req = jamfkit.GET("v1/buildings?page=0")
        assert req.with_prefix("https://jamf.example.com/api/") == (
            jamfkit.GET("https://jamf.example.com/api/v1/buildings?page=0")
        )

    def test_with_json(self):
        req = jamfkit.POST("v1/buildings").with_json({"name": "Main"})
        assert json.loads(req.content) == {"name": "Main"}
        assert req.headers["Content-Type"] == "application/json"

    def test_with_body_encodes_text(self):
        req = jamfkit.PUT("sites/id/1").with_body(
            "<site><name>Lyon</name></site>", "application/xml"
        )
        assert req.content == b"<site><name>Lyon</name></site>"
        assert req.headers["Content-Type"] == "application/xml"

    def test_equality(self):
        req = jamfkit.Request("GET", "v1/buildings")
        assert req == req.replace()
        assert req != req.replace(headers={"foo": "bar"})
        assert req == AlwaysEquals()
        assert req != object()

    def test_immutable_methods_leave_original(self):
        req = jamfkit.GET("v1/buildings")
        req.with_headers({"foo": "bar"})
        assert req.headers == {}

    def test_repr(self):
        assert "GET v1/buildings" in repr(jamfkit.GET("v1/buildings"))


class TestResponse:
    def test_equality(self):
        rsp = jamfkit.Response(204)
        assert rsp == rsp.replace()
        assert rsp != rsp.replace(headers={"foo": "bar"})
        assert rsp != object()

    @pytest.mark.parametrize(
        "status, ok", [(200, True), (204, True), (301, False), (404, False)]
    )
    def test_ok(self, status, ok):
        assert jamfkit.Response(status).ok is ok

    def test_reason(self):
        assert jamfkit.Response(404).reason == "Not Found"
        assert jamfkit.Response(599).reason == ""

    def test_json(self):
        assert jamfkit.Response(200, b'{"a": 1}').json() == {"a": 1}
        assert jamfkit.Response(204).json() is None
        with pytest.raises(ValueError):
            jamfkit.Response(200, b"<html>").json()

    def test_repr(self):
        assert "404" in repr(jamfkit.Response(404))


def test_prefix_adder():
    adder = jamfkit.prefix_adder("https://jamf.example.com/api/")
    assert adder(jamfkit.GET("v1/auth")) == jamfkit.GET(
        "https://jamf.example.com/api/v1/auth"
    )


def test_basic_auth():
    auth = jamfkit.basic_auth(("user", "pw"))
    req = jamfkit.GET("v1/auth/token", headers={"Accept": "application/json"})
    assert auth(req).headers == {
        "Accept": "application/json",
        "Authorization": "Basic dXNlcjpwdw==",
    }


class TestBearerAuth:
    def test_string(self):
        auth = jamfkit.bearer_auth("abc")
        assert auth(jamfkit.GET("v1/auth")).headers == {
            "Authorization": "Bearer abc"
        }

    def test_callable_evaluated_per_request(self):
        tokens = iter(["first", "second"])
        auth = jamfkit.bearer_auth(lambda: next(tokens))
        assert (
            auth(jamfkit.GET("a")).headers["Authorization"] == "Bearer first"
        )
        assert (
            auth(jamfkit.GET("a")).headers["Authorization"] == "Bearer second"
        )
