from operator import methodcaller

import pytest
import requests

import jamfkit
from jamfkit.query import load_json


class MockClient(object):
    def __init__(self, response):
        self.response = response
        self.kwargs = None

    def send(self, req, **kwargs):
        self.request = req
        self.kwargs = kwargs
        return self.response


jamfkit.send.register(MockClient, MockClient.send)


def test__execute__():
    class StringClient:
        def __init__(self, mappings):
            self.mappings = mappings

        def send(self, req):
            return self.mappings[req]

    jamfkit.send.register(StringClient, StringClient.send)

    client = StringClient(
        {
            "api/v1/buildings": "redirect:/v1/buildings/",
            "api/v1/buildings/": "redirect:/v2/buildings/",
            "api/v2/buildings/": b"hello world",
        }
    )

    class MyQuery(object):
        def __iter__(self):
            redirect = yield "/v1/buildings"
            redirect = yield redirect.split(":")[1]
            response = yield redirect.split(":")[1]
            return response.decode("ascii")

    assert (
        jamfkit.Query.__execute__(MyQuery(), client, lambda s: "api" + s)
        == "hello world"
    )


def myquery():
    return (yield jamfkit.GET("v1/buildings"))


class TestExecute:
    def test_defaults(self, mocker):
        send = mocker.patch("jamfkit.query.send", autospec=True)

        assert jamfkit.execute(myquery()) == send.return_value
        client, req = send.call_args[0]
        assert isinstance(client, requests.Session)
        assert req == jamfkit.GET("v1/buildings")

    def test_custom_client(self):
        client = MockClient(jamfkit.Response(204))

        result = jamfkit.execute(myquery(), client=client)
        assert result == jamfkit.Response(204)
        assert client.request == jamfkit.GET("v1/buildings")

    def test_custom_execute(self):
        client = MockClient(jamfkit.Response(204))

        class MyQuery(object):
            def __execute__(self, client, auth):
                return client.send(jamfkit.GET("v1/buildings"))

        result = jamfkit.execute(MyQuery(), client=client)
        assert result == jamfkit.Response(204)
        assert client.request == jamfkit.GET("v1/buildings")

    def test_auth(self):
        client = MockClient(jamfkit.Response(204))

        result = jamfkit.execute(
            myquery(), auth=("user", "pw"), client=client
        )
        assert result == jamfkit.Response(204)
        assert client.request == jamfkit.GET(
            "v1/buildings", headers={"Authorization": "Basic dXNlcjpwdw=="}
        )

    def test_none_auth(self):
        client = MockClient(jamfkit.Response(204))

        result = jamfkit.execute(myquery(), auth=None, client=client)
        assert result == jamfkit.Response(204)
        assert client.request == jamfkit.GET("v1/buildings")

    def test_auth_callable(self):
        client = MockClient(jamfkit.Response(204))
        auther = methodcaller("with_headers", {"X-My-Auth": "letmein"})

        result = jamfkit.execute(myquery(), auth=auther, client=client)
        assert result == jamfkit.Response(204)
        assert client.request == jamfkit.GET(
            "v1/buildings", headers={"X-My-Auth": "letmein"}
        )

    def test_send_kwargs(self):
        client = MockClient(jamfkit.Response(204))

        jamfkit.execute(myquery(), client=client, timeout=(1, 5))
        assert client.kwargs == {"timeout": (1, 5)}


class TestJSONQuery:
    def test_ok(self):
        client = MockClient(jamfkit.Response(200, b'{"id": "4"}'))
        query = jamfkit.JSONQuery(jamfkit.GET("v1/buildings/4"))

        assert jamfkit.execute(query, client=client) == {"id": "4"}
        assert client.request == jamfkit.GET("v1/buildings/4")

    def test_error_status(self):
        client = MockClient(
            jamfkit.Response(
                400,
                b'{"httpStatus": 400, "errors": [{"code": "INVALID_FIELD",'
                b' "field": "name", "description": "bad"}]}',
            )
        )
        query = jamfkit.JSONQuery(jamfkit.POST("v1/buildings"))

        with pytest.raises(jamfkit.APIError) as excinfo:
            jamfkit.execute(query, client=client)
        assert excinfo.value.status == 400
        assert excinfo.value.has_code("INVALID_FIELD")

    def test_custom_on_error(self):
        client = MockClient(jamfkit.Response(401))
        query = jamfkit.JSONQuery(
            jamfkit.GET("v1/auth"),
            on_error=lambda r: jamfkit.AuthenticationError("no"),
        )

        with pytest.raises(jamfkit.AuthenticationError, match="no"):
            jamfkit.execute(query, client=client)

    def test_malformed_body(self):
        client = MockClient(jamfkit.Response(200, b"<html>"))
        query = jamfkit.JSONQuery(jamfkit.GET("v1/buildings"))

        with pytest.raises(jamfkit.APIError) as excinfo:
            jamfkit.execute(query, client=client)
        assert excinfo.value.has_code("INVALID_RESPONSE")

    def test_repr(self):
        query = jamfkit.JSONQuery(jamfkit.GET("v1/buildings"))
        assert "v1/buildings" in repr(query)


def test_raw_query():
    client = MockClient(jamfkit.Response(200, b"\x00\x01"))
    query = jamfkit.RawQuery(jamfkit.GET("v1/icon/download/3"))

    assert jamfkit.execute(query, client=client) == b"\x00\x01"


def test_load_json_empty_body():
    assert load_json(jamfkit.Response(204)) is None
