import json
import urllib.request

import pytest
import requests

import jamfkit


def test_send_with_unknown_client():
    class MyClass:
        pass

    with pytest.raises(TypeError, match="MyClass"):
        jamfkit.send(MyClass(), jamfkit.GET("foo"))


class TestSendWithUrllib:
    def test_no_contenttype(self, mocker, httpbin):
        req = jamfkit.Request(
            "POST",
            httpbin.url + "/post?foo=bar",
            content=b"foo",
            headers={"Accept": "application/json"},
        )
        client = urllib.request.build_opener()
        response = jamfkit.send(client, req)
        assert response == jamfkit.Response(
            200, mocker.ANY, headers=mocker.ANY
        )
        data = json.loads(response.content.decode())
        assert data["args"] == {"foo": "bar"}
        assert data["data"] == "foo"
        assert data["headers"]["Content-Type"] == "application/octet-stream"

    def test_http_error_status(self, mocker, httpbin):
        req = jamfkit.Request("POST", httpbin.url + "/status/404")
        client = urllib.request.build_opener()
        response = jamfkit.send(client, req)
        assert response == jamfkit.Response(404, b"", headers=mocker.ANY)

    def test_connection_refused(self):
        client = urllib.request.build_opener()
        with pytest.raises(
            jamfkit.InvalidConnection, match="could not connect"
        ):
            jamfkit.send(client, jamfkit.GET("http://127.0.0.1:1/"))


class TestSendWithRequests:
    def test_ok(self, mocker, httpbin):
        req = jamfkit.POST(
            httpbin.url + "/post?bla=99",
            content=b'{"foo": 4}',
            headers={"Accept": "application/json"},
        )
        response = jamfkit.send(requests.Session(), req)
        assert response == jamfkit.Response(
            200, mocker.ANY, headers=mocker.ANY
        )
        data = json.loads(response.content.decode())
        assert data["args"] == {"bla": "99"}
        assert json.loads(data["data"]) == {"foo": 4}
        assert data["headers"]["Accept"] == "application/json"

    def test_passes_timeout(self, mocker):
        session = requests.Session()
        request = mocker.patch.object(session, "request")
        request.return_value.status_code = 204
        request.return_value.content = b""
        request.return_value.headers = {}

        response = jamfkit.send(
            session, jamfkit.GET("https://x/"), timeout=(3, 9)
        )
        assert response == jamfkit.Response(204, b"", headers={})
        assert request.call_args[1]["timeout"] == (3, 9)

    @pytest.mark.parametrize(
        "exc, expect",
        [
            (requests.ConnectTimeout("slow"), jamfkit.RequestTimeout),
            (requests.ReadTimeout("slow"), jamfkit.RequestTimeout),
            (requests.ConnectionError("refused"), jamfkit.InvalidConnection),
            (requests.TooManyRedirects("loop"), jamfkit.APIError),
        ],
    )
    def test_errors_converted(self, mocker, exc, expect):
        session = requests.Session()
        mocker.patch.object(session, "request", side_effect=exc)
        with pytest.raises(expect) as excinfo:
            jamfkit.send(session, jamfkit.GET("https://x/"), timeout=(1, 2))
        assert excinfo.value.__cause__ is exc

    def test_transport_error_code(self, mocker):
        session = requests.Session()
        mocker.patch.object(
            session, "request", side_effect=requests.TooManyRedirects("loop")
        )
        with pytest.raises(jamfkit.APIError) as excinfo:
            jamfkit.send(session, jamfkit.GET("https://x/"))
        assert excinfo.value.has_code("TRANSPORT_ERROR")
        assert "loop" in str(excinfo.value)


class TestSendWithHttpx:
    def test_ok(self, mocker, httpbin):
        httpx = pytest.importorskip("httpx")
        req = jamfkit.POST(
            httpbin.url + "/post?bla=99",
            content=b'{"foo": 4}',
            headers={"Accept": "application/json"},
        )
        with httpx.Client() as client:
            response = jamfkit.send(client, req, timeout=(5, 5))
        assert response == jamfkit.Response(
            200, mocker.ANY, headers=mocker.ANY
        )
        data = json.loads(response.content.decode())
        assert data["args"] == {"bla": "99"}
        assert json.loads(data["data"]) == {"foo": 4}
