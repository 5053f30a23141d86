import json

import pytest

import jamfkit
from jamfkit import errors


def response(status, body=None):
    return jamfkit.Response(
        status, None if body is None else json.dumps(body).encode()
    )


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc, builtin",
        [
            (errors.MissingData, ValueError),
            (errors.InvalidData, ValueError),
            (errors.AlreadyExists, ValueError),
            (errors.NoSuchItem, LookupError),
            (errors.InvalidConnection, ConnectionError),
            (errors.AuthenticationError, ConnectionError),
            (errors.UnsupportedOperation, TypeError),
        ],
    )
    def test_builtin_bases(self, exc, builtin):
        assert issubclass(exc, errors.JamfError)
        assert issubclass(exc, builtin)

    def test_timeout_is_api_error(self):
        exc = errors.RequestTimeout("took too long", timeout=(5, 10))
        assert isinstance(exc, errors.APIError)
        assert exc.status is None
        assert str(exc) == "took too long"


class TestAPIError:
    def test_structured_errors(self):
        exc = errors.APIError.from_response(
            response(
                400,
                {
                    "httpStatus": 400,
                    "errors": [
                        {
                            "code": "INVALID_FIELD",
                            "field": "name",
                            "description": "may not be blank",
                            "id": "7",
                        }
                    ],
                },
            )
        )
        assert exc.status == 400
        assert exc.errors == [
            errors.ApiErrorCause(
                "INVALID_FIELD", "name", "may not be blank", "7"
            )
        ]
        assert str(exc) == (
            "HTTP 400: Field: name, Error:, INVALID_FIELD, "
            "may not be blank, Object ID: '7'"
        )
        assert exc.has_code("INVALID_FIELD")
        assert not exc.has_code("INVALID_ID")

    def test_not_found_synthesized(self):
        exc = errors.APIError.from_response(response(404))
        assert exc.errors == [
            errors.ApiErrorCause("NOT_FOUND", "", "Resource Not Found")
        ]

    def test_forbidden_synthesized(self):
        exc = errors.APIError.from_response(response(403, {"foo": 1}))
        assert exc.errors[0].code == "INVALID_PRIVILEGE"
        assert exc.errors[0].description == "Forbidden"

    def test_other_status_uses_reason(self):
        exc = errors.APIError.from_response(
            jamfkit.Response(503, b"<html>down</html>")
        )
        assert exc.errors == [
            errors.ApiErrorCause("503", "", "Service Unavailable")
        ]
        assert "HTTP 503" in str(exc)

    def test_keeps_response(self):
        resp = response(500)
        assert errors.APIError.from_response(resp).response is resp
