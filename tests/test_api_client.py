"""
Tests for the backend request helper and network error classification.
"""

import io
import time
from unittest.mock import Mock

import pytest
import requests

from mealplanner.api_client import ApiError, api_request, is_network_error, read_body


def _response(status_code=200, text="", reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.reason = reason
    return response


class AbortError(Exception):
    pass


class TestApiRequest:

    def test_sends_json_body(self):
        session = Mock()
        session.request.return_value = _response(201)

        response = api_request("post", "http://api/items", {"name": "milk"}, session=session, timeout=5)

        assert response.status_code == 201
        session.request.assert_called_once_with(
            "POST",
            "http://api/items",
            timeout=5,
            json={"name": "milk"},
            headers={"Content-Type": "application/json"},
        )

    def test_no_body_no_content_type(self):
        session = Mock()
        session.request.return_value = _response(204)

        api_request("DELETE", "http://api/items/1", session=session)

        kwargs = session.request.call_args.kwargs
        assert "json" not in kwargs
        assert "headers" not in kwargs

    def test_non_2xx_raises_with_status_and_body(self):
        session = Mock()
        session.request.return_value = _response(400, text='{"message":"name required"}', reason="Bad Request")

        with pytest.raises(ApiError) as exc_info:
            api_request("POST", "http://api/items", {}, session=session)

        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == '400: {"message":"name required"}'

    def test_empty_body_uses_reason(self):
        session = Mock()
        session.request.return_value = _response(503, text="", reason="Service Unavailable")

        with pytest.raises(ApiError, match="503: Service Unavailable"):
            api_request("GET", "http://api/items", session=session)

    def test_network_errors_propagate(self):
        session = Mock()
        session.request.side_effect = requests.ConnectionError("Connection refused")

        with pytest.raises(requests.ConnectionError):
            api_request("GET", "http://api/items", session=session)


class TestReadBody:

    def test_reads_until_exhausted(self):
        response = Mock()
        response.raw = io.BytesIO(b'{"items": [1, 2, 3]}')

        assert read_body(response, time.monotonic() + 5, chunk_size=4) == b'{"items": [1, 2, 3]}'

    def test_past_deadline_raises_timeout(self):
        response = Mock()
        response.raw = io.BytesIO(b"[]")

        with pytest.raises(requests.Timeout) as exc_info:
            read_body(response, time.monotonic() - 1)
        assert is_network_error(exc_info.value)


class TestIsNetworkError:

    @pytest.mark.parametrize("error", [
        requests.ConnectionError("refused"),
        requests.Timeout("read timed out"),
        requests.exceptions.ConnectTimeout("connect timeout"),
        TypeError("Failed to fetch"),
        Exception("The operation was aborted"),
        RuntimeError("network unreachable"),
        AbortError("signal"),
    ])
    def test_network_errors(self, error):
        assert is_network_error(error) is True

    @pytest.mark.parametrize("error", [
        ApiError(500, "network layer exploded"),
        ApiError(401, "Unauthorized"),
        ValueError("Expecting value"),
        TypeError("unsupported operand"),
    ])
    def test_application_errors(self, error):
        assert is_network_error(error) is False
