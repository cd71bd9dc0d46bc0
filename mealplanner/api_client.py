"""
Request helper for backend API communication.

All mutating HTTP calls to the meal planner backend go through api_request(), which
JSON-encodes the body, raises ApiError for non-2xx responses, and lets network
errors propagate so callers can classify them with is_network_error().

# NOTE: Credentials are carried by the requests.Session (cookies). Pass the same
    session to api_request() and QueryClient so both share the login cookie.
"""

import logging
import time
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

# Substrings identifying "backend unreachable" failures in an error message
NETWORK_ERROR_MARKERS = (
    "Failed to fetch",
    "NetworkError",
    "Network request failed",
    "network",
    "aborted",
    "timed out",
)

READ_CHUNK_SIZE = 8192


class ApiError(Exception):
    """
    Exception raised when the backend answers with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        text: Response body, or the status reason when the body is empty
    """

    def __init__(self, status_code: int, text: str) -> None:
        self.status_code = status_code
        self.text = text
        super().__init__(f"{status_code}: {text}")


def raise_if_not_ok(response: requests.Response) -> None:
    """Raise ApiError if the response status is not 2xx."""
    if not response.ok:
        text = response.text or response.reason or ""
        raise ApiError(response.status_code, text)


def read_body(response: requests.Response, deadline: float, chunk_size: int = READ_CHUNK_SIZE) -> bytes:
    """
    Read a streamed response body, giving up once a time.monotonic() deadline passes.

    A requests timeout only bounds each socket read; this bounds the whole body.
    read1() returns whatever has arrived instead of waiting for a full chunk.

    Args:
        response: Response obtained with stream=True
        deadline: Absolute time.monotonic() value after which reading stops
        chunk_size: Maximum bytes per read

    Returns:
        The raw body bytes

    Raises:
        requests.Timeout: If the body is not complete by the deadline
    """
    chunks = []
    while True:
        if time.monotonic() > deadline:
            raise requests.Timeout(f"Response body from {response.url} not received before the deadline")
        chunk = response.raw.read1(chunk_size)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def is_network_error(error: BaseException) -> bool:
    """
    Check whether an error means the backend is unreachable.

    Connection failures and timeouts always count. Other errors are classified by
    their type name (AbortError) or by known markers in their message. HTTP
    errors (ApiError) never count, whatever their body says.

    Examples:
        >>> is_network_error(requests.ConnectionError("refused"))
        True
        >>> is_network_error(ApiError(500, "network layer exploded"))
        False
        >>> is_network_error(ValueError("bad json"))
        False
    """
    if isinstance(error, ApiError):
        return False
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    if type(error).__name__ == "AbortError":
        return True

    message = str(error)
    if isinstance(error, TypeError):
        return "fetch" in message or "NetworkError" in message or "Network request failed" in message
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


def api_request(
    method: str,
    url: str,
    data: Optional[Any] = None,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    """
    Send a request to the backend.

    Args:
        method: HTTP method (GET, POST, PATCH, DELETE, ...)
        url: Absolute URL
        data: JSON-serializable body (optional, no body and no Content-Type when None)
        session: requests.Session carrying credentials (optional)
        timeout: Request timeout in seconds (optional)

    Returns:
        The successful requests.Response

    Raises:
        ApiError: If the response status is not 2xx
        requests.RequestException: On network failures (unchanged)
    """
    http = session or requests
    kwargs: dict = {"timeout": timeout}
    if data is not None:
        kwargs["json"] = data
        kwargs["headers"] = {"Content-Type": "application/json"}

    response = http.request(method.upper(), url, **kwargs)
    raise_if_not_ok(response)
    return response
