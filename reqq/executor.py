"""reqq executor - HTTP transport for parsed requests."""

import json
import logging
import time
from typing import Any

import requests

from reqq.core import DEFAULT_TIMEOUT
from reqq.errors import TransportError

logger = logging.getLogger(__name__)


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON or raw text
        self.elapsed_ms: float = 0
        self.raw_text: str = ""


class Transport:
    """Sends StructuredRequests over one reusable requests.Session."""

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def send(self, request, timeout: int = DEFAULT_TIMEOUT) -> RequestResult:
        """Send a StructuredRequest and return the response.

        - Headers keep file order; repeated names are joined into one
          comma-separated field, values are sent as UTF-8 bytes
        - Attempts to parse the response as JSON, falls back to raw text
        - Raises TransportError on timeout, connection or protocol failure
        """
        result = RequestResult()
        logger.debug("sending %s %s (timeout %ss)", request.method, request.url, timeout)

        try:
            start = time.monotonic()
            resp = self.session.request(
                method=request.method,
                url=request.url,
                headers=_header_dict(request.headers),
                data=request.body.encode("utf-8") if request.body is not None else None,
                timeout=timeout,
                allow_redirects=True,
            )
            result.elapsed_ms = (time.monotonic() - start) * 1000
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request timed out after {timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request failed: {e}") from e

        result.status_code = resp.status_code
        result.headers = dict(resp.headers)
        result.raw_text = resp.text

        try:
            result.body = resp.json()
        except (json.JSONDecodeError, ValueError):
            result.body = resp.text

        logger.debug("received %s in %dms", result.status_code, result.elapsed_ms)
        return result


def _header_dict(headers) -> dict[str, bytes]:
    """Collapse ordered header pairs for requests.

    Repeated names are joined with ", " (RFC 7230 list form) at the position
    of their first occurrence. Values are encoded as UTF-8; http.client would
    encode str values as Latin-1.
    """
    merged: dict[str, str] = {}
    for name, value in headers:
        existing = next((k for k in merged if k.lower() == name.lower()), None)
        if existing is None:
            merged[name] = value
        else:
            merged[existing] = f"{merged[existing]}, {value}"
    return {name: value.encode("utf-8") for name, value in merged.items()}


_default_transport: Transport | None = None


def default_transport() -> Transport:
    """Process-wide transport, created on first use."""
    global _default_transport
    if _default_transport is None:
        _default_transport = Transport()
    return _default_transport
