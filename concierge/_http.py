"""
concierge/_http.py
------------------
HTTP transport for the Webflow CMS client.

Provides `api_request()` as the single point of control for timeouts,
error handling and response decoding of CMS calls. The OpenAI collaborators
go through the SDK client built in concierge/openai_client.py instead.
"""

import json
import socket
import urllib.error
import urllib.request
from typing import Any, Dict, Optional


class HTTPStatusError(RuntimeError):
    """Raised when the remote service answers with a non-2xx status."""

    def __init__(self, url: str, status: int, body: str):
        super().__init__(f"{url} answered HTTP {status}: {body[:300]}")
        self.url    = url
        self.status = status
        self.body   = body


def api_request(
    url: str,
    *,
    method: str = "POST",
    payload: Optional[Dict[str, Any]] = None,
    data: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 30,
) -> Any:
    """
    Sends an HTTP request and returns the decoded JSON response.

    Args:
        url:     Full endpoint URL.
        method:  HTTP verb.
        payload: Request body as a dict, JSON-encoded. Mutually exclusive
                 with `data`.
        data:    Pre-encoded request body (e.g. multipart form data).
        headers: Extra request headers.
        timeout: Socket timeout in seconds.

    Returns:
        Parsed JSON response.

    Raises:
        ConnectionError: If the host is unreachable or the request timed out.
        HTTPStatusError: If the response status is not 2xx.
        RuntimeError:    If the response cannot be decoded as JSON.
    """
    request_headers = {"Accept": "application/json"}
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        request_headers["Content-Type"] = "application/json"
    request_headers.update(headers or {})

    request = urllib.request.Request(
        url,
        data=data,
        headers=request_headers,
        method=method,
    )

    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")

    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        raise HTTPStatusError(url, exc.code, body) from exc

    except urllib.error.URLError as exc:
        raise ConnectionError(f"{url} is not reachable: {exc.reason}") from exc

    except (socket.timeout, TimeoutError) as exc:
        raise ConnectionError(f"{url} timed out after {timeout}s") from exc

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Could not parse response from {url} as JSON: {exc}") from exc
