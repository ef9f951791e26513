"""reqrun executor - HTTP request execution."""

import json
import time
from typing import Any

import requests

PARSE_ERROR_BODY = {"error": "Failed to parse response as JSON"}


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON, or PARSE_ERROR_BODY
        self.elapsed_ms: float = 0
        self.error: str | None = None
        self.raw_text: str = ""
        self.save_error: str | None = None  # response fields could not be persisted

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300


def execute_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    body: str | None = None,
    timeout: int = 30,
    form_data: dict[str, str] | None = None,
) -> RequestResult:
    """Execute an HTTP request and return structured result.

    - Parses the response as JSON; a non-JSON payload yields a copy of
      PARSE_ERROR_BODY instead
    - Captures timing
    - Never raises - always returns RequestResult with error field set

    When form_data is provided, the fields are sent URL-encoded
    (application/x-www-form-urlencoded) instead of a raw body.
    """
    result = RequestResult()

    try:
        kwargs: dict[str, Any] = {
            "method": method.upper(),
            "url": url,
            "timeout": timeout,
            "allow_redirects": True,
        }

        if form_data is not None:
            # requests sets the urlencoded Content-Type itself
            req_headers = dict(headers) if headers else {}
            req_headers.pop("Content-Type", None)
            req_headers.pop("content-type", None)
            kwargs["headers"] = req_headers
            kwargs["data"] = form_data
        else:
            kwargs["headers"] = headers
            kwargs["data"] = body.encode("utf-8") if body else None

        start = time.monotonic()
        resp = requests.request(**kwargs)
        result.elapsed_ms = (time.monotonic() - start) * 1000

        result.status_code = resp.status_code
        result.headers = dict(resp.headers)
        result.raw_text = resp.text

        try:
            result.body = resp.json()
        except (json.JSONDecodeError, ValueError):
            result.body = dict(PARSE_ERROR_BODY)

    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {timeout}s"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"
    except Exception as e:
        result.error = f"Unexpected error: {e}"

    return result
