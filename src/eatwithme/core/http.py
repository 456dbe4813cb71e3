"""
HTTP helpers.

This module centralizes the minimal outbound HTTP logic (used by the event transport).

Design goals:
- Small surface area (POST JSON).
- Deterministic defaults (timeout + User-Agent).
- Raise on non-2xx so callers can decide how to fail (the tracker swallows and logs).
"""

from __future__ import annotations

from typing import Any

import httpx


DEFAULT_USER_AGENT = "eatwithme/0.1.0 (+https://eatwithme.app)"


def post_json(
    url: str,
    *,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 5,
    client: httpx.Client | None = None,
) -> httpx.Response:
    """POST `payload` as a JSON body and return the response.

    Pass `client` to reuse a connection pool; otherwise a short-lived client is used.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx status codes.
    """
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)

    if client is not None:
        resp = client.post(url, json=payload, headers=request_headers, timeout=timeout_seconds)
        resp.raise_for_status()
        return resp

    with httpx.Client(timeout=timeout_seconds) as c:
        resp = c.post(url, json=payload, headers=request_headers)
        resp.raise_for_status()
        return resp
