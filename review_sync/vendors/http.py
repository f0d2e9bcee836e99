"""Shared request helpers and error types for the upstream review APIs."""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when a request never produced an HTTP response (timeout, DNS, reset)."""


class UpstreamHTTPError(RuntimeError):
    """Raised when the upstream answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body or ""
        super().__init__(f"upstream returned {status_code}: {self.body[:200]}")


def get_json(
    session: requests.Session,
    url: str,
    *,
    timeout: float,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Issue a single GET and return the decoded JSON object. Never retries."""
    try:
        response = session.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Transport failure calling %s: %s", url, exc)
        raise TransportError(str(exc)) from exc

    text = response.text or ""
    if not 200 <= response.status_code < 300:
        logger.info("Upstream %s returned status=%s", url, response.status_code)
        raise UpstreamHTTPError(response.status_code, text)

    if not text.strip():
        return {}
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamHTTPError(502, text) from exc
    if not isinstance(payload, dict):
        raise UpstreamHTTPError(502, text)
    return payload
