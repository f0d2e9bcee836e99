"""Client utilities for the Google Business Profile v4 reviews endpoint (paginated)."""

import logging
from typing import Any, Dict, Optional

import requests

from review_sync.vendors.http import get_json

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://mybusiness.googleapis.com/v4"


def list_reviews(
    location_name: str,
    access_token: str,
    page_size: int = 50,
    page_token: Optional[str] = None,
    timeout: float = 8.0,
) -> Dict[str, Any]:
    """Fetch one page of reviews for ``accounts/*/locations/*``, newest updates first."""
    params: Dict[str, Any] = {"pageSize": page_size, "orderBy": "updateTime desc"}
    if page_token:
        params["pageToken"] = page_token
    headers = {"Authorization": f"Bearer {access_token}"}
    payload = get_json(
        _SESSION,
        f"{_BASE_URL}/{location_name.strip('/')}/reviews",
        params=params,
        headers=headers,
        timeout=timeout,
    )
    logger.debug(
        "list_reviews %s returned %d reviews (next=%s)",
        location_name,
        len(payload.get("reviews") or []),
        bool(payload.get("nextPageToken")),
    )
    return payload
