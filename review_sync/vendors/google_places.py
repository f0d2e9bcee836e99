"""Client utilities for the Google Places Details API (sampled reviews)."""

import json
import logging
from typing import Any, Dict

import requests

from review_sync.vendors.http import UpstreamHTTPError, get_json

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_DETAILS_FIELDS = "name,rating,user_ratings_total,reviews"

# Places reports failures inside a 200 body; map them onto the HTTP status they mean.
_STATUS_TO_HTTP = {
    "NOT_FOUND": 404,
    "OVER_QUERY_LIMIT": 429,
    "REQUEST_DENIED": 403,
    "INVALID_REQUEST": 400,
}


def place_details(place_id: str, api_key: str, timeout: float = 8.0) -> Dict[str, Any]:
    """Fetch name, aggregate rating and the (limited) recent review sample for a place."""
    params = {"place_id": place_id, "fields": _DETAILS_FIELDS, "key": api_key}
    payload = get_json(_SESSION, f"{_BASE_URL}/details/json", params=params, timeout=timeout)
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("place_details failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise UpstreamHTTPError(_STATUS_TO_HTTP.get(status, 502), json.dumps(payload))
    return payload.get("result") or {}
