"""Classification of non-2xx upstream responses.

These are substring heuristics over the error bodies Google currently returns.
All matching lives here so the rules can change without touching callers.
"""

from review_sync.models import ErrorClass

_ACCESS_PENDING_MARKERS = (
    "has not been used in project",
    "is disabled",
    "access not configured",
    "not enabled",
    "not authorized",
    "permission denied",
    "insufficient permission",
    "the caller does not have permission",
    "google business profile api has not been used",
    "mybusiness",
)


def looks_like_quota_zero(body: str) -> bool:
    """Google reports ``quota_limit_value`` "0" while Business Profile access awaits approval."""
    text = body or ""
    if "RESOURCE_EXHAUSTED" in text:
        return True
    return "quota_limit_value" in text and ('"0"' in text or ": 0" in text)


def looks_like_access_pending(body: str) -> bool:
    text = (body or "").lower()
    return any(marker in text for marker in _ACCESS_PENDING_MARKERS)


def classify_upstream_error(status_code: int, body: str) -> ErrorClass:
    if status_code == 429 and looks_like_quota_zero(body):
        return ErrorClass.QUOTA_PENDING
    if status_code == 403 and looks_like_access_pending(body):
        return ErrorClass.ACCESS_PENDING
    if status_code == 404:
        return ErrorClass.NOT_FOUND
    return ErrorClass.OTHER
