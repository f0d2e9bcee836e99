"""Utilities for transforming provider review payloads into store rows."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Union

from review_sync.etl.fingerprint import CONTENT, compute_fingerprint
from review_sync.models import Location, LocationSummary, Provider, ReviewRow

logger = logging.getLogger(__name__)

_STAR_WORDS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}
_RFC3339 = re.compile(r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})?$")


class ReviewFields(NamedTuple):
    author: Optional[str]
    author_url: Optional[str]
    rating: int
    body: Optional[str]
    timestamp: Union[int, float, str, None]
    reviewed_at: Optional[datetime]
    language: Optional[str]
    native_id: Optional[str]


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def parse_star_rating(value: Any) -> int:
    """Return an integer 1..5, or 0 when the value can't be read as a star rating."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value or "").strip().upper()
        if text in _STAR_WORDS:
            return _STAR_WORDS[text]
        try:
            number = float(text)
        except ValueError:
            return 0
    if number != number or not 1 <= number <= 5:
        return 0
    return int(round(number))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize unix seconds or an RFC 3339 string to an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug("Unusable unix timestamp %r", value)
            return None

    match = _RFC3339.match(str(value).strip())
    if not match:
        logger.debug("Unparseable review timestamp %r", value)
        return None
    date_part, time_part, fraction, offset = match.groups()
    fraction = (fraction or "0")[:6].ljust(6, "0")
    if not offset or offset in {"Z", "z"}:
        offset = "+00:00"
    try:
        parsed = datetime.fromisoformat(f"{date_part}T{time_part}.{fraction}{offset}")
    except ValueError:
        return None
    return parsed.astimezone(timezone.utc)


def extract_native_review_id(review: Dict[str, Any]) -> Optional[str]:
    """Pull the durable id out of a Business Profile review, if it carries one."""
    review_id = _strip_or_none(review.get("reviewId"))
    if review_id:
        return review_id
    name = _strip_or_none(review.get("name")) or ""
    if "/reviews/" in name:
        return _strip_or_none(name.split("/reviews/", 1)[1])
    return None


def place_review_fields(review: Dict[str, Any]) -> ReviewFields:
    timestamp = review.get("time")
    if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
        timestamp = None
    return ReviewFields(
        author=_strip_or_none(review.get("author_name")),
        author_url=_strip_or_none(review.get("author_url")),
        rating=parse_star_rating(review.get("rating")),
        body=_strip_or_none(review.get("text")),
        timestamp=timestamp,
        reviewed_at=parse_timestamp(timestamp),
        language=_strip_or_none(review.get("language")),
        native_id=None,
    )


def business_review_fields(review: Dict[str, Any]) -> ReviewFields:
    reviewer = review.get("reviewer") or {}
    author = reviewer.get("displayName") or reviewer.get("name") or reviewer.get("profileName")
    created = _strip_or_none(review.get("createTime"))
    updated = _strip_or_none(review.get("updateTime"))
    return ReviewFields(
        author=_strip_or_none(author),
        author_url=_strip_or_none(reviewer.get("profilePhotoUrl")),
        rating=parse_star_rating(review.get("starRating")),
        body=_strip_or_none(review.get("comment") or review.get("reviewText")),
        # createTime is stable across edits; updateTime is not.
        timestamp=created or updated,
        reviewed_at=parse_timestamp(updated or created),
        language=_strip_or_none(review.get("languageCode")),
        native_id=extract_native_review_id(review),
    )


def place_summary(result: Dict[str, Any]) -> LocationSummary:
    rating = result.get("rating")
    total = result.get("user_ratings_total")
    name = result.get("name")
    return LocationSummary(
        display_name=name if isinstance(name, str) else None,
        aggregate_rating=float(rating) if isinstance(rating, (int, float)) else None,
        aggregate_rating_count=int(total) if isinstance(total, (int, float)) else None,
    )


def business_summary(payload: Dict[str, Any]) -> LocationSummary:
    rating = payload.get("averageRating")
    total = payload.get("totalReviewCount")
    return LocationSummary(
        aggregate_rating=float(rating) if isinstance(rating, (int, float)) else None,
        aggregate_rating_count=int(total) if isinstance(total, (int, float)) else None,
    )


def to_review_rows(
    provider: Provider,
    location: Location,
    reviews: Iterable[Dict[str, Any]],
    extract: Callable[[Dict[str, Any]], ReviewFields],
    *,
    policy: str = CONTENT,
    run_token: str = "",
    start: int = 0,
) -> List[ReviewRow]:
    """Normalize and fingerprint raw reviews.

    ``start`` is the batch ordinal of the first review, so callers feeding
    several pages keep fallback keys distinct across the whole location batch.
    """
    rows: List[ReviewRow] = []
    dropped = 0
    for ordinal, raw in enumerate(reviews, start=start):
        if not isinstance(raw, dict):
            dropped += 1
            continue
        fields = extract(raw)
        fingerprint = compute_fingerprint(
            location.provider_location_id,
            timestamp=fields.timestamp,
            author=fields.author,
            rating=fields.rating,
            body=fields.body,
            native_id=fields.native_id,
            policy=policy,
            ordinal=ordinal,
            run_token=run_token,
        )
        rows.append(
            ReviewRow(
                tenant_id=location.tenant_id,
                business_id=location.business_id,
                provider=provider,
                location_id=location.provider_location_id,
                fingerprint=fingerprint,
                rating=fields.rating,
                author_name=fields.author,
                author_url=fields.author_url,
                body=fields.body,
                reviewed_at=fields.reviewed_at,
                language=fields.language,
                raw=raw,
            )
        )
    if dropped:
        logger.info("Dropped %d non-object review payloads for %s", dropped, location.provider_location_id)
    return rows
