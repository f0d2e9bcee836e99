"""Stable dedup keys for reviews that have no durable provider id.

The key is ``<location>:<sha256 hex[:40]>`` and is capped at 255 bytes, the width
of the ``reviews.fingerprint`` column. The location prefix keeps keys readable
when inspecting rows by hand.

Two policies decide which fields feed the digest:

``content``
    location, provider timestamp, trimmed author, rating and trimmed body.
    Editing a review's text or rating yields a new key, so the store keeps one
    row per version of the review.
``author_time``
    location, provider timestamp and trimmed author only. Edits update the
    existing row in place.

A native review id, when the provider has one, wins over both policies.
Records with no usable content get a key derived from the run token and their
position in the batch, which is unique within a run but never matches a key from an
earlier run.
"""

import hashlib
import json
from typing import Optional, Union

CONTENT = "content"
AUTHOR_TIME = "author_time"

MAX_FINGERPRINT_BYTES = 255
DIGEST_LENGTH = 40

Timestamp = Union[int, float, str, None]


def _digest(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def _canonical(obj: dict) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _truncate(value: str) -> str:
    encoded = value.encode("utf-8")
    if len(encoded) <= MAX_FINGERPRINT_BYTES:
        return value
    return encoded[:MAX_FINGERPRINT_BYTES].decode("utf-8", errors="ignore")


def is_content_free(timestamp: Timestamp, author: Optional[str], rating: Optional[int], body: Optional[str]) -> bool:
    return (
        timestamp in (None, "")
        and not (author or "").strip()
        and not (body or "").strip()
        and not rating
    )


def compute_fingerprint(
    location_id: str,
    *,
    timestamp: Timestamp = None,
    author: Optional[str] = None,
    rating: Optional[int] = None,
    body: Optional[str] = None,
    native_id: Optional[str] = None,
    policy: str = CONTENT,
    ordinal: int = 0,
    run_token: str = "",
) -> str:
    if native_id:
        return _truncate(f"{location_id}:{_digest(native_id)}")

    if is_content_free(timestamp, author, rating, body):
        payload = _canonical({"p": location_id, "empty": run_token, "n": ordinal})
        return _truncate(f"{location_id}:{_digest(payload)}")

    if policy == AUTHOR_TIME:
        fields = {"p": location_id, "t": timestamp, "a": (author or "").strip()}
    elif policy == CONTENT:
        fields = {
            "p": location_id,
            "t": timestamp,
            "a": (author or "").strip(),
            "r": rating or None,
            "x": (body or "").strip(),
        }
    else:
        raise ValueError(f"unknown fingerprint policy: {policy!r}")

    return _truncate(f"{location_id}:{_digest(_canonical(fields))}")
