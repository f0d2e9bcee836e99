import hashlib
import json

import pytest

from review_sync.etl import fingerprint
from review_sync.etl.fingerprint import compute_fingerprint

BASE = dict(timestamp=1700000000, author="Ana Souza", rating=5, body="Lovely rooftop bar.")


def test_same_tuple_same_fingerprint():
    first = compute_fingerprint("ChIJ123", **BASE)
    second = compute_fingerprint("ChIJ123", **BASE)

    assert first == second
    assert first.startswith("ChIJ123:")
    assert len(first.split(":", 1)[1]) == fingerprint.DIGEST_LENGTH


def test_matches_canonical_digest():
    payload = json.dumps(
        {"p": "ChIJ123", "t": 1700000000, "a": "Ana Souza", "r": 5, "x": "Lovely rooftop bar."},
        separators=(",", ":"),
        ensure_ascii=False,
    )
    expected = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:40]

    assert compute_fingerprint("ChIJ123", **BASE) == f"ChIJ123:{expected}"


@pytest.mark.parametrize(
    "field,value",
    [("timestamp", 1700000001), ("author", "Ana S."), ("rating", 4), ("body", "Lovely rooftop bar!")],
)
def test_changing_any_field_changes_fingerprint(field, value):
    changed = dict(BASE, **{field: value})

    assert compute_fingerprint("ChIJ123", **changed) != compute_fingerprint("ChIJ123", **BASE)


def test_location_is_part_of_identity():
    assert compute_fingerprint("ChIJ123", **BASE) != compute_fingerprint("ChIJ456", **BASE)


def test_whitespace_around_author_and_body_is_ignored():
    padded = dict(BASE, author="  Ana Souza ", body="\nLovely rooftop bar.  ")

    assert compute_fingerprint("ChIJ123", **padded) == compute_fingerprint("ChIJ123", **BASE)


def test_author_time_policy_ignores_body_and_rating():
    edited = dict(BASE, body="Edited: still lovely.", rating=4)

    original = compute_fingerprint("ChIJ123", policy=fingerprint.AUTHOR_TIME, **BASE)
    after_edit = compute_fingerprint("ChIJ123", policy=fingerprint.AUTHOR_TIME, **edited)

    assert original == after_edit
    assert original != compute_fingerprint("ChIJ123", **BASE)


def test_native_id_wins_over_content():
    first = compute_fingerprint("accounts/1/locations/2", native_id="AbC123", **BASE)
    edited = compute_fingerprint("accounts/1/locations/2", native_id="AbC123", **dict(BASE, body="changed"))

    assert first == edited


def test_content_free_reviews_get_distinct_fallback_keys_within_a_run():
    first = compute_fingerprint("ChIJ123", ordinal=0, run_token="run-a")
    second = compute_fingerprint("ChIJ123", ordinal=1, run_token="run-a")

    assert first != second


def test_content_free_review_is_new_on_every_run():
    first_run = compute_fingerprint("ChIJ123", ordinal=0, run_token="run-a")
    second_run = compute_fingerprint("ChIJ123", ordinal=0, run_token="run-b")

    assert first_run != second_run


def test_zero_rating_alone_counts_as_content_free():
    assert fingerprint.is_content_free(None, "", 0, "   ")
    assert not fingerprint.is_content_free(None, "", 3, "")


def test_result_is_capped_at_255_bytes():
    long_location = "loc-" + "é" * 200

    result = compute_fingerprint(long_location, **BASE)

    assert len(result.encode("utf-8")) <= fingerprint.MAX_FINGERPRINT_BYTES


def test_unknown_policy_rejected():
    with pytest.raises(ValueError):
        compute_fingerprint("ChIJ123", policy="body_only", **BASE)
