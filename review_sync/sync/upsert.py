"""Idempotent review writes keyed by (tenant, provider, fingerprint)."""

import logging
from typing import Dict, List, Optional, Sequence

from review_sync.core.db import StoreError
from review_sync.models import Location, LocationSummary, Provider, ReviewRow, UpsertCounts

logger = logging.getLogger(__name__)


class PartialUpsertError(StoreError):
    """A batch write failed; ``counts`` covers the batches committed before it."""

    def __init__(self, message: str, counts: UpsertCounts):
        self.counts = counts
        super().__init__(message)


def dedupe_batches(batches: Sequence[Sequence[ReviewRow]]) -> List[List[ReviewRow]]:
    """Keep a single row per fingerprint, taken from its last occurrence.

    One INSERT ... ON CONFLICT statement batch can't touch the same key twice,
    and counting a repeated key as both insert and update would skew counts.
    """
    last_batch: Dict[str, int] = {}
    for index, batch in enumerate(batches):
        for row in batch:
            last_batch[row.fingerprint] = index

    deduped: List[List[ReviewRow]] = []
    for index, batch in enumerate(batches):
        unique: Dict[str, ReviewRow] = {}
        for row in batch:
            if last_batch[row.fingerprint] == index:
                unique[row.fingerprint] = row
        deduped.append(list(unique.values()))
    return deduped


def upsert_reviews(
    store,
    tenant_id: str,
    provider: Provider,
    batches: Sequence[Sequence[ReviewRow]],
) -> UpsertCounts:
    """Write page batches in order and split them into inserted vs updated.

    Existence is read before any write: the upsert itself can't tell the two
    apart afterwards. Each batch is its own transaction.
    """
    counts = UpsertCounts(fetched=sum(len(batch) for batch in batches))
    deduped = dedupe_batches(batches)
    fingerprints = [row.fingerprint for batch in deduped for row in batch]
    if len(fingerprints) < counts.fetched:
        logger.info("Collapsed %d duplicate fingerprints", counts.fetched - len(fingerprints))
    if not fingerprints:
        return counts

    try:
        existing = store.existing_fingerprints(tenant_id, provider, fingerprints)
    except StoreError as exc:
        raise PartialUpsertError(str(exc), counts) from exc

    for batch in deduped:
        if not batch:
            continue
        try:
            store.upsert_reviews(batch)
        except StoreError as exc:
            logger.error("Review batch write failed after %d rows: %s", counts.inserted + counts.updated, exc)
            raise PartialUpsertError(str(exc), counts) from exc
        inserted = sum(1 for row in batch if row.fingerprint not in existing)
        counts.inserted += inserted
        counts.updated += len(batch) - inserted

    return counts


def apply_summary(store, location: Location, summary: Optional[LocationSummary]) -> bool:
    """Copy provider aggregates onto the business record. Returns False when there was nothing to write."""
    if summary is None or summary.is_empty():
        return False
    store.update_location_summary(location.tenant_id, location.business_id, summary)
    return True
