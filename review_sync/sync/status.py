"""Per-location sync snapshots: one row per (tenant, location, provider)."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from review_sync.models import ErrorCode, Provider, SyncOutcome, UpsertCounts

logger = logging.getLogger(__name__)


class SyncStatusRecorder:
    def __init__(self, store):
        self._store = store

    def record(
        self,
        tenant_id: str,
        location_id: str,
        provider: Provider,
        outcome: SyncOutcome,
        counts: Optional[UpsertCounts] = None,
        error_code: Optional[ErrorCode] = None,
        error_message: Optional[str] = None,
        synced_at: Optional[datetime] = None,
    ) -> bool:
        """Overwrite the snapshot for this location. Never raises; returns False on failure."""
        is_error = outcome == SyncOutcome.ERROR
        params: Dict[str, Any] = {
            "tenant_id": tenant_id,
            "location_id": location_id,
            "provider": Provider(provider).value,
            "last_sync_at": synced_at or datetime.now(timezone.utc),
            "last_sync_status": SyncOutcome(outcome).value,
            "last_error_code": error_code.value if is_error and error_code else None,
            "last_error": (error_message or "Unknown error") if is_error else None,
            "last_fetched": counts.fetched if counts else None,
            "last_inserted": counts.inserted if counts else None,
            "last_updated": counts.updated if counts else None,
        }
        try:
            self._store.upsert_sync_status(params)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to record sync status for %s/%s: %s", params["provider"], location_id, exc)
            return False
        return True

    def latest(
        self,
        tenant_id: str,
        provider: Provider,
        location_id: Optional[str] = None,
        limit: int = 25,
    ) -> List[Dict[str, Any]]:
        return self._store.list_sync_status(tenant_id, provider, location_id=location_id, limit=limit)
