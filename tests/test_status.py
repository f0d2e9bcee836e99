from datetime import datetime, timezone

from review_sync.models import ErrorCode, Provider, SyncOutcome, UpsertCounts
from review_sync.sync.status import SyncStatusRecorder

SYNCED_AT = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


def test_success_snapshot(store):
    recorder = SyncStatusRecorder(store)

    assert recorder.record(
        "tenant-1",
        "loc-1",
        Provider.GOOGLE_PLACES,
        SyncOutcome.SUCCESS,
        counts=UpsertCounts(fetched=3, inserted=2, updated=1),
        synced_at=SYNCED_AT,
    )

    row = store.status[("tenant-1", "loc-1", "google_places")]
    assert row["last_sync_status"] == "success"
    assert row["last_sync_at"] == SYNCED_AT
    assert row["last_error"] is None
    assert row["last_error_code"] is None
    assert (row["last_fetched"], row["last_inserted"], row["last_updated"]) == (3, 2, 1)


def test_error_snapshot_overwrites_previous_run(store):
    recorder = SyncStatusRecorder(store)
    recorder.record("tenant-1", "loc-1", Provider.GOOGLE_PLACES, SyncOutcome.SUCCESS, counts=UpsertCounts(3, 3, 0))

    recorder.record(
        "tenant-1",
        "loc-1",
        Provider.GOOGLE_PLACES,
        SyncOutcome.ERROR,
        error_code=ErrorCode.UPSTREAM_ERROR,
        error_message="backend error",
    )

    assert len(store.status) == 1
    row = store.status[("tenant-1", "loc-1", "google_places")]
    assert row["last_sync_status"] == "error"
    assert row["last_error_code"] == "UPSTREAM_ERROR"
    assert row["last_error"] == "backend error"
    assert row["last_fetched"] is None


def test_error_without_message_gets_placeholder(store):
    SyncStatusRecorder(store).record("tenant-1", "loc-1", Provider.GOOGLE_PLACES, SyncOutcome.ERROR)

    assert store.status[("tenant-1", "loc-1", "google_places")]["last_error"] == "Unknown error"


def test_store_failure_is_logged_not_raised(store, caplog):
    store.fail_status = True

    with caplog.at_level("WARNING"):
        recorded = SyncStatusRecorder(store).record("tenant-1", "loc-1", Provider.GOOGLE_PLACES, SyncOutcome.SUCCESS)

    assert recorded is False
    assert "Failed to record sync status" in " ".join(caplog.messages)


def test_latest_filters_by_location(store):
    recorder = SyncStatusRecorder(store)
    recorder.record("tenant-1", "loc-1", Provider.GOOGLE_BUSINESS, SyncOutcome.SUCCESS)
    recorder.record("tenant-1", "loc-2", Provider.GOOGLE_BUSINESS, SyncOutcome.SUCCESS)

    assert len(recorder.latest("tenant-1", Provider.GOOGLE_BUSINESS)) == 2
    assert [r["location_id"] for r in recorder.latest("tenant-1", Provider.GOOGLE_BUSINESS, "loc-2")] == ["loc-2"]
