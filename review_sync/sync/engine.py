"""Review sync engine: resolve locations, page through the provider, upsert, record status."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from review_sync.core.config import MAX_PAGES_CEILING, PAGE_SIZE_CEILING, ConfigError, Settings, clamp
from review_sync.core.db import PostgresReviewStore, StoreError
from review_sync.etl import transform
from review_sync.models import (
    ErrorClass,
    ErrorCode,
    Location,
    LocationError,
    Provider,
    SyncOutcome,
    SyncRequest,
    SyncResult,
    UpsertCounts,
)
from review_sync.sync.classifier import classify_upstream_error
from review_sync.sync.credentials import SettingsCredentialProvider
from review_sync.sync.locations import LocationResolver
from review_sync.sync.paginator import collect_pages
from review_sync.sync.providers import ReviewProvider, default_providers
from review_sync.sync.status import SyncStatusRecorder
from review_sync.sync.upsert import PartialUpsertError, apply_summary, upsert_reviews
from review_sync.vendors.http import TransportError, UpstreamHTTPError

logger = logging.getLogger(__name__)

PENDING_CODES = {
    ErrorClass.QUOTA_PENDING: ErrorCode.QUOTA_PENDING,
    ErrorClass.ACCESS_PENDING: ErrorCode.ACCESS_PENDING,
}

PENDING_MESSAGES = {
    ErrorClass.QUOTA_PENDING: (
        "Google review access is still pending approval for this project (quota is currently 0). "
        "OAuth is connected; reviews will sync as soon as Google grants access."
    ),
    ErrorClass.ACCESS_PENDING: (
        "Google review API access isn't enabled for this project or account yet. "
        "OAuth is connected; reviews will sync once access is granted."
    ),
}

NOT_FOUND_MESSAGE = "Google returned 404 for this location. It may be invalid or no longer accessible."
_MAX_ERROR_TEXT = 500


@dataclass
class _LocationOutcome:
    counts: UpsertCounts = field(default_factory=UpsertCounts)
    errors: List[LocationError] = field(default_factory=list)
    skipped: bool = False
    pending: Optional[ErrorClass] = None
    detail: Optional[str] = None


class SyncEngine:
    """Runs one sync invocation. Locations are processed one after another."""

    def __init__(
        self,
        store,
        providers: Dict[Provider, ReviewProvider],
        credentials,
        settings: Settings,
        recorder: Optional[SyncStatusRecorder] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._providers = providers
        self._credentials = credentials
        self._settings = settings
        self._resolver = LocationResolver(store)
        self._recorder = recorder or SyncStatusRecorder(store)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self, request: SyncRequest) -> SyncResult:
        synced_at = self._clock()
        try:
            provider = self._providers.get(Provider(request.provider))
        except ValueError:
            provider = None
        if provider is None:
            return _failure(synced_at, ErrorCode.CONFIGURATION_ERROR, f"Provider {request.provider} is not configured")

        try:
            credential = self._credentials.get_credential(request.tenant_id, provider.name)
        except ConfigError as exc:
            logger.error("Configuration error for tenant %s: %s", request.tenant_id, exc)
            return _failure(synced_at, ErrorCode.CONFIGURATION_ERROR, str(exc))

        page_size = clamp(request.page_size or self._settings.page_size, 1, PAGE_SIZE_CEILING)
        max_pages = clamp(request.max_pages or self._settings.max_pages, 1, MAX_PAGES_CEILING)
        scope = request.scope or provider.default_scope

        try:
            locations = self._resolver.resolve(request.tenant_id, provider.name, request.location_id, scope)
        except StoreError as exc:
            logger.error("Location lookup failed for tenant %s: %s", request.tenant_id, exc)
            return _failure(synced_at, ErrorCode.STORE_ERROR, str(exc))

        if not locations:
            message = (
                "No matching active location saved."
                if request.location_id
                else "No active locations saved yet. Connect your business first."
            )
            return _failure(synced_at, ErrorCode.NO_LOCATIONS, message)

        result = SyncResult(ok=True, synced_at=synced_at, locations_total=len(locations))
        if len(locations) == 1:
            result.business_id = locations[0].business_id
            result.location_id = locations[0].provider_location_id

        run_token = uuid.uuid4().hex
        logger.info(
            "Starting %s sync for tenant %s: locations=%d page_size=%d max_pages=%d",
            provider.name.value,
            request.tenant_id,
            len(locations),
            page_size,
            max_pages,
        )

        for location in locations:
            outcome = self._sync_location(provider, location, credential, page_size, max_pages, run_token, synced_at)
            result.counts.add(outcome.counts)
            result.errors.extend(outcome.errors)
            if outcome.skipped:
                result.locations_skipped += 1
            else:
                result.locations_processed += 1
            if outcome.pending is not None:
                result.ok = False
                result.code = PENDING_CODES[outcome.pending]
                result.message = PENDING_MESSAGES[outcome.pending]
                result.detail = outcome.detail
                break

        logger.info(
            "Finished %s sync for tenant %s: fetched=%d inserted=%d updated=%d errors=%d",
            provider.name.value,
            request.tenant_id,
            result.counts.fetched,
            result.counts.inserted,
            result.counts.updated,
            len(result.errors),
        )
        return result

    def _sync_location(
        self,
        provider: ReviewProvider,
        location: Location,
        credential: str,
        page_size: int,
        max_pages: int,
        run_token: str,
        synced_at: datetime,
    ) -> _LocationOutcome:
        location_id = location.provider_location_id
        outcome = _LocationOutcome()

        def record(status: SyncOutcome, code: Optional[ErrorCode] = None, message: Optional[str] = None) -> None:
            self._recorder.record(
                location.tenant_id,
                location_id,
                provider.name,
                status,
                counts=outcome.counts,
                error_code=code,
                error_message=message,
                synced_at=synced_at,
            )

        def fetch(page_token: str):
            return provider.fetch_page(location, credential, page_token, page_size, self._settings.request_timeout)

        pagination = collect_pages(fetch, max_pages)
        fetch_error = pagination.error

        if isinstance(fetch_error, UpstreamHTTPError):
            kind = classify_upstream_error(fetch_error.status_code, fetch_error.body)
            if kind.is_pending:
                logger.info("Location %s is %s; ending run early", location_id, kind.value)
                outcome.skipped = True
                outcome.pending = kind
                outcome.detail = fetch_error.body[:_MAX_ERROR_TEXT]
                record(SyncOutcome.ERROR, PENDING_CODES[kind], PENDING_MESSAGES[kind])
                return outcome
            if kind == ErrorClass.NOT_FOUND:
                logger.warning("Location %s not found upstream; skipping", location_id)
                outcome.skipped = True
                outcome.errors.append(
                    LocationError(location_id, ErrorCode.LOCATION_NOT_FOUND, NOT_FOUND_MESSAGE, status=404)
                )
                record(SyncOutcome.ERROR, ErrorCode.LOCATION_NOT_FOUND, NOT_FOUND_MESSAGE)
                return outcome

        batches = []
        ordinal = 0
        for page in pagination.pages:
            batches.append(
                transform.to_review_rows(
                    provider.name,
                    location,
                    page.reviews,
                    provider.extract_fields,
                    policy=self._settings.fingerprint_policy,
                    run_token=run_token,
                    start=ordinal,
                )
            )
            ordinal += len(page.reviews)

        try:
            outcome.counts = upsert_reviews(self._store, location.tenant_id, provider.name, batches)
        except PartialUpsertError as exc:
            outcome.counts = exc.counts
            outcome.errors.append(LocationError(location_id, ErrorCode.STORE_ERROR, str(exc)))
            record(SyncOutcome.ERROR, ErrorCode.STORE_ERROR, str(exc))
            return outcome

        if pagination.pages:
            try:
                apply_summary(self._store, location, pagination.pages[0].summary)
            except StoreError as exc:
                logger.warning("Summary update failed for %s: %s", location_id, exc)
                outcome.errors.append(LocationError(location_id, ErrorCode.SUMMARY_UPDATE_FAILED, str(exc)))

        if fetch_error is not None:
            error = _fetch_error(location_id, fetch_error)
            outcome.errors.append(error)
            record(SyncOutcome.ERROR, error.code, error.message)
        else:
            record(SyncOutcome.SUCCESS)

        logger.info(
            "Synced %s: fetched=%d inserted=%d updated=%d",
            location_id,
            outcome.counts.fetched,
            outcome.counts.inserted,
            outcome.counts.updated,
        )
        return outcome


def _fetch_error(location_id: str, exc: Exception) -> LocationError:
    if isinstance(exc, TransportError):
        return LocationError(location_id, ErrorCode.TRANSPORT_ERROR, f"Transport failure: {exc}")
    if isinstance(exc, UpstreamHTTPError):
        message = exc.body[:_MAX_ERROR_TEXT] or f"Reviews fetch failed: {exc.status_code}"
        return LocationError(location_id, ErrorCode.UPSTREAM_ERROR, message, status=exc.status_code)
    return LocationError(location_id, ErrorCode.UPSTREAM_ERROR, str(exc))


def _failure(synced_at: datetime, code: ErrorCode, message: str) -> SyncResult:
    return SyncResult(ok=False, synced_at=synced_at, code=code, message=message)


def build_engine(settings: Settings, store=None) -> SyncEngine:
    """Wire the production collaborators. The caller owns pool initialisation."""
    return SyncEngine(
        store=store or PostgresReviewStore(),
        providers=default_providers(),
        credentials=SettingsCredentialProvider(settings),
        settings=settings,
    )
