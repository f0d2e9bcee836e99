"""Core data models shared by the review sync pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Provider(str, Enum):
    """Upstream review surfaces."""

    GOOGLE_PLACES = "google_places"  # sampled: Places Details, no paging
    GOOGLE_BUSINESS = "google_gbp"  # paginated: Business Profile reviews.list


class LocationScope(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


class ErrorClass(str, Enum):
    QUOTA_PENDING = "quota_pending"
    ACCESS_PENDING = "access_pending"
    NOT_FOUND = "not_found"
    OTHER = "other"

    @property
    def is_pending(self) -> bool:
        return self in (ErrorClass.QUOTA_PENDING, ErrorClass.ACCESS_PENDING)


class SyncOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class ErrorCode(str, Enum):
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    QUOTA_PENDING = "QUOTA_PENDING"
    ACCESS_PENDING = "ACCESS_PENDING"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    STORE_ERROR = "STORE_ERROR"
    SUMMARY_UPDATE_FAILED = "SUMMARY_UPDATE_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NO_LOCATIONS = "NO_LOCATIONS"


@dataclass(slots=True)
class Location:
    """A provider listing owned by one tenant, as seen by the location registry."""

    tenant_id: str
    business_id: str
    provider_location_id: str
    name: Optional[str] = None


@dataclass(slots=True)
class LocationSummary:
    """Aggregate fields some providers return alongside reviews."""

    display_name: Optional[str] = None
    aggregate_rating: Optional[float] = None
    aggregate_rating_count: Optional[int] = None

    def is_empty(self) -> bool:
        return self.display_name is None and self.aggregate_rating is None and self.aggregate_rating_count is None


@dataclass(slots=True)
class ReviewPage:
    """One page of raw provider reviews. An empty token means there is nothing after it."""

    reviews: List[Dict[str, Any]] = field(default_factory=list)
    next_page_token: str = ""
    summary: Optional[LocationSummary] = None


@dataclass(slots=True)
class ReviewRow:
    """A normalized, fingerprinted review ready to be written to the store."""

    tenant_id: str
    business_id: str
    provider: Provider
    location_id: str
    fingerprint: str
    rating: int = 0
    author_name: Optional[str] = None
    author_url: Optional[str] = None
    body: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    language: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(slots=True)
class UpsertCounts:
    fetched: int = 0
    inserted: int = 0
    updated: int = 0

    def add(self, other: "UpsertCounts") -> None:
        self.fetched += other.fetched
        self.inserted += other.inserted
        self.updated += other.updated


@dataclass(slots=True)
class LocationError:
    location_id: str
    code: ErrorCode
    message: str
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "location_id": self.location_id,
            "code": self.code.value,
            "message": self.message,
        }
        if self.status is not None:
            payload["status"] = self.status
        return payload


@dataclass(slots=True)
class SyncRequest:
    tenant_id: str
    provider: Provider = Provider.GOOGLE_PLACES
    location_id: Optional[str] = None
    page_size: Optional[int] = None
    max_pages: Optional[int] = None
    scope: Optional[LocationScope] = None


@dataclass(slots=True)
class SyncResult:
    """Aggregated outcome of one sync run across its locations."""

    ok: bool
    synced_at: datetime
    code: Optional[ErrorCode] = None
    message: Optional[str] = None
    detail: Optional[str] = None
    business_id: Optional[str] = None
    location_id: Optional[str] = None
    counts: UpsertCounts = field(default_factory=UpsertCounts)
    errors: List[LocationError] = field(default_factory=list)
    locations_total: int = 0
    locations_processed: int = 0
    locations_skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": self.ok,
            "business_id": self.business_id,
            "location_id": self.location_id,
            "fetched": self.counts.fetched,
            "inserted": self.counts.inserted,
            "updated": self.counts.updated,
            "errors": [error.to_dict() for error in self.errors],
            "synced_at": self.synced_at.isoformat(),
            "locations_total": self.locations_total,
            "locations_processed": self.locations_processed,
            "locations_skipped": self.locations_skipped,
        }
        if self.code is not None:
            payload["code"] = self.code.value
        if self.message is not None:
            payload["message"] = self.message
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload
