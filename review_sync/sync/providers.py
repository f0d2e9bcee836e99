"""Provider adapters: one sampled surface and one paginated surface."""

from typing import Any, Callable, Dict

from review_sync.etl import transform
from review_sync.models import Location, LocationScope, Provider, ReviewPage
from review_sync.vendors import google_business, google_places


class ReviewProvider:
    """Capability interface the engine drives.

    ``fetch_page`` performs exactly one upstream call and may raise
    ``TransportError`` or ``UpstreamHTTPError``.
    """

    name: Provider
    paginated: bool = False
    extract_fields: Callable[[Dict[str, Any]], transform.ReviewFields]

    @property
    def default_scope(self) -> LocationScope:
        return LocationScope.MULTI if self.paginated else LocationScope.SINGLE

    def fetch_page(
        self,
        location: Location,
        credential: str,
        page_token: str,
        page_size: int,
        timeout: float,
    ) -> ReviewPage:
        raise NotImplementedError


class PlacesReviewProvider(ReviewProvider):
    """Places Details: a bounded sample of recent reviews plus aggregate rating fields."""

    name = Provider.GOOGLE_PLACES
    paginated = False
    extract_fields = staticmethod(transform.place_review_fields)

    def fetch_page(self, location, credential, page_token, page_size, timeout):
        result = google_places.place_details(location.provider_location_id, credential, timeout=timeout)
        reviews = result.get("reviews")
        return ReviewPage(
            reviews=list(reviews) if isinstance(reviews, list) else [],
            next_page_token="",
            summary=transform.place_summary(result),
        )


class BusinessProfileReviewProvider(ReviewProvider):
    """Business Profile reviews.list: full history, page by page."""

    name = Provider.GOOGLE_BUSINESS
    paginated = True
    extract_fields = staticmethod(transform.business_review_fields)

    def fetch_page(self, location, credential, page_token, page_size, timeout):
        payload = google_business.list_reviews(
            location.provider_location_id,
            credential,
            page_size=page_size,
            page_token=page_token or None,
            timeout=timeout,
        )
        reviews = payload.get("reviews")
        return ReviewPage(
            reviews=list(reviews) if isinstance(reviews, list) else [],
            next_page_token=str(payload.get("nextPageToken") or ""),
            summary=transform.business_summary(payload),
        )


def default_providers() -> Dict[Provider, ReviewProvider]:
    return {
        Provider.GOOGLE_PLACES: PlacesReviewProvider(),
        Provider.GOOGLE_BUSINESS: BusinessProfileReviewProvider(),
    }
