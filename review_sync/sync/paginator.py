"""Drive a page fetcher for one location under a hard page cap."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from review_sync.core.config import MAX_PAGES_CEILING, clamp
from review_sync.models import ReviewPage
from review_sync.vendors.http import TransportError, UpstreamHTTPError

logger = logging.getLogger(__name__)

FetchError = Union[TransportError, UpstreamHTTPError]


@dataclass
class PaginationResult:
    pages: List[ReviewPage] = field(default_factory=list)
    error: Optional[FetchError] = None

    @property
    def review_count(self) -> int:
        return sum(len(page.reviews) for page in self.pages)


def collect_pages(fetch_page: Callable[[str], ReviewPage], max_pages: int) -> PaginationResult:
    """Fetch pages in provider order until the token runs out or the cap is hit.

    ``fetch_page`` gets the page token ("" for the first page). A failed fetch
    stops paging; pages already fetched are kept and the error is returned
    alongside them.
    """
    max_pages = clamp(int(max_pages), 1, MAX_PAGES_CEILING)
    result = PaginationResult()
    page_token = ""
    processed_pages = 0

    while processed_pages < max_pages:
        try:
            page = fetch_page(page_token)
        except (TransportError, UpstreamHTTPError) as exc:
            logger.warning("Stopping pagination after %d pages: %s", processed_pages, exc)
            result.error = exc
            break

        result.pages.append(page)
        processed_pages += 1
        logger.debug("Fetched %d reviews on page %d", len(page.reviews), processed_pages)

        page_token = page.next_page_token or ""
        if not page_token:
            break
    else:
        if page_token:
            logger.info("Page cap of %d reached with more pages available", max_pages)

    return result
