"""CLI job to sync provider reviews for a tenant and persist them."""

import argparse
import json
import logging
from typing import Optional

from review_sync.core.config import ConfigError, get_settings
from review_sync.core.db import PostgresReviewStore, StoreError, init_pool
from review_sync.models import ErrorCode, Provider, SyncRequest, SyncResult
from review_sync.sync.engine import build_engine

logger = logging.getLogger(__name__)


def run_sync_job(
    *,
    tenant_id: str,
    provider: Provider,
    location_id: Optional[str],
    page_size: Optional[int],
    max_pages: Optional[int],
    ensure_schema: bool = False,
) -> SyncResult:
    if not tenant_id or not tenant_id.strip():
        raise ValueError("tenant_id is required")

    settings = get_settings()
    init_pool(settings.database_url)
    store = PostgresReviewStore()
    if ensure_schema:
        store.ensure_schema()

    engine = build_engine(settings, store=store)
    return engine.run(
        SyncRequest(
            tenant_id=tenant_id.strip(),
            provider=provider,
            location_id=location_id,
            page_size=page_size,
            max_pages=max_pages,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Sync Google reviews into the review store")
    parser.add_argument("--tenant", dest="tenant_id", required=True, help="Tenant (organization) id")
    parser.add_argument(
        "--provider",
        dest="provider",
        type=Provider,
        choices=list(Provider),
        default=Provider.GOOGLE_PLACES,
        help="Review surface to sync",
    )
    parser.add_argument("--location-id", dest="location_id", help="Only sync this provider location id")
    parser.add_argument(
        "--page-size",
        dest="page_size",
        type=int,
        default=settings.page_size,
        help="Reviews per page for paginated providers",
    )
    parser.add_argument(
        "--max-pages",
        dest="max_pages",
        type=int,
        default=settings.max_pages,
        help="Maximum number of pages to fetch per location",
    )
    parser.add_argument(
        "--ensure-schema",
        dest="ensure_schema",
        action="store_true",
        help="Create the review tables before syncing",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    try:
        parser = build_parser()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    args = parser.parse_args()

    try:
        result = run_sync_job(
            tenant_id=args.tenant_id,
            provider=args.provider,
            location_id=args.location_id,
            page_size=args.page_size,
            max_pages=args.max_pages,
            ensure_schema=args.ensure_schema,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except StoreError as exc:
        logger.error("Review store unavailable: %s", exc)
        raise SystemExit(1) from exc

    print(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        raise SystemExit(2 if result.code == ErrorCode.CONFIGURATION_ERROR else 1)


if __name__ == "__main__":
    main()
