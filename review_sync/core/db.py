"""Database helpers: connection pool, schema and the Postgres review store."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import psycopg2
from psycopg2 import extras, pool

from review_sync.core.config import ConfigError
from review_sync.models import Location, LocationSummary, Provider, ReviewRow

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


class StoreError(RuntimeError):
    """Raised when a store read or write fails."""


def init_pool(database_url: str, minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        if not database_url:
            raise ConfigError("DATABASE_URL is required for database connections")
        try:
            _connection_pool = pool.SimpleConnectionPool(
                minconn,
                maxconn,
                dsn=database_url,
                connect_timeout=10,
            )
        except psycopg2.Error as exc:
            raise StoreError(_describe(exc)) from exc
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection. Closed connections are discarded, not reused."""
    if _connection_pool is None:
        raise RuntimeError("init_pool() must be called before get_connection()")
    pg_pool = _connection_pool
    try:
        conn = pg_pool.getconn()
    except psycopg2.Error as exc:
        raise StoreError(_describe(exc)) from exc
    try:
        yield conn
    finally:
        pg_pool.putconn(conn, close=bool(conn.closed))


def _describe(exc: Exception) -> str:
    return str(exc).strip() or exc.__class__.__name__


def _rollback(conn) -> None:
    try:
        conn.rollback()
    except psycopg2.Error as exc:
        logger.warning("Rollback failed, connection is likely gone: %s", _describe(exc))


SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS businesses (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    tenant_id TEXT NOT NULL,
    business_name TEXT,
    google_place_id TEXT,
    google_location_id TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    display_name TEXT,
    aggregate_rating NUMERIC(3, 2),
    aggregate_rating_count INTEGER,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS businesses_tenant_idx ON businesses (tenant_id, created_at DESC);

CREATE TABLE IF NOT EXISTS reviews (
    id BIGSERIAL PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    business_id TEXT NOT NULL REFERENCES businesses (id),
    provider TEXT NOT NULL,
    location_id TEXT NOT NULL,
    fingerprint VARCHAR(255) NOT NULL,
    rating SMALLINT NOT NULL DEFAULT 0 CHECK (rating BETWEEN 0 AND 5),
    author_name TEXT,
    author_url TEXT,
    body TEXT,
    reviewed_at TIMESTAMPTZ,
    language TEXT,
    raw JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT reviews_identity UNIQUE (tenant_id, provider, fingerprint)
);

CREATE INDEX IF NOT EXISTS reviews_business_idx ON reviews (tenant_id, business_id, reviewed_at DESC);

CREATE TABLE IF NOT EXISTS location_sync_status (
    tenant_id TEXT NOT NULL,
    location_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    last_sync_at TIMESTAMPTZ NOT NULL,
    last_sync_status TEXT NOT NULL CHECK (last_sync_status IN ('success', 'error')),
    last_error_code TEXT,
    last_error TEXT,
    last_fetched INTEGER,
    last_inserted INTEGER,
    last_updated INTEGER,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (tenant_id, location_id, provider)
);
"""

# Which businesses column holds the provider-side location id.
_LOCATION_COLUMNS = {
    Provider.GOOGLE_PLACES: "google_place_id",
    Provider.GOOGLE_BUSINESS: "google_location_id",
}

_UPSERT_REVIEW = """
INSERT INTO reviews (
    tenant_id,
    business_id,
    provider,
    location_id,
    fingerprint,
    rating,
    author_name,
    author_url,
    body,
    reviewed_at,
    language,
    raw,
    updated_at
) VALUES (
    %(tenant_id)s,
    %(business_id)s,
    %(provider)s,
    %(location_id)s,
    %(fingerprint)s,
    %(rating)s,
    %(author_name)s,
    %(author_url)s,
    %(body)s,
    %(reviewed_at)s,
    %(language)s,
    %(raw)s,
    NOW()
)
ON CONFLICT (tenant_id, provider, fingerprint) DO UPDATE SET
    business_id = EXCLUDED.business_id,
    location_id = EXCLUDED.location_id,
    rating = EXCLUDED.rating,
    author_name = EXCLUDED.author_name,
    author_url = EXCLUDED.author_url,
    body = EXCLUDED.body,
    reviewed_at = EXCLUDED.reviewed_at,
    language = EXCLUDED.language,
    raw = EXCLUDED.raw,
    updated_at = NOW();
"""

_EXISTING_FINGERPRINTS = """
SELECT fingerprint
FROM reviews
WHERE tenant_id = %(tenant_id)s
  AND provider = %(provider)s
  AND fingerprint = ANY(%(fingerprints)s);
"""

_UPDATE_SUMMARY = """
UPDATE businesses SET
    display_name = COALESCE(%(display_name)s, display_name),
    aggregate_rating = COALESCE(%(aggregate_rating)s, aggregate_rating),
    aggregate_rating_count = COALESCE(%(aggregate_rating_count)s, aggregate_rating_count),
    updated_at = NOW()
WHERE id = %(business_id)s
  AND tenant_id = %(tenant_id)s;
"""

_UPSERT_SYNC_STATUS = """
INSERT INTO location_sync_status (
    tenant_id,
    location_id,
    provider,
    last_sync_at,
    last_sync_status,
    last_error_code,
    last_error,
    last_fetched,
    last_inserted,
    last_updated,
    updated_at
) VALUES (
    %(tenant_id)s,
    %(location_id)s,
    %(provider)s,
    %(last_sync_at)s,
    %(last_sync_status)s,
    %(last_error_code)s,
    %(last_error)s,
    %(last_fetched)s,
    %(last_inserted)s,
    %(last_updated)s,
    NOW()
)
ON CONFLICT (tenant_id, location_id, provider) DO UPDATE SET
    last_sync_at = EXCLUDED.last_sync_at,
    last_sync_status = EXCLUDED.last_sync_status,
    last_error_code = EXCLUDED.last_error_code,
    last_error = EXCLUDED.last_error,
    last_fetched = EXCLUDED.last_fetched,
    last_inserted = EXCLUDED.last_inserted,
    last_updated = EXCLUDED.last_updated,
    updated_at = NOW();
"""

_SYNC_STATUS_COLUMNS = (
    "location_id",
    "provider",
    "last_sync_at",
    "last_sync_status",
    "last_error_code",
    "last_error",
    "last_fetched",
    "last_inserted",
    "last_updated",
    "updated_at",
)

_REVIEW_COLUMNS = (
    "id",
    "provider",
    "fingerprint",
    "rating",
    "author_name",
    "author_url",
    "body",
    "reviewed_at",
    "language",
    "created_at",
)


def _review_params(row: ReviewRow) -> Dict[str, Any]:
    return {
        "tenant_id": row.tenant_id,
        "business_id": row.business_id,
        "provider": Provider(row.provider).value,
        "location_id": row.location_id,
        "fingerprint": row.fingerprint,
        "rating": row.rating,
        "author_name": row.author_name,
        "author_url": row.author_url,
        "body": row.body,
        "reviewed_at": row.reviewed_at,
        "language": row.language,
        "raw": extras.Json(row.raw or {}),
    }


class PostgresReviewStore:
    """Review, sync-status and location-registry queries, all scoped by tenant."""

    def __init__(self, connect: Callable[[], Any] = get_connection):
        self._connect = connect

    @contextmanager
    def _cursor(self):
        try:
            with self._connect() as conn:
                try:
                    with conn.cursor() as cur:
                        yield cur
                    conn.commit()
                except Exception:
                    _rollback(conn)
                    raise
        except psycopg2.Error as exc:
            raise StoreError(_describe(exc)) from exc

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.execute(SCHEMA_DDL)
        logger.info("Database schema ensured")

    # -- location registry -------------------------------------------------

    def _location_query(self, provider: Provider, where: str, order: str, limit: Optional[int]) -> str:
        column = _LOCATION_COLUMNS[Provider(provider)]
        sql = (
            f"SELECT id, {column}, business_name FROM businesses "
            f"WHERE tenant_id = %(tenant_id)s AND {column} IS NOT NULL AND status = 'active'{where} "
            f"ORDER BY {order}"
        )
        if limit:
            sql += f" LIMIT {int(limit)}"
        return sql + ";"

    @staticmethod
    def _to_location(tenant_id: str, record: Iterable[Any]) -> Location:
        business_id, location_id, name = record
        return Location(
            tenant_id=tenant_id,
            business_id=str(business_id),
            provider_location_id=str(location_id),
            name=name,
        )

    def get_location(self, tenant_id: str, provider: Provider, location_id: str) -> Optional[Location]:
        column = _LOCATION_COLUMNS[Provider(provider)]
        sql = self._location_query(provider, f" AND {column} = %(location_id)s", "created_at DESC", 1)
        with self._cursor() as cur:
            cur.execute(sql, {"tenant_id": tenant_id, "location_id": location_id})
            record = cur.fetchone()
        return self._to_location(tenant_id, record) if record else None

    def latest_location(self, tenant_id: str, provider: Provider) -> Optional[Location]:
        sql = self._location_query(provider, "", "created_at DESC", 1)
        with self._cursor() as cur:
            cur.execute(sql, {"tenant_id": tenant_id})
            record = cur.fetchone()
        return self._to_location(tenant_id, record) if record else None

    def list_locations(self, tenant_id: str, provider: Provider) -> List[Location]:
        column = _LOCATION_COLUMNS[Provider(provider)]
        sql = self._location_query(provider, "", f"business_name NULLS LAST, {column}", None)
        with self._cursor() as cur:
            cur.execute(sql, {"tenant_id": tenant_id})
            records = cur.fetchall()
        return [self._to_location(tenant_id, record) for record in records]

    def update_location_summary(self, tenant_id: str, business_id: str, summary: LocationSummary) -> None:
        params = {
            "tenant_id": tenant_id,
            "business_id": business_id,
            "display_name": summary.display_name,
            "aggregate_rating": summary.aggregate_rating,
            "aggregate_rating_count": summary.aggregate_rating_count,
        }
        with self._cursor() as cur:
            cur.execute(_UPDATE_SUMMARY, params)

    # -- reviews -----------------------------------------------------------

    def existing_fingerprints(self, tenant_id: str, provider: Provider, fingerprints: Iterable[str]) -> Set[str]:
        fingerprints = list(fingerprints)
        if not fingerprints:
            return set()
        params = {"tenant_id": tenant_id, "provider": Provider(provider).value, "fingerprints": fingerprints}
        with self._cursor() as cur:
            cur.execute(_EXISTING_FINGERPRINTS, params)
            return {record[0] for record in cur.fetchall()}

    def upsert_reviews(self, rows: List[ReviewRow]) -> None:
        """Write one batch of reviews in a single transaction."""
        if not rows:
            return
        with self._cursor() as cur:
            cur.executemany(_UPSERT_REVIEW, [_review_params(row) for row in rows])
        logger.debug("Upserted %d reviews", len(rows))

    def current_business_id(self, tenant_id: str) -> Optional[str]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT id FROM businesses WHERE tenant_id = %(tenant_id)s ORDER BY created_at DESC LIMIT 1;",
                {"tenant_id": tenant_id},
            )
            record = cur.fetchone()
        return str(record[0]) if record else None

    def list_reviews(self, tenant_id: str, business_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        sql = (
            f"SELECT {', '.join(_REVIEW_COLUMNS)} FROM reviews "
            "WHERE tenant_id = %(tenant_id)s AND business_id = %(business_id)s "
            "ORDER BY reviewed_at DESC NULLS LAST, created_at DESC "
            "LIMIT %(limit)s;"
        )
        with self._cursor() as cur:
            cur.execute(sql, {"tenant_id": tenant_id, "business_id": business_id, "limit": limit})
            records = cur.fetchall()
        return [_serialize(dict(zip(_REVIEW_COLUMNS, record))) for record in records]

    # -- sync status -------------------------------------------------------

    def upsert_sync_status(self, params: Dict[str, Any]) -> None:
        with self._cursor() as cur:
            cur.execute(_UPSERT_SYNC_STATUS, params)

    def list_sync_status(
        self,
        tenant_id: str,
        provider: Provider,
        location_id: Optional[str] = None,
        limit: int = 25,
    ) -> List[Dict[str, Any]]:
        sql = (
            f"SELECT {', '.join(_SYNC_STATUS_COLUMNS)} FROM location_sync_status "
            "WHERE tenant_id = %(tenant_id)s AND provider = %(provider)s"
        )
        params: Dict[str, Any] = {"tenant_id": tenant_id, "provider": Provider(provider).value, "limit": limit}
        if location_id:
            sql += " AND location_id = %(location_id)s"
            params["location_id"] = location_id
        sql += " ORDER BY updated_at DESC LIMIT %(limit)s;"
        with self._cursor() as cur:
            cur.execute(sql, params)
            records = cur.fetchall()
        return [_serialize(dict(zip(_SYNC_STATUS_COLUMNS, record))) for record in records]


def _serialize(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value.isoformat() if isinstance(value, datetime) else value for key, value in record.items()}
