"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PAGE_SIZE_CEILING = 50
MAX_PAGES_CEILING = 50
FINGERPRINT_POLICIES = {"content", "author_time"}


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    google_places_api_key: str = ""
    google_access_token: str = ""
    worker_port: int = 9000
    page_size: int = 50
    max_pages: int = 10
    request_timeout: float = 8.0
    fingerprint_policy: str = "content"


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using %d", name, raw, default)
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    google_access_token = os.getenv("GOOGLE_ACCESS_TOKEN", "")
    worker_port = _int_env("WORKER_PORT", 9000)
    page_size = clamp(_int_env("SYNC_PAGE_SIZE", 50), 1, PAGE_SIZE_CEILING)
    max_pages = clamp(_int_env("SYNC_MAX_PAGES", 10), 1, MAX_PAGES_CEILING)

    try:
        request_timeout = float(os.getenv("SYNC_REQUEST_TIMEOUT", "8"))
    except ValueError:
        logger.warning("SYNC_REQUEST_TIMEOUT is not numeric; using 8 seconds")
        request_timeout = 8.0

    fingerprint_policy = os.getenv("FINGERPRINT_POLICY", "content").strip().lower()
    if fingerprint_policy not in FINGERPRINT_POLICIES:
        raise ConfigError(
            f"FINGERPRINT_POLICY must be one of {sorted(FINGERPRINT_POLICIES)}, got {fingerprint_policy!r}"
        )

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; Places review syncs will fail.")
    if not google_access_token:
        logger.warning("GOOGLE_ACCESS_TOKEN is not configured; Business Profile review syncs will fail.")

    return Settings(
        database_url=database_url,
        google_places_api_key=google_places_api_key,
        google_access_token=google_access_token,
        worker_port=worker_port,
        page_size=page_size,
        max_pages=max_pages,
        request_timeout=request_timeout,
        fingerprint_policy=fingerprint_policy,
    )
