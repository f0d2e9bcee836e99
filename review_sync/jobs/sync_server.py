"""HTTP entrypoint that triggers review syncs and exposes sync status (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from review_sync.core.config import ConfigError, get_settings
from review_sync.core.db import PostgresReviewStore, StoreError, init_pool
from review_sync.models import ErrorCode, Provider, SyncRequest
from review_sync.sync.engine import SyncEngine, build_engine
from review_sync.sync.status import SyncStatusRecorder

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)

_STATUS_BY_CODE = {
    ErrorCode.QUOTA_PENDING: 429,
    ErrorCode.ACCESS_PENDING: 403,
    ErrorCode.NO_LOCATIONS: 404,
    ErrorCode.CONFIGURATION_ERROR: 500,
    ErrorCode.STORE_ERROR: 500,
}


@lru_cache(maxsize=1)
def get_store() -> PostgresReviewStore:
    init_pool(get_settings().database_url)
    return PostgresReviewStore()


@lru_cache(maxsize=1)
def get_engine() -> SyncEngine:
    return build_engine(get_settings(), store=get_store())


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches the database."""
    try:
        settings = get_settings()
    except ConfigError as exc:
        return _configuration_error(exc)
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/reviews/sync")
def sync_reviews() -> Any:
    """
    Run a review sync for the calling tenant.
    Tenant: X-Tenant-Id header or tenant_id field.
    Optional: provider, location_id, page_size (int), max_pages (int)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    tenant_id = _tenant_id(payload)
    if not tenant_id:
        return jsonify({"ok": False, "error": "tenant_id is required"}), 400

    provider = _parse_provider(payload.get("provider"))
    if provider is None:
        return jsonify({"ok": False, "error": f"provider must be one of {[p.value for p in Provider]}"}), 400

    limits: Dict[str, Optional[int]] = {}
    for field_name in ("page_size", "max_pages"):
        raw = payload.get(field_name)
        if raw is None:
            limits[field_name] = None
            continue
        try:
            limits[field_name] = int(raw)
        except (TypeError, ValueError):
            return jsonify({"ok": False, "error": f"{field_name} must be numeric"}), 400
        if limits[field_name] <= 0:
            return jsonify({"ok": False, "error": f"{field_name} must be positive"}), 400

    location_id = payload.get("location_id")
    sync_request = SyncRequest(
        tenant_id=tenant_id,
        provider=provider,
        location_id=str(location_id).strip() if location_id else None,
        page_size=limits["page_size"],
        max_pages=limits["max_pages"],
    )

    try:
        engine = get_engine()
    except ConfigError as exc:
        return _configuration_error(exc)
    except StoreError as exc:
        logger.error("Review store unavailable for tenant %s: %s", tenant_id, exc)
        return jsonify({"ok": False, "code": ErrorCode.STORE_ERROR.value, "message": str(exc)}), 500

    try:
        result = engine.run(sync_request)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Review sync failed for tenant %s: %s", tenant_id, exc)
        return jsonify({"ok": False, "error": "review sync failed"}), 500

    status = 200 if result.ok else _STATUS_BY_CODE.get(result.code, 500)
    return jsonify(result.to_dict()), status


@app.get("/location-sync-status")
def location_sync_status() -> Any:
    tenant_id = _tenant_id({})
    if not tenant_id:
        return jsonify({"ok": False, "error": "tenant_id is required"}), 400

    provider = _parse_provider(request.args.get("provider"))
    if provider is None:
        return jsonify({"ok": False, "error": "unknown provider"}), 400
    location_id = (request.args.get("location_id") or "").strip() or None

    try:
        rows = SyncStatusRecorder(get_store()).latest(tenant_id, provider, location_id=location_id)
    except ConfigError as exc:
        return _configuration_error(exc)
    except StoreError as exc:
        logger.error("Failed to load sync status for tenant %s: %s", tenant_id, exc)
        return jsonify({"ok": False, "error": "Failed to load sync status"}), 500

    return jsonify({"ok": True, "rows": rows}), 200


@app.get("/reviews")
def list_reviews() -> Any:
    """Stored reviews for the tenant's business (current one unless business_id is given), newest first."""
    tenant_id = _tenant_id({})
    if not tenant_id:
        return jsonify({"ok": False, "error": "tenant_id is required"}), 400

    try:
        limit = int(request.args.get("limit", "50"))
    except ValueError:
        limit = 50
    limit = max(1, min(200, limit))

    try:
        store = get_store()
        business_id = request.args.get("business_id") or store.current_business_id(tenant_id)
        if not business_id:
            return jsonify({"ok": True, "business_id": None, "count": 0, "reviews": []}), 200
        reviews = store.list_reviews(tenant_id, business_id, limit=limit)
    except ConfigError as exc:
        return _configuration_error(exc)
    except StoreError as exc:
        logger.error("Failed to load reviews for tenant %s: %s", tenant_id, exc)
        return jsonify({"ok": False, "error": "Failed to load reviews."}), 500

    return jsonify({"ok": True, "business_id": business_id, "count": len(reviews), "reviews": reviews}), 200


# ---------- Internals ----------


def _configuration_error(exc: ConfigError) -> Any:
    logger.error("Configuration error: %s", exc)
    return jsonify({"ok": False, "code": ErrorCode.CONFIGURATION_ERROR.value, "message": str(exc)}), 500


def _tenant_id(payload: Dict[str, Any]) -> Optional[str]:
    raw = request.headers.get("X-Tenant-Id") or payload.get("tenant_id") or request.args.get("tenant_id")
    if not raw:
        return None
    return str(raw).strip() or None


def _parse_provider(raw: Any) -> Optional[Provider]:
    if raw is None or raw == "":
        return Provider.GOOGLE_PLACES
    try:
        return Provider(str(raw).strip())
    except ValueError:
        return None


def main() -> None:
    """Cloud Run injects PORT; fall back to WORKER_PORT for local runs."""
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
