# backend/scratchers/routes/system.py
"""
System health endpoint.

Checks the pieces the scratcher ledger cannot work without: the database,
the standard price catalog that pack sizing depends on, and the receipt
storage directory.
"""

import os
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import ScratcherPack, ScratcherProduct, ScratcherSlot, Store
from ..models.packs import PACK_STATUS_ACTIVE
from ..services.file_service import receipt_storage_dir
from ..tickets import STANDARD_PRICES_CENTS
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    """Row counts for stores, slots and active packs."""
    start_time = time.time()
    try:
        details = {
            "stores": db.session.query(Store).count(),
            "slots": db.session.query(ScratcherSlot).count(),
            "active_packs": db.session.query(ScratcherPack).filter_by(status=PACK_STATUS_ACTIVE).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_catalog_health() -> dict:
    """
    Degraded when a standard price has no active product.

    Packs at a missing price cannot be activated until
    `flask scratchers seed-products` restores the catalog.
    """
    start_time = time.time()
    try:
        active_prices = {
            price for (price,) in db.session.query(ScratcherProduct.price_cents).filter_by(is_active=True)
        }
        missing = [p for p in STANDARD_PRICES_CENTS if p not in active_prices]
        result = {
            "status": "degraded" if missing else "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {"active_prices": len(active_prices), "missing_prices_cents": missing},
        }
        if missing:
            result["warning"] = "Standard prices without an active product"
        return result
    except Exception:
        current_app.logger.exception("Catalog health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Catalog error"}


def check_receipt_storage_health() -> dict:
    """Receipt directory must be writable once it exists; it is created on first upload."""
    start_time = time.time()
    root = receipt_storage_dir()
    exists = os.path.isdir(root)
    writable = os.access(root if exists else os.path.dirname(os.path.abspath(root)), os.W_OK)
    return {
        "status": "healthy" if writable else "unhealthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {"exists": exists, "writable": writable},
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy, or degraded but operational
    - 503: a check is unhealthy
    """
    start_time = time.time()
    checks = {
        "database": check_database_health(),
        "catalog": check_catalog_health(),
        "receipt_storage": check_receipt_storage_health(),
    }

    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }

    return response, http_status
