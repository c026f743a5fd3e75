# Overview: System health endpoint for the ledger database and background sweepers.

"""
System health endpoint.

Reports database connectivity (with basic ledger table counts) and whether
the background sweepers are running.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import InventoryItem, Invoice, Quote, Sale
from ..time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "inventory_items": db.session.query(InventoryItem).count(),
            "sales": db.session.query(Sale).count(),
            "quotes": db.session.query(Quote).count(),
            "invoices": db.session.query(Invoice).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_scheduler_health() -> dict:
    sweepers = {}
    for name in ("expiration_sweeper", "overdue_sweeper"):
        sweeper = current_app.extensions.get(name)
        if sweeper is None:
            continue
        sweepers[name] = {
            "running": sweeper.running,
            "last_run_at": to_utc_z(sweeper.last_run_at),
        }
    return {
        "status": "healthy",
        "enabled": bool(current_app.config.get("SCHEDULER_ENABLED")),
        "details": sweepers,
    }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    scheduler = check_scheduler_health()
    overall = "healthy" if database["status"] == "healthy" else "unhealthy"
    body = {
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "scheduler": scheduler,
        },
    }
    return jsonify(body), 200 if overall == "healthy" else 503
