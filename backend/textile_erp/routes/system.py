# backend/textile_erp/routes/system.py
"""
System health endpoint.

Reports database reachability plus whether the reference data the core
depends on (default warehouse, a branch) is in place.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Branch, Warehouse, ProductionCenter
from textile_erp.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        branch_count = db.session.query(Branch).count()
        warehouse_count = db.session.query(Warehouse).count()
        center_count = db.session.query(ProductionCenter).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "branches": branch_count,
                "warehouses": warehouse_count,
                "production_centers": center_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_reference_data() -> dict:
    """The invoice issuer needs DEFAULT_WAREHOUSE_ID to exist."""
    try:
        warehouse_id = current_app.config["DEFAULT_WAREHOUSE_ID"]
        if db.session.get(Warehouse, warehouse_id) is None:
            return {
                "status": "degraded",
                "warning": f"Default warehouse {warehouse_id} missing; run 'flask system init'",
            }
        return {"status": "healthy", "details": {"default_warehouse_id": warehouse_id}}
    except Exception:
        current_app.logger.exception("Reference data check failed")
        return {"status": "unhealthy", "error": "Reference data check failed"}


@system_bp.get("/health")
def health():
    checks = {
        "database": check_database_health(),
        "reference_data": check_reference_data(),
    }

    statuses = {c["status"] for c in checks.values()}
    if "unhealthy" in statuses:
        overall, code = "unhealthy", 503
    elif "degraded" in statuses:
        overall, code = "degraded", 200
    else:
        overall, code = "healthy", 200

    return jsonify({
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }), code
