# backend/possync/routes/system.py
"""
System health endpoint.

Lets load balancers and offline clients probe connectivity before syncing.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text
from ..extensions import db
from possync.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a round trip.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception as e:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/ping")
def ping():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    return {
        "status": "ok" if http_status == 200 else "unavailable",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, http_status
