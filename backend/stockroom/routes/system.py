# backend/stockroom/routes/system.py
"""
System health endpoint.

Reports the database (required) and the audit-log queue (optional: stock
and pricing writes keep working without it, so a Redis outage only
degrades).
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db, get_redis
from stockroom.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_audit_queue_health() -> dict:
    """Ping Redis and report the audit backlog."""
    if not current_app.config["AUDIT_LOG_ENABLED"]:
        return {"status": "healthy", "details": {"enabled": False}}

    start_time = time.time()
    try:
        client = get_redis()
        client.ping()
        backlog = client.llen(current_app.config["AUDIT_LOG_QUEUE"])
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"enabled": True, "backlog": backlog},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.warning("Audit queue health check failed", exc_info=True)
        return {
            "status": "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "warning": "Audit queue unavailable",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (audit queue down)
    - 503: database unavailable
    """
    start_time = time.time()

    database_health = check_database_health()
    audit_queue_health = check_audit_queue_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif audit_queue_health["status"] != "healthy":
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "audit_queue": audit_queue_health,
        }
    }

    return response, http_status
