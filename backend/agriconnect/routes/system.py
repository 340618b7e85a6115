# backend/agriconnect/routes/system.py
"""
System and reference endpoints (public).

- GET /api/health: database connectivity and latency
- GET /api/stats: marketplace totals
- GET /api/communes, /api/categories: static enumerations
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import stats_service
from ..services.reference_data import CATEGORIES, COMMUNES
from agriconnect.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, 200 if healthy else 503


@system_bp.get("/stats")
def stats():
    return stats_service.get_stats()


@system_bp.get("/communes")
def communes():
    return list(COMMUNES)


@system_bp.get("/categories")
def categories():
    return list(CATEGORIES)
