# backend/gemalery/routes/system.py
"""
System health endpoints.

/health is a cheap liveness probe; /health/db also proves the database
answers and the sales channels are seeded.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Channel
from ..models.sales import CHANNEL_NAMES
from gemalery.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        channel_keys = {key for (key,) in db.session.query(Channel.key).all()}
        elapsed_ms = (time.time() - start_time) * 1000
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }

    missing = sorted(set(CHANNEL_NAMES) - channel_keys)
    if missing:
        return {
            "status": "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "warning": f"Missing channels: {', '.join(missing)}",
        }
    return {
        "status": "healthy",
        "latency_ms": round(elapsed_ms, 2),
        "details": {"channels": len(channel_keys)},
    }


@system_bp.get("/health")
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat() + "Z"}


@system_bp.get("/health/db")
def health_db():
    """
    Returns:
    - 200: healthy or degraded (channels not seeded yet)
    - 503: database unreachable
    """
    check = check_database_health()
    http_status = 503 if check["status"] == "unhealthy" else 200
    return {"status": check["status"], "checks": {"database": check}}, http_status
