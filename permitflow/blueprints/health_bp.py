"""
Health check blueprint.

Endpoints:
    GET /api/health        — simple 200 for load balancers
    GET /api/health/live   — database round-trip
"""

import logging
import time

from flask import Blueprint, jsonify

from permitflow.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/health")


@health_bp.route("", methods=["GET"])
def ready():
    return jsonify({"status": "ok", "app": "permitflow"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check including a database ping."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        database = {"status": "ok", "latency_ms": round(db_ms, 1)}
        status_code = 200
    except Exception as exc:
        logger.error("Health check — database failed: %s", exc)
        database = {"status": "error"}
        status_code = 503

    overall = "ok" if status_code == 200 else "degraded"
    return jsonify({"status": overall, "checks": {"database": database}}), status_code
