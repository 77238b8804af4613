"""
Health check blueprint.

Endpoints:
    GET /api/health         — app name + status
    GET /api/health/ready   — simple 200 for load balancers
    GET /api/health/live    — database round-trip and upload folder check
"""

import logging
import os
import time

from flask import Blueprint, current_app, jsonify

from pmis.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "PMIS"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        db.session.rollback()
        checks["database"] = {"status": "error"}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Upload folder ────────────────────────────────────────────────
    folder = current_app.config["UPLOAD_FOLDER"]
    if os.path.isdir(folder) and os.access(folder, os.W_OK):
        checks["uploads"] = {"status": "ok"}
    else:
        # created lazily on first upload
        checks["uploads"] = {"status": "not_created"}

    checks["app"] = {
        "name": "PMIS",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status = "ok" if overall else "degraded"
    return jsonify({"status": status, "checks": checks}), 200 if overall else 503
