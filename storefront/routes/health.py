import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from storefront.extensions import db

bp = Blueprint("health", __name__)


def _check_database():
    start = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        latency = round((time.time() - start) * 1000, 2)
        return {"status": "ok", "latency_ms": latency}
    except Exception as e:
        db.session.rollback()
        return {"status": "error", "error": str(e)}


def _check_gateway():
    gateway = current_app.extensions.get("payment_gateway")
    if gateway is None:
        return {"status": "error", "error": "gateway not initialized"}
    if not gateway.secret_key:
        return {"status": "skipped", "reason": f"{gateway.provider} secret key not set"}
    return {"status": "ok", "provider": gateway.provider}


def run_health_checks():
    started = time.time()

    checks = {
        "database": _check_database(),
        "gateway": _check_gateway(),
    }

    overall = "ok"
    for c in checks.values():
        if c["status"] == "error":
            overall = "degraded"

    return {
        "status": overall,
        "timestamp": int(time.time()),
        "checks": checks,
        "duration_ms": round((time.time() - started) * 1000, 2),
        "environment": current_app.config.get("ENV", "unknown"),
    }


@bp.route("/health", methods=["GET"])
def health():
    report = run_health_checks()
    return jsonify(report), 200 if report["status"] == "ok" else 503
