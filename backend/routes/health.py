"""
Health check endpoints.

Reports database and Redis connectivity. Redis is optional: the catalog
cache degrades gracefully, so a missing Redis only marks the service degraded
when caching is enabled.
"""

from datetime import datetime

from flask import Blueprint, jsonify
from sqlalchemy import text

import cache_manager
from database.base import get_session

health_bp = Blueprint("health", __name__, url_prefix="/api")


def check_db_connection() -> bool:
    """Test database connectivity.

    Returns:
        True if database is accessible
    """
    try:
        with get_session() as session:
            return session.execute(text("SELECT 1")).scalar() == 1
    except Exception:
        return False


def check_redis_connection() -> bool:
    client = cache_manager.get_redis_client()
    if client is None:
        return False
    try:
        return bool(client.ping())
    except Exception:
        return False


@health_bp.route("/health", methods=["GET"])
def health_check():
    """Health check with dependency status.

    Returns:
        200: Service is healthy
        503: Database unreachable
    """
    checks = {"database": check_db_connection()}
    if cache_manager.cache_enabled():
        checks["redis"] = check_redis_connection()

    health = {
        "status": "ok" if all(checks.values()) else "degraded",
        "timestamp": datetime.now().isoformat(),
        "checks": checks,
    }
    if checks.get("redis"):
        health["cache"] = cache_manager.get_cache_stats()
    return jsonify(health), 200 if checks["database"] else 503


@health_bp.route("/ping", methods=["GET"])
def ping():
    return jsonify({"pong": True}), 200
