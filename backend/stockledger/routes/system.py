# backend/stockledger/routes/system.py
"""
System health and version endpoints.

Unauthenticated and tenant-agnostic: they never touch tenant-owned rows.
"""

import sys
import time
from importlib.metadata import PackageNotFoundError, version as package_version

from flask import Blueprint, current_app
from sqlalchemy import func, select

from ..extensions import db
from ..models import Tenant
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a tenant-agnostic query.

    Counts tenants (the isolation root, not covered by row-level security).
    """
    start_time = time.time()
    try:
        tenant_count = db.session.execute(select(func.count(Tenant.id))).scalar_one()
        active_count = db.session.execute(
            select(func.count(Tenant.id)).where(Tenant.is_active.is_(True))
        ).scalar_one()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "dialect": db.engine.dialect.name,
                "tenants": tenant_count,
                "active_tenants": active_count,
            },
        }
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
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
        },
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    try:
        api_version = package_version("stockledger")
    except PackageNotFoundError:
        api_version = "unknown"

    env = "production" if not current_app.debug else "development"

    return {
        "api_version": api_version,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
