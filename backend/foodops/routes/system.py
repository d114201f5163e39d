# backend/foodops/routes/system.py
"""
System health, version and document sequence endpoints.

Provides health checks for the database and the cutoff cycle plus version
information for deployment debugging.
"""

import sys
import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import CutoffCycle, DocumentSequence, Product
from ..models.cutoff import CYCLE_OPEN
from ..services import document_service
from ..time_utils import business_today, to_iso_date, to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        sequence_count = db.session.query(DocumentSequence).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "document_sequences": sequence_count,
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


def check_cutoff_health() -> dict:
    """
    Exactly one cycle should be open. None open is degraded (the next read
    bootstraps one); more than one is unhealthy.
    """
    start_time = time.time()
    try:
        open_count = db.session.query(CutoffCycle).filter_by(status=CYCLE_OPEN).count()
        elapsed_ms = (time.time() - start_time) * 1000

        if open_count > 1:
            return {
                "status": "unhealthy",
                "latency_ms": round(elapsed_ms, 2),
                "error": f"{open_count} open cutoff cycles",
            }
        if open_count == 0:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "No open cutoff cycle yet",
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"open_cycles": open_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Cutoff health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Cutoff check error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    cutoff_health = check_cutoff_health()

    all_checks = [database_health, cutoff_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "cutoff": cutoff_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys or database credentials.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
        "business_timezone": current_app.config.get("BUSINESS_TIMEZONE"),
        "business_date": to_iso_date(business_today()),
    }


@system_bp.get("/api/sequences")
def list_sequences_route():
    sequences = document_service.list_sequences()
    return jsonify({"items": [s.to_dict() for s in sequences], "count": len(sequences)})
