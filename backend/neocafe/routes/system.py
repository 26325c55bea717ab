# backend/neocafe/routes/system.py
"""
System health endpoint.

Checks the database and reports live counters useful when debugging a
deployment (active sessions, occupied rooms).
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Room, RoomSession, User
from ..models.rooms import ROOM_OCCUPIED, SESSION_ACTIVE
from neocafe.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        room_count = db.session.query(Room).count()
        occupied_rooms = db.session.query(Room).filter_by(status=ROOM_OCCUPIED).count()
        active_sessions = db.session.query(RoomSession).filter_by(status=SESSION_ACTIVE).count()

        elapsed_ms = (time.time() - start_time) * 1000

        details = {
            "users": user_count,
            "rooms": room_count,
            "occupied_rooms": occupied_rooms,
            "active_sessions": active_sessions,
        }

        # OCCUPIED rooms and ACTIVE sessions change together; a mismatch
        # means something bypassed the session service.
        if occupied_rooms != active_sessions:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Occupied room count does not match active session count",
                "details": details,
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    else:
        overall_status = database_health["status"]
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status
