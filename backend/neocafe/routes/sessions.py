# Overview: Flask API routes for room sessions; start, end, live cost and history.

# backend/neocafe/routes/sessions.py
"""
Room Session API Routes

DESIGN:
- Start by room id or by scanned QR token (verified server-side)
- End is owner-only; the bill is settled from the wallet atomically
- Active session responses carry live duration/cost computed from
  start_time and the captured rate (clients can compute the same)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CafeError
from ..models.rooms import SESSION_ACTIVE
from ..services import session_service
from ..services.notification_service import get_notifier
from ..decorators import require_auth
from ..validation import parse_pagination, parse_start_session


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


def _with_live_cost(session) -> dict:
    data = session.to_dict(include_room=True)
    data.update(session_service.project_live_cost(session))
    return data


@sessions_bp.post("/start")
@require_auth
def start_session_route():
    """
    Start a session.

    Request body (one of):
    {"room_id": 3}
    {"qr_code": "<token>"}
    """
    try:
        data = parse_start_session(request.get_json(silent=True))
        if data.qr_code:
            session = session_service.start_session_from_qr(
                g.current_user.id, data.qr_code, notifier=get_notifier()
            )
        else:
            session = session_service.start_session(
                g.current_user.id, data.room_id, notifier=get_notifier()
            )

        return jsonify({
            "session": session.to_dict(include_room=True),
            "message": "Session started successfully",
        }), 201

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/end")
@require_auth
def end_session_route(session_id: int):
    try:
        session = session_service.end_session(session_id, g.current_user.id, notifier=get_notifier())
        return jsonify({
            "session": session.to_dict(include_room=True),
            "total_cost_cents": session.total_cost_cents,
            "message": "Session ended successfully",
        }), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to end session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.get("/active")
@require_auth
def active_session_route():
    """Caller's ACTIVE session with live cost, or null."""
    session = session_service.get_active_session(g.current_user.id)
    return jsonify({"session": _with_live_cost(session) if session else None}), 200


@sessions_bp.get("/history")
@require_auth
def session_history_route():
    limit, offset = parse_pagination(request.args, default_limit=10)
    rows, total = session_service.get_session_history(g.current_user.id, limit=limit, offset=offset)
    return jsonify({
        "count": len(rows),
        "total": total,
        "sessions": [s.to_dict(include_room=True) for s in rows],
    }), 200


@sessions_bp.get("/<int:session_id>")
@require_auth
def get_session_route(session_id: int):
    try:
        session = session_service.get_session(
            session_id, g.current_user.id, is_admin=g.current_user.is_admin
        )
        data = _with_live_cost(session) if session.status == SESSION_ACTIVE else session.to_dict(include_room=True)
        return jsonify({"session": data}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
