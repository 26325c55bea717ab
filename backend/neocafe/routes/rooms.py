# Overview: Flask API routes for rooms; public listing, QR verification and QR images.

from flask import Blueprint, request, jsonify, current_app

from ..errors import CafeError, ValidationError
from ..models.rooms import VALID_ROOM_STATUSES
from ..services import qr_service, room_service
from ..decorators import require_auth


rooms_bp = Blueprint("rooms", __name__, url_prefix="/api/rooms")


@rooms_bp.get("/")
@rooms_bp.get("")
def list_rooms_route():
    """List rooms ordered by room number. Optional ?status=AVAILABLE|OCCUPIED|MAINTENANCE."""
    status = request.args.get("status")
    if status and status not in VALID_ROOM_STATUSES:
        return jsonify({"error": f"Invalid status: {status}", "code": ValidationError.code}), 400

    rooms = room_service.list_rooms(status=status)
    return jsonify({
        "count": len(rooms),
        "rooms": [room.to_dict() for room in rooms],
    }), 200


@rooms_bp.get("/<int:room_id>")
def get_room_route(room_id: int):
    """Room details plus its ACTIVE session, if any."""
    try:
        room = room_service.get_room(room_id)
        active = room_service.get_active_session_for_room(room_id)
        return jsonify({
            "room": room.to_dict(),
            "active_session": active.to_dict() if active else None,
        }), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code


@rooms_bp.post("/verify-qr")
@require_auth
def verify_qr_route():
    """
    Check a scanned door code before starting a session.

    Request body: {"qr_code": "<token>"}
    """
    try:
        data = request.get_json(silent=True) or {}
        room = room_service.verify_qr(data.get("qr_code"))
        return jsonify({
            "room": room.to_dict(),
            "message": "QR code verified successfully",
        }), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify QR code")
        return jsonify({"error": "Internal server error"}), 500


@rooms_bp.get("/<int:room_id>/qr-image")
def qr_image_route(room_id: int):
    """Room token plus an SVG data URL for printing."""
    try:
        room = room_service.get_room(room_id)
        if not room.qr_code:
            return jsonify({"error": "Room has no QR code", "code": "NOT_FOUND"}), 404
        return jsonify({
            "room_id": room.id,
            "room_number": room.room_number,
            "qr_code": room.qr_code,
            "qr_code_image": qr_service.render_qr_data_url(room.qr_code),
        }), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate QR code image")
        return jsonify({"error": "Failed to generate QR code image"}), 500
