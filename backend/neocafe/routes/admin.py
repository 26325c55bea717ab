# Overview: Flask API routes for admin operations; dashboard, rooms, menu, orders, users and audits.

# backend/neocafe/routes/admin.py
"""
Admin API Routes

SECURITY: every route requires a bearer token for a user with role ADMIN.

Room and menu writes go through validate_payload() with an explicit
allowlist; unknown or non-writable fields are rejected.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import CafeError, ValidationError
from ..models import MenuItem, Room
from ..models.orders import VALID_ORDER_STATUSES
from ..models.rooms import VALID_SESSION_STATUSES
from ..services import (
    auth_service,
    ledger_service,
    menu_service,
    order_service,
    reporting_service,
    room_service,
    session_service,
)
from ..services.notification_service import get_notifier
from ..decorators import require_auth, require_admin
from ..validation import (
    MENU_ITEM_POLICY,
    ROOM_POLICY,
    enforce_rules_menu_item,
    enforce_rules_room,
    parse_order_status,
    parse_pagination,
    validate_payload,
)


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# DASHBOARD
# =============================================================================

@admin_bp.get("/stats")
@require_auth
@require_admin
def stats_route():
    return jsonify({"stats": reporting_service.get_stats()}), 200


@admin_bp.get("/activity")
@require_auth
@require_admin
def activity_route():
    return jsonify(reporting_service.get_recent_activity()), 200


# =============================================================================
# ROOMS
# =============================================================================

@admin_bp.post("/rooms")
@require_auth
@require_admin
def create_room_route():
    """
    Create a room. Its QR token is issued on creation.

    Request body:
    {
        "room_number": "R007",
        "name": "VR Lounge",
        "price_per_minute_cents": 120,
        "console_type": "PC + VR",
        "capacity": 2,                       (optional)
        "description": "...",                (optional)
        "image_url": "https://...",          (optional)
        "amenities": ["VR headset"]          (optional)
    }
    """
    try:
        payload = request.get_json(silent=True) or {}
        if "status" in payload:
            return jsonify({"error": "New rooms always start AVAILABLE", "code": ValidationError.code}), 400
        patch = validate_payload(model=Room, payload=payload, policy=ROOM_POLICY, partial=False)
        enforce_rules_room(patch)
        room = room_service.create_room(patch)
        return jsonify({"room": room.to_dict()}), 201

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create room")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/rooms/<int:room_id>")
@require_auth
@require_admin
def update_room_route(room_id: int):
    try:
        patch = validate_payload(
            model=Room, payload=request.get_json(silent=True), policy=ROOM_POLICY, partial=True
        )
        enforce_rules_room(patch)
        room = room_service.update_room(room_id, patch, notifier=get_notifier())
        return jsonify({"room": room.to_dict()}), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update room")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/rooms/<int:room_id>/regenerate-qr")
@require_auth
@require_admin
def regenerate_qr_route(room_id: int):
    try:
        room = room_service.regenerate_qr_code(room_id)
        return jsonify({"room": room.to_dict()}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to regenerate QR code")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/rooms/<int:room_id>")
@require_auth
@require_admin
def delete_room_route(room_id: int):
    try:
        room_service.delete_room(room_id)
        return jsonify({"message": "Room deleted successfully"}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete room")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# MENU
# =============================================================================

@admin_bp.post("/menu")
@require_auth
@require_admin
def create_menu_item_route():
    try:
        patch = validate_payload(
            model=MenuItem, payload=request.get_json(silent=True), policy=MENU_ITEM_POLICY, partial=False
        )
        enforce_rules_menu_item(patch)
        item = menu_service.create_menu_item(patch)
        return jsonify({"item": item.to_dict()}), 201

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create menu item")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/menu/<int:item_id>")
@require_auth
@require_admin
def update_menu_item_route(item_id: int):
    try:
        patch = validate_payload(
            model=MenuItem, payload=request.get_json(silent=True), policy=MENU_ITEM_POLICY, partial=True
        )
        enforce_rules_menu_item(patch)
        item = menu_service.update_menu_item(item_id, patch)
        return jsonify({"item": item.to_dict()}), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update menu item")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/menu/<int:item_id>")
@require_auth
@require_admin
def delete_menu_item_route(item_id: int):
    try:
        menu_service.delete_menu_item(item_id)
        return jsonify({"message": "Menu item deleted successfully"}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete menu item")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDERS
# =============================================================================

@admin_bp.get("/orders")
@require_auth
@require_admin
def list_orders_route():
    status = request.args.get("status")
    if status and status not in VALID_ORDER_STATUSES:
        return jsonify({"error": f"Invalid status: {status}", "code": ValidationError.code}), 400

    limit, offset = parse_pagination(request.args)
    rows, total = order_service.list_orders(status=status, limit=limit, offset=offset)
    return jsonify({
        "count": len(rows),
        "total": total,
        "orders": [o.to_dict(include_room=True, include_user=True) for o in rows],
    }), 200


@admin_bp.put("/orders/<int:order_id>/status")
@require_auth
@require_admin
def update_order_status_route(order_id: int):
    """Request body: {"status": "PREPARING"}"""
    try:
        status = parse_order_status(request.get_json(silent=True))
        order = order_service.update_order_status(order_id, status, notifier=get_notifier())
        return jsonify({"order": order.to_dict()}), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# USERS
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    """Query: ?search=sam&limit=20&offset=0"""
    limit, offset = parse_pagination(request.args)
    rows, total = reporting_service.list_users(
        search=request.args.get("search"), limit=limit, offset=offset
    )
    return jsonify({"count": len(rows), "total": total, "users": rows}), 200


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_admin
def deactivate_user_route(user_id: int):
    try:
        user = auth_service.set_user_active(user_id, False)
        return jsonify({"user": user.to_dict()}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/activate")
@require_auth
@require_admin
def activate_user_route(user_id: int):
    try:
        user = auth_service.set_user_active(user_id, True)
        return jsonify({"user": user.to_dict()}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to activate user")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SESSIONS / LEDGER AUDIT
# =============================================================================

@admin_bp.get("/sessions")
@require_auth
@require_admin
def list_sessions_route():
    status = request.args.get("status")
    if status and status not in VALID_SESSION_STATUSES:
        return jsonify({"error": f"Invalid status: {status}", "code": ValidationError.code}), 400

    limit, offset = parse_pagination(request.args)
    rows, total = session_service.list_sessions(status=status, limit=limit, offset=offset)
    return jsonify({
        "count": len(rows),
        "total": total,
        "sessions": [s.to_dict(include_room=True, include_user=True) for s in rows],
    }), 200


@admin_bp.get("/wallets/<int:wallet_id>/audit")
@require_auth
@require_admin
def wallet_audit_route(wallet_id: int):
    """Replay a wallet's ledger and report any inconsistency."""
    try:
        audit = ledger_service.verify_wallet(wallet_id)
        return jsonify({"audit": audit.to_dict()}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
