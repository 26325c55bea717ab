# Overview: Flask API routes for customer orders; place, list and inspect.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CafeError, ValidationError
from ..models.orders import VALID_ORDER_STATUSES
from ..services import order_service
from ..services.notification_service import get_notifier
from ..decorators import require_auth
from ..validation import parse_create_order, parse_pagination


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Place and pay for an order.

    Request body:
    {
        "items": [{"menu_item_id": 1, "quantity": 2}],
        "room_id": 3,          (optional)
        "notes": "no ice"      (optional)
    }
    """
    try:
        data = parse_create_order(request.get_json(silent=True))
        order = order_service.create_order(
            g.current_user.id,
            [line.to_dict() for line in data.items],
            room_id=data.room_id,
            notes=data.notes,
            notifier=get_notifier(),
        )
        return jsonify({
            "order": order.to_dict(include_room=True),
            "message": "Order placed successfully",
        }), 201

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
@orders_bp.get("")
@require_auth
def list_orders_route():
    status = request.args.get("status")
    if status and status not in VALID_ORDER_STATUSES:
        return jsonify({"error": f"Invalid status: {status}", "code": ValidationError.code}), 400

    limit, offset = parse_pagination(request.args, default_limit=10)
    rows, total = order_service.list_user_orders(g.current_user.id, status=status, limit=limit, offset=offset)
    return jsonify({
        "count": len(rows),
        "total": total,
        "orders": [o.to_dict(include_room=True) for o in rows],
    }), 200


@orders_bp.get("/active")
@require_auth
def active_orders_route():
    rows = order_service.list_active_orders(g.current_user.id)
    return jsonify({
        "count": len(rows),
        "orders": [o.to_dict(include_room=True) for o in rows],
    }), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user.id, is_admin=g.current_user.is_admin)
        return jsonify({"order": order.to_dict(include_room=True)}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
