# Overview: Flask API routes for the public menu catalog.

from flask import Blueprint, request, jsonify

from ..errors import CafeError
from ..services import menu_service


menu_bp = Blueprint("menu", __name__, url_prefix="/api/menu")


def _parse_bool_arg(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    return value.strip().lower() in ("1", "true", "yes")


@menu_bp.get("/")
@menu_bp.get("")
def list_menu_route():
    """Query: ?category=Drinks&is_available=true"""
    items = menu_service.list_menu_items(
        category=request.args.get("category"),
        is_available=_parse_bool_arg(request.args.get("is_available")),
    )
    return jsonify({
        "count": len(items),
        "items": [item.to_dict() for item in items],
    }), 200


@menu_bp.get("/categories")
def categories_route():
    return jsonify({"categories": menu_service.list_categories()}), 200


@menu_bp.get("/<int:item_id>")
def get_menu_item_route(item_id: int):
    try:
        item = menu_service.get_menu_item(item_id)
        return jsonify({"item": item.to_dict()}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
