# Overview: Service-layer operations for the food/drink menu catalog.

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import MenuItem, OrderItem
from .concurrency import run_in_transaction


def list_menu_items(category: str | None = None, is_available: bool | None = None) -> list[MenuItem]:
    query = db.session.query(MenuItem)
    if category:
        query = query.filter_by(category=category)
    if is_available is not None:
        query = query.filter_by(is_available=is_available)
    return query.order_by(MenuItem.category, MenuItem.name).all()


def list_categories() -> list[str]:
    """Distinct categories that currently have something to order."""
    rows = (
        db.session.query(MenuItem.category)
        .filter(MenuItem.is_available.is_(True))
        .distinct()
        .order_by(MenuItem.category)
        .all()
    )
    return [row[0] for row in rows]


def get_menu_item(item_id: int) -> MenuItem:
    item = db.session.get(MenuItem, item_id)
    if not item:
        raise NotFoundError("Menu item not found")
    return item


def create_menu_item(data: dict) -> MenuItem:
    def _op() -> MenuItem:
        if db.session.query(MenuItem).filter_by(name=data["name"]).first():
            raise ConflictError("Menu item name already exists")
        item = MenuItem(
            name=data["name"],
            description=data.get("description"),
            price_cents=data["price_cents"],
            category=data["category"],
            image_url=data.get("image_url"),
            is_available=data.get("is_available", True),
            preparation_time_minutes=data.get("preparation_time_minutes"),
        )
        db.session.add(item)
        db.session.commit()
        return item

    return run_in_transaction(_op)


def update_menu_item(item_id: int, patch: dict) -> MenuItem:
    """Edit a catalog entry. Placed orders keep their price_at_order_cents."""
    def _op() -> MenuItem:
        item = get_menu_item(item_id)
        new_name = patch.get("name")
        if new_name and new_name != item.name:
            if db.session.query(MenuItem).filter(MenuItem.name == new_name, MenuItem.id != item_id).first():
                raise ConflictError("Menu item name already exists")
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    return run_in_transaction(_op)


def delete_menu_item(item_id: int) -> None:
    """
    Remove a catalog entry.

    Items that appear on past orders are kept so order history still
    resolves; mark them unavailable instead.
    """
    def _op() -> None:
        item = get_menu_item(item_id)
        if db.session.query(OrderItem.id).filter_by(menu_item_id=item_id).first():
            raise ConflictError("Menu item appears on past orders; mark it unavailable instead")
        db.session.delete(item)
        db.session.commit()

    run_in_transaction(_op)
