from __future__ import annotations

from ..extensions import db
from neocafe.time_utils import to_utc_z

ORDER_PENDING = "PENDING"
ORDER_PREPARING = "PREPARING"
ORDER_READY = "READY"
ORDER_DELIVERED = "DELIVERED"
ORDER_CANCELLED = "CANCELLED"

VALID_ORDER_STATUSES = (
    ORDER_PENDING,
    ORDER_PREPARING,
    ORDER_READY,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
)
OPEN_ORDER_STATUSES = (ORDER_PENDING, ORDER_PREPARING, ORDER_READY)


class Order(db.Model):
    """
    Food/drink order charged against the wallet at creation.

    total_amount_cents is computed once from the item snapshots and never
    recomputed.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    room = db.relationship("Room", backref=db.backref("orders", lazy=True))

    def to_dict(self, include_items: bool = True, include_room: bool = False, include_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "room_id": self.room_id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "is_paid": self.is_paid,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_room and self.room is not None:
            data["room"] = self.room.to_summary()
        if include_user and self.user is not None:
            data["user"] = self.user.to_summary()
        return data


class OrderItem(db.Model):
    """Line on an order. price_at_order_cents is a snapshot of the menu price."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_at_order_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    menu_item = db.relationship("MenuItem")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_at_order_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "menu_item_id": self.menu_item_id,
            "name": self.menu_item.name if self.menu_item else None,
            "quantity": self.quantity,
            "price_at_order_cents": self.price_at_order_cents,
            "line_total_cents": self.line_total_cents,
        }
