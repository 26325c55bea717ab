# Overview: Service-layer operations for food/drink orders; pricing, settlement and status updates.

"""
Order Settlement

WHY: Orders are paid up front from the wallet. Either the order, its
lines and the wallet debit all commit, or none of them do.

DESIGN:
- Every requested menu item must resolve to an available MenuItem; a
  partially fulfillable order is rejected whole, never trimmed.
- price_at_order_cents snapshots the menu price at read time, so later
  menu edits never change a placed order.
- total_amount_cents is computed once here and never recomputed.
- Status updates only check enum membership (no transition table, no
  refund on cancel).
"""

from __future__ import annotations

from ..extensions import db
from ..errors import (
    ForbiddenError,
    InsufficientFundsError,
    ItemUnavailableError,
    NotFoundError,
    ValidationError,
)
from ..models import MenuItem, Order, OrderItem, Room
from ..models.orders import OPEN_ORDER_STATUSES, ORDER_PENDING, VALID_ORDER_STATUSES
from ..models.wallet import TX_ORDER_PAYMENT
from . import ledger_service
from .concurrency import run_in_transaction
from .notification_service import EVENT_ORDER_NEW, EVENT_ORDER_STATUS, Notifier, notify


def create_order(
    user_id: int,
    items: list[dict],
    room_id: int | None = None,
    notes: str | None = None,
    *,
    notifier: Notifier | None = None,
) -> Order:
    """
    Price, charge and persist an order.

    Args:
        user_id: Ordering customer
        items: [{"menu_item_id": int, "quantity": int}, ...] (pre-validated)
        room_id: Room to deliver to, if any
        notes: Free-text kitchen notes

    Raises:
        ItemUnavailableError: any item missing or not available
        InsufficientFundsError: wallet cannot cover the total
        NotFoundError: room or wallet missing
    """
    if not items:
        raise ValidationError("At least one item is required")

    def _op() -> Order:
        requested_ids = {line["menu_item_id"] for line in items}
        menu_items = db.session.query(MenuItem).filter(
            MenuItem.id.in_(requested_ids),
            MenuItem.is_available.is_(True),
        ).all()
        if len(menu_items) != len(requested_ids):
            raise ItemUnavailableError("Some menu items are not available")
        by_id = {item.id: item for item in menu_items}

        if room_id is not None and db.session.get(Room, room_id) is None:
            raise NotFoundError("Room not found")

        total = 0
        lines = []
        for line in items:
            menu_item = by_id[line["menu_item_id"]]
            total += menu_item.price_cents * line["quantity"]
            lines.append(OrderItem(
                menu_item_id=menu_item.id,
                quantity=line["quantity"],
                price_at_order_cents=menu_item.price_cents,
            ))

        wallet = ledger_service.get_wallet_for_user(user_id)
        if wallet.balance_cents < total:
            raise InsufficientFundsError(
                "Insufficient balance",
                required_cents=total,
                balance_cents=wallet.balance_cents,
            )

        order = Order(
            user_id=user_id,
            room_id=room_id,
            status=ORDER_PENDING,
            total_amount_cents=total,
            is_paid=True,
            notes=notes,
        )
        order.items = lines
        db.session.add(order)
        db.session.flush()

        ledger_service.debit(
            wallet.id,
            total,
            TX_ORDER_PAYMENT,
            f"Order #{order.id}",
            commit=False,
        )

        db.session.commit()
        return order

    order = run_in_transaction(_op)

    notify(notifier, EVENT_ORDER_NEW, {
        "orderId": order.id,
        "userId": order.user_id,
        "roomId": order.room_id,
        "totalAmount": order.total_amount_cents,
    })
    return order


def update_order_status(order_id: int, status: str, *, notifier: Notifier | None = None) -> Order:
    """Admin status change. Any valid status may follow any other."""
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {list(VALID_ORDER_STATUSES)}")

    def _op() -> Order:
        order = db.session.query(Order).filter_by(id=order_id).populate_existing().first()
        if not order:
            raise NotFoundError("Order not found")
        order.status = status
        db.session.commit()
        return order

    order = run_in_transaction(_op)

    notify(notifier, EVENT_ORDER_STATUS, {
        "orderId": order.id,
        "userId": order.user_id,
        "status": order.status,
    })
    return order


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int, caller_id: int, is_admin: bool = False) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.user_id != caller_id and not is_admin:
        raise ForbiddenError("Not authorized to view this order")
    return order


def list_user_orders(
    user_id: int,
    status: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Order], int]:
    query = db.session.query(Order).filter_by(user_id=user_id)
    if status:
        query = query.filter_by(status=status)
    total = query.count()
    rows = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset).all()
    return rows, total


def list_active_orders(user_id: int) -> list[Order]:
    """Orders still in the kitchen pipeline (PENDING, PREPARING, READY)."""
    return (
        db.session.query(Order)
        .filter(Order.user_id == user_id, Order.status.in_(OPEN_ORDER_STATUSES))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_orders(status: str | None = None, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]:
    """All orders (admin), newest first."""
    query = db.session.query(Order)
    if status:
        query = query.filter_by(status=status)
    total = query.count()
    rows = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset).all()
    return rows, total
