"""
Order settlement tests.

Verifies:
- Order, lines and wallet debit commit together
- Unavailable items or short balance reject the whole order
- Price snapshots survive later menu edits
- Status changes broadcast to listeners
"""

import pytest

from neocafe.errors import ForbiddenError, InsufficientFundsError, ItemUnavailableError, NotFoundError, ValidationError
from neocafe.extensions import db
from neocafe.models import Order, OrderItem, Transaction
from neocafe.models.orders import ORDER_CANCELLED, ORDER_DELIVERED, ORDER_PENDING, ORDER_PREPARING
from neocafe.models.wallet import TX_ORDER_PAYMENT
from neocafe.services import menu_service, order_service

from conftest import balance_of


pytestmark = pytest.mark.orders


def line(item, quantity=1):
    return {"menu_item_id": item.id, "quantity": quantity}


class TestCreateOrder:

    def test_order_debits_wallet(self, customer, make_menu_item, notifier):
        coffee = make_menu_item(price_cents=350)
        chips = make_menu_item(price_cents=200, category="Snacks")

        order = order_service.create_order(customer.id, [line(coffee, 2), line(chips)], notes="no ice")

        assert order.status == ORDER_PENDING
        assert order.is_paid is True
        assert order.total_amount_cents == 900
        assert order.notes == "no ice"
        assert [(i.quantity, i.price_at_order_cents) for i in order.items] == [(2, 350), (1, 200)]
        assert balance_of(customer.id) == 9100

        tx = db.session.query(Transaction).filter_by(type=TX_ORDER_PAYMENT).one()
        assert tx.amount_cents == -900
        assert tx.description == f"Order #{order.id}"

        assert notifier.events[-1] == ("order:new", {
            "orderId": order.id,
            "userId": customer.id,
            "roomId": None,
            "totalAmount": 900,
        })

    def test_insufficient_balance_persists_nothing(self, make_user, make_menu_item, notifier):
        user = make_user(balance_cents=400)
        burger = make_menu_item(price_cents=500, category="Food")

        with pytest.raises(InsufficientFundsError):
            order_service.create_order(user.id, [line(burger)])

        assert balance_of(user.id) == 400
        assert db.session.query(Order).count() == 0
        assert db.session.query(OrderItem).count() == 0
        assert notifier.events == []

    def test_unavailable_item_rejects_whole_order(self, customer, make_menu_item):
        ok = make_menu_item()
        sold_out = make_menu_item(is_available=False)

        with pytest.raises(ItemUnavailableError):
            order_service.create_order(customer.id, [line(ok), line(sold_out)])

        assert db.session.query(Order).count() == 0
        assert balance_of(customer.id) == 10000

    def test_unknown_item_rejected(self, customer):
        with pytest.raises(ItemUnavailableError):
            order_service.create_order(customer.id, [{"menu_item_id": 9999, "quantity": 1}])

    def test_empty_order_rejected(self, customer):
        with pytest.raises(ValidationError):
            order_service.create_order(customer.id, [])

    def test_duplicate_item_lines_kept_separately(self, customer, make_menu_item):
        soda = make_menu_item(price_cents=250)

        order = order_service.create_order(customer.id, [line(soda, 1), line(soda, 2)])

        assert order.total_amount_cents == 750
        assert len(order.items) == 2

    def test_room_delivery(self, customer, make_menu_item, make_room):
        room = make_room()
        order = order_service.create_order(customer.id, [line(make_menu_item())], room_id=room.id)
        assert order.room_id == room.id

    def test_unknown_room_rejected(self, customer, make_menu_item):
        with pytest.raises(NotFoundError):
            order_service.create_order(customer.id, [line(make_menu_item())], room_id=9999)
        assert balance_of(customer.id) == 10000

    def test_price_snapshot_survives_menu_edit(self, customer, make_menu_item):
        pizza = make_menu_item(price_cents=1200, category="Food")
        order = order_service.create_order(customer.id, [line(pizza)])

        menu_service.update_menu_item(pizza.id, {"price_cents": 1500})

        db.session.expire_all()
        reloaded = db.session.get(Order, order.id)
        assert reloaded.items[0].price_at_order_cents == 1200
        assert reloaded.total_amount_cents == 1200


class TestOrderStatus:

    def test_any_valid_status_may_follow_any_other(self, customer, make_menu_item, notifier):
        order = order_service.create_order(customer.id, [line(make_menu_item())])

        order_service.update_order_status(order.id, ORDER_DELIVERED)
        updated = order_service.update_order_status(order.id, ORDER_PREPARING)

        assert updated.status == ORDER_PREPARING
        assert notifier.events[-1] == ("order:status", {
            "orderId": order.id,
            "userId": customer.id,
            "status": ORDER_PREPARING,
        })

    def test_cancel_does_not_refund(self, customer, make_menu_item):
        order = order_service.create_order(customer.id, [line(make_menu_item(price_cents=500))])
        order_service.update_order_status(order.id, ORDER_CANCELLED)
        assert balance_of(customer.id) == 9500

    def test_invalid_status(self, customer, make_menu_item):
        order = order_service.create_order(customer.id, [line(make_menu_item())])
        with pytest.raises(ValidationError):
            order_service.update_order_status(order.id, "EATEN")

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.update_order_status(9999, ORDER_PREPARING)


class TestOrderQueries:

    def test_active_orders_exclude_closed(self, customer, make_menu_item):
        item = make_menu_item()
        open_order = order_service.create_order(customer.id, [line(item)])
        closed = order_service.create_order(customer.id, [line(item)])
        order_service.update_order_status(closed.id, ORDER_DELIVERED)

        assert [o.id for o in order_service.list_active_orders(customer.id)] == [open_order.id]

        rows, total = order_service.list_user_orders(customer.id)
        assert total == 2

    def test_visibility(self, customer, make_user, make_menu_item):
        order = order_service.create_order(customer.id, [line(make_menu_item())])
        stranger = make_user()

        with pytest.raises(ForbiddenError):
            order_service.get_order(order.id, stranger.id)
        assert order_service.get_order(order.id, stranger.id, is_admin=True).id == order.id
