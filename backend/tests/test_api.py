"""
End-to-end API tests through the Flask test client.

Covers register -> deposit -> session -> order flows and the JSON error
contract ({"error", "code"} with the mapped HTTP status).
"""

from datetime import timedelta

import pytest

from neocafe.extensions import db
from neocafe.models import RoomSession
from neocafe.time_utils import utcnow

from conftest import VALID_SIGNATURE, auth_headers, balance_of, headers_for, make_intent_event


pytestmark = pytest.mark.smoke


# =============================================================================
# AUTH
# =============================================================================


class TestAuthApi:

    def test_register_login_me(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "email": "New.Player@Test.com",
            "password": "hunter22",
            "first_name": "New",
            "last_name": "Player",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["email"] == "new.player@test.com"
        assert resp.json["user"]["role"] == "CUSTOMER"
        assert "password_hash" not in resp.json["user"]

        login = client.post("/api/auth/login", json={"email": "new.player@test.com", "password": "hunter22"})
        assert login.status_code == 200

        me = client.get("/api/auth/me", headers=auth_headers(login.json["token"]))
        assert me.status_code == 200
        assert me.json["wallet"]["balance_cents"] == 0

    def test_duplicate_email(self, client, customer):
        resp = client.post("/api/auth/register", json={
            "email": customer.email,
            "password": "hunter22",
            "first_name": "Dup",
            "last_name": "Licate",
        })
        assert resp.status_code == 409
        assert resp.json["code"] == "CONFLICT"

    @pytest.mark.parametrize("payload", [
        {"email": "bad", "password": "hunter22", "first_name": "A", "last_name": "B"},
        {"email": "a@b.co", "password": "123", "first_name": "A", "last_name": "B"},
        {"email": "a@b.co", "password": "hunter22", "last_name": "B"},
    ])
    def test_register_validation(self, client, db_session, payload):
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_INPUT"

    def test_wrong_password(self, client, customer):
        resp = client.post("/api/auth/login", json={"email": customer.email, "password": "nope"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"


# =============================================================================
# ROOMS / SESSIONS
# =============================================================================


class TestSessionApi:

    def test_qr_start_live_cost_and_end(self, client, customer, make_room):
        room = make_room(price_per_minute_cents=100)
        headers = headers_for(customer)

        verify = client.post("/api/rooms/verify-qr", headers=headers, json={"qr_code": room.qr_code})
        assert verify.status_code == 200
        assert verify.json["room"]["id"] == room.id

        start = client.post("/api/sessions/start", headers=headers, json={"qr_code": room.qr_code})
        assert start.status_code == 201
        session_id = start.json["session"]["id"]

        session = db.session.get(RoomSession, session_id)
        session.start_time = utcnow() - timedelta(seconds=125)
        db.session.commit()

        active = client.get("/api/sessions/active", headers=headers)
        assert active.json["session"]["current_duration_minutes"] == 3
        assert active.json["session"]["current_cost_cents"] == 300

        detail = client.get(f"/api/rooms/{room.id}")
        assert detail.json["room"]["status"] == "OCCUPIED"
        assert detail.json["active_session"]["id"] == session_id

        end = client.post(f"/api/sessions/{session_id}/end", headers=headers)
        assert end.status_code == 200
        assert end.json["total_cost_cents"] == 300
        assert balance_of(customer.id) == 9700

        assert client.get("/api/sessions/active", headers=headers).json["session"] is None
        history = client.get("/api/sessions/history", headers=headers)
        assert history.json["total"] == 1

    def test_start_errors_map_to_status(self, client, make_user, make_room):
        room = make_room(price_per_minute_cents=100)
        poor = make_user(balance_cents=100)

        resp = client.post("/api/sessions/start", headers=headers_for(poor), json={"room_id": room.id})
        assert resp.status_code == 400
        assert resp.json["code"] == "INSUFFICIENT_FUNDS"
        assert resp.json["required_cents"] == 3000

        resp = client.post("/api/sessions/start", headers=headers_for(poor), json={})
        assert resp.status_code == 400

        resp = client.post("/api/sessions/start", headers=headers_for(poor), json={"room_id": 9999})
        assert resp.status_code == 404

    def test_second_user_gets_conflict(self, client, make_user, make_room):
        room = make_room()
        first = client.post("/api/sessions/start", headers=headers_for(make_user(balance_cents=5000)),
                            json={"room_id": room.id})
        second = client.post("/api/sessions/start", headers=headers_for(make_user(balance_cents=5000)),
                             json={"room_id": room.id})

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json["code"] == "ROOM_UNAVAILABLE"

    def test_forged_qr(self, client, customer, make_room):
        make_room()
        resp = client.post("/api/sessions/start", headers=headers_for(customer), json={"qr_code": "Zm9v"})
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_TOKEN"

    def test_qr_image(self, client, make_room):
        room = make_room()
        resp = client.get(f"/api/rooms/{room.id}/qr-image")
        assert resp.status_code == 200
        assert resp.json["qr_code"] == room.qr_code
        assert resp.json["qr_code_image"].startswith("data:image/svg+xml;base64,")

    def test_room_status_filter(self, client, make_room):
        make_room()
        assert client.get("/api/rooms?status=AVAILABLE").json["count"] == 1
        assert client.get("/api/rooms?status=OCCUPIED").json["count"] == 0
        assert client.get("/api/rooms?status=BROKEN").status_code == 400


# =============================================================================
# WALLET
# =============================================================================


class TestWalletApi:

    def test_add_funds_and_history(self, client, make_user):
        user = make_user()
        headers = headers_for(user)

        resp = client.post("/api/wallet/add-funds", headers=headers,
                           json={"amount_cents": 2500, "payment_method_id": "pm_card_visa"})
        assert resp.status_code == 200
        assert resp.json["wallet"]["balance_cents"] == 2500

        wallet = client.get("/api/wallet", headers=headers)
        assert wallet.json["wallet"]["transactions"][0]["amount_cents"] == 2500

        txs = client.get("/api/wallet/transactions?type=DEPOSIT", headers=headers)
        assert txs.json["total"] == 1
        assert client.get("/api/wallet/transactions?type=BOGUS", headers=headers).status_code == 400

    def test_gateway_failure_is_retryable_502(self, client, make_user, gateway):
        user = make_user()
        gateway.fail_with = "Your card was declined."

        resp = client.post("/api/wallet/add-funds", headers=headers_for(user),
                           json={"amount_cents": 2500, "payment_method_id": "pm_card_chargeDeclined"})

        assert resp.status_code == 502
        assert resp.json["retryable"] is True
        assert balance_of(user.id) == 0

    def test_webhook_credits_intent(self, client, make_user):
        user = make_user()
        headers = headers_for(user)
        intent = client.post("/api/wallet/create-payment-intent", headers=headers, json={"amount_cents": 1500})
        assert intent.status_code == 200
        intent_id = intent.json["payment_intent_id"]

        body = make_intent_event("payment_intent.succeeded", intent_id, 1500, user.id)
        for _ in range(2):
            resp = client.post("/api/wallet/webhook", data=body,
                               headers={"Stripe-Signature": VALID_SIGNATURE, "Content-Type": "application/json"})
            assert resp.status_code == 200

        assert balance_of(user.id) == 1500

    def test_webhook_bad_signature(self, client, make_user):
        body = make_intent_event("payment_intent.succeeded", "pi_x", 1500, make_user().id)
        resp = client.post("/api/wallet/webhook", data=body, headers={"Stripe-Signature": "forged"})
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_SIGNATURE"


# =============================================================================
# ORDERS / MENU
# =============================================================================


class TestOrderApi:

    def test_place_and_track_order(self, client, customer, admin, make_menu_item):
        latte = make_menu_item(price_cents=450, name="Latte")
        headers = headers_for(customer)

        resp = client.post("/api/orders", headers=headers, json={
            "items": [{"menu_item_id": latte.id, "quantity": 2}],
            "notes": "oat milk",
        })
        assert resp.status_code == 201
        order_id = resp.json["order"]["id"]
        assert resp.json["order"]["total_amount_cents"] == 900
        assert balance_of(customer.id) == 9100

        status = client.put(f"/api/admin/orders/{order_id}/status", headers=headers_for(admin),
                            json={"status": "preparing"})
        assert status.status_code == 200
        assert status.json["order"]["status"] == "PREPARING"

        active = client.get("/api/orders/active", headers=headers)
        assert [o["id"] for o in active.json["orders"]] == [order_id]

    def test_order_validation(self, client, customer, make_menu_item):
        item = make_menu_item()
        headers = headers_for(customer)

        assert client.post("/api/orders", headers=headers, json={"items": []}).status_code == 400
        resp = client.post("/api/orders", headers=headers,
                           json={"items": [{"menu_item_id": item.id, "quantity": 0}]})
        assert resp.status_code == 400
        resp = client.post("/api/orders", headers=headers,
                           json={"items": [{"menu_item_id": item.id, "quantity": 1.5}]})
        assert resp.status_code == 400

    def test_insufficient_funds(self, client, make_user, make_menu_item):
        user = make_user(balance_cents=400)
        item = make_menu_item(price_cents=500)

        resp = client.post("/api/orders", headers=headers_for(user),
                           json={"items": [{"menu_item_id": item.id, "quantity": 1}]})

        assert resp.status_code == 400
        assert resp.json["code"] == "INSUFFICIENT_FUNDS"
        assert balance_of(user.id) == 400

    def test_menu_filters(self, client, make_menu_item):
        make_menu_item(category="Drinks")
        make_menu_item(category="Snacks")
        make_menu_item(category="Snacks", is_available=False)

        assert client.get("/api/menu?category=Snacks").json["count"] == 2
        assert client.get("/api/menu?category=Snacks&is_available=true").json["count"] == 1
        assert client.get("/api/menu/categories").json["categories"] == ["Drinks", "Snacks"]


# =============================================================================
# ADMIN
# =============================================================================


class TestAdminApi:

    def test_room_lifecycle(self, client, admin, customer):
        headers = headers_for(admin)
        created = client.post("/api/admin/rooms", headers=headers, json={
            "room_number": "R200",
            "name": "Sim Rig",
            "price_per_minute_cents": 150,
            "console_type": "PC",
            "amenities": ["Wheel", "Pedals"],
        })
        room_id = created.json["room"]["id"]

        dup = client.post("/api/admin/rooms", headers=headers, json={
            "room_number": "R200", "name": "Dup", "price_per_minute_cents": 10, "console_type": "PC",
        })
        assert dup.status_code == 409

        assert client.put(f"/api/admin/rooms/{room_id}", headers=headers,
                          json={"status": "OCCUPIED"}).status_code == 409
        assert client.put(f"/api/admin/rooms/{room_id}", headers=headers,
                          json={"price_per_minute_cents": 0}).status_code == 400

        client.post("/api/sessions/start", headers=headers_for(customer), json={"room_id": room_id})
        blocked = client.delete(f"/api/admin/rooms/{room_id}", headers=headers)
        assert blocked.status_code == 409

    def test_room_rejects_unknown_fields(self, client, admin):
        resp = client.post("/api/admin/rooms", headers=headers_for(admin), json={
            "room_number": "R201", "name": "X", "price_per_minute_cents": 10,
            "console_type": "PC", "qr_code": "sneaky",
        })
        assert resp.status_code == 400

    def test_wallet_audit(self, client, admin, customer):
        wallet_id = client.get("/api/wallet", headers=headers_for(customer)).json["wallet"]["id"]
        resp = client.get(f"/api/admin/wallets/{wallet_id}/audit", headers=headers_for(admin))
        assert resp.status_code == 200
        assert resp.json["audit"]["is_consistent"] is True

    def test_users_listing(self, client, admin, customer):
        resp = client.get("/api/admin/users?search=player", headers=headers_for(admin))
        assert resp.status_code == 200
        assert any(u["wallet_balance_cents"] == 10000 for u in resp.json["users"])
