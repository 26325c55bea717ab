"""
Authorization tests for the NeoCafe API.

Verifies:
- Unauthenticated requests return 401
- Customers are denied admin operations (403)
- Admins can perform privileged operations
- Revoked and deactivated accounts lose access
"""

import pytest

from conftest import auth_headers, headers_for


@pytest.fixture
def customer_headers(customer):
    return headers_for(customer)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("POST", "/api/rooms/verify-qr"),
            ("POST", "/api/sessions/start"),
            ("POST", "/api/sessions/1/end"),
            ("GET", "/api/sessions/active"),
            ("GET", "/api/sessions/history"),
            ("GET", "/api/wallet"),
            ("POST", "/api/wallet/add-funds"),
            ("GET", "/api/wallet/transactions"),
            ("POST", "/api/wallet/create-payment-intent"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/active"),
            ("GET", "/api/admin/stats"),
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/rooms"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    @pytest.mark.parametrize("path", ["/api/rooms", "/api/menu", "/api/menu/categories", "/health"])
    def test_public_endpoints(self, client, db_session, path):
        assert client.get(path).status_code == 200


# =============================================================================
# CUSTOMER DENIED ADMIN OPERATIONS: 403
# =============================================================================


class TestCustomerDeniedAdmin:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/stats"),
            ("GET", "/api/admin/activity"),
            ("GET", "/api/admin/users"),
            ("GET", "/api/admin/orders"),
            ("GET", "/api/admin/sessions"),
            ("POST", "/api/admin/rooms"),
            ("PUT", "/api/admin/rooms/1"),
            ("DELETE", "/api/admin/rooms/1"),
            ("POST", "/api/admin/menu"),
            ("PUT", "/api/admin/orders/1/status"),
            ("POST", "/api/admin/users/1/deactivate"),
            ("GET", "/api/admin/wallets/1/audit"),
        ],
    )
    def test_forbidden(self, client, customer_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=customer_headers, json={})
        assert resp.status_code == 403
        assert resp.json["error"] == "Admin access required"


# =============================================================================
# ADMIN ALLOWED
# =============================================================================


class TestAdminAllowed:

    def test_stats(self, client, admin_headers):
        resp = client.get("/api/admin/stats", headers=admin_headers)
        assert resp.status_code == 200
        assert set(resp.json["stats"]) >= {
            "total_users", "total_rooms", "active_sessions",
            "total_revenue_cents", "today_revenue_cents", "pending_orders",
        }

    def test_create_room(self, client, admin_headers):
        resp = client.post("/api/admin/rooms", headers=admin_headers, json={
            "room_number": "R100",
            "name": "Arcade",
            "price_per_minute_cents": 90,
            "console_type": "Retro",
        })
        assert resp.status_code == 201
        assert resp.json["room"]["status"] == "AVAILABLE"
        assert resp.json["room"]["qr_code"]


# =============================================================================
# TOKEN LIFECYCLE
# =============================================================================


class TestTokenLifecycle:

    def test_logout_revokes_token(self, client, customer_headers):
        assert client.post("/api/auth/logout", headers=customer_headers).status_code == 200
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401

    def test_deactivation_revokes_access(self, client, customer, customer_headers, admin_headers):
        resp = client.post(f"/api/admin/users/{customer.id}/deactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["is_active"] is False

        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401
        login = client.post("/api/auth/login", json={"email": customer.email, "password": "secret123"})
        assert login.status_code == 401
        assert login.json["error"] == "Account is deactivated"
