"""
Pytest fixtures for NeoCafe backend tests.

Provides an in-memory application, a per-test clean database, recording
doubles for the broadcaster and the payment gateway, and small factories
for users, rooms and menu items.
"""

import json
import itertools

import pytest

from neocafe import create_app
from neocafe.errors import GatewayFailureError, InvalidSignatureError
from neocafe.extensions import db
from neocafe.models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from neocafe.models.wallet import TX_DEPOSIT
from neocafe.services import auth_service, ledger_service, menu_service, room_service, token_service
from neocafe.services.payment_gateway import GatewayPayment


VALID_SIGNATURE = "t=1,v1=test-signature"


class RecordingNotifier:
    """Captures broadcast events in order."""

    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [name for name, _payload in self.events]

    def reset(self):
        self.events.clear()


class FakeGateway:
    """
    Stand-in for StripeGateway.

    next_status / fail_with control the next charge; every call is kept in
    `charges` / `intents` for assertions.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.reset()

    def reset(self):
        self.next_status = "succeeded"
        self.fail_with = None
        self.charges = []
        self.intents = []

    def charge(self, amount_cents, payment_method_id, metadata):
        self.charges.append((amount_cents, payment_method_id, metadata))
        if self.fail_with:
            raise GatewayFailureError(self.fail_with)
        return GatewayPayment(
            id=f"pi_test_{next(self._ids)}",
            status=self.next_status,
            amount_cents=amount_cents,
        )

    def create_intent(self, amount_cents, metadata):
        intent_id = f"pi_test_{next(self._ids)}"
        self.intents.append((intent_id, amount_cents, metadata))
        return GatewayPayment(
            id=intent_id,
            status="requires_payment_method",
            amount_cents=amount_cents,
            client_secret=f"{intent_id}_secret",
        )

    def construct_event(self, payload, signature):
        if signature != VALID_SIGNATURE:
            raise InvalidSignatureError("Webhook Error: No signatures found matching the expected signature")
        return json.loads(payload)


def make_intent_event(event_type, intent_id, amount_cents, user_id, deposit=True):
    """Build a raw webhook body the way the gateway would send it."""
    metadata = {"userId": str(user_id)}
    if deposit:
        metadata["type"] = "wallet_deposit"
    return json.dumps({
        "id": f"evt_{intent_id}",
        "type": event_type,
        "data": {"object": {
            "id": intent_id,
            "object": "payment_intent",
            "amount": amount_cents,
            "amount_received": amount_cents,
            "metadata": metadata,
        }},
    }).encode("utf-8")


@pytest.fixture(scope='session')
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope='session')
def gateway():
    return FakeGateway()


@pytest.fixture(scope='session')
def app(notifier, gateway):
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'BCRYPT_ROUNDS': 4,
            'QR_CODE_SECRET': 'test-qr-secret',
            'MIN_SESSION_RESERVE_MINUTES': 30,
            'MIN_DEPOSIT_CENTS': 500,
            'MAX_DEPOSIT_CENTS': 100000,
        },
        notifier=notifier,
        gateway=gateway,
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, notifier, gateway):
    """Fresh database (and fresh doubles) for each test."""
    with app.app_context():
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        notifier.reset()
        gateway.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_user(db_session):
    counter = itertools.count(1)

    def _make(balance_cents=0, role=ROLE_CUSTOMER, email=None, password="secret123"):
        n = next(counter)
        user = auth_service.create_user(
            email=email or f"player{n}@test.com",
            password=password,
            first_name="Player",
            last_name=str(n),
            role=role,
        )
        if balance_cents:
            wallet = ledger_service.get_wallet_for_user(user.id)
            ledger_service.credit(wallet.id, balance_cents, TX_DEPOSIT, "Opening balance")
        return user

    return _make


@pytest.fixture(scope='function')
def make_room(db_session):
    counter = itertools.count(1)

    def _make(price_per_minute_cents=100, **fields):
        n = next(counter)
        data = {
            "room_number": f"T{n:03d}",
            "name": f"Test Room {n}",
            "price_per_minute_cents": price_per_minute_cents,
            "console_type": "PS5",
        }
        data.update(fields)
        return room_service.create_room(data)

    return _make


@pytest.fixture(scope='function')
def make_menu_item(db_session):
    counter = itertools.count(1)

    def _make(price_cents=500, category="Drinks", is_available=True, name=None):
        n = next(counter)
        return menu_service.create_menu_item({
            "name": name or f"Item {n}",
            "price_cents": price_cents,
            "category": category,
            "is_available": is_available,
        })

    return _make


@pytest.fixture(scope='function')
def customer(make_user):
    return make_user(balance_cents=10000)


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user(role=ROLE_ADMIN, email="admin@test.com")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    """Issue a token for user and return Authorization headers."""
    _record, token = token_service.issue_token(user.id)
    return auth_headers(token)


def balance_of(user_id: int) -> int:
    db.session.expire_all()
    return ledger_service.get_wallet_for_user(user_id).balance_cents
