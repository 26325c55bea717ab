"""
Wallet deposit and webhook tests.

Verifies:
- Deposits are credited only after the gateway confirms
- A gateway failure credits nothing
- One PaymentIntent credits the wallet at most once, however many times
  add-funds or the webhook report it
"""

import pytest

from neocafe.errors import GatewayFailureError, InvalidSignatureError, ValidationError
from neocafe.extensions import db
from neocafe.models import Payment, Transaction
from neocafe.models.wallet import PAYMENT_FAILED, PAYMENT_PENDING, PAYMENT_SUCCEEDED, TX_DEPOSIT
from neocafe.services import wallet_service

from conftest import VALID_SIGNATURE, balance_of, make_intent_event


pytestmark = pytest.mark.wallet


class TestDeposit:

    def test_successful_charge_credits(self, make_user, gateway):
        user = make_user()

        result = wallet_service.deposit(user.id, 2000, "pm_card_visa", gateway=gateway)

        assert result.wallet.balance_cents == 2000
        assert result.transaction.type == TX_DEPOSIT
        assert result.transaction.amount_cents == 2000
        assert result.transaction.description == wallet_service.DEPOSIT_DESCRIPTION
        assert result.already_processed is False

        amount, method, metadata = gateway.charges[0]
        assert (amount, method) == (2000, "pm_card_visa")
        assert metadata == {"userId": str(user.id), "email": user.email, "type": "wallet_deposit"}

        payment = db.session.query(Payment).one()
        assert payment.status == PAYMENT_SUCCEEDED
        assert payment.stripe_payment_id == result.transaction.external_ref

    def test_gateway_error_credits_nothing(self, make_user, gateway):
        user = make_user()
        gateway.fail_with = "Your card was declined."

        with pytest.raises(GatewayFailureError) as exc_info:
            wallet_service.deposit(user.id, 2000, "pm_card_chargeDeclined", gateway=gateway)

        assert exc_info.value.retryable is True
        assert balance_of(user.id) == 0
        assert db.session.query(Transaction).count() == 0

    def test_unsuccessful_intent_recorded_as_failed(self, make_user, gateway):
        user = make_user()
        gateway.next_status = "requires_action"

        with pytest.raises(GatewayFailureError):
            wallet_service.deposit(user.id, 2000, "pm_card_threeDSecure", gateway=gateway)

        assert balance_of(user.id) == 0
        assert db.session.query(Payment).one().status == PAYMENT_FAILED

    @pytest.mark.parametrize("amount", [499, 100001, 0])
    def test_amount_bounds(self, make_user, gateway, amount):
        user = make_user()
        with pytest.raises(ValidationError):
            wallet_service.deposit(user.id, amount, "pm_card_visa", gateway=gateway)
        assert gateway.charges == []

    def test_payment_method_required(self, make_user, gateway):
        with pytest.raises(ValidationError):
            wallet_service.deposit(make_user().id, 2000, "", gateway=gateway)


class TestPaymentIntent:

    def test_pending_payment_recorded(self, make_user, gateway):
        user = make_user()

        payment = wallet_service.create_payment_intent(user.id, 1500, gateway=gateway)

        assert payment.client_secret.endswith("_secret")
        record = db.session.query(Payment).filter_by(stripe_payment_id=payment.id).one()
        assert record.status == PAYMENT_PENDING
        assert balance_of(user.id) == 0


class TestWebhook:

    def test_succeeded_event_credits_once(self, make_user, gateway):
        user = make_user()
        intent = wallet_service.create_payment_intent(user.id, 1500, gateway=gateway)
        body = make_intent_event("payment_intent.succeeded", intent.id, 1500, user.id)

        first = wallet_service.handle_webhook(body, VALID_SIGNATURE, gateway=gateway)
        second = wallet_service.handle_webhook(body, VALID_SIGNATURE, gateway=gateway)

        assert first["credited"] is True
        assert second["credited"] is False
        assert balance_of(user.id) == 1500
        assert db.session.query(Transaction).filter_by(external_ref=intent.id).count() == 1
        assert db.session.query(Payment).filter_by(stripe_payment_id=intent.id).one().status == PAYMENT_SUCCEEDED

    def test_webhook_after_add_funds_does_not_double_credit(self, make_user, gateway):
        user = make_user()
        result = wallet_service.deposit(user.id, 3000, "pm_card_visa", gateway=gateway)
        body = make_intent_event("payment_intent.succeeded", result.payment.id, 3000, user.id)

        outcome = wallet_service.handle_webhook(body, VALID_SIGNATURE, gateway=gateway)

        assert outcome["credited"] is False
        assert balance_of(user.id) == 3000

    def test_bad_signature_rejected(self, make_user, gateway):
        user = make_user()
        body = make_intent_event("payment_intent.succeeded", "pi_forged", 5000, user.id)

        with pytest.raises(InvalidSignatureError):
            wallet_service.handle_webhook(body, "t=1,v1=forged", gateway=gateway)

        assert balance_of(user.id) == 0

    def test_non_deposit_intent_ignored(self, make_user, gateway):
        user = make_user()
        body = make_intent_event("payment_intent.succeeded", "pi_other", 5000, user.id, deposit=False)

        outcome = wallet_service.handle_webhook(body, VALID_SIGNATURE, gateway=gateway)

        assert outcome["credited"] is False
        assert balance_of(user.id) == 0

    def test_failed_event_marks_pending_payment(self, make_user, gateway):
        user = make_user()
        intent = wallet_service.create_payment_intent(user.id, 1500, gateway=gateway)
        body = make_intent_event("payment_intent.payment_failed", intent.id, 1500, user.id)

        wallet_service.handle_webhook(body, VALID_SIGNATURE, gateway=gateway)

        assert db.session.query(Payment).filter_by(stripe_payment_id=intent.id).one().status == PAYMENT_FAILED
        assert balance_of(user.id) == 0

    def test_unknown_event_acknowledged(self, make_user, gateway):
        body = make_intent_event("charge.refunded", "pi_x", 100, make_user().id)
        outcome = wallet_service.handle_webhook(body, VALID_SIGNATURE, gateway=gateway)
        assert outcome == {"received": True, "type": "charge.refunded", "credited": False}
