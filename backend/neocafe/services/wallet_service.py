# Overview: Wallet deposits through the payment gateway, plus webhook reconciliation.

"""
Wallet Deposits

FLOW (server-confirmed, add-funds):
1. Validate amount bounds.
2. Charge through the gateway. No DB transaction is open during the call.
3. Only if the gateway reports success: ledger credit + Payment row in one
   DB transaction, keyed by the PaymentIntent id.

FLOW (client-confirmed, create-payment-intent + webhook):
1. Create an unconfirmed intent and a pending Payment row.
2. payment_intent.succeeded arrives (possibly more than once) and credits
   the wallet once.

IDEMPOTENCY: the PaymentIntent id is Transaction.external_ref (unique).
The add-funds response and the webhook can race for the same intent; the
loser gets AlreadyProcessed and no second credit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AlreadyProcessedError, GatewayFailureError, NotFoundError, ValidationError
from ..models import Payment, Transaction, User, Wallet
from ..models.wallet import (
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_SUCCEEDED,
    PAYMENT_TYPE_WALLET_DEPOSIT,
    TX_DEPOSIT,
)
from . import ledger_service
from .concurrency import run_in_transaction
from .payment_gateway import GatewayPayment, PaymentGateway

logger = logging.getLogger(__name__)

DEPOSIT_DESCRIPTION = "Deposit via Stripe"

EVENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_INTENT_FAILED = "payment_intent.payment_failed"


@dataclass
class DepositResult:
    wallet: Wallet
    transaction: Transaction
    payment: GatewayPayment | None = None
    already_processed: bool = False

    def to_dict(self) -> dict:
        data = {
            "wallet": self.wallet.to_dict(),
            "transaction": self.transaction.to_dict(),
            "already_processed": self.already_processed,
        }
        if self.payment is not None:
            data["payment_intent"] = {
                "id": self.payment.id,
                "amount_cents": self.payment.amount_cents,
                "status": self.payment.status,
            }
        return data


def validate_deposit_amount(amount_cents) -> None:
    min_cents = current_app.config["MIN_DEPOSIT_CENTS"]
    max_cents = current_app.config["MAX_DEPOSIT_CENTS"]
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise ValidationError("amount must be an integer number of cents")
    if amount_cents < min_cents:
        raise ValidationError(f"Minimum deposit is {min_cents} cents")
    if amount_cents > max_cents:
        raise ValidationError(f"Maximum deposit is {max_cents} cents")


def _deposit_metadata(user: User) -> dict:
    return {"userId": str(user.id), "email": user.email, "type": PAYMENT_TYPE_WALLET_DEPOSIT}


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _upsert_payment(user_id: int, amount_cents: int, intent_id: str, status: str) -> Payment:
    payment = db.session.query(Payment).filter_by(stripe_payment_id=intent_id).first()
    if payment is None:
        payment = Payment(
            user_id=user_id,
            amount_cents=amount_cents,
            stripe_payment_id=intent_id,
            type=PAYMENT_TYPE_WALLET_DEPOSIT,
        )
        db.session.add(payment)
    payment.status = status
    return payment


def _settle_deposit(user_id: int, amount_cents: int, intent_id: str) -> tuple[Transaction, bool]:
    """
    Credit a gateway-confirmed deposit exactly once.

    Returns (transaction, already_processed).
    """
    def _op() -> Transaction:
        wallet = ledger_service.get_wallet_for_user(user_id)
        tx = ledger_service.credit(
            wallet.id,
            amount_cents,
            TX_DEPOSIT,
            DEPOSIT_DESCRIPTION,
            external_ref=intent_id,
            commit=False,
        )
        _upsert_payment(user_id, amount_cents, intent_id, PAYMENT_SUCCEEDED)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            existing = ledger_service.find_by_external_ref(intent_id)
            if existing:
                raise AlreadyProcessedError(f"Payment {intent_id} already processed", transaction=existing)
            raise
        return tx

    try:
        return run_in_transaction(_op), False
    except AlreadyProcessedError as exc:
        logger.info("Deposit %s already credited; skipping", intent_id)
        return exc.transaction, True


# =============================================================================
# DEPOSITS
# =============================================================================

def deposit(user_id: int, amount_cents: int, payment_method_id: str, *, gateway: PaymentGateway) -> DepositResult:
    """
    Charge the gateway, then credit the wallet.

    Raises:
        ValidationError: amount out of bounds or missing payment method
        GatewayFailureError: gateway error or unsuccessful charge (nothing credited)
        NotFoundError: user or wallet missing
    """
    validate_deposit_amount(amount_cents)
    if not payment_method_id:
        raise ValidationError("Payment method is required")

    user = _get_user(user_id)
    ledger_service.get_wallet_for_user(user_id)
    # Release the read transaction before the network round trip
    db.session.commit()

    payment = gateway.charge(amount_cents, payment_method_id, _deposit_metadata(user))

    if not payment.succeeded:
        def _record_failed():
            _upsert_payment(user_id, amount_cents, payment.id, PAYMENT_FAILED)
            db.session.commit()
        run_in_transaction(_record_failed)
        raise GatewayFailureError("Payment failed")

    tx, already = _settle_deposit(user_id, amount_cents, payment.id)
    wallet = db.session.query(Wallet).filter_by(user_id=user_id).populate_existing().one()
    return DepositResult(wallet=wallet, transaction=tx, payment=payment, already_processed=already)


def create_payment_intent(user_id: int, amount_cents: int, *, gateway: PaymentGateway) -> GatewayPayment:
    """Unconfirmed intent for client-side confirmation; credited by the webhook."""
    validate_deposit_amount(amount_cents)
    user = _get_user(user_id)
    db.session.commit()

    payment = gateway.create_intent(amount_cents, _deposit_metadata(user))

    def _record_pending():
        _upsert_payment(user_id, amount_cents, payment.id, PAYMENT_PENDING)
        db.session.commit()
    run_in_transaction(_record_pending)
    return payment


# =============================================================================
# WEBHOOK
# =============================================================================

def _mark_payment_failed(intent_id: str) -> bool:
    def _op() -> bool:
        payment = db.session.query(Payment).filter_by(stripe_payment_id=intent_id).first()
        if payment is None or payment.status == PAYMENT_SUCCEEDED:
            return False
        payment.status = PAYMENT_FAILED
        db.session.commit()
        return True
    return run_in_transaction(_op)


def _metadata_user_id(metadata: dict) -> int:
    try:
        return int(metadata["userId"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("Deposit event is missing a valid userId")


def handle_webhook(payload: bytes, signature: str, *, gateway: PaymentGateway) -> dict:
    """
    Process a signature-verified gateway event.

    At-least-once delivery maps to at-most-once ledger effect. Unknown
    event types are logged and acknowledged.

    Raises:
        InvalidSignatureError: signature or payload rejected
    """
    event = gateway.construct_event(payload, signature)
    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")

    result = {"received": True, "type": event_type, "credited": False}

    if event_type == EVENT_INTENT_SUCCEEDED:
        metadata = intent.get("metadata") or {}
        if metadata.get("type") != PAYMENT_TYPE_WALLET_DEPOSIT:
            logger.info("Ignoring non-deposit PaymentIntent %s", intent_id)
            return result
        if not intent_id:
            raise ValidationError("Deposit event is missing the PaymentIntent id")

        user_id = _metadata_user_id(metadata)
        amount_cents = intent.get("amount_received") or intent.get("amount")
        _tx, already = _settle_deposit(user_id, amount_cents, intent_id)
        result["credited"] = not already

    elif event_type == EVENT_INTENT_FAILED:
        if intent_id:
            _mark_payment_failed(intent_id)

    else:
        logger.info("Unhandled event type %s", event_type)

    return result
