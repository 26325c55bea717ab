# Overview: Stripe adapter used for wallet deposits; maps SDK errors to the cafe error taxonomy.

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import stripe
from flask import current_app

from ..errors import GatewayFailureError, InvalidSignatureError

logger = logging.getLogger(__name__)

EXTENSION_KEY = "neocafe.payment_gateway"

INTENT_SUCCEEDED = "succeeded"


@dataclass
class GatewayPayment:
    """What the rest of the app needs from a PaymentIntent."""
    id: str
    status: str
    amount_cents: int
    client_secret: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == INTENT_SUCCEEDED


class PaymentGateway(Protocol):
    def charge(self, amount_cents: int, payment_method_id: str, metadata: dict) -> GatewayPayment: ...

    def create_intent(self, amount_cents: int, metadata: dict) -> GatewayPayment: ...

    def construct_event(self, payload: bytes, signature: str) -> dict: ...


class StripeGateway:
    """
    Thin wrapper over the Stripe SDK.

    Every network call happens outside any DB transaction; callers record
    ledger effects only after a confirmed result comes back.
    """

    def __init__(self, secret_key: str, webhook_secret: str = "", currency: str = "usd"):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()

    def _require_configured(self) -> None:
        if not self.secret_key:
            raise GatewayFailureError("Payment gateway is not configured")

    @staticmethod
    def _to_payment(intent) -> GatewayPayment:
        return GatewayPayment(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            client_secret=getattr(intent, "client_secret", None),
        )

    def charge(self, amount_cents: int, payment_method_id: str, metadata: dict) -> GatewayPayment:
        """Create and confirm a PaymentIntent in one round trip."""
        self._require_configured()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount_cents,
                currency=self.currency,
                payment_method=payment_method_id,
                confirm=True,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
                metadata=metadata,
            )
        except stripe.CardError as exc:
            logger.warning("Stripe card error: %s", exc)
            raise GatewayFailureError(exc.user_message or "Card was declined")
        except stripe.StripeError as exc:
            logger.error("Stripe charge error: %s", exc)
            raise GatewayFailureError("Payment processing failed")

        logger.info("Stripe PaymentIntent %s status=%s", intent.id, intent.status)
        return self._to_payment(intent)

    def create_intent(self, amount_cents: int, metadata: dict) -> GatewayPayment:
        """Create an unconfirmed PaymentIntent for client-side confirmation."""
        self._require_configured()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount_cents,
                currency=self.currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe create_intent error: %s", exc)
            raise GatewayFailureError("Failed to create payment intent")
        return self._to_payment(intent)

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook delivery and return the event as a plain dict.

        Raises:
            InvalidSignatureError: bad payload or signature
        """
        if not self.webhook_secret:
            raise InvalidSignatureError("Webhook secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as exc:
            logger.warning("Invalid webhook payload: %s", exc)
            raise InvalidSignatureError("Invalid payload")
        except stripe.SignatureVerificationError as exc:
            logger.warning("Invalid webhook signature: %s", exc)
            raise InvalidSignatureError(f"Webhook Error: {exc}")
        return json.loads(payload)


def init_app(app, gateway: PaymentGateway | None = None) -> PaymentGateway:
    gateway = gateway or StripeGateway(
        secret_key=app.config["STRIPE_SECRET_KEY"],
        webhook_secret=app.config["STRIPE_WEBHOOK_SECRET"],
        currency=app.config["STRIPE_CURRENCY"],
    )
    app.extensions[EXTENSION_KEY] = gateway
    return gateway


def get_gateway() -> PaymentGateway:
    return current_app.extensions[EXTENSION_KEY]
