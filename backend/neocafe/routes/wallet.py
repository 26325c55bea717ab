# Overview: Flask API routes for the wallet; balance, deposits, history and the gateway webhook.

# backend/neocafe/routes/wallet.py
"""
Wallet API Routes

SECURITY:
- Every route except /webhook requires a bearer token
- /webhook is public but every delivery is signature-verified
- Amounts are integer cents in and out
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CafeError, ValidationError
from ..models.wallet import VALID_TRANSACTION_TYPES
from ..services import ledger_service, wallet_service
from ..services.payment_gateway import get_gateway
from ..decorators import require_auth
from ..validation import parse_add_funds, parse_pagination, parse_payment_intent


wallet_bp = Blueprint("wallet", __name__, url_prefix="/api/wallet")

RECENT_TRANSACTIONS = 10


@wallet_bp.get("/")
@wallet_bp.get("")
@require_auth
def get_wallet_route():
    """Wallet plus the 10 most recent transactions."""
    try:
        wallet = ledger_service.get_wallet_for_user(g.current_user.id)
        rows, _total = ledger_service.get_transactions(wallet.id, limit=RECENT_TRANSACTIONS)
        data = wallet.to_dict()
        data["transactions"] = [tx.to_dict() for tx in rows]
        return jsonify({"wallet": data}), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code


@wallet_bp.post("/add-funds")
@require_auth
def add_funds_route():
    """
    Deposit via a server-confirmed card charge.

    Request body:
    {
        "amount_cents": 2000,
        "payment_method_id": "pm_card_visa"
    }

    Gateway failures return 502 with "retryable": true; nothing is credited.
    """
    try:
        data = parse_add_funds(request.get_json(silent=True))
        result = wallet_service.deposit(
            g.current_user.id,
            data.amount_cents,
            data.payment_method_id,
            gateway=get_gateway(),
        )
        body = result.to_dict()
        body["message"] = "Funds added successfully"
        return jsonify(body), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add funds")
        return jsonify({"error": "Internal server error"}), 500


@wallet_bp.get("/transactions")
@require_auth
def transactions_route():
    """Paged history. Query: ?limit=20&offset=0&type=DEPOSIT"""
    tx_type = request.args.get("type")
    if tx_type and tx_type not in VALID_TRANSACTION_TYPES:
        return jsonify({"error": f"Invalid type: {tx_type}", "code": ValidationError.code}), 400

    try:
        wallet = ledger_service.get_wallet_for_user(g.current_user.id)
        limit, offset = parse_pagination(request.args)
        rows, total = ledger_service.get_transactions(wallet.id, limit=limit, offset=offset, tx_type=tx_type)
        return jsonify({
            "count": len(rows),
            "total": total,
            "transactions": [tx.to_dict() for tx in rows],
        }), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code


@wallet_bp.post("/create-payment-intent")
@require_auth
def create_payment_intent_route():
    """Client-confirmed deposit; the webhook credits the wallet."""
    try:
        amount_cents = parse_payment_intent(request.get_json(silent=True))
        payment = wallet_service.create_payment_intent(
            g.current_user.id, amount_cents, gateway=get_gateway()
        )
        return jsonify({
            "client_secret": payment.client_secret,
            "payment_intent_id": payment.id,
        }), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create payment intent")
        return jsonify({"error": "Internal server error"}), 500


@wallet_bp.post("/webhook")
def webhook_route():
    """Gateway event receiver. Raw body + Stripe-Signature header."""
    try:
        result = wallet_service.handle_webhook(
            request.get_data(),
            request.headers.get("Stripe-Signature", ""),
            gateway=get_gateway(),
        )
        return jsonify(result), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process webhook")
        return jsonify({"error": "Internal server error"}), 500
