# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/neocafe/routes/auth.py
"""
Authentication API routes

- Self-registration for customers (wallet created alongside the account)
- Bearer token login / logout
- Current user profile with wallet balance
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import CafeError
from ..services import auth_service, ledger_service, token_service
from ..decorators import require_auth
from ..validation import parse_login, parse_register


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Register a customer account.

    Request body:
    {
        "email": "player@example.com",
        "password": "secret123",
        "first_name": "Sam",
        "last_name": "Lee",
        "phone": "+15550100"  (optional)
    }
    """
    try:
        data = parse_register(request.get_json(silent=True))
        user = auth_service.create_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
        )
        _record, token = token_service.issue_token(user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "message": "Registration successful"
        }), 201

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and issue a bearer token.

    Token must be sent as `Authorization: Bearer <token>` on protected routes.
    """
    try:
        email, password = parse_login(request.get_json(silent=True))
        user, token = auth_service.login(email, password)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "message": "Login successful"
        }), 200

    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        token_service.revoke_token(g.auth_token)
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user plus wallet balance."""
    try:
        user = g.current_user
        wallet = ledger_service.get_wallet_for_user(user.id)
        return jsonify({
            "user": user.to_dict(),
            "wallet": wallet.to_dict(),
        }), 200
    except CafeError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load current user")
        return jsonify({"error": "Internal server error"}), 500
