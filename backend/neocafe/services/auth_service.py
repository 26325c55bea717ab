# Overview: Service-layer operations for accounts; registration, password checks and deactivation.

"""
Account Management

WHY: Every session, order and wallet movement is attributable to a user.
Uses bcrypt for password hashing.

DESIGN:
- Registration creates the user and an empty wallet in one DB transaction.
- Emails are stored lowercased; uniqueness is global.
- Users are never deleted, only deactivated (tokens revoked at the same time).
"""

from __future__ import annotations

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..models import User
from ..models.auth import ROLE_CUSTOMER, VALID_ROLES
from neocafe.time_utils import utcnow
from . import ledger_service, token_service
from .concurrency import run_in_transaction


def hash_password(password: str) -> str:
    """Hash password using bcrypt (BCRYPT_ROUNDS, 12 in production)."""
    salt = bcrypt.gensalt(rounds=current_app.config["BCRYPT_ROUNDS"])
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_user(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str | None = None,
    role: str = ROLE_CUSTOMER,
) -> User:
    """
    Create a user and their wallet.

    Raises:
        ConflictError: email already registered
        ValidationError: unknown role
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {role}. Must be one of {list(VALID_ROLES)}")
    email = email.strip().lower()
    password_hash = hash_password(password)

    def _op() -> User:
        if db.session.query(User).filter_by(email=email).first():
            raise ConflictError("User already exists with this email")

        user = User(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()
        ledger_service.create_wallet(user.id)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("User already exists with this email")
        return user

    return run_in_transaction(_op)


def authenticate(email: str, password: str) -> User:
    """
    Check credentials and stamp last_login_at.

    Raises:
        AuthenticationError: unknown email, wrong password or inactive account
    """
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def login(email: str, password: str) -> tuple[User, str]:
    """Authenticate and issue a bearer token. Returns (user, plaintext_token)."""
    user = authenticate(email, password)
    _record, token = token_service.issue_token(user.id)
    return user, token


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def set_user_active(user_id: int, is_active: bool) -> User:
    """Soft (de)activation; deactivation revokes all live tokens."""
    def _op() -> User:
        user = get_user(user_id)
        user.is_active = is_active
        if not is_active:
            token_service.revoke_all_user_tokens(user.id)
        db.session.commit()
        return user

    return run_in_transaction(_op)
