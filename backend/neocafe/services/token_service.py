# Overview: Service-layer operations for bearer tokens; issue, validate and revoke.

"""
Bearer Token Management

WHY: The API is stateless for clients; every request carries an opaque
token that maps back to one user.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute expiry (AUTH_TOKEN_TTL_HOURS)
- Revocable on logout; deactivating a user revokes all their tokens
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import AuthToken, User
from neocafe.time_utils import as_naive_utc, utcnow


def generate_token() -> str:
    """
    64-character hex string (32 bytes of entropy).

    This is the plaintext token sent to the client; it is never stored.
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 for storage.

    WHY SHA-256 not bcrypt: tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token(user_id: int) -> tuple[AuthToken, str]:
    """
    Create a token for user.

    Returns (token_record, plaintext_token).
    """
    plaintext = generate_token()
    now = utcnow()
    record = AuthToken(
        user_id=user_id,
        token_hash=hash_token(plaintext),
        created_at=now,
        expires_at=now + timedelta(hours=current_app.config["AUTH_TOKEN_TTL_HOURS"]),
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, plaintext


def validate_token(token: str) -> User | None:
    """
    Resolve a plaintext token to its active user.

    Returns None if the token is unknown, revoked or expired, or if the
    user has been deactivated.
    """
    if not token:
        return None

    record = db.session.query(AuthToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record:
        return None

    if as_naive_utc(record.expires_at) < utcnow():
        return None

    user = record.user
    if not user or not user.is_active:
        return None
    return user


def revoke_token(token: str) -> bool:
    """Revoke one token (logout). Returns False if it was unknown or already revoked."""
    record = db.session.query(AuthToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record:
        return False
    record.is_revoked = True
    record.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_all_user_tokens(user_id: int) -> int:
    """
    Revoke every live token for a user (caller commits).

    Returns number of tokens revoked.
    """
    now = utcnow()
    count = db.session.query(AuthToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).update({"is_revoked": True, "revoked_at": now})
    return count
