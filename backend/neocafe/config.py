# backend/neocafe/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/neocafe.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///neocafe.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Signs room QR tokens (HMAC-SHA256)
    QR_CODE_SECRET = os.environ.get("QR_CODE_SECRET", "default-secret")

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "usd")

    # Comma-separated origins; empty means localhost dev defaults
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "")

    # Wallet / billing rules (cents, minutes)
    MIN_SESSION_RESERVE_MINUTES = _int_env("MIN_SESSION_RESERVE_MINUTES", 30)
    MIN_DEPOSIT_CENTS = _int_env("MIN_DEPOSIT_CENTS", 500)
    MAX_DEPOSIT_CENTS = _int_env("MAX_DEPOSIT_CENTS", 100000)

    AUTH_TOKEN_TTL_HOURS = _int_env("AUTH_TOKEN_TTL_HOURS", 168)

    # bcrypt cost factor; tests lower it
    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 12)
