from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from neocafe.errors import ValidationError
from neocafe.time_utils import parse_iso_datetime
from neocafe.models.orders import VALID_ORDER_STATUSES
from neocafe.models.rooms import VALID_ROOM_STATUSES


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Sanity cap on a single order line
MAX_LINE_QUANTITY = 100

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


ROOM_POLICY = ModelValidationPolicy(
    writable_fields={
        "room_number", "name", "description", "status", "price_per_minute_cents",
        "console_type", "capacity", "image_url", "amenities",
    },
    required_on_create={"room_number", "name", "price_per_minute_cents", "console_type"},
)

MENU_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "price_cents", "category", "image_url",
        "is_available", "preparation_time_minutes",
    },
    required_on_create={"name", "price_cents", "category"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(name: str, value: Any) -> int:
    """Strict integer coercion: rejects floats, bools, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # JSON columns here are always lists of strings (room amenities)
    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{col.key} must be a list of strings")
        return [v.strip() for v in value if v.strip()]

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        return value.strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(field_name: str, patch: dict) -> None:
    if field_name in patch:
        price = patch[field_name]
        if price < 1:
            raise ValidationError(f"{field_name} must be at least 1 cent")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{field_name} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_room(patch: dict) -> None:
    _check_price("price_per_minute_cents", patch)
    if "capacity" in patch and patch["capacity"] < 1:
        raise ValidationError("capacity must be at least 1")
    if "status" in patch and patch["status"] not in VALID_ROOM_STATUSES:
        raise ValidationError(f"Invalid status: {patch['status']}. Must be one of {list(VALID_ROOM_STATUSES)}")


def enforce_rules_menu_item(patch: dict) -> None:
    _check_price("price_cents", patch)
    prep = patch.get("preparation_time_minutes")
    if prep is not None and prep < 1:
        raise ValidationError("preparation_time_minutes must be at least 1")


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

def _require_dict(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    return value or None


def _required_str(payload: dict, key: str) -> str:
    value = _optional_str(payload, key)
    if not value:
        raise ValidationError(f"{key} is required")
    return value


@dataclass(frozen=True)
class OrderLine:
    menu_item_id: int
    quantity: int

    def to_dict(self) -> dict:
        return {"menu_item_id": self.menu_item_id, "quantity": self.quantity}


@dataclass(frozen=True)
class CreateOrderRequest:
    items: tuple[OrderLine, ...]
    room_id: int | None = None
    notes: str | None = None


def parse_create_order(payload) -> CreateOrderRequest:
    payload = _require_dict(payload)
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Order must have at least one item")

    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        if "menu_item_id" not in raw:
            raise ValidationError("menu_item_id is required for each item")
        quantity = coerce_int("quantity", raw.get("quantity", 1))
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")
        lines.append(OrderLine(menu_item_id=coerce_int("menu_item_id", raw["menu_item_id"]), quantity=quantity))

    room_id = payload.get("room_id")
    return CreateOrderRequest(
        items=tuple(lines),
        room_id=coerce_int("room_id", room_id) if room_id is not None else None,
        notes=_optional_str(payload, "notes"),
    )


def parse_order_status(payload) -> str:
    payload = _require_dict(payload)
    status = _required_str(payload, "status").upper()
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {list(VALID_ORDER_STATUSES)}")
    return status


@dataclass(frozen=True)
class StartSessionRequest:
    room_id: int | None = None
    qr_code: str | None = None


def parse_start_session(payload) -> StartSessionRequest:
    payload = _require_dict(payload)
    qr_code = _optional_str(payload, "qr_code")
    room_id = payload.get("room_id")
    if qr_code is None and room_id is None:
        raise ValidationError("room_id or qr_code is required")
    return StartSessionRequest(
        room_id=coerce_int("room_id", room_id) if room_id is not None else None,
        qr_code=qr_code,
    )


@dataclass(frozen=True)
class AddFundsRequest:
    amount_cents: int
    payment_method_id: str


def parse_add_funds(payload) -> AddFundsRequest:
    payload = _require_dict(payload)
    if "amount_cents" not in payload:
        raise ValidationError("amount_cents is required")
    return AddFundsRequest(
        amount_cents=coerce_int("amount_cents", payload["amount_cents"]),
        payment_method_id=_required_str(payload, "payment_method_id"),
    )


def parse_payment_intent(payload) -> int:
    payload = _require_dict(payload)
    if "amount_cents" not in payload:
        raise ValidationError("amount_cents is required")
    return coerce_int("amount_cents", payload["amount_cents"])


@dataclass(frozen=True)
class RegisterRequest:
    email: str
    password: str
    first_name: str
    last_name: str
    phone: str | None = None


def parse_register(payload) -> RegisterRequest:
    payload = _require_dict(payload)
    email = _required_str(payload, "email").lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")

    password = payload.get("password")
    if not isinstance(password, str) or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")

    return RegisterRequest(
        email=email,
        password=password,
        first_name=_required_str(payload, "first_name"),
        last_name=_required_str(payload, "last_name"),
        phone=_optional_str(payload, "phone"),
    )


def parse_login(payload) -> tuple[str, str]:
    payload = _require_dict(payload)
    email = _required_str(payload, "email").lower()
    password = payload.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("password is required")
    return email, password


def parse_pagination(args, *, default_limit: int = 20, max_limit: int = 100) -> tuple[int, int]:
    """limit/offset from query args, clamped to sane bounds."""
    limit = args.get("limit", default_limit, type=int) or default_limit
    offset = args.get("offset", 0, type=int) or 0
    return max(1, min(limit, max_limit)), max(0, offset)
