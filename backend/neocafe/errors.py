# Overview: Error taxonomy shared by services and routes.

"""
Cafe error taxonomy.

Services raise these; blueprints translate them to JSON responses using
`status_code` and `code`. Nothing in the core swallows them.

KINDS:
- NotFound, Forbidden
- Conflict (AlreadyActive, RoomUnavailable, NotActive)
- InsufficientFunds, ItemUnavailable
- InvalidInput (ValidationError)
- GatewayFailure (retryable), InvalidToken, InvalidSignature
- AlreadyProcessed (idempotent no-op for repeated payment references)
"""

from __future__ import annotations

from typing import Any


class CafeError(Exception):
    """Base class for every business failure surfaced to the API layer."""

    status_code = 400
    code = "ERROR"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class AuthenticationError(CafeError):
    status_code = 401
    code = "UNAUTHENTICATED"


class NotFoundError(CafeError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(CafeError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(CafeError):
    """409-level business rule conflict."""

    status_code = 409
    code = "CONFLICT"


class AlreadyActiveError(ConflictError):
    code = "ALREADY_ACTIVE"


class RoomUnavailableError(ConflictError):
    code = "ROOM_UNAVAILABLE"


class NotActiveError(ConflictError):
    code = "NOT_ACTIVE"


class InsufficientFundsError(CafeError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, message: str, *, required_cents: int | None = None, balance_cents: int | None = None):
        super().__init__(message)
        self.required_cents = required_cents
        self.balance_cents = balance_cents

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.required_cents is not None:
            data["required_cents"] = self.required_cents
        if self.balance_cents is not None:
            data["balance_cents"] = self.balance_cents
        return data


class ItemUnavailableError(CafeError):
    code = "ITEM_UNAVAILABLE"


class ValidationError(CafeError, ValueError):
    """400-level input problem."""

    code = "INVALID_INPUT"


class GatewayFailureError(CafeError):
    """Payment provider failure. Safe to retry; nothing was credited."""

    status_code = 502
    code = "GATEWAY_FAILURE"
    retryable = True

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retryable"] = self.retryable
        return data


class InvalidTokenError(CafeError):
    code = "INVALID_TOKEN"


class InvalidSignatureError(CafeError):
    code = "INVALID_SIGNATURE"


class AlreadyProcessedError(CafeError):
    """A payment reference that already produced a ledger entry."""

    status_code = 200
    code = "ALREADY_PROCESSED"

    def __init__(self, message: str, transaction: Any = None):
        super().__init__(message)
        self.transaction = transaction
