from __future__ import annotations

from ..extensions import db
from neocafe.time_utils import to_utc_z

TX_DEPOSIT = "DEPOSIT"
TX_WITHDRAWAL = "WITHDRAWAL"
TX_REFUND = "REFUND"
TX_SESSION_PAYMENT = "SESSION_PAYMENT"
TX_ORDER_PAYMENT = "ORDER_PAYMENT"

VALID_TRANSACTION_TYPES = (
    TX_DEPOSIT,
    TX_WITHDRAWAL,
    TX_REFUND,
    TX_SESSION_PAYMENT,
    TX_ORDER_PAYMENT,
)

CREDIT_TYPES = (TX_DEPOSIT, TX_REFUND)
DEBIT_TYPES = (TX_WITHDRAWAL, TX_SESSION_PAYMENT, TX_ORDER_PAYMENT)

PAYMENT_PENDING = "pending"
PAYMENT_SUCCEEDED = "succeeded"
PAYMENT_FAILED = "failed"
PAYMENT_TYPE_WALLET_DEPOSIT = "wallet_deposit"


class Wallet(db.Model):
    """
    Prepaid balance, one per user.

    INVARIANTS:
    - balance_cents == sum(Transaction.amount_cents) for this wallet
    - balance_cents >= 0
    - Only ledger_service mutates balance_cents, always together with a
      Transaction row in the same DB transaction.
    """
    __tablename__ = "wallets"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_wallets_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("wallet", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "balance_cents": self.balance_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Transaction(db.Model):
    """
    Immutable wallet ledger entry.

    amount_cents is signed (negative for debits). balance_before/after are
    snapshots taken at write time so the log can be replayed and audited
    independently of the wallet row. Never updated or deleted.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_wallet_created", "wallet_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey("wallets.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    balance_before_cents = db.Column(db.Integer, nullable=False)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    description = db.Column(db.String(255), nullable=False)

    # Payment gateway reference (idempotency key for deposits)
    external_ref = db.Column(db.String(255), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    wallet = db.relationship("Wallet", backref=db.backref("transactions", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wallet_id": self.wallet_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "balance_before_cents": self.balance_before_cents,
            "balance_after_cents": self.balance_after_cents,
            "description": self.description,
            "external_ref": self.external_ref,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Payment gateway record for wallet deposits.

    Tracks the provider-side state of a payment intent. The ledger credit
    itself lives in Transaction (keyed by the same external reference).
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    stripe_payment_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    status = db.Column(db.String(32), nullable=False, default=PAYMENT_PENDING, index=True)
    type = db.Column(db.String(32), nullable=False, default=PAYMENT_TYPE_WALLET_DEPOSIT)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount_cents": self.amount_cents,
            "stripe_payment_id": self.stripe_payment_id,
            "status": self.status,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
        }
