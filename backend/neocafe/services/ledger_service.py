# Overview: Service-layer operations for the wallet ledger; encapsulates balance and transaction writes.

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AlreadyProcessedError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from ..models import Transaction, Wallet
from ..models.wallet import CREDIT_TYPES, DEBIT_TYPES
from neocafe.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
"""
Wallet Ledger Invariants (authoritative)

- Append-only: Transaction rows are never updated or deleted.
- balance == sum(Transaction.amount_cents) for every wallet, at all times.
- balance never goes negative; a debit that would overdraw is rejected
  whole, with the balance untouched.
- Wallet row update and Transaction insert happen in the same DB
  transaction (flush together, commit together).
- balance_before/after are snapshots taken at write time.
- An external payment reference produces at most one Transaction.
"""


@dataclass
class LedgerAudit:
    """Result of replaying a wallet's transaction log."""
    wallet_id: int
    balance_cents: int
    ledger_sum_cents: int
    transaction_count: int
    problems: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.problems

    def to_dict(self) -> dict:
        return {
            "wallet_id": self.wallet_id,
            "balance_cents": self.balance_cents,
            "ledger_sum_cents": self.ledger_sum_cents,
            "transaction_count": self.transaction_count,
            "is_consistent": self.is_consistent,
            "problems": list(self.problems),
        }


# =============================================================================
# WALLETS
# =============================================================================

def create_wallet(user_id: int) -> Wallet:
    """
    Create an empty wallet for a user (caller commits).

    Wallets start at zero; any opening balance must go through credit()
    so the ledger sum still matches.
    """
    wallet = Wallet(user_id=user_id, balance_cents=0)
    db.session.add(wallet)
    db.session.flush()
    return wallet


def get_wallet_for_user(user_id: int) -> Wallet:
    wallet = db.session.query(Wallet).filter_by(user_id=user_id).first()
    if not wallet:
        raise NotFoundError("Wallet not found")
    return wallet


def _load_wallet_locked(wallet_id: int) -> Wallet:
    wallet = lock_for_update(
        db.session.query(Wallet).filter_by(id=wallet_id).populate_existing()
    ).first()
    if not wallet:
        raise NotFoundError(f"Wallet {wallet_id} not found")
    return wallet


def _validate_amount(amount_cents) -> None:
    # bool is an int subclass; reject it along with floats and strings
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise ValidationError("amount_cents must be an integer number of cents")
    if amount_cents <= 0:
        raise ValidationError("amount_cents must be positive")


def _append(wallet: Wallet, signed_amount: int, tx_type: str, description: str,
            external_ref: str | None) -> Transaction:
    before = wallet.balance_cents
    after = before + signed_amount

    wallet.balance_cents = after
    tx = Transaction(
        wallet_id=wallet.id,
        type=tx_type,
        amount_cents=signed_amount,
        balance_before_cents=before,
        balance_after_cents=after,
        description=description,
        external_ref=external_ref,
        created_at=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


# =============================================================================
# CREDIT / DEBIT
# =============================================================================

def find_by_external_ref(external_ref: str) -> Transaction | None:
    return db.session.query(Transaction).filter_by(external_ref=external_ref).first()


def credit(
    wallet_id: int,
    amount_cents: int,
    tx_type: str,
    description: str,
    external_ref: str | None = None,
    *,
    commit: bool = True,
) -> Transaction:
    """
    Add funds to a wallet and record the ledger entry.

    Args:
        wallet_id: Wallet to credit
        amount_cents: Positive amount in cents
        tx_type: DEPOSIT or REFUND
        description: Human-readable ledger line
        external_ref: Payment gateway reference (idempotency key)
        commit: False to fold the entry into the caller's transaction

    Raises:
        AlreadyProcessedError: external_ref already has a Transaction
        ValidationError: amount or type invalid
        NotFoundError: wallet missing
    """
    _validate_amount(amount_cents)
    if tx_type not in CREDIT_TYPES:
        raise ValidationError(f"Invalid credit type: {tx_type}. Must be one of {list(CREDIT_TYPES)}")

    def _work() -> Transaction:
        if external_ref:
            existing = find_by_external_ref(external_ref)
            if existing:
                raise AlreadyProcessedError(
                    f"Payment {external_ref} already processed", transaction=existing
                )
        wallet = _load_wallet_locked(wallet_id)
        return _append(wallet, amount_cents, tx_type, description, external_ref)

    if not commit:
        return _work()

    def _op() -> Transaction:
        tx = _work()
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race on the external_ref unique constraint
            db.session.rollback()
            existing = find_by_external_ref(external_ref) if external_ref else None
            if existing:
                raise AlreadyProcessedError(
                    f"Payment {external_ref} already processed", transaction=existing
                )
            raise
        return tx

    return run_in_transaction(_op)


def debit(
    wallet_id: int,
    amount_cents: int,
    tx_type: str,
    description: str,
    *,
    commit: bool = True,
) -> Transaction:
    """
    Remove funds from a wallet and record the (negative) ledger entry.

    No partial debit: if balance < amount the whole call fails and the
    wallet is untouched.

    Raises:
        InsufficientFundsError: balance too low
        ValidationError: amount or type invalid
        NotFoundError: wallet missing
    """
    _validate_amount(amount_cents)
    if tx_type not in DEBIT_TYPES:
        raise ValidationError(f"Invalid debit type: {tx_type}. Must be one of {list(DEBIT_TYPES)}")

    def _work() -> Transaction:
        wallet = _load_wallet_locked(wallet_id)
        if wallet.balance_cents < amount_cents:
            raise InsufficientFundsError(
                "Insufficient balance",
                required_cents=amount_cents,
                balance_cents=wallet.balance_cents,
            )
        return _append(wallet, -amount_cents, tx_type, description, None)

    if not commit:
        return _work()

    def _op() -> Transaction:
        tx = _work()
        db.session.commit()
        return tx

    return run_in_transaction(_op)


# =============================================================================
# QUERIES / AUDIT
# =============================================================================

def get_transactions(
    wallet_id: int,
    limit: int = 20,
    offset: int = 0,
    tx_type: str | None = None,
) -> tuple[list[Transaction], int]:
    """Newest-first page of a wallet's transactions plus the total count."""
    query = db.session.query(Transaction).filter_by(wallet_id=wallet_id)
    if tx_type:
        query = query.filter_by(type=tx_type)

    total = query.count()
    rows = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total


def verify_wallet(wallet_id: int) -> LedgerAudit:
    """
    Replay a wallet's transactions and check them against the wallet row.

    Checks:
    - balance == sum(amount)
    - each entry: balance_after == balance_before + amount
    - chain continuity: each balance_before equals the previous balance_after
    - no snapshot below zero
    """
    wallet = db.session.get(Wallet, wallet_id)
    if not wallet:
        raise NotFoundError(f"Wallet {wallet_id} not found")

    txs = (
        db.session.query(Transaction)
        .filter_by(wallet_id=wallet_id)
        .order_by(Transaction.id)
        .all()
    )

    audit = LedgerAudit(
        wallet_id=wallet_id,
        balance_cents=wallet.balance_cents,
        ledger_sum_cents=sum(t.amount_cents for t in txs),
        transaction_count=len(txs),
    )

    running = 0
    for tx in txs:
        if tx.balance_before_cents != running:
            audit.problems.append(
                f"Transaction {tx.id}: balance_before {tx.balance_before_cents} != running balance {running}"
            )
        if tx.balance_after_cents != tx.balance_before_cents + tx.amount_cents:
            audit.problems.append(
                f"Transaction {tx.id}: balance_after does not equal balance_before + amount"
            )
        if tx.balance_after_cents < 0:
            audit.problems.append(f"Transaction {tx.id}: negative balance snapshot")
        running = tx.balance_after_cents

    if audit.ledger_sum_cents != wallet.balance_cents:
        audit.problems.append(
            f"Wallet balance {wallet.balance_cents} != ledger sum {audit.ledger_sum_cents}"
        )

    return audit


def verify_all_wallets() -> list[LedgerAudit]:
    wallet_ids = [row[0] for row in db.session.query(Wallet.id).order_by(Wallet.id).all()]
    return [verify_wallet(wallet_id) for wallet_id in wallet_ids]
