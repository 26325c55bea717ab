# Overview: Service-layer operations for room sessions; start, end, live cost and history.

"""
Room Session State Machine

WHY: A session is the billed occupancy of one room by one user. Starting
one flips the room to OCCUPIED; ending one settles the bill against the
wallet and frees the room.

STATES:
    ACTIVE -> COMPLETED   (end_session, paid)
    ACTIVE -> CANCELLED   (reserved; no flow reaches it today)
Terminal states never transition again.

AVAILABILITY GATE (one ACTIVE session per user and per room):
1. Pre-checks give the caller a precise error in the common case.
2. A conditional UPDATE rooms ... WHERE status='AVAILABLE' lets exactly one
   racing start() flip the room; the loser sees rowcount 0.
3. Partial unique indexes on sessions(user_id) / sessions(room_id) WHERE
   status='ACTIVE' are the last line; an IntegrityError maps back to
   AlreadyActive / RoomUnavailable.

BILLING:
- duration = ceil(elapsed seconds / 60), minimum 1 minute
- total = duration * cost_per_minute_cents (rate captured at start)
- The minimum reserve checked at start is a heuristic, not a hold. If the
  wallet cannot cover the bill at end, the session stays ACTIVE so the
  user can top up and retry.
"""

from __future__ import annotations

import math
from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AlreadyActiveError,
    ForbiddenError,
    InsufficientFundsError,
    NotActiveError,
    NotFoundError,
    RoomUnavailableError,
)
from ..models import Room, RoomSession
from ..models.rooms import ROOM_AVAILABLE, ROOM_OCCUPIED, SESSION_ACTIVE, SESSION_COMPLETED
from ..models.wallet import TX_SESSION_PAYMENT
from neocafe.time_utils import as_naive_utc, utcnow
from . import ledger_service, qr_service
from .concurrency import lock_for_update, run_in_transaction
from .notification_service import EVENT_ROOM_STATUS, EVENT_SESSION_ENDED, Notifier, notify


# =============================================================================
# BILLING MATH
# =============================================================================

def compute_duration_minutes(start: datetime, end: datetime) -> int:
    """Billable minutes between start and end; partial minutes round up."""
    seconds = (as_naive_utc(end) - as_naive_utc(start)).total_seconds()
    return max(1, math.ceil(seconds / 60))


def project_live_cost(session: RoomSession, now: datetime | None = None) -> dict:
    """
    Running duration and cost of an ACTIVE session.

    Derived only from start_time and cost_per_minute_cents, never stored.
    Clients can recompute the same numbers from those two fields.
    """
    now = now or utcnow()
    minutes = compute_duration_minutes(session.start_time, now)
    return {
        "current_duration_minutes": minutes,
        "current_cost_cents": minutes * session.cost_per_minute_cents,
    }


def _reserve_cents(room: Room) -> int:
    return room.price_per_minute_cents * current_app.config["MIN_SESSION_RESERVE_MINUTES"]


# =============================================================================
# START / END
# =============================================================================

def _active_session_for_user(user_id: int) -> RoomSession | None:
    return db.session.query(RoomSession).filter_by(
        user_id=user_id,
        status=SESSION_ACTIVE,
    ).first()


def _active_session_for_room(room_id: int) -> RoomSession | None:
    return db.session.query(RoomSession).filter_by(
        room_id=room_id,
        status=SESSION_ACTIVE,
    ).first()


def start_session(user_id: int, room_id: int, *, notifier: Notifier | None = None) -> RoomSession:
    """
    Open a session for user in room.

    Session insert and room status flip commit together.

    Raises:
        AlreadyActiveError: user already has an ACTIVE session
        NotFoundError: room or wallet missing
        RoomUnavailableError: room not AVAILABLE or claimed concurrently
        InsufficientFundsError: balance below the minimum reserve
    """
    def _op() -> RoomSession:
        if _active_session_for_user(user_id):
            raise AlreadyActiveError("You already have an active session")

        room = db.session.query(Room).filter_by(id=room_id).populate_existing().first()
        if not room:
            raise NotFoundError("Room not found")
        if room.status != ROOM_AVAILABLE:
            raise RoomUnavailableError("Room is not available")
        if _active_session_for_room(room_id):
            raise RoomUnavailableError("Room already has an active session")

        wallet = ledger_service.get_wallet_for_user(user_id)
        required = _reserve_cents(room)
        if wallet.balance_cents < required:
            raise InsufficientFundsError(
                f"Insufficient balance. Minimum {required} cents required",
                required_cents=required,
                balance_cents=wallet.balance_cents,
            )

        claimed = db.session.execute(
            update(Room)
            .where(Room.id == room_id, Room.status == ROOM_AVAILABLE)
            .values(status=ROOM_OCCUPIED)
        )
        if claimed.rowcount != 1:
            raise RoomUnavailableError("Room is not available")

        session = RoomSession(
            user_id=user_id,
            room_id=room_id,
            status=SESSION_ACTIVE,
            start_time=utcnow(),
            cost_per_minute_cents=room.price_per_minute_cents,
            is_paid=False,
        )
        db.session.add(session)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if _active_session_for_user(user_id):
                raise AlreadyActiveError("You already have an active session")
            raise RoomUnavailableError("Room already has an active session")
        return session

    session = run_in_transaction(_op)

    notify(notifier, EVENT_ROOM_STATUS, {
        "roomId": session.room_id,
        "status": ROOM_OCCUPIED,
        "sessionId": session.id,
    })
    return session


def start_session_from_qr(user_id: int, token: str, *, notifier: Notifier | None = None) -> RoomSession:
    """Verify a scanned room token, then start a session in that room."""
    claims = qr_service.verify_room_token(token)
    return start_session(user_id, claims.room_id, notifier=notifier)


def end_session(session_id: int, caller_id: int, *, notifier: Notifier | None = None) -> RoomSession:
    """
    Settle and close an ACTIVE session.

    Debit, session completion and room release commit together. On any
    failure (insufficient funds included) nothing changes and the session
    stays ACTIVE.

    Raises:
        NotFoundError: session missing
        ForbiddenError: caller does not own the session
        NotActiveError: session already ended
        InsufficientFundsError: balance below the bill
    """
    def _op() -> RoomSession:
        session = lock_for_update(
            db.session.query(RoomSession).filter_by(id=session_id).populate_existing()
        ).first()
        if not session:
            raise NotFoundError("Session not found")
        if session.user_id != caller_id:
            raise ForbiddenError("Not authorized to end this session")
        if session.status != SESSION_ACTIVE:
            raise NotActiveError("Session is not active")

        end_time = utcnow()
        duration = compute_duration_minutes(session.start_time, end_time)
        total = duration * session.cost_per_minute_cents

        room = session.room
        wallet = ledger_service.get_wallet_for_user(session.user_id)
        ledger_service.debit(
            wallet.id,
            total,
            TX_SESSION_PAYMENT,
            f"Session payment for room {room.name} ({duration} minutes)",
            commit=False,
        )

        session.status = SESSION_COMPLETED
        session.end_time = end_time
        session.duration_minutes = duration
        session.total_cost_cents = total
        session.is_paid = True
        room.status = ROOM_AVAILABLE

        db.session.commit()
        return session

    session = run_in_transaction(_op)

    notify(notifier, EVENT_ROOM_STATUS, {
        "roomId": session.room_id,
        "status": ROOM_AVAILABLE,
        "sessionId": session.id,
    })
    notify(notifier, EVENT_SESSION_ENDED, {
        "sessionId": session.id,
        "userId": session.user_id,
        "totalCost": session.total_cost_cents,
        "duration": session.duration_minutes,
    })
    return session


# =============================================================================
# QUERIES
# =============================================================================

def get_active_session(user_id: int) -> RoomSession | None:
    return _active_session_for_user(user_id)


def get_session(session_id: int, caller_id: int, is_admin: bool = False) -> RoomSession:
    session = db.session.get(RoomSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    if session.user_id != caller_id and not is_admin:
        raise ForbiddenError("Not authorized to view this session")
    return session


def get_session_history(user_id: int, limit: int = 20, offset: int = 0) -> tuple[list[RoomSession], int]:
    query = db.session.query(RoomSession).filter_by(user_id=user_id)
    total = query.count()
    rows = (
        query.order_by(RoomSession.start_time.desc(), RoomSession.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total


def list_sessions(status: str | None = None, limit: int = 50, offset: int = 0) -> tuple[list[RoomSession], int]:
    """All sessions (admin), newest first, optionally filtered by status."""
    query = db.session.query(RoomSession)
    if status:
        query = query.filter_by(status=status)
    total = query.count()
    rows = (
        query.order_by(RoomSession.start_time.desc(), RoomSession.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total
