# Overview: Read-only admin reporting; dashboard stats, recent activity and user listings.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Order, Room, RoomSession, User, Wallet
from ..models.auth import ROLE_CUSTOMER
from ..models.orders import ORDER_PENDING, ORDER_PREPARING
from ..models.rooms import SESSION_ACTIVE, SESSION_COMPLETED
from neocafe.time_utils import start_of_day, utcnow


def get_stats() -> dict:
    """
    Dashboard counters.

    Revenue is session revenue only (sum of completed sessions' totals);
    today's revenue counts sessions that ended since UTC midnight.
    """
    today = start_of_day(utcnow())

    total_revenue = db.session.query(
        func.coalesce(func.sum(RoomSession.total_cost_cents), 0)
    ).filter(RoomSession.status == SESSION_COMPLETED).scalar()

    today_revenue = db.session.query(
        func.coalesce(func.sum(RoomSession.total_cost_cents), 0)
    ).filter(
        RoomSession.status == SESSION_COMPLETED,
        RoomSession.end_time >= today,
    ).scalar()

    return {
        "total_users": db.session.query(User).filter_by(role=ROLE_CUSTOMER).count(),
        "total_rooms": db.session.query(Room).count(),
        "active_sessions": db.session.query(RoomSession).filter_by(status=SESSION_ACTIVE).count(),
        "total_revenue_cents": int(total_revenue or 0),
        "today_revenue_cents": int(today_revenue or 0),
        "pending_orders": db.session.query(Order).filter(
            Order.status.in_((ORDER_PENDING, ORDER_PREPARING))
        ).count(),
    }


def get_recent_activity(limit: int = 10) -> dict:
    sessions = (
        db.session.query(RoomSession)
        .order_by(RoomSession.start_time.desc(), RoomSession.id.desc())
        .limit(limit)
        .all()
    )
    orders = (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return {
        "recent_sessions": [s.to_dict(include_room=True, include_user=True) for s in sessions],
        "recent_orders": [o.to_dict(include_items=False, include_room=True, include_user=True) for o in orders],
    }


def list_users(search: str | None = None, limit: int = 20, offset: int = 0) -> tuple[list[dict], int]:
    """Users with wallet balance and session/order counts, newest first."""
    session_counts = (
        db.session.query(RoomSession.user_id.label("user_id"), func.count(RoomSession.id).label("n"))
        .group_by(RoomSession.user_id)
        .subquery()
    )
    order_counts = (
        db.session.query(Order.user_id.label("user_id"), func.count(Order.id).label("n"))
        .group_by(Order.user_id)
        .subquery()
    )

    query = (
        db.session.query(
            User,
            func.coalesce(Wallet.balance_cents, 0),
            func.coalesce(session_counts.c.n, 0),
            func.coalesce(order_counts.c.n, 0),
        )
        .outerjoin(Wallet, Wallet.user_id == User.id)
        .outerjoin(session_counts, session_counts.c.user_id == User.id)
        .outerjoin(order_counts, order_counts.c.user_id == User.id)
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.email.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        ))

    total = query.count()
    results = query.order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset).all()

    rows = []
    for user, balance_cents, session_count, order_count in results:
        data = user.to_dict()
        data["wallet_balance_cents"] = balance_cents
        data["session_count"] = session_count
        data["order_count"] = order_count
        rows.append(data)
    return rows, total
