from __future__ import annotations

from ..extensions import db
from neocafe.time_utils import to_utc_z

ROOM_AVAILABLE = "AVAILABLE"
ROOM_OCCUPIED = "OCCUPIED"
ROOM_MAINTENANCE = "MAINTENANCE"
VALID_ROOM_STATUSES = (ROOM_AVAILABLE, ROOM_OCCUPIED, ROOM_MAINTENANCE)

SESSION_ACTIVE = "ACTIVE"
SESSION_COMPLETED = "COMPLETED"
SESSION_CANCELLED = "CANCELLED"
VALID_SESSION_STATUSES = (SESSION_ACTIVE, SESSION_COMPLETED, SESSION_CANCELLED)

_ACTIVE_ONLY = db.text("status = 'ACTIVE'")


class Room(db.Model):
    """
    Physical gaming room.

    INVARIANT: status == OCCUPIED iff exactly one ACTIVE RoomSession
    references this room. Both sides change in the same DB transaction.
    """
    __tablename__ = "rooms"
    __table_args__ = (
        db.CheckConstraint("price_per_minute_cents > 0", name="ck_rooms_price_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    room_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ROOM_AVAILABLE, index=True)
    price_per_minute_cents = db.Column(db.Integer, nullable=False)

    console_type = db.Column(db.String(64), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=1)
    image_url = db.Column(db.String(512), nullable=True)
    amenities = db.Column(db.JSON, nullable=False, default=list)

    # Signed QR token printed at the door
    qr_code = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_number": self.room_number,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "price_per_minute_cents": self.price_per_minute_cents,
            "console_type": self.console_type,
            "capacity": self.capacity,
            "image_url": self.image_url,
            "amenities": list(self.amenities or []),
            "qr_code": self.qr_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "room_number": self.room_number,
            "name": self.name,
            "console_type": self.console_type,
        }


class RoomSession(db.Model):
    """
    One user's billed occupancy of one room.

    LIFECYCLE:
    - ACTIVE: room occupied, cost accrues (computed on demand, never stored)
    - COMPLETED: ended and paid; end_time, duration and total cost frozen
    - CANCELLED: reserved terminal state

    cost_per_minute_cents is captured from the room at start so later price
    edits never reach an in-flight or completed session.

    The two partial unique indexes are the availability gate: at most one
    ACTIVE session per user and per room, enforced by the store itself.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.Index(
            "uq_sessions_active_user", "user_id",
            unique=True, sqlite_where=_ACTIVE_ONLY, postgresql_where=_ACTIVE_ONLY,
        ),
        db.Index(
            "uq_sessions_active_room", "room_id",
            unique=True, sqlite_where=_ACTIVE_ONLY, postgresql_where=_ACTIVE_ONLY,
        ),
        db.Index("ix_sessions_status_start", "status", "start_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_ACTIVE, index=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=True)  # Rounded up, set on completion

    cost_per_minute_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=True)  # Set on completion
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
    room = db.relationship("Room", backref=db.backref("sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_room: bool = False, include_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "room_id": self.room_id,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "duration_minutes": self.duration_minutes,
            "cost_per_minute_cents": self.cost_per_minute_cents,
            "total_cost_cents": self.total_cost_cents,
            "is_paid": self.is_paid,
            "version_id": self.version_id,
        }
        if include_room and self.room is not None:
            data["room"] = self.room.to_summary()
        if include_user and self.user is not None:
            data["user"] = self.user.to_summary()
        return data
