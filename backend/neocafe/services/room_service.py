# Overview: Service-layer operations for rooms; admin CRUD, QR issuance and QR verification.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..errors import ConflictError, NotFoundError, RoomUnavailableError
from ..models import Order, Room, RoomSession
from ..models.rooms import ROOM_AVAILABLE, ROOM_MAINTENANCE, ROOM_OCCUPIED, SESSION_ACTIVE
from . import qr_service
from .concurrency import run_in_transaction
from .notification_service import EVENT_ROOM_UPDATED, Notifier, notify


def list_rooms(status: str | None = None) -> list[Room]:
    query = db.session.query(Room)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Room.room_number).all()


def get_room(room_id: int) -> Room:
    room = db.session.get(Room, room_id)
    if not room:
        raise NotFoundError("Room not found")
    return room


def get_active_session_for_room(room_id: int) -> RoomSession | None:
    return db.session.query(RoomSession).filter_by(room_id=room_id, status=SESSION_ACTIVE).first()


def create_room(data: dict) -> Room:
    """
    Create a room and issue its QR token.

    The token embeds the room id, so it is generated after the insert.
    `data` is a validated patch (see validation.ROOM_POLICY).
    """
    def _op() -> Room:
        if db.session.query(Room).filter_by(room_number=data["room_number"]).first():
            raise ConflictError("Room number already exists")

        room = Room(
            room_number=data["room_number"],
            name=data["name"],
            description=data.get("description"),
            price_per_minute_cents=data["price_per_minute_cents"],
            console_type=data["console_type"],
            capacity=data.get("capacity") or 1,
            image_url=data.get("image_url"),
            amenities=data.get("amenities") or [],
            status=ROOM_AVAILABLE,
            qr_code="",
        )
        db.session.add(room)
        db.session.flush()

        room.qr_code = qr_service.generate_room_token(room.id)
        db.session.commit()
        return room

    return run_in_transaction(_op)


def update_room(room_id: int, patch: dict, *, notifier: Notifier | None = None) -> Room:
    """
    Apply an admin edit.

    Price edits never reach existing sessions (they keep their captured
    rate). Status is only movable between AVAILABLE and MAINTENANCE;
    OCCUPIED belongs to the session lifecycle.
    """
    patch = dict(patch)
    new_status = patch.pop("status", None)

    def _op() -> Room:
        room = db.session.query(Room).filter_by(id=room_id).populate_existing().first()
        if not room:
            raise NotFoundError("Room not found")

        new_number = patch.get("room_number")
        if new_number and new_number != room.room_number:
            if db.session.query(Room).filter(Room.room_number == new_number, Room.id != room_id).first():
                raise ConflictError("Room number already exists")

        if new_status is not None and new_status != room.status:
            if new_status == ROOM_OCCUPIED:
                raise ConflictError("Rooms become OCCUPIED only by starting a session")
            moved = db.session.execute(
                update(Room)
                .where(Room.id == room_id, Room.status.in_((ROOM_AVAILABLE, ROOM_MAINTENANCE)))
                .values(status=new_status)
            )
            if moved.rowcount != 1:
                raise ConflictError("Cannot change status of a room with an active session")

        for key, value in patch.items():
            setattr(room, key, value)

        db.session.commit()
        return room

    room = run_in_transaction(_op)
    notify(notifier, EVENT_ROOM_UPDATED, room.to_dict())
    return room


def regenerate_qr_code(room_id: int) -> Room:
    """Issue a fresh token; previously printed codes keep verifying until the secret rotates."""
    def _op() -> Room:
        room = get_room(room_id)
        room.qr_code = qr_service.generate_room_token(room.id)
        db.session.commit()
        return room

    return run_in_transaction(_op)


def delete_room(room_id: int) -> None:
    """
    Hard-delete a room with no history.

    Refused while a session is ACTIVE. Rooms with past sessions or orders
    are kept for the billing history; put them in MAINTENANCE instead.
    """
    def _op() -> None:
        room = get_room(room_id)
        if get_active_session_for_room(room_id):
            raise ConflictError("Cannot delete room with active sessions")
        has_history = (
            db.session.query(RoomSession.id).filter_by(room_id=room_id).first()
            or db.session.query(Order.id).filter_by(room_id=room_id).first()
        )
        if has_history:
            raise ConflictError("Cannot delete room with session or order history; set it to MAINTENANCE instead")
        db.session.delete(room)
        db.session.commit()

    run_in_transaction(_op)


def verify_qr(token: str) -> Room:
    """
    Resolve a scanned QR token to a room that can be started right now.

    Raises:
        InvalidTokenError: malformed or forged token
        NotFoundError: room no longer exists
        RoomUnavailableError: room busy or in maintenance
    """
    claims = qr_service.verify_room_token(token)
    room = get_room(claims.room_id)
    if room.status != ROOM_AVAILABLE:
        raise RoomUnavailableError("Room is not available")
    if get_active_session_for_room(room.id):
        raise RoomUnavailableError("Room already has an active session")
    return room
