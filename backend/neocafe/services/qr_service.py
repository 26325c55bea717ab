# Overview: Signed room QR tokens; issues, verifies and renders them.

"""
Room QR Tokens

TOKEN FORMAT:
    base64( JSON{ "payload": <str>, "signature": <hex> } )
    payload   = JSON{ "roomId": <int>, "timestamp": <epoch ms> }
    signature = HMAC-SHA256(QR_CODE_SECRET, payload), hex encoded

The printed code never expires; rotating QR_CODE_SECRET (or regenerating a
room's token) is how old codes are retired.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import io
import json
from dataclasses import dataclass
from datetime import datetime, timezone

import qrcode
import qrcode.image.svg
from flask import current_app

from ..errors import InvalidTokenError


@dataclass(frozen=True)
class QRClaims:
    room_id: int
    issued_at: datetime


def _secret() -> bytes:
    return current_app.config["QR_CODE_SECRET"].encode("utf-8")


def _sign(payload: str) -> str:
    return hmac.new(_secret(), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_room_token(room_id: int, issued_at: datetime | None = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    payload = json.dumps(
        {"roomId": room_id, "timestamp": int(issued_at.timestamp() * 1000)},
        separators=(",", ":"),
    )
    envelope = json.dumps({"payload": payload, "signature": _sign(payload)}, separators=(",", ":"))
    return base64.b64encode(envelope.encode("utf-8")).decode("ascii")


def verify_room_token(token: str) -> QRClaims:
    """
    Check a scanned token's signature and return its claims.

    Raises:
        InvalidTokenError: malformed token or signature mismatch
    """
    if not token or not isinstance(token, str):
        raise InvalidTokenError("QR code is required")

    try:
        envelope = json.loads(base64.b64decode(token.encode("ascii"), validate=True))
        payload = envelope["payload"]
        signature = envelope["signature"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError):
        raise InvalidTokenError("Invalid QR code format")

    if not isinstance(payload, str) or not isinstance(signature, str):
        raise InvalidTokenError("Invalid QR code format")
    if not hmac.compare_digest(_sign(payload), signature):
        raise InvalidTokenError("Invalid QR code")

    try:
        data = json.loads(payload)
        room_id = data["roomId"]
        timestamp_ms = data["timestamp"]
    except (ValueError, KeyError, TypeError):
        raise InvalidTokenError("Invalid QR code format")

    if not isinstance(room_id, int) or isinstance(room_id, bool):
        raise InvalidTokenError("Invalid QR code format")
    if not isinstance(timestamp_ms, (int, float)) or isinstance(timestamp_ms, bool):
        raise InvalidTokenError("Invalid QR code format")

    return QRClaims(
        room_id=room_id,
        issued_at=datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc),
    )


def render_qr_svg(token: str) -> str:
    """Render the token as a standalone SVG document."""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(token)
    qr.make(fit=True)

    img = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue().decode("utf-8")


def render_qr_data_url(token: str) -> str:
    svg = render_qr_svg(token)
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
