# Overview: Real-time broadcast adapter for room, session and order state changes.

"""
Notification Broadcasting

WHY: Connected clients (door panels, kitchen screen, customer app) want to
hear about room and order changes without polling.

DESIGN:
- Fire-and-forget, at-most-once. No replay, no backlog.
- Emitted only AFTER the state change has committed.
- A failing broadcaster never rolls back or fails the operation that
  triggered it; errors are logged and dropped.
- Clients must be able to rebuild state from the query endpoints alone.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

EVENT_ROOM_STATUS = "room:status"
EVENT_ROOM_UPDATED = "room:updated"
EVENT_SESSION_ENDED = "session:ended"
EVENT_ORDER_NEW = "order:new"
EVENT_ORDER_STATUS = "order:status"

EXTENSION_KEY = "neocafe.notifier"


class Notifier(Protocol):
    def emit(self, event: str, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """
    Default in-process broadcaster.

    Logs every event and fans it out to registered subscribers (a
    websocket bridge, an SSE stream, tests). Subscriber errors are
    isolated from each other.
    """

    def __init__(self):
        self._subscribers: list[Callable[[str, dict], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[str, dict], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[str, dict], None]) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("broadcast %s %s", event, payload)
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Subscriber failed for event %s", event)


def init_app(app, notifier: Notifier | None = None) -> Notifier:
    notifier = notifier or LoggingNotifier()
    app.extensions[EXTENSION_KEY] = notifier
    return notifier


def get_notifier() -> Notifier | None:
    if not has_app_context():
        return None
    return current_app.extensions.get(EXTENSION_KEY)


def notify(notifier: Notifier | None, event: str, payload: dict[str, Any]) -> None:
    """Best-effort emit. Call only after commit."""
    notifier = notifier or get_notifier()
    if notifier is None:
        return
    try:
        notifier.emit(event, payload)
    except Exception:
        logger.exception("Failed to broadcast %s", event)
