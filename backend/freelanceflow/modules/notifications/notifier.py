from __future__ import annotations

from typing import Any, Protocol

from ...observability.logging import get_logger
from ...repositories import outbox_repo
from ...settings import settings

log = get_logger("notifications")


class Notifier(Protocol):
    def emit(self, room: str, event: str, payload: dict[str, Any]) -> None: ...


class LogNotifier:
    """Writes each event as a structured log line; useful locally and as a delivery audit."""

    def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        log.info("notification_emitted", room=room, notification_event=event, payload=payload)


class OutboxNotifier:
    """Stores events in the outbox for an async relay to push to the realtime transport."""

    def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        outbox_repo.enqueue_event(event_type=event, payload=payload, room=room)


class NullNotifier:
    def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        return None


_override: Notifier | None = None


def get_notifier() -> Notifier:
    if _override is not None:
        return _override
    backend = str(settings.notifications_backend or "").strip().lower()
    if backend == "outbox":
        return OutboxNotifier()
    if backend == "none":
        return NullNotifier()
    return LogNotifier()


def set_notifier(notifier: Notifier | None) -> None:
    """Install a notifier for the process (tests, alternative transports). None restores config."""
    global _override
    _override = notifier


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def emit_safely(room: str, event: str, payload: dict[str, Any]) -> bool:
    """Fire-and-forget emit. Never raises; returns whether the notifier accepted the event."""
    try:
        get_notifier().emit(room, event, payload)
        return True
    except Exception as e:
        log.warning("notification_emit_failed", room=room, notification_event=event, error=str(e))
        return False
