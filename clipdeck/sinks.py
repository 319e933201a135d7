"""Notification sinks: where progress and terminal events are delivered."""

import logging
import queue
from dataclasses import dataclass
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

PROGRESS = "ffmpeg-progress"
FINISHED = "ffmpeg-finished"
ERROR = "ffmpeg-error"

TERMINAL_EVENTS = (FINISHED, ERROR)


@dataclass(frozen=True)
class Notification:
    """One event destined for a sink."""

    event: str
    payload: str

    @property
    def terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS


class NotificationSink(Protocol):
    def emit(self, event: str, payload: str) -> None: ...


def deliver(sink: NotificationSink | None, notification: Notification) -> bool:
    """Hand *notification* to *sink*; a failing sink is logged, never raised.

    Returns True if the sink accepted the notification.
    """
    if sink is None:
        return False
    try:
        sink.emit(notification.event, notification.payload)
    except Exception:
        logger.warning("Failed to deliver %s notification", notification.event, exc_info=True)
        return False
    return True


class QueueSink:
    """Pushes ``{"event", "payload"}`` dicts onto a queue.

    A ``None`` sentinel follows the terminal event so consumers know the
    stream has ended.
    """

    def __init__(self, q: queue.Queue | None = None):
        self.queue: queue.Queue = q if q is not None else queue.Queue()

    def emit(self, event: str, payload: str) -> None:
        note = Notification(event, payload)
        self.queue.put({"event": note.event, "payload": note.payload})
        if note.terminal:
            self.queue.put(None)


class CallbackSink:
    """Adapts a plain ``callback(event, payload)`` function."""

    def __init__(self, callback: Callable[[str, str], None]):
        self.callback = callback

    def emit(self, event: str, payload: str) -> None:
        self.callback(event, payload)
