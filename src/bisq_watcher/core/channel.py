"""Publish/subscribe channel carrying EventData from a tailer to its consumers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from .models import EventData, Severity
from .rules.catalog import SYSTEM_LOGGER

logger = logging.getLogger(__name__)

Subscriber = Callable[[EventData], None]


def system_event(
    level: Severity,
    message: str,
    *,
    event_name: str | None = None,
    logger_name: str = SYSTEM_LOGGER,
) -> EventData:
    """Build a synthetic event such as ``systemError`` or ``systemNotice``."""
    return EventData(
        timestamp=datetime.now().astimezone(),
        severity=level,
        event_name=event_name or f"system{level.value.capitalize()}",
        captured_groups=(level.value, message),
        logger=logger_name,
    )


class EventChannel:
    """Synchronous fan-out of events to subscribers, in subscription order.

    A subscriber that raises is logged and skipped; the remaining
    subscribers still receive the event.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; return a function that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: EventData) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Subscriber of %s failed on %s", self.name, event.event_name)

    def publish_system(self, level: Severity, message: str) -> None:
        self.publish(system_event(level, message))

    def __len__(self) -> int:
        return len(self._subscribers)
