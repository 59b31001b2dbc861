"""Sink interface shared by every delivery destination."""

from __future__ import annotations

from typing import Protocol

from ..core.models import EventData, Severity


class SinkDeliveryError(Exception):
    """A sink could not deliver a rendered event."""


class Sink(Protocol):
    """Destination for rendered events.

    ``push`` marks push-notification sinks, which only receive rules flagged
    ``send_to_telegram``. ``error_event`` names the synthetic event raised
    when a delivery fails.
    """

    name: str
    push: bool
    error_event: str

    async def deliver(self, message: str, severity: Severity, event: EventData) -> None:
        """Deliver one rendered event; raise SinkDeliveryError on failure."""
        ...

    async def close(self) -> None:
        """Flush and release resources."""
        ...
