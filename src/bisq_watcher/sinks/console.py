"""Terminal sink rendering events with per-severity colors."""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

from ..core.models import EventData, Severity
from .base import SinkDeliveryError

STYLES: dict[Severity, str] = {
    Severity.EMERG: "bold red on yellow",
    Severity.ALERT: "red on yellow",
    Severity.CRIT: "bold red",
    Severity.ERROR: "red",
    Severity.WARNING: "magenta",
    Severity.NOTICE: "yellow",
    Severity.INFO: "green",
    Severity.DEBUG: "dim blue",
    Severity.UNKNOWN: "dim",
}


class ConsoleSink:
    name = "console"
    push = False
    error_event = "sinkError"

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False, soft_wrap=True)

    async def deliver(self, message: str, severity: Severity, event: EventData) -> None:
        try:
            self._console.print(Text(message, style=STYLES[severity]))
        except OSError as exc:
            raise SinkDeliveryError(f"Cannot write to console: {exc}") from exc

    async def close(self) -> None:
        return None
