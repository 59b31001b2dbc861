"""Append rendered events to a file as JSON lines."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles

from ..core.models import EventData, Severity
from .base import SinkDeliveryError


def event_to_dict(event: EventData, *, message: str, severity: Severity) -> dict[str, Any]:
    """Convert an event into a JSON-serializable dict."""
    d: dict[str, Any] = {
        "timestamp": event.timestamp.isoformat(),
        "eventName": event.event_name,
        "logLevel": severity.value,
        "data": list(event.captured_groups),
        "message": message,
    }
    if event.logger:
        d["logger"] = event.logger
    if event.thread:
        d["thread"] = event.thread
    return d


class FileSink:
    name = "file"
    push = False
    error_event = "sinkError"

    def __init__(self, filename: str | Path, *, encoding: str = "utf-8") -> None:
        self.path = Path(filename)
        self._encoding = encoding
        self._fh = None

    async def _open(self):
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = await aiofiles.open(self.path, mode="a", encoding=self._encoding)
        return self._fh

    async def deliver(self, message: str, severity: Severity, event: EventData) -> None:
        line = json.dumps(event_to_dict(event, message=message, severity=severity), ensure_ascii=False)
        try:
            fh = await self._open()
            await fh.write(line + "\n")
            await fh.flush()
        except OSError as exc:
            raise SinkDeliveryError(f"Cannot write to {self.path}: {exc}") from exc

    async def close(self) -> None:
        if self._fh is not None:
            await self._fh.close()
            self._fh = None
