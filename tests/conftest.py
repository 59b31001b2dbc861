from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from bisq_watcher.core.channel import EventChannel
from bisq_watcher.core.models import EventData, Severity
from bisq_watcher.sinks.base import SinkDeliveryError


def bisq_line(
    message: str,
    *,
    level: str = "INFO",
    logger: str = "b.c.a.BisqSetup",
    thread: str = "JavaFX Application Thread",
    ts: str = "Jan-01 00:00:01.000",
) -> str:
    # logback pads the level to five characters, then adds one space
    return f"{ts} [{thread}] {level:<5} {logger}: {message}"


class FakeSink:
    def __init__(
        self,
        name: str = "fake",
        *,
        push: bool = False,
        error_event: str = "sinkError",
        fail: bool = False,
    ) -> None:
        self.name = name
        self.push = push
        self.error_event = error_event
        self.fail = fail
        self.delivered: list[tuple[str, Severity, EventData]] = []
        self.closed = False

    async def deliver(self, message: str, severity: Severity, event: EventData) -> None:
        if self.fail:
            raise SinkDeliveryError(f"{self.name} is down")
        self.delivered.append((message, severity, event))

    async def close(self) -> None:
        self.closed = True

    @property
    def messages(self) -> list[str]:
        return [m for m, _, _ in self.delivered]


@pytest.fixture
def line() -> Callable[..., str]:
    return bisq_line


@pytest.fixture
def write_records() -> Callable[[Path, list[str]], None]:
    def _write(path: Path, lines: list[str]) -> None:
        path.write_text("".join(f"{x}\n" for x in lines), encoding="utf-8")

    return _write


@pytest.fixture
def append_records() -> Callable[[Path, list[str]], None]:
    def _append(path: Path, lines: list[str]) -> None:
        with path.open("a", encoding="utf-8") as f:
            f.write("".join(f"{x}\n" for x in lines))

    return _append


@pytest.fixture
def events() -> tuple[EventChannel, list[EventData]]:
    channel = EventChannel("test")
    seen: list[EventData] = []
    channel.subscribe(seen.append)
    return channel, seen


@pytest.fixture
def fake_sink() -> Callable[..., FakeSink]:
    return FakeSink
