from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from bisq_watcher.core.file_watch import FileChangeNotifier


class FakeObserver:
    def __init__(self) -> None:
        self.scheduled: list[tuple[object, str, bool]] = []
        self.started = False
        self.stopped = False

    def schedule(self, handler, path: str, recursive: bool = False):
        entry = (handler, path, recursive)
        self.scheduled.append(entry)
        return entry

    def unschedule(self, watch) -> None:
        if watch not in self.scheduled:
            raise KeyError(watch)
        self.scheduled.remove(watch)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        return None


@pytest.mark.asyncio
async def test_events_for_the_file_reach_the_loop(tmp_path: Path) -> None:
    target = tmp_path / "bisq.log"
    target.write_text("", encoding="utf-8")
    observer = FakeObserver()
    notifier = FileChangeNotifier(asyncio.get_running_loop(), observer=observer)
    calls: list[str] = []

    unsubscribe = notifier.subscribe(target, lambda: calls.append("changed"))
    handler, watched, recursive = observer.scheduled[0]

    assert watched == str(tmp_path.resolve())
    assert recursive is False
    assert observer.started

    handler.dispatch(FileModifiedEvent(str(target)))
    handler.dispatch(FileModifiedEvent(str(tmp_path / "other.log")))
    handler.dispatch(DirModifiedEvent(str(tmp_path)))
    handler.dispatch(FileMovedEvent(str(tmp_path / "bisq.log.tmp"), str(target)))
    await asyncio.sleep(0)

    assert calls == ["changed", "changed"]

    unsubscribe()
    unsubscribe()
    assert observer.scheduled == []

    notifier.close()
    assert observer.stopped
