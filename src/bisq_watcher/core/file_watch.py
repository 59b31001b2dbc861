"""Bridge watchdog file-system events onto the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class _PathHandler(FileSystemEventHandler):
    """Forward events for one file to a callback on the loop thread."""

    def __init__(self, path: Path, callback: Callable[[], None], loop: asyncio.AbstractEventLoop):
        super().__init__()
        self._path = str(Path(path).resolve())
        self._callback = callback
        self._loop = loop

    def _matches(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and os.path.realpath(os.fsdecode(p)) == self._path for p in paths)

    def _forward(self, event: FileSystemEvent) -> None:
        if not self._matches(event):
            return
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._callback)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._forward(event)


class FileChangeNotifier:
    """Watch files with a watchdog observer and call back on the event loop.

    Watchdog delivers events on its own thread; callbacks are marshalled with
    ``loop.call_soon_threadsafe`` so subscribers run on the loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, observer=None) -> None:
        self._loop = loop
        self._observer = observer if observer is not None else Observer()
        self._started = False

    def subscribe(self, path: Path, callback: Callable[[], None]) -> Callable[[], None]:
        loop = self._loop or asyncio.get_running_loop()
        handler = _PathHandler(Path(path), callback, loop)
        watch = self._observer.schedule(handler, str(Path(path).resolve().parent), recursive=False)
        if not self._started:
            self._observer.start()
            self._started = True
        logger.debug("Watching %s", path)

        def unsubscribe() -> None:
            try:
                self._observer.unschedule(watch)
            except KeyError:
                logger.debug("Watch for %s already removed", path)

        return unsubscribe

    def close(self) -> None:
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._started = False
