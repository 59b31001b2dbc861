"""Incremental reader of a growing, rotation-prone multi-line log file.

Each read cycle backs off ``overlap_bytes`` before the last processed offset
so a record whose header sat just before the previous boundary is re-read in
full. Records already seen are recognised through the fingerprint cache, which
makes the overlapping part of a read idempotent and also tells the tailer it
has re-crossed the previous boundary. A cycle that cannot find such a record
stops early and the next cycle seeks twice as far back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

import aiofiles
import aiofiles.os

from .channel import EventChannel
from .fingerprint_cache import FingerprintCache
from .header import HeaderParser
from .models import EventData, LogRecord, Severity
from .patterns import PatternCompileError, PatternCompiler
from .rules import MatchingRule

logger = logging.getLogger(__name__)

DEFAULT_OVERLAP_BYTES = 20_000
# Upper bound of consecutive cycles per trigger (re-reads and deeper seeks).
MAX_READ_CYCLES = 16
# After this many doublings of the overlap window a cycle reads from offset 0.
MAX_BACKOFF_DEPTH = 6
READ_CHUNK_BYTES = 64 * 1024


class ChangeNotifier(Protocol):
    """Source of file-change notifications (see :mod:`.file_watch`)."""

    def subscribe(self, path: Path, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` on every change of ``path``; return an unsubscriber."""
        ...


class CycleOutcome(str, Enum):
    DONE = "done"
    OVERLAP_MISSED = "overlap_missed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TailerState:
    """Snapshot of a tailer's position and scheduling flags."""

    file_path: Path
    next_offset: int
    overlap_window_bytes: int
    is_reading: bool
    reread_requested: bool
    open_record: str | None


class _Progress:
    """Emit a debug event each time another 10% of the file was read."""

    def __init__(self, channel: EventChannel, size: int) -> None:
        self._channel = channel
        self._size = size
        self._read = 0
        self._last_decile = 0

    def advance(self, n: int) -> None:
        if self._size <= 0:
            return
        self._read += n
        decile = min(10, self._read * 10 // self._size)
        if decile > self._last_decile:
            self._last_decile = decile
            self._channel.publish_system(
                Severity.DEBUG, f"Reading the logfile at start... {decile * 10}%"
            )


async def _iter_lines(f, *, chunk_size: int = READ_CHUNK_BYTES) -> AsyncIterator[bytes]:
    """Yield raw lines (newline included) from an async binary file."""
    pending = b""
    while True:
        chunk = await f.read(chunk_size)
        if not chunk:
            break
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            yield line + b"\n"
    if pending:
        yield pending


class LogTailer:
    """Tail one log file, reassemble records and publish matched events."""

    def __init__(
        self,
        path: str | Path,
        rules: Sequence[MatchingRule],
        *,
        channel: EventChannel | None = None,
        cache: FingerprintCache | None = None,
        overlap_bytes: int = DEFAULT_OVERLAP_BYTES,
        cache_only_at_start: bool = True,
        parser: HeaderParser | None = None,
        compiler: PatternCompiler | None = None,
        encoding: str = "utf-8",
        name: str | None = None,
    ) -> None:
        if overlap_bytes < 0:
            raise ValueError("overlap_bytes must be >= 0")
        self.path = Path(path)
        self.name = name or self.path.name
        self.channel = channel or EventChannel(self.name)
        self.cache = cache or FingerprintCache()
        self._rules = list(rules)
        self._overlap_bytes = overlap_bytes
        self._cache_only_at_start = cache_only_at_start
        self._parser = parser or HeaderParser()
        self._compiler = compiler or PatternCompiler()
        self._encoding = encoding

        self._next_offset = 0
        self._is_reading = False
        self._reread_requested = False
        self._record: LogRecord | None = None
        self._started = False
        self._stopped = False
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> TailerState:
        return TailerState(
            file_path=self.path,
            next_offset=self._next_offset,
            overlap_window_bytes=self._overlap_bytes,
            is_reading=self._is_reading,
            reread_requested=self._reread_requested,
            open_record=self._record.text if self._record is not None else None,
        )

    @property
    def next_offset(self) -> int:
        return self._next_offset

    # -- lifecycle -----------------------------------------------------------

    def compile_rules(self) -> list[PatternCompileError]:
        """Compile every rule pattern and report failures as error events."""
        errors: list[PatternCompileError] = []
        for rule in self._rules:
            result = self._compiler.compile(rule.pattern)
            if isinstance(result, PatternCompileError):
                errors.append(result)
                self.channel.publish_system(Severity.ERROR, f"Rule {rule.event_name!r}: {result}")
        return errors

    async def start(self, notifier: ChangeNotifier | None = None) -> None:
        """Compile rules, read the existing file and subscribe to changes."""
        if self._started:
            return
        self._started = True
        self._stopped = False

        self.channel.publish_system(Severity.INFO, "Tailer: Starting...")
        self.compile_rules()

        if notifier is not None:
            try:
                self._unsubscribe = notifier.subscribe(self.path, self.notify_change)
            except OSError as exc:
                self.channel.publish_system(Severity.ERROR, f"Cannot watch file {self.path}: {exc}")

        self.channel.publish_system(Severity.DEBUG, "Reading the logfile at start...")
        await self.read_new_lines(cache_only=self._cache_only_at_start, log_progress=True)
        self.channel.publish_system(Severity.INFO, f"Started watching file {self.path}")

    def stop(self) -> None:
        """Stop reacting to changes; a cycle already running completes."""
        if not self._started or self._stopped:
            return
        self._stopped = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.channel.publish_system(Severity.NOTICE, f"Stopped watching file {self.path}")

    async def wait_idle(self) -> None:
        """Wait for read cycles scheduled by change notifications."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- scheduling ----------------------------------------------------------

    def notify_change(self) -> None:
        """Handle a change notification on the event loop thread."""
        if self._stopped:
            return
        if self._is_reading:
            logger.debug("%s: read in progress, scheduling another pass", self.name)
            self._reread_requested = True
            return
        task = asyncio.get_running_loop().create_task(self.read_new_lines())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def read_new_lines(self, *, cache_only: bool = False, log_progress: bool = False) -> None:
        """Run read cycles until the file is caught up (single flight)."""
        if self._is_reading:
            self._reread_requested = True
            return

        self._is_reading = True
        depth = 0
        try:
            for _ in range(MAX_READ_CYCLES):
                if self._stopped:
                    return
                self._reread_requested = False
                outcome = await self._read_cycle(
                    cache_only=cache_only, depth=depth, log_progress=log_progress
                )
                log_progress = False

                if outcome is CycleOutcome.FAILED:
                    return
                if outcome is CycleOutcome.OVERLAP_MISSED:
                    depth += 1
                    logger.debug("%s: no overlap found, seeking further back (depth %d)", self.name, depth)
                    continue

                depth = 0
                cache_only = False
                if not self._reread_requested:
                    return
                logger.debug("%s: missed a file change, reading again", self.name)

            logger.warning("%s: still behind after %d read cycles", self.name, MAX_READ_CYCLES)
            self.channel.publish_system(
                Severity.WARNING,
                f"Could not catch up with {self.path} after {MAX_READ_CYCLES} read cycles; "
                "retrying on the next change",
            )
        finally:
            self._is_reading = False

    # -- one read cycle ------------------------------------------------------

    def _start_position(self, depth: int) -> int:
        if self._next_offset == 0 or depth >= MAX_BACKOFF_DEPTH:
            return 0
        return max(0, self._next_offset - self._overlap_bytes * (2**depth))

    def _handle_rotation(self) -> None:
        self._next_offset = 0
        self.cache.clear()
        self.channel.publish_system(Severity.NOTICE, f"The Bisq logfile {self.path} has been rotated!")

    async def _read_cycle(self, *, cache_only: bool, depth: int, log_progress: bool) -> CycleOutcome:
        try:
            stat = await aiofiles.os.stat(self.path)
        except OSError as exc:
            self.channel.publish_system(Severity.ERROR, f"File read error: {exc}")
            return CycleOutcome.FAILED
        size = stat.st_size

        if size >= self._next_offset:
            start = self._start_position(depth)
        else:
            self._handle_rotation()
            start = 0

        # Nothing lies before offset 0, so there is no boundary to find.
        overlap_confirmed = start == 0 or self._overlap_bytes == 0
        progress = _Progress(self.channel, size - start) if log_progress else None
        lines_read = 0
        overlapping = 0
        self._record = None

        logger.debug(
            "%s: reading from %d (next_offset=%d, size=%d, cached=%d)",
            self.name,
            start,
            self._next_offset,
            size,
            len(self.cache),
        )

        try:
            async with aiofiles.open(self.path, "rb") as f:
                await f.seek(start)
                async for raw in _iter_lines(f):
                    lines_read += 1
                    if progress is not None:
                        progress.advance(len(raw))
                    line = raw.decode(self._encoding, errors="replace").rstrip("\r\n")

                    header = self._parser.parse(line)
                    if header is None:
                        # Lines before the first header belong to a record handled earlier.
                        if self._record is not None:
                            self._record.append(line)
                        continue

                    if self._record is not None:
                        if self.cache.has(self._record.text):
                            overlap_confirmed = True
                            overlapping += 1
                        if not overlap_confirmed:
                            self._record = None
                            return CycleOutcome.OVERLAP_MISSED
                        self._process_record(self._record, cache_only=cache_only)

                    self._record = LogRecord(header=header, lines=[line])
        except OSError as exc:
            self._record = None
            self.channel.publish_system(Severity.ERROR, f"File read error: {exc}")
            return CycleOutcome.FAILED

        record, self._record = self._record, None
        if record is not None:
            if self.cache.has(record.text):
                overlap_confirmed = True
                overlapping += 1
            if not overlap_confirmed:
                return CycleOutcome.OVERLAP_MISSED
            self._process_record(record, cache_only=cache_only)

        if lines_read:
            self._next_offset = size
        logger.debug(
            "%s: cycle done, lines=%d overlapping=%d next_offset=%d",
            self.name,
            lines_read,
            overlapping,
            self._next_offset,
        )
        return CycleOutcome.DONE

    def _process_record(self, record: LogRecord, *, cache_only: bool) -> None:
        text = record.text
        if self.cache.has(text):
            logger.debug("%s: skipping cached record", self.name)
            return
        if not cache_only:
            for rule in self._rules:
                self._match_rule(rule, record, text)
        self.cache.add(text)

    def _match_rule(self, rule: MatchingRule, record: LogRecord, text: str) -> None:
        header = record.header
        if not rule.admits_origin(header.logger, header.thread):
            return

        compiled = self._compiler.compile(rule.pattern)
        if isinstance(compiled, PatternCompileError):
            # reported once by compile_rules()
            return

        try:
            match = compiled.match(text)
        except Exception as exc:
            self.channel.publish_system(
                Severity.ERROR, f"Rule {rule.event_name!r} failed to match: {exc}"
            )
            return
        if match is None:
            return

        self.channel.publish(
            EventData(
                timestamp=header.timestamp,
                severity=header.severity,
                event_name=rule.event_name,
                captured_groups=match.captured_groups,
                logger=header.logger,
                thread=header.thread,
            )
        )
