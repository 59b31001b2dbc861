"""Route published events to every sink whose rule map accepts them."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..sinks.base import Sink, SinkDeliveryError
from .channel import system_event
from .models import EventData, Severity
from .rendering import TimestampMode, render_message
from .rules.resolver import EffectiveRuleMap

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SinkBinding:
    """A sink together with its resolved rules and presentation settings."""

    sink: Sink
    rules: EffectiveRuleMap
    threshold: Severity = Severity.DEBUG
    timestamp_mode: TimestampMode = False


class EventDispatcher:
    """Render and deliver events, one at a time, in publish order.

    ``handle_event`` is the synchronous channel subscriber; it only enqueues.
    ``run`` drains the queue and awaits each delivery so a sink never sees
    events out of order.
    """

    def __init__(self, bindings: Sequence[SinkBinding], *, prefix: str | None = None) -> None:
        self.bindings = list(bindings)
        self.prefix = prefix
        self._queue: asyncio.Queue[EventData | None] = asyncio.Queue()
        self._closed = False
        self._task: asyncio.Task[None] | None = None

    def handle_event(self, event: EventData) -> None:
        if self._closed:
            logger.debug("Dropping %s after close", event.event_name)
            return
        self._queue.put_nowait(event)

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if event is None:
                    return
                await self.dispatch(event)
            finally:
                self._queue.task_done()

    async def dispatch(self, event: EventData) -> int:
        """Deliver ``event`` to every accepting sink; return the delivery count."""
        delivered = 0
        for binding in self.bindings:
            if await self._deliver(binding, event):
                delivered += 1
        return delivered

    def _render(self, binding: SinkBinding, event: EventData) -> tuple[str, Severity] | None:
        rule = binding.rules.get(event.event_name)
        if rule is None:
            return None
        if not rule.admits_origin(event.logger, event.thread):
            return None
        severity = rule.level or event.severity
        if not severity.admitted_by(binding.threshold):
            return None
        message = render_message(
            rule,
            event,
            severity,
            timestamp_mode=binding.timestamp_mode,
            prefix=self.prefix,
        )
        return message, severity

    async def _deliver(self, binding: SinkBinding, event: EventData, *, report: bool = True) -> bool:
        rendered = self._render(binding, event)
        if rendered is None:
            return False
        message, severity = rendered
        try:
            await binding.sink.deliver(message, severity, event)
        except SinkDeliveryError as exc:
            logger.warning("Sink %s failed to deliver %s: %s", binding.sink.name, event.event_name, exc)
            error: Exception = exc
        except Exception as exc:
            logger.exception("Sink %s crashed while delivering %s", binding.sink.name, event.event_name)
            error = exc
        else:
            return True
        if report:
            await self._report_failure(binding, error)
        return False

    async def _report_failure(self, failed: SinkBinding, exc: Exception) -> None:
        # Failure reports go to the other sinks only and are never reported again.
        error = system_event(
            Severity.ERROR,
            str(exc),
            event_name=failed.sink.error_event,
            logger_name=failed.sink.name,
        )
        for binding in self.bindings:
            if binding is failed:
                continue
            await self._deliver(binding, error, report=False)

    def start(self) -> asyncio.Task[None]:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="bisq-watcher-dispatch")
        return self._task

    async def drain(self) -> None:
        """Wait until every queued event was delivered (requires ``start``)."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop accepting events, finish the queued ones and close every sink."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            await self._queue.put(None)
            await self._task
        else:
            while not self._queue.empty():
                event = self._queue.get_nowait()
                self._queue.task_done()
                if event is not None:
                    await self.dispatch(event)
        for binding in self.bindings:
            try:
                await binding.sink.close()
            except Exception:
                logger.exception("Closing sink %s failed", binding.sink.name)
