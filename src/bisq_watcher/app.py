"""Application wiring: one watcher per configured log file, graceful shutdown.

Each watcher owns its pipeline::

    LogTailer -> EventChannel -> EventDispatcher -> sinks

All watchers share one watchdog observer for change notifications.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Sequence
from importlib import metadata

from .config import (
    AppConfig,
    FileSinkConfig,
    SinkConfig,
    TelegramSinkConfig,
    WatcherConfig,
    load_rules,
)
from .core.channel import EventChannel
from .core.dispatcher import EventDispatcher, SinkBinding
from .core.file_watch import FileChangeNotifier
from .core.fingerprint_cache import FingerprintCache
from .core.models import Rule, Severity
from .core.paths import resolve_log_path
from .core.rules import EffectiveRuleMap, matching_rules, resolve_rule_map, system_rules
from .core.tailer import ChangeNotifier, LogTailer
from .sinks import ConsoleSink, FileSink, Sink, TelegramSink

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def app_version() -> str:
    try:
        return metadata.version("bisq-watcher")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def build_sink(cfg: SinkConfig) -> Sink:
    if isinstance(cfg, TelegramSinkConfig):
        return TelegramSink(cfg.api_token, cfg.chat_ids)
    if isinstance(cfg, FileSinkConfig):
        return FileSink(resolve_log_path(cfg.filename))
    return ConsoleSink()


def resolve_sink_rules(
    watcher: WatcherConfig,
    sink_cfg: SinkConfig,
    catalog: Sequence[Rule],
    *,
    push_sink: bool,
) -> EffectiveRuleMap:
    """Effective rules of one sink: system rules plus ``catalog``, overridden."""
    return resolve_rule_map(
        [*system_rules(), *catalog],
        watcher_directives=watcher.overwrite_rules,
        sink_directives=sink_cfg.overwrite_rules,
        threshold=sink_cfg.threshold,
        push_sink=push_sink,
    )


class Watcher:
    """Tailer, channel, dispatcher and sinks for one configured log file."""

    def __init__(
        self,
        config: WatcherConfig,
        catalog: Sequence[Rule],
        *,
        sinks: Sequence[Sink] | None = None,
    ) -> None:
        self.config = config
        self.path = resolve_log_path(config.log_file)
        self.name = config.name or self.path.name

        transports = config.enabled_transports
        if sinks is None:
            sinks = [build_sink(t) for t in transports]
        if len(sinks) != len(transports):
            raise ValueError("one sink per enabled transport is required")

        bindings = [
            SinkBinding(
                sink=sink,
                rules=resolve_sink_rules(config, cfg, catalog, push_sink=sink.push),
                threshold=cfg.threshold,
                timestamp_mode=cfg.timestamp,
            )
            for cfg, sink in zip(transports, sinks)
        ]

        self.channel = EventChannel(self.name)
        self.dispatcher = EventDispatcher(bindings, prefix=config.name)
        self.channel.subscribe(self.dispatcher.handle_event)

        debug = config.debug
        self.tailer = LogTailer(
            self.path,
            matching_rules(catalog, [b.rules for b in bindings]),
            channel=self.channel,
            cache=FingerprintCache(use_hash=debug.use_hash, max_events=debug.max_events),
            overlap_bytes=debug.overlapping_go_back_n_positions,
            cache_only_at_start=debug.at_start_build_event_cache_only,
            name=self.name,
        )

    async def start(self, notifier: ChangeNotifier | None = None) -> None:
        self.dispatcher.start()
        await self.tailer.start(notifier)

    async def stop(self) -> None:
        """Stop tailing, let running reads finish, deliver what is queued."""
        self.tailer.stop()
        await self.tailer.wait_idle()
        await self.dispatcher.close()


async def run_app(
    config: AppConfig,
    catalog: Sequence[Rule] | None = None,
    *,
    stop: asyncio.Event | None = None,
    notifier: ChangeNotifier | None = None,
) -> None:
    """Run every configured watcher until SIGINT/SIGTERM (or ``stop`` is set)."""
    rules = list(catalog) if catalog is not None else load_rules(config)
    loop = asyncio.get_running_loop()
    stop = stop or asyncio.Event()
    watchers = [Watcher(w, rules) for w in config.watchers]
    owned = FileChangeNotifier(loop) if notifier is None else None
    notifier = notifier or owned

    received: list[signal.Signals] = []

    def _on_signal(sig: signal.Signals) -> None:
        received.append(sig)
        stop.set()

    installed: list[signal.Signals] = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handler for %s not supported on this platform", sig.name)

    started = f"bisq-watcher v{app_version()} application has started!"
    try:
        for watcher in watchers:
            watcher.channel.publish_system(Severity.INFO, started)
            await watcher.start(notifier)
        logger.info("Watching %d log file(s)", len(watchers))
        await stop.wait()
        if received:
            notice = f"Received {received[0].name}, shutting down gracefully..."
            for watcher in watchers:
                watcher.channel.publish_system(Severity.NOTICE, notice)
    finally:
        for watcher in watchers:
            await watcher.stop()
        if owned is not None:
            owned.close()
        for sig in installed:
            loop.remove_signal_handler(sig)
