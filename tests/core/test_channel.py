from __future__ import annotations

import logging

from bisq_watcher.core.channel import EventChannel, system_event
from bisq_watcher.core.models import EventData, Severity


def test_subscribers_receive_in_order_and_can_unsubscribe() -> None:
    channel = EventChannel()
    calls: list[str] = []
    channel.subscribe(lambda e: calls.append(f"a:{e.event_name}"))
    unsubscribe = channel.subscribe(lambda e: calls.append(f"b:{e.event_name}"))

    channel.publish(system_event(Severity.INFO, "one"))
    unsubscribe()
    channel.publish(system_event(Severity.INFO, "two"))

    assert calls == ["a:systemInfo", "b:systemInfo", "a:systemInfo"]
    assert len(channel) == 1


def test_failing_subscriber_does_not_stop_others(caplog) -> None:
    channel = EventChannel("node")
    seen: list[EventData] = []

    def broken(_: EventData) -> None:
        raise RuntimeError("boom")

    channel.subscribe(broken)
    channel.subscribe(seen.append)

    with caplog.at_level(logging.ERROR):
        channel.publish_system(Severity.WARNING, "careful")

    assert len(seen) == 1
    assert "Subscriber of node failed" in caplog.text


def test_system_event_shape() -> None:
    e = system_event(Severity.NOTICE, "rotated")

    assert e.event_name == "systemNotice"
    assert e.severity is Severity.NOTICE
    assert e.captured_groups == ("notice", "rotated")
    assert e.logger == "system"
    assert e.timestamp.tzinfo is not None


def test_system_event_custom_name() -> None:
    e = system_event(Severity.ERROR, "down", event_name="telegramError", logger_name="telegram")

    assert e.event_name == "telegramError"
    assert e.logger == "telegram"
