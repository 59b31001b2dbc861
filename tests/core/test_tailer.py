from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from bisq_watcher.core.models import EventData
from bisq_watcher.core.rules import MatchingRule
from bisq_watcher.core.tailer import LogTailer

ANY_ORIGIN = ((None, None),)

MESSAGE_RULE = MatchingRule(event_name="message", pattern="message {0}", origins=ANY_ORIGIN)


def _named(seen: list[EventData], name: str) -> list[EventData]:
    return [e for e in seen if e.event_name == name]


def _texts(seen: list[EventData]) -> list[str]:
    return [e.captured_groups[1] for e in seen if e.event_name.startswith("system")]


@pytest.mark.asyncio
async def test_multiline_records_are_reassembled(tmp_path: Path, line, write_records, events) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(
        path,
        [
            line("Trade failed", level="ERROR", logger="b.c.t.TradeManager"),
            "java.lang.RuntimeException: wrapper",
            "Caused by: java.io.IOException: disk full",
            "\tat bisq.core.Foo.bar(Foo.java:12)",
            line("message after"),
        ],
    )
    rule = MatchingRule(event_name="causedBy", pattern="Caused by: {0}", origins=ANY_ORIGIN)
    tailer = LogTailer(path, [rule], channel=channel, cache_only_at_start=False)

    await tailer.start()

    matched = _named(seen, "causedBy")
    assert len(matched) == 1
    assert matched[0].captured_groups[1] == "java.io.IOException: disk full"
    assert matched[0].logger == "b.c.t.TradeManager"
    assert matched[0].severity.value == "error"
    assert tailer.next_offset == path.stat().st_size


@pytest.mark.asyncio
async def test_overlapping_reads_emit_each_record_once(
    tmp_path: Path, line, write_records, append_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(path, [line(f"message {i}") for i in range(3)])
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel, cache_only_at_start=False)

    await tailer.start()
    await tailer.read_new_lines()
    await tailer.read_new_lines()
    assert [e.captured_groups[1] for e in _named(seen, "message")] == ["0", "1", "2"]

    append_records(path, [line("message 3")])
    await tailer.read_new_lines()

    assert [e.captured_groups[1] for e in _named(seen, "message")] == ["0", "1", "2", "3"]


@pytest.mark.asyncio
async def test_small_overlap_window_converges(
    tmp_path: Path, line, write_records, append_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(path, [line(f"message {i} " + "x" * 40) for i in range(5)])
    # far smaller than one record: the first cycles land inside the last record
    tailer = LogTailer(
        path, [MESSAGE_RULE], channel=channel, overlap_bytes=8, cache_only_at_start=False
    )
    await tailer.start()

    append_records(path, [line("message 5 " + "x" * 40), "  continued", line("message 6 tail")])
    await tailer.read_new_lines()

    values = [e.captured_groups[1].split()[0] for e in _named(seen, "message")]
    assert values == ["0", "1", "2", "3", "4", "5", "6"]
    assert tailer.next_offset == path.stat().st_size
    assert not any("Could not catch up" in t for t in _texts(seen))


@pytest.mark.asyncio
async def test_rotation_resets_offset_and_cache(
    tmp_path: Path, line, write_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    first = line("message first")
    second = line("message second")
    write_records(path, [first, second, line("message third")])
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel, cache_only_at_start=False)
    await tailer.start()
    assert len(_named(seen, "message")) == 3
    assert len(tailer.cache) == 3

    write_records(path, [first])
    await tailer.read_new_lines()

    assert len(tailer.cache) == 1
    assert tailer.cache.has(first)
    assert not tailer.cache.has(second)

    assert any("has been rotated" in t for t in _texts(seen))
    assert [e.captured_groups[1] for e in _named(seen, "message")] == [
        "first",
        "second",
        "third",
        "first",
    ]
    assert tailer.next_offset == path.stat().st_size


@pytest.mark.asyncio
async def test_cache_only_start_skips_existing_records(
    tmp_path: Path, line, write_records, append_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(path, [line("message old")])
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel)

    await tailer.start()
    assert _named(seen, "message") == []
    assert len(tailer.cache) == 1

    append_records(path, [line("message new")])
    await tailer.read_new_lines()

    assert [e.captured_groups[1] for e in _named(seen, "message")] == ["new"]


@pytest.mark.asyncio
async def test_missing_file_reports_error_and_keeps_state(
    tmp_path: Path, line, write_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "missing.log"
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel, cache_only_at_start=False)

    await tailer.start()

    assert any(t.startswith("File read error") for t in _texts(seen))
    assert tailer.next_offset == 0

    write_records(path, [line("message late")])
    await tailer.read_new_lines()
    assert [e.captured_groups[1] for e in _named(seen, "message")] == ["late"]


@pytest.mark.asyncio
async def test_change_during_read_schedules_one_more_pass(
    tmp_path: Path, line, write_records, append_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(path, [line("message a")])
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel, cache_only_at_start=False)

    task = asyncio.create_task(tailer.read_new_lines())
    await asyncio.sleep(0)
    assert tailer.state.is_reading

    append_records(path, [line("message b")])
    await tailer.read_new_lines()
    assert tailer.state.reread_requested

    await task
    assert not tailer.state.is_reading
    assert not tailer.state.reread_requested
    assert [e.captured_groups[1] for e in _named(seen, "message")] == ["a", "b"]


@pytest.mark.asyncio
async def test_notify_change_reads_new_records(
    tmp_path: Path, line, write_records, append_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(path, [line("message a")])

    class Notifier:
        callback = None

        def subscribe(self, p, cb):
            self.callback = cb
            return lambda: None

    notifier = Notifier()
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel)
    await tailer.start(notifier)

    append_records(path, [line("message b")])
    notifier.callback()
    await tailer.wait_idle()

    assert [e.captured_groups[1] for e in _named(seen, "message")] == ["b"]

    tailer.stop()
    append_records(path, [line("message c")])
    notifier.callback()
    await tailer.wait_idle()
    assert len(_named(seen, "message")) == 1
    assert any(t.startswith("Stopped watching file") for t in _texts(seen))


@pytest.mark.asyncio
async def test_origin_filter_and_compile_errors(
    tmp_path: Path, line, write_records, events
) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(
        path,
        [
            line("message one", logger="b.c.a.BisqSetup"),
            line("message two", logger="b.c.o.OfferBook", thread="UserThread"),
        ],
    )
    rules = [
        MatchingRule(event_name="offerBook", pattern="message {0}", origins=(("b.c.o.OfferBook", "UserThread"),)),
        MatchingRule(event_name="broken", pattern="message {0:nope}", origins=ANY_ORIGIN),
    ]
    tailer = LogTailer(path, rules, channel=channel, cache_only_at_start=False)

    await tailer.start()

    assert [e.captured_groups[1] for e in _named(seen, "offerBook")] == ["two"]
    assert _named(seen, "broken") == []
    assert any("Rule 'broken'" in t for t in _texts(seen))


@pytest.mark.asyncio
async def test_start_reports_progress(tmp_path: Path, line, write_records, events) -> None:
    channel, seen = events
    path = tmp_path / "bisq.log"
    write_records(path, [line(f"message {i}") for i in range(50)])
    tailer = LogTailer(path, [MESSAGE_RULE], channel=channel)

    await tailer.start()

    progress = [t for t in _texts(seen) if t.startswith("Reading the logfile at start... ")]
    assert progress[-1].endswith("100%")
    assert any(t.startswith("Started watching file") for t in _texts(seen))
