"""Render events into the text handed to sinks."""

from __future__ import annotations

from datetime import UTC, datetime

from .models import EventData, Rule, Severity

TimestampMode = bool | str

ICONS: dict[Severity, str] = {
    Severity.EMERG: "🛑",
    Severity.ALERT: "🚨",
    Severity.CRIT: "💥",
    Severity.ERROR: "❗️",
    Severity.WARNING: "⚠️",
    Severity.NOTICE: "🔶",
    Severity.INFO: "💡",
    Severity.DEBUG: "🔍",
    Severity.UNKNOWN: "❔",
}


def format_timestamp(mode: TimestampMode, timestamp: datetime) -> str:
    """Return the bracketed timestamp prefix for a sink.

    ``True`` renders an ISO-8601 UTC instant with milliseconds, ``False``
    renders nothing, a string is used as a ``strftime`` format.
    """
    if mode is True:
        ts = timestamp.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return f"[{ts}] "
    if mode is False or not mode:
        return ""
    return f"[{timestamp.strftime(mode)}] "


def fill_template(template: str, captured_groups: tuple[str, ...]) -> str:
    """Substitute ``{n}`` with capture n and ``{*}`` with the whole match."""
    out = template
    for index, value in enumerate(captured_groups[1:]):
        out = out.replace(f"{{{index}}}", value)
    if captured_groups:
        out = out.replace("{*}", captured_groups[0], 1)
    return out


def render_message(
    rule: Rule,
    event: EventData,
    severity: Severity,
    *,
    timestamp_mode: TimestampMode = False,
    prefix: str | None = None,
) -> str:
    """Build ``[timestamp] icon [level] prefix: message`` for one sink."""
    ts = format_timestamp(timestamp_mode, event.timestamp)
    name = f"{prefix}: " if prefix else ""
    body = fill_template(rule.message, event.captured_groups)
    return f"{ts}{ICONS[severity]} [{severity.value}] {name}{body}"
