"""Core data models for the watcher pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Severity(str, Enum):
    """Syslog severities used for records, rules and sink thresholds."""

    EMERG = "emerg"
    ALERT = "alert"
    CRIT = "crit"
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFO = "info"
    DEBUG = "debug"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        """Numeric syslog rank (lower is more severe)."""
        return _RANKS[self]

    def admitted_by(self, threshold: Severity) -> bool:
        """Return True when a sink with ``threshold`` accepts this severity."""
        return self.rank <= threshold.rank


# UNKNOWN ranks like DEBUG: only the most verbose sinks see it.
_RANKS: dict[Severity, int] = {
    Severity.EMERG: 0,
    Severity.ALERT: 1,
    Severity.CRIT: 2,
    Severity.ERROR: 3,
    Severity.WARNING: 4,
    Severity.NOTICE: 5,
    Severity.INFO: 6,
    Severity.DEBUG: 7,
    Severity.UNKNOWN: 7,
}


@dataclass(frozen=True, slots=True)
class Rule:
    """A named pattern with the message rendered when it matches."""

    event_name: str
    pattern: str
    message: str
    logger: str | None = None
    thread: str | None = None
    level: Severity | None = None  # overrides the record severity when set
    send_to_telegram: bool = True
    is_active: bool = True

    def admits_origin(self, logger: str | None, thread: str | None) -> bool:
        """Check the rule's origin filters against a record's logger/thread."""
        if self.logger and self.logger != logger:
            return False
        if self.thread and self.thread != thread:
            return False
        return True


@dataclass(frozen=True, slots=True)
class RecordHeader:
    """Metadata extracted from the first line of a log record."""

    timestamp: datetime
    severity: Severity
    thread: str
    logger: str


@dataclass(slots=True)
class LogRecord:
    """One logical multi-line log entry."""

    header: RecordHeader
    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def append(self, line: str) -> None:
        self.lines.append(line)


@dataclass(frozen=True, slots=True)
class EventData:
    """A matched (or synthetic) event handed to the dispatcher.

    ``captured_groups[0]`` is the whole match, ``captured_groups[n + 1]`` the
    text captured by placeholder ``{n}``.
    """

    timestamp: datetime
    severity: Severity
    event_name: str
    captured_groups: tuple[str, ...]
    logger: str | None = None
    thread: str | None = None
