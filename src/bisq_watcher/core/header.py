"""Record header grammar of the Bisq application log."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, tzinfo

from .models import RecordHeader, Severity

_MONTHS = {
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
}

_LEVELS = {
    "ALERT": Severity.ALERT,
    "ERROR": Severity.ERROR,
    "WARN": Severity.WARNING,
    "INFO": Severity.INFO,
    "DEBUG": Severity.DEBUG,
}


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True, slots=True)
class HeaderParser:
    """Parse ``Mon-DD HH:MM:SS.mmm [thread] LEVEL logger: message`` lines.

    The log carries no year, so the current year is assumed and rolled back
    by one when that would put the record in the future. Timestamps are
    local time with the UTC offset in effect on that date, unless ``tz``
    pins a zone.
    """

    clock: Callable[[], datetime] = field(default=_local_now)
    tz: tzinfo | None = None

    _re = re.compile(
        r"^(?P<mon>[A-Z][a-z]{2})-(?P<day>\d{1,2}) "
        r"(?P<h>\d{1,2}):(?P<m>\d{2}):(?P<s>\d{2})\.(?P<ms>\d{1,3}) "
        r"\[(?P<thread>.*?)\] "
        r"(?P<level>\w+)\s+"
        r"(?P<logger>.*?):"
    )

    def _timestamp(self, m: re.Match[str]) -> datetime | None:
        month = _MONTHS.get(m.group("mon"))
        if month is None:
            return None

        now = self.clock()
        fields = (
            month,
            int(m.group("day")),
            int(m.group("h")),
            int(m.group("m")),
            int(m.group("s")),
            int(m.group("ms").ljust(3, "0")) * 1000,
        )
        for year in (now.year, now.year - 1):
            try:
                ts = datetime(year, *fields, tzinfo=self.tz)
                if self.tz is None:
                    ts = ts.astimezone()
            except ValueError:
                # Feb-29 outside a leap year, or an invalid day
                continue
            if ts <= now:
                return ts
        return None

    def parse(self, line: str) -> RecordHeader | None:
        """Return the header of ``line`` or None for a continuation line."""
        m = self._re.match(line)
        if not m:
            return None

        ts = self._timestamp(m)
        if ts is None:
            return None

        return RecordHeader(
            timestamp=ts,
            severity=_LEVELS.get(m.group("level"), Severity.UNKNOWN),
            thread=m.group("thread"),
            logger=m.group("logger"),
        )
