"""Resolve environment-variable and home-directory tokens in configured paths."""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Mapping
from pathlib import Path

_WINDOWS_VAR_RE = re.compile(r"%([^%]+)%")
_POSIX_VAR_RE = re.compile(r"\$(\w+)")


def resolve_log_path(
    raw: str,
    *,
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> Path:
    """Expand ``%VAR%`` (Windows) or ``$VAR`` and a leading ``~`` (elsewhere).

    Unknown variables expand to an empty string.
    """
    platform = platform or sys.platform
    env = os.environ if environ is None else environ

    if platform == "win32":
        return Path(_WINDOWS_VAR_RE.sub(lambda m: env.get(m.group(1), ""), raw))

    resolved = _POSIX_VAR_RE.sub(lambda m: env.get(m.group(1), ""), raw)
    if resolved.startswith("~"):
        base = home if home is not None else Path.home()
        return base / resolved[1:].lstrip("/")
    return Path(resolved)
