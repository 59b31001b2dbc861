"""Module entrypoint.

Allows:
    python -m bisq_watcher
"""

from __future__ import annotations

from bisq_watcher.cli import main

if __name__ == "__main__":
    main()
