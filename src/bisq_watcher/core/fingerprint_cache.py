"""Bounded set of record fingerprints used to deduplicate overlapping reads."""

from __future__ import annotations

import hashlib


class FingerprintCache:
    """Insertion-ordered set of record fingerprints with FIFO eviction.

    With ``use_hash`` the record text is reduced to a SHA-256 digest before it
    is stored or looked up, so the cache never retains raw log payloads.
    Lookups never reorder entries: the oldest insertion is evicted first.
    """

    def __init__(self, *, use_hash: bool = False, max_events: int | None = None) -> None:
        if max_events is not None and max_events < 1:
            raise ValueError("max_events must be >= 1")
        self._use_hash = use_hash
        self._max_events = max_events
        # dict keeps insertion order; values are unused
        self._items: dict[str, None] = {}

    @property
    def use_hash(self) -> bool:
        return self._use_hash

    @property
    def max_events(self) -> int | None:
        return self._max_events

    def _key(self, record: str) -> str:
        if self._use_hash:
            return hashlib.sha256(record.encode("utf-8", errors="surrogatepass")).hexdigest()
        return record

    def add(self, record: str) -> None:
        key = self._key(record)
        if key in self._items:
            return
        if self._max_events is not None and len(self._items) >= self._max_events:
            oldest = next(iter(self._items))
            del self._items[oldest]
        self._items[key] = None

    def has(self, record: str) -> bool:
        return self._key(record) in self._items

    def delete(self, record: str) -> bool:
        """Remove a fingerprint; return whether it was present."""
        key = self._key(record)
        if key not in self._items:
            return False
        del self._items[key]
        return True

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, record: object) -> bool:
        return isinstance(record, str) and self.has(record)
