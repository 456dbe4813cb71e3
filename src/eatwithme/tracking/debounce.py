"""
In-memory debounce cache for tracked events.

Maps a dedup key (event type + place + influencer + recommendation ids) to the
time in milliseconds it last fired. A key that fired less than `window_ms` ago
is suppressed.

Bounding: after a `record` pushes the cache above `max_entries`, a sweep drops
every entry older than `now - window_ms`. If a burst inside one window still
leaves too many entries, the oldest are dropped until `max_entries` remain.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_WINDOW_MS = 2000
DEFAULT_MAX_ENTRIES = 100


@dataclass
class DebounceCache:
    window_ms: int = DEFAULT_WINDOW_MS
    max_entries: int = DEFAULT_MAX_ENTRIES
    _last_fired: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.window_ms < 0:
            raise ValueError("window_ms must be >= 0")
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")

    def __len__(self) -> int:
        return len(self._last_fired)

    def __contains__(self, key: str) -> bool:
        return key in self._last_fired

    def should_suppress(self, key: str, now_ms: int) -> bool:
        last = self._last_fired.get(key)
        return last is not None and now_ms - last < self.window_ms

    def record(self, key: str, now_ms: int) -> None:
        # Re-insert so dict order stays "oldest fired first".
        self._last_fired.pop(key, None)
        self._last_fired[key] = now_ms
        if len(self._last_fired) > self.max_entries:
            self.sweep(now_ms)

    def sweep(self, now_ms: int) -> int:
        """Evict stale entries (then the oldest, if still over capacity); return count removed."""
        cutoff = now_ms - self.window_ms
        stale = [k for k, t in self._last_fired.items() if t < cutoff]
        for k in stale:
            del self._last_fired[k]
        removed = len(stale)

        # A burst of distinct keys inside one window: evict the oldest even though
        # they are still live. Memory stays bounded; an evicted key may fire again early.
        overflow = len(self._last_fired) - self.max_entries
        if overflow > 0:
            for k in list(self._last_fired)[:overflow]:
                del self._last_fired[k]
            removed += overflow
        return removed

    def clear(self) -> None:
        self._last_fired.clear()
