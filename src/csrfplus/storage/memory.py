"""In-process secret store with lazy expiry.

Entries carry an absolute expiry on the monotonic clock and are dropped when
read after that point. An optional sweep task removes expired entries that
nobody reads again; it never makes an expired entry visible.

The store is bounded: once it holds ``max_entries`` keys, inserting a new
key first drops expired entries and then evicts the oldest inserted ones.

Each store is constructed explicitly and owns its sweep task. Call
``close()`` on shutdown to cancel it. The sweep task runs on the event loop
that was active at the first ``set``; if that loop is closed, the next
``set`` on a live loop starts a fresh sweeper.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time

__all__ = ["MemoryStore"]

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: str, expires_at: float | None):
        self.value = value
        self.expires_at = expires_at

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryStore:
    """Dict-backed ``SecretStore``.

    Parameters
    ----------
    sweep_interval : float | None
        Seconds between background sweeps of expired entries. ``None`` or
        ``0`` disables the sweep; lazy expiry on read still applies.
    max_entries : int
        Upper bound on stored keys. Must be positive.
    """

    def __init__(self, sweep_interval: float | None = 60.0, max_entries: int = 100_000):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.sweep_interval = sweep_interval
        self.max_entries = max_entries
        self._entries: dict[str, _Entry] = {}
        self._sweep_task: asyncio.Task | None = None
        self._closed = False

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(time.monotonic()):
            del self._entries[key]
            return None
        return entry.value

    async def set(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._make_room()
        self._entries[key] = _Entry(value, expires_at)
        if expires_at is not None:
            self._ensure_sweeper()

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def cleanup(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = time.monotonic()
        stale = [k for k, e in self._entries.items() if e.expired(now)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    async def close(self) -> None:
        """Cancel the sweep task. Safe to call more than once."""
        self._closed = True
        task, self._sweep_task = self._sweep_task, None
        if task is None or task.get_loop().is_closed():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _make_room(self) -> None:
        self.cleanup()
        overflow = len(self._entries) - self.max_entries + 1
        if overflow <= 0:
            return
        for k in list(itertools.islice(self._entries, overflow)):
            del self._entries[k]
        logger.debug("Evicted %d CSRF secrets, store at capacity", overflow)

    def _ensure_sweeper(self) -> None:
        if not self.sweep_interval or self._closed:
            return
        task = self._sweep_task
        if task is not None and not task.done() and not task.get_loop().is_closed():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.cleanup()
            if removed:
                logger.debug("Swept %d expired CSRF secrets", removed)
