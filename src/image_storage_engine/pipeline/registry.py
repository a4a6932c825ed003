"""Process wide bookkeeping of object keys being written per upload."""

import asyncio
from typing import Dict, List, Optional


class InFlightRegistry:
    """
    Maps an upload's original name to the keys dispatched for it.

    Entries exist from the start of an upload until it succeeds; a failed
    upload leaves its entry so the removal path knows what to delete. All
    access goes through the lock and returned lists are copies.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, List[str]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def lock(self) -> asyncio.Lock:
        # One lock per event loop; sync wrappers run each call in a new loop.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def register(self, identity: str) -> None:
        """Start a fresh, empty entry for ``identity``."""
        async with self.lock:
            self._entries[identity] = []

    async def append(self, identity: str, key: str) -> None:
        """Record a key; recreates the entry if it was taken in the meantime."""
        async with self.lock:
            self._entries.setdefault(identity, []).append(key)

    async def keys(self, identity: str) -> Optional[List[str]]:
        """Copy of the keys registered for ``identity``, or None."""
        async with self.lock:
            entry = self._entries.get(identity)
            return list(entry) if entry is not None else None

    async def take(self, identity: str) -> Optional[List[str]]:
        """Remove the entry and return its keys, or None when there is none."""
        async with self.lock:
            return self._entries.pop(identity, None)

    async def discard(self, identity: str) -> None:
        """Drop the entry if present."""
        async with self.lock:
            self._entries.pop(identity, None)

    async def contains(self, identity: str) -> bool:
        async with self.lock:
            return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)
