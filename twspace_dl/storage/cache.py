"""
A per-session, in-memory store for values resolved while downloading a Space.
Entries are write-once: the first successful write for a key wins and is never
replaced for the lifetime of the cache.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any

log = logging.getLogger(__name__)

GUEST_TOKEN = "guest_token"
METADATA = "metadata"
DYN_URL = "dyn_url"
MASTER_PLAYLIST = "master_playlist"
PLAYLIST_URL = "playlist_url"
PLAYLIST_CONTENT = "playlist_content"
FILENAME = "filename"


class ResolutionCache:
    """
    Write-once key/value store owned by a single Session.

    Failures are never stored, so an absent key only means "not resolved yet".
    """

    def __init__(self):
        self._entries: dict[str, Any] = {}
        self._write_lock = threading.Lock()
        self._key_locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Returns the cached value for `key`, or None if it was never resolved."""
        return self._entries.get(key)

    def put_if_absent(self, key: str, value: Any) -> bool:
        """
        Stores `value` under `key` unless the key is already populated.

        Returns:
            True if this call populated the key, False if an earlier write won.
        """
        with self._write_lock:
            if key in self._entries:
                log.debug(f"Cache key '{key}' already populated, discarding new value.")
                return False
            self._entries[key] = value
            return True

    def _get_key_lock(self, key: str) -> asyncio.Lock:
        with self._write_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = asyncio.Lock()
            return lock

    async def get_or_resolve(
        self, key: str, resolve: Callable[[], Awaitable[Any]]
    ) -> Any:
        """
        Returns the cached value for `key`, calling `resolve` on a miss.

        Concurrent callers for the same key wait for the first resolution
        instead of issuing their own. Exceptions from `resolve` propagate and
        leave the key empty.
        """
        # First check (outside lock) for the common cached case
        if key in self._entries:
            log.debug(f"Cache hit for '{key}'.")
            return self.get(key)

        async with self._get_key_lock(key):
            # Second check (inside lock) in case another task just resolved it
            if key in self._entries:
                return self.get(key)

            value = await resolve()
            self.put_if_absent(key, value)
            return self.get(key)
