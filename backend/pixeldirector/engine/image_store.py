"""In-memory store of uploaded images, addressed by opaque handles with a TTL."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from pixeldirector.errors import NotFoundError

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "upload_"


@dataclass(frozen=True)
class StoredImage:
    handle: str
    data_uri: str
    created_at: float


class ImageStore:
    """Bounded, expiring map of handle -> image data URI.

    Expiry is checked on access and by ``sweep()``; nothing runs in the
    background. The oldest entry is evicted once ``max_entries`` is reached.
    """

    def __init__(
        self,
        ttl_s: float = 3600.0,
        max_entries: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, StoredImage] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, data_uri: str) -> StoredImage:
        handle = f"{HANDLE_PREFIX}{secrets.token_hex(8)}"
        entry = StoredImage(handle=handle, data_uri=data_uri, created_at=self._clock())
        with self._lock:
            self._entries[handle] = entry
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("ImageStore: evicted %s (capacity %d)", evicted, self.max_entries)
        return entry

    def get(self, handle: str) -> StoredImage | None:
        with self._lock:
            entry = self._entries.get(handle)
            if entry is None:
                return None
            if self._expired(entry):
                del self._entries[handle]
                return None
            return entry

    def resolve(self, reference: str) -> str:
        """Turn a handle into its data URI. Non-handles pass through unchanged."""
        if not reference.startswith(HANDLE_PREFIX):
            return reference
        entry = self.get(reference)
        if entry is None:
            raise NotFoundError(reference)
        return entry.data_uri

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            expired = [h for h, e in self._entries.items() if self._expired(e)]
            for handle in expired:
                del self._entries[handle]
        if expired:
            logger.info("ImageStore: swept %d expired uploads", len(expired))
        return len(expired)

    def _expired(self, entry: StoredImage) -> bool:
        return self._clock() - entry.created_at > self.ttl_s
