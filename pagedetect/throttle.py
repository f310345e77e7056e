"""
Request Throttle — Duplicate Analysis Suppression

Navigation often fires several analysis requests for the same
tab or URL within a second or two. The throttle remembers when each
key was last seen and tells callers to skip repeats inside the
threshold window.

In-memory, LRU-bounded, thread-safe.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Hashable, Optional

from pagedetect.config import settings

logger = logging.getLogger(__name__)

# Maximum number of keys tracked before LRU eviction
MAX_THROTTLE_KEYS = 5000


class RequestThrottle:
    """Skip repeated requests for the same key within a time window."""

    def __init__(
        self,
        threshold_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = MAX_THROTTLE_KEYS,
    ):
        self.threshold = (
            threshold_seconds if threshold_seconds is not None else settings.THROTTLE_SECONDS
        )
        self._clock = clock
        self._max_keys = max_keys
        self._seen: OrderedDict[Hashable, float] = OrderedDict()
        self._lock = threading.Lock()

    def should_skip(self, key: Hashable) -> bool:
        """
        True if key was seen less than `threshold` seconds ago.

        Otherwise records the request and returns False. A skipped
        request does not extend the window.
        """
        now = self._clock()
        with self._lock:
            last = self._seen.get(key)
            if last is not None and now - last < self.threshold:
                logger.debug("Skipping duplicate request for %r (%.3fs ago)", key, now - last)
                return True

            self._seen[key] = now
            self._seen.move_to_end(key)
            while len(self._seen) > self._max_keys:
                self._seen.popitem(last=False)
            return False

    def forget(self, key: Hashable) -> None:
        with self._lock:
            self._seen.pop(key, None)

    def cleanup(self, max_age: float = 10.0) -> int:
        """Drop keys not seen for max_age seconds. Returns how many were dropped."""
        cutoff = self._clock() - max_age
        with self._lock:
            stale = [k for k, seen in self._seen.items() if seen < cutoff]
            for key in stale:
                del self._seen[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
