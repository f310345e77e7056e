"""
Detection Result Cache

Per-URL cache of engine results with a fixed TTL (12 hours).
Key = hash_url(url), a short deterministic 32-bit string hash.
Collisions are accepted: two URLs sharing a hash share an entry.

All entries live in ONE document (url_hash -> entry) stored under
one key of a KeyValueStore. Every operation is a whole-document
load -> mutate -> save, serialized through a single asyncio lock
so interleaved callers cannot lose each other's updates.

Expired entries are dropped lazily by get() and in batch by sweep().
Nothing here schedules sweep(); callers run it periodically.

Storage failures are logged and degrade to "no cached result" /
"write skipped". Detection never depends on the cache.

Usage:
    cache = DetectionCache(SQLiteStore(settings.CACHE_DB_PATH))
    entry = await cache.get(url)
    if entry is None:
        detections = engine.run(bundle)
        await cache.put(url, page_meta, detections)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from pagedetect.config import settings
from pagedetect.errors import StorageError
from pagedetect.results import Detection
from pagedetect.schemas.rules import CHANNELS
from pagedetect.schemas.signals import PageMeta
from pagedetect.scorer import round_half_up
from pagedetect.storage import KeyValueStore

logger = logging.getLogger(__name__)

HOUR = 3600
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def hash_url(url: str) -> str:
    """
    Deterministic non-cryptographic hash of a URL, base-36 encoded.

    Classic `hash * 31 + code_unit` over UTF-16 code units, wrapped
    to a signed 32-bit integer at each step; the absolute value is
    encoded. Keys written by earlier versions stay addressable.
    """
    data = url.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def build_channel_index(detections: Sequence[Detection]) -> dict[str, list[dict]]:
    """Matches grouped by channel, for inspection without re-scanning."""
    index: dict[str, list[dict]] = {channel: [] for channel in CHANNELS}
    for detection in detections:
        for match in detection.matches:
            if match.channel not in index:
                continue
            index[match.channel].append({
                "pattern": match.pattern,
                "confidence": match.confidence,
                "detector": detection.detector.name,
            })
    return index


def overall_confidence(detections: Sequence[Detection]) -> int:
    """
    Plain mean of each detection's own confidence.

    Coarser than scorer.average_confidence(), which averages the
    match confidences inside a single detection.
    """
    if not detections:
        return 0
    return round_half_up(sum(d.confidence for d in detections) / len(detections))


@dataclass
class CacheEntry:
    """One cached analysis of a URL."""
    url_hash: str
    url: str
    hostname: str
    favicon: str
    detections: list[Detection]
    channel_index: dict[str, list[dict]]
    created_at: float
    expires_at: float
    overall_confidence: int
    count: int
    core_version: str = settings.CORE_VERSION

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "url_hash": self.url_hash,
            "url": self.url,
            "hostname": self.hostname,
            "favicon": self.favicon,
            "detections": [d.to_dict() for d in self.detections],
            "channel_index": self.channel_index,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "overall_confidence": self.overall_confidence,
            "count": self.count,
            "core_version": self.core_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """Rebuild an entry from its stored form. Raises ValueError if malformed."""
        try:
            return cls(
                url_hash=data["url_hash"],
                url=data["url"],
                hostname=data.get("hostname", ""),
                favicon=data.get("favicon", ""),
                detections=[Detection.from_dict(d) for d in data.get("detections", [])],
                channel_index=data.get("channel_index") or {},
                created_at=float(data["created_at"]),
                expires_at=float(data["expires_at"]),
                overall_confidence=int(data.get("overall_confidence", 0)),
                count=int(data.get("count", 0)),
                core_version=data.get("core_version", settings.CORE_VERSION),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ValueError(f"malformed cache entry: {exc}") from exc


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    expired: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "expired": self.expired,
            "errors": self.errors,
            "hit_rate": round(self.hits / total, 3) if total > 0 else 0.0,
        }


class DetectionCache:
    """TTL cache of detection results over a single shared document."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: Optional[float] = None,
        storage_key: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_HOURS * HOUR
        self._storage_key = storage_key or settings.CACHE_STORAGE_KEY
        self._clock = clock
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    @staticmethod
    def key(url: str) -> str:
        return hash_url(url)

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def stats(self) -> dict:
        return self._stats.as_dict()

    # --------------------------------------------------------
    # Document I/O (callers hold the lock)
    # --------------------------------------------------------

    async def _load(self) -> dict[str, Any]:
        result = await self._store.get([self._storage_key])
        document = result.get(self._storage_key)
        return dict(document) if isinstance(document, dict) else {}

    async def _save(self, document: dict[str, Any]) -> None:
        await self._store.set({self._storage_key: document})

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    async def get(self, url: str) -> Optional[CacheEntry]:
        """Return the live entry for url, or None (expired entries are removed)."""
        url_hash = self.key(url)
        try:
            async with self._lock:
                document = await self._load()
                raw = document.get(url_hash)
                if raw is None:
                    self._stats.misses += 1
                    logger.debug("Cache miss", extra={"url": url, "url_hash": url_hash})
                    return None

                try:
                    entry = CacheEntry.from_dict(raw)
                except ValueError as exc:
                    logger.warning("Dropping unreadable cache entry: %s", exc,
                                   extra={"url_hash": url_hash})
                    entry = None

                if entry is not None and self._clock() < entry.expires_at:
                    self._stats.hits += 1
                    logger.debug("Cache hit", extra={"url": url, "url_hash": url_hash})
                    return entry

                del document[url_hash]
                await self._save(document)
                self._stats.misses += 1
                self._stats.expired += 1
                logger.info("Removed expired cache entry", extra={"url": url, "url_hash": url_hash})
                return None
        except StorageError as exc:
            self._stats.errors += 1
            logger.error("Cache read failed: %s", exc, extra={"url": url, "error": str(exc)})
            return None

    async def put(
        self,
        url: str,
        page_meta: Optional[PageMeta],
        detections: Sequence[Detection],
    ) -> Optional[CacheEntry]:
        """Store detections for url. Returns the entry, or None if the write failed."""
        page_meta = page_meta or PageMeta.from_url(url)
        now = self._clock()
        entry = CacheEntry(
            url_hash=self.key(url),
            url=url,
            hostname=page_meta.hostname,
            favicon=page_meta.favicon,
            detections=list(detections),
            channel_index=build_channel_index(detections),
            created_at=now,
            expires_at=now + self._ttl,
            overall_confidence=overall_confidence(detections),
            count=len(detections),
        )
        try:
            async with self._lock:
                document = await self._load()
                document[entry.url_hash] = entry.to_dict()
                await self._save(document)
        except StorageError as exc:
            self._stats.errors += 1
            logger.error("Cache write skipped: %s", exc, extra={"url": url, "error": str(exc)})
            return None

        self._stats.writes += 1
        logger.info("Stored detections", extra={"url": url, "count": entry.count})
        return entry

    async def sweep(self) -> int:
        """Remove every entry past its expiry. Saves once, only if something was removed."""
        now = self._clock()
        try:
            async with self._lock:
                document = await self._load()
                expired = [
                    url_hash for url_hash, raw in document.items()
                    if _expires_at(raw) < now
                ]
                for url_hash in expired:
                    del document[url_hash]
                if expired:
                    await self._save(document)
        except StorageError as exc:
            self._stats.errors += 1
            logger.error("Cache sweep failed: %s", exc, extra={"error": str(exc)})
            return 0

        if expired:
            self._stats.expired += len(expired)
            logger.info("Swept %d expired cache entries", len(expired),
                        extra={"removed": len(expired)})
        return len(expired)

    async def delete(self, url: str) -> bool:
        """Remove the entry for url. True if one was removed."""
        url_hash = self.key(url)
        try:
            async with self._lock:
                document = await self._load()
                if document.pop(url_hash, None) is None:
                    return False
                await self._save(document)
                return True
        except StorageError as exc:
            self._stats.errors += 1
            logger.error("Cache delete failed: %s", exc, extra={"url": url, "error": str(exc)})
            return False

    async def clear(self) -> None:
        """Drop the whole cache document."""
        try:
            async with self._lock:
                await self._store.remove([self._storage_key])
        except StorageError as exc:
            self._stats.errors += 1
            logger.error("Cache clear failed: %s", exc, extra={"error": str(exc)})

    async def entries(self) -> list[CacheEntry]:
        """Live entries, newest first. Does not remove expired ones."""
        try:
            async with self._lock:
                document = await self._load()
        except StorageError as exc:
            self._stats.errors += 1
            logger.error("Cache listing failed: %s", exc, extra={"error": str(exc)})
            return []

        now = self._clock()
        live = []
        for raw in document.values():
            try:
                entry = CacheEntry.from_dict(raw)
            except ValueError:
                continue
            if now < entry.expires_at:
                live.append(entry)
        return sorted(live, key=lambda e: e.created_at, reverse=True)


def _expires_at(raw: Any) -> float:
    # Unreadable entries count as already expired
    try:
        return float(raw["expires_at"])
    except (KeyError, TypeError, ValueError):
        return float("-inf")
