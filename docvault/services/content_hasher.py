"""SHA-256 hashing for in-memory content and files on disk.

File hashes are streamed in fixed-size chunks on a worker thread and cached
in a ``cachetools.TTLCache`` keyed by ``(resolved path, size, mtime_ns)``,
so a file that changes on disk is hashed again while repeated ingests of
an unchanged file are served from memory.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from pathlib import Path

import structlog
from cachetools import TTLCache

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_CHUNK_SIZE = 1024 * 1024

_CacheKey = tuple[str, int, int]


def hash_bytes(data: bytes | bytearray | memoryview) -> str:
    """Return the SHA-256 hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def _hash_file_sync(path: Path, chunk_size: int) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ContentHasher:
    """Streaming file hasher with a TTL cache.

    Parameters
    ----------
    chunk_size:
        Bytes read per iteration when streaming a file.
    cache_size:
        Maximum number of cached file digests.
    cache_ttl:
        Seconds a cached digest stays valid.
    """

    def __init__(
        self,
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
        cache_size: int = 1000,
        cache_ttl: int = 3600,
    ) -> None:
        self._chunk_size = chunk_size
        self._cache: TTLCache[_CacheKey, str] = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self._hits = 0
        self._misses = 0

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def hash_bytes(self, data: bytes | bytearray | memoryview) -> str:
        return hash_bytes(data)

    async def hash_file(self, path: str | Path, stat_result: os.stat_result | None = None) -> str:
        """Stream *path* through SHA-256, using the cache when the file is unchanged.

        Parameters
        ----------
        path:
            File to hash.
        stat_result:
            A fresh ``os.stat`` of *path*; taken here when omitted.

        Returns
        -------
        str
            Hex digest.
        """
        file_path = Path(path)
        st = stat_result if stat_result is not None else await asyncio.to_thread(os.stat, file_path)
        key: _CacheKey = (str(file_path.resolve()), st.st_size, st.st_mtime_ns)

        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            logger.debug("hash_cache_hit", path=str(file_path))
            return cached

        self._misses += 1
        digest = await asyncio.to_thread(_hash_file_sync, file_path, self._chunk_size)
        self._cache[key] = digest
        logger.debug("file_hashed", path=str(file_path), size=st.st_size)
        return digest

    def cache_stats(self) -> dict[str, float | int]:
        """Return hit/miss counters and the current cache occupancy."""
        lookups = self._hits + self._misses
        return {
            "size": len(self._cache),
            "max_size": int(self._cache.maxsize),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
        }

    def clear_cache(self) -> None:
        """Drop every cached digest and reset the counters."""
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        logger.debug("hash_cache_cleared")
