"""
File-based page cache.

One file per logical resource, named by its cache key. Freshness is the age
of the file's modification time; entries are overwritten on refresh and
never deleted (they simply go stale).
"""

import os
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import quote

from .config import FetchPolicy
from .exceptions import InvalidKeyError
from .logger import get_module_logger
from .schemas import CacheEntry

logger = get_module_logger("cache")

CACHE_SUFFIX = ".html"


def _key_segment(part: Union[str, int]) -> str:
    # Percent-encode everything, including "_" (the separator) and "~";
    # "%" then becomes "+", which quote() never emits on its own
    encoded = quote(str(part).strip().lower(), safe="")
    return encoded.replace("_", "%5F").replace("~", "%7E").replace("%", "+")


def cache_key(resource_type: str, *parts: Union[str, int]) -> str:
    """
    Build the cache key for a resource.

    The key is the resource type followed by its identifying parameters,
    lower-cased and percent-encoded so that distinct parameters always give
    distinct, filesystem-safe keys, e.g.
    ``cache_key("roster", "Eitrigg", "We Know", 2) == "roster_eitrigg_we+20know_2"``.
    """
    return "_".join(_key_segment(s) for s in (resource_type, *parts))


class CacheStore:
    """
    File-based cache mapping keys to fetched page bytes.

    ``clock`` returns the current time as a POSIX timestamp; it stamps the
    file mtime on write and is compared against it in is_fresh().
    """

    def __init__(self, cache_dir: Union[str, Path, None] = None,
                 clock: Callable[[], float] = time.time):
        if cache_dir is None:
            cache_dir = Path.cwd() / "cache"

        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.clock = clock

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        logger.info(f"Page cache initialized at: {self.cache_dir}")

    def _path(self, key: str) -> Path:
        if not key:
            raise InvalidKeyError()
        return self.cache_dir / f"{key}{CACHE_SUFFIX}"

    def _lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def age(self, key: str) -> Optional[float]:
        """Seconds since the entry was written, or None if there is no entry."""
        path = self._path(key)
        try:
            return self.clock() - path.stat().st_mtime
        except FileNotFoundError:
            return None

    def is_fresh(self, key: str, policy: FetchPolicy) -> bool:
        """
        True iff an entry exists and is young enough for ``policy``.

        With ``treat_existing_as_fresh`` any existing non-empty entry is
        fresh; an empty one is a failed download and is fetched again. With
        a negative ``max_age`` nothing is fresh.
        """
        path = self._path(key)
        try:
            stat = path.stat()
        except FileNotFoundError:
            logger.debug(f"Cache miss for key: {key}")
            return False
        age = self.clock() - stat.st_mtime

        if policy.treat_existing_as_fresh:
            if stat.st_size == 0:
                logger.debug(f"Cache entry {key} is empty, refetching")
                return False
            return True

        if policy.caching_disabled:
            return False

        fresh = age <= policy.max_age
        if not fresh:
            logger.debug(f"Cache entry {key} is stale ({age:.0f}s old)")
        return fresh

    def read(self, key: str) -> Optional[bytes]:
        """Return the cached bytes for ``key``, or None if there is no entry."""
        path = self._path(key)
        with self._lock(key):
            try:
                content = path.read_bytes()
            except FileNotFoundError:
                return None
        logger.debug(f"Cache hit for key: {key}")
        return content

    def write(self, key: str, content: bytes) -> None:
        """Unconditionally overwrite the entry for ``key``."""
        path = self._path(key)
        now = self.clock()
        with self._lock(key):
            path.write_bytes(content)
            os.utime(path, (now, now))
        logger.info(f"Cached {len(content)} bytes with key: {key} -> {path}")

    def entry(self, key: str) -> Optional[CacheEntry]:
        """The full cache entry (content plus fetch time) for ``key``."""
        path = self._path(key)
        with self._lock(key):
            try:
                mtime = path.stat().st_mtime
                content = path.read_bytes()
            except FileNotFoundError:
                return None
        return CacheEntry(
            key=key,
            last_fetched_at=datetime.fromtimestamp(mtime),
            content=content
        )

    def list_cached(self) -> list[dict]:
        """List all cached entries (without their content)."""
        entries = []
        for cache_file in sorted(self.cache_dir.glob(f"*{CACHE_SUFFIX}")):
            stat = cache_file.stat()
            entries.append({
                "cache_key": cache_file.stem,
                "last_fetched_at": datetime.fromtimestamp(stat.st_mtime).isoformat(),
                "size": stat.st_size,
                "file": str(cache_file)
            })
        return entries
