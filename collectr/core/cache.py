"""Directory summary cache with TTL and modification-time invalidation."""

import json
import logging
import os
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .models import CacheEntry, DirectorySummary

logger = logging.getLogger(__name__)


def normalize_path(path: str | Path) -> str:
    """Cache key for a filesystem path."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


class MetadataCache:
    """Maps directory paths to previously computed summaries.

    An entry is served only while all of these hold:

    * it was inserted less than ``CACHE_TTL_SECONDS`` ago,
    * the directory's mtime has not advanced past the one recorded at insertion,
    * the directory still exists.

    Any violation evicts the entry. Missed paths can be queued for a background
    preload that re-surveys them with ``loader`` on a small worker pool.
    """

    CACHE_VERSION = "2.0.0"
    CACHE_FILENAME = ".media-collection-cache.json"
    CACHE_TTL_SECONDS = 24 * 60 * 60
    PRELOAD_BATCH_SIZE = 20
    PRELOAD_CONCURRENCY = 3

    def __init__(
        self,
        cache_dir: Path | None = None,
        loader: Callable[[str], DirectorySummary] | None = None,
        preload_batch_size: int = PRELOAD_BATCH_SIZE,
        preload_concurrency: int = PRELOAD_CONCURRENCY,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize an empty cache persisted under cache_dir."""
        self.cache_path = (cache_dir or Path.cwd()) / self.CACHE_FILENAME
        self.loader = loader
        self.preload_batch_size = preload_batch_size
        self.preload_concurrency = preload_concurrency
        self.clock = clock

        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._preload_queue: dict[str, None] = {}
        self._preload_thread: threading.Thread | None = None
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: str | Path) -> bool:
        with self._lock:
            return normalize_path(path) in self._entries

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, path: str | Path) -> DirectorySummary | None:
        """Return the cached summary for path, or None if absent or stale."""
        key = normalize_path(path)

        with self._lock:
            entry = self._entries.get(key)

        if entry is None:
            self._record_miss(key, queue=True)
            return None

        if self.clock() - entry.cached_at > self.CACHE_TTL_SECONDS:
            self._evict(key, entry)
            self._record_miss(key, queue=True)
            return None

        try:
            current_mtime = os.stat(key).st_mtime
        except FileNotFoundError:
            self._evict(key, entry)
            self._record_miss(key, queue=False)
            return None
        except OSError as e:
            logger.warning(f"Could not stat cached path {key}: {e}")
            self._evict(key, entry)
            self._record_miss(key, queue=True)
            return None

        if current_mtime > entry.last_modified:
            logger.debug(f"Cache entry for {key} invalidated by modification")
            self._evict(key, entry)
            self._record_miss(key, queue=True)
            return None

        with self._lock:
            self.hits += 1
        return entry.summary

    def set(self, path: str | Path, summary: DirectorySummary) -> None:
        """Cache summary for path, recording the directory's current mtime."""
        key = normalize_path(path)
        try:
            last_modified = os.stat(key).st_mtime
        except OSError as e:
            # Without an mtime the entry could never be validated
            logger.warning(f"Not caching {key}: {e}")
            return

        entry = CacheEntry(summary=summary, last_modified=last_modified, cached_at=self.clock())
        with self._lock:
            self._entries[key] = entry

    def invalidate_expired(self) -> int:
        """Drop entries older than the TTL and return how many were removed."""
        now = self.clock()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if now - entry.cached_at > self.CACHE_TTL_SECONDS
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info(f"Removed {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._preload_queue.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def stats(self) -> dict:
        """Entry count, insertion time range, queue size and hit counters."""
        with self._lock:
            timestamps = [entry.cached_at for entry in self._entries.values()]
            return {
                "total_entries": len(timestamps),
                "oldest_entry": min(timestamps) if timestamps else None,
                "newest_entry": max(timestamps) if timestamps else None,
                "preload_queue_size": len(self._preload_queue),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / (self.hits + self.misses) if self.hits + self.misses else 0.0,
            }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Load entries from disk; unreadable or foreign files leave the cache empty."""
        if not self.cache_path.exists():
            return 0

        try:
            with open(self.cache_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load cache from {self.cache_path}, starting fresh: {e}")
            return 0

        if not isinstance(data, dict) or data.get("version") != self.CACHE_VERSION:
            logger.warning("Cache version mismatch, starting with fresh cache")
            return 0

        entries = {}
        try:
            for key, raw in data.get("entries", {}).items():
                entries[key] = CacheEntry(
                    summary=DirectorySummary.from_dict(raw["summary"]),
                    last_modified=float(raw["last_modified"]),
                    cached_at=float(raw["cached_at"]),
                )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Corrupt cache file {self.cache_path}, starting fresh: {e}")
            return 0

        with self._lock:
            self._entries = entries
        logger.info(f"Loaded {len(entries)} cached entries")
        return len(entries)

    def save(self) -> bool:
        """Write entries to disk. Failures are logged, never raised."""
        with self._lock:
            data = {
                "version": self.CACHE_VERSION,
                "entries": {
                    key: {
                        "summary": entry.summary.to_dict(),
                        "last_modified": entry.last_modified,
                        "cached_at": entry.cached_at,
                    }
                    for key, entry in self._entries.items()
                },
            }

        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.cache_path.with_suffix(".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.cache_path)
        except OSError as e:
            logger.warning(f"Failed to save cache to {self.cache_path}: {e}")
            return False

        logger.info(f"Saved cache with {len(data['entries'])} entries")
        return True

    # ------------------------------------------------------------------
    # Background preload
    # ------------------------------------------------------------------

    def preload_paths(self, paths: Iterable[str | Path], wait: bool = True) -> None:
        """Queue paths for preloading and start a sweep right away."""
        with self._lock:
            for path in paths:
                self._preload_queue[normalize_path(path)] = None
        self._start_preload()
        if wait:
            self.wait_for_preload()

    def refresh_expiring_soon(self, threshold_seconds: float = 2 * 60 * 60, wait: bool = True) -> int:
        """Preload entries that expire within threshold_seconds."""
        now = self.clock()
        with self._lock:
            expiring = [
                key for key, entry in self._entries.items()
                if 0 < self.CACHE_TTL_SECONDS - (now - entry.cached_at) <= threshold_seconds
            ]

        if expiring:
            logger.info(f"Refreshing {len(expiring)} cache entries expiring soon")
            self.preload_paths(expiring, wait=wait)
        return len(expiring)

    def wait_for_preload(self, timeout: float | None = None) -> None:
        """Block until the running preload sweep, if any, has finished."""
        thread = self._preload_thread
        if thread is not None:
            thread.join(timeout)

    def _record_miss(self, key: str, queue: bool) -> None:
        start = False
        with self._lock:
            self.misses += 1
            if queue and self.loader is not None and key not in self._preload_queue:
                self._preload_queue[key] = None
                start = len(self._preload_queue) >= self.preload_batch_size
        if start:
            self._start_preload()

    def _evict(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            # A concurrent set() may already have replaced the stale entry
            if self._entries.get(key) is entry:
                del self._entries[key]

    def _start_preload(self) -> None:
        if self.loader is None:
            return

        with self._lock:
            if self._preload_thread is not None and self._preload_thread.is_alive():
                return
            batch = self._take_batch()
            if not batch:
                return
            self._preload_thread = threading.Thread(
                target=self._run_preload, args=(batch,), name="cache-preload", daemon=True
            )
            self._preload_thread.start()

    def _take_batch(self) -> list[str]:
        # Caller holds the lock
        batch = list(self._preload_queue)[: self.preload_batch_size]
        for key in batch:
            del self._preload_queue[key]
        return batch

    def _run_preload(self, batch: list[str]) -> None:
        """Drain the preload queue one batch at a time."""

        def preload_one(path: str) -> bool:
            if not os.path.isdir(path):
                return False
            try:
                summary = self.loader(path)
            except Exception as e:
                logger.warning(f"Background preload failed for {path}: {e}")
                return False
            self.set(path, summary)
            return True

        with ThreadPoolExecutor(
            max_workers=self.preload_concurrency, thread_name_prefix="cache-preload"
        ) as pool:
            while batch:
                logger.info(f"Starting background cache preload for {len(batch)} paths")
                results = list(pool.map(preload_one, batch))
                logger.info(f"Background preload complete: {sum(results)}/{len(batch)} paths cached")
                with self._lock:
                    batch = self._take_batch()
