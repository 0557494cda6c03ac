"""
TTL cache - advisory key-value store with expiry for CPI maps and price histories.
Backends are interchangeable (memory, JSON files); clock is injected for tests.
"""

import os
import json
import time
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Awaitable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class CacheError(Exception):
    """Raised when a cache backend cannot be read or written."""
    pass


class MemoryBackend:
    """In-process backend. Entries disappear with the process."""

    def __init__(self) -> None:
        self._entries: Dict[str, Dict[str, Any]] = {}

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        return self._entries.get(key)

    def write(self, key: str, entry: Dict[str, Any]) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class JsonFileBackend:
    """
    One JSON file per key under a directory.

    Writes go through temp file → fsync → rename so a reader never sees a
    partially written entry.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe_key = ''.join(c if c.isalnum() or c in '-_.' else '_' for c in key)
        return self.directory / f'{safe_key}.json'

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            # Corrupt entries behave like a miss
            logger.warning(f"Ignoring unreadable cache entry {path}: {e}")
            return None

    def write(self, key: str, entry: Dict[str, Any]) -> None:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path_str = tempfile.mkstemp(
                suffix='.tmp',
                prefix=f'{path.stem}_',
                dir=path.parent
            )
            temp_path = Path(temp_path_str)
            try:
                with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                    json.dump(entry, f)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, path)
            except Exception:
                if temp_path.exists():
                    temp_path.unlink()
                raise
        except (OSError, TypeError, ValueError) as e:
            raise CacheError(f"Failed to write cache entry {key}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()


class TTLCache:
    """
    Key-value cache whose entries expire ``ttl_seconds`` after being stored.

    Args:
        backend: Storage backend (MemoryBackend, JsonFileBackend, ...)
        ttl_seconds: Entry lifetime in seconds
        clock: Callable returning the current time in seconds
    """

    def __init__(
        self,
        backend=None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.backend = backend if backend is not None else MemoryBackend()
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        entry = self.backend.read(key)
        if not entry or 'stored_at' not in entry:
            return None

        age = self.clock() - float(entry['stored_at'])
        if age >= self.ttl_seconds:
            return None

        return entry.get('value')

    def set(self, key: str, value: Any) -> None:
        self.backend.write(key, {'value': value, 'stored_at': self.clock()})

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)


async def get_or_fetch(
    cache: Optional[TTLCache],
    key: str,
    fetch: Callable[[], Awaitable[Any]]
) -> Any:
    """
    Read-through helper: serve from cache when fresh, otherwise await fetch()
    and store the result. A failing cache write never fails the fetch.
    """
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for {key}")
            return cached

    value = await fetch()

    if cache is not None and value:
        try:
            cache.set(key, value)
        except CacheError as e:
            logger.warning(f"Cache write skipped for {key}: {e}")

    return value


def default_file_cache(ttl_seconds: float = DEFAULT_TTL_SECONDS) -> TTLCache:
    """File-backed cache rooted at $CACHE_DIR (default ./data/cache)."""
    directory = Path(os.getenv('CACHE_DIR', './data/cache'))
    return TTLCache(JsonFileBackend(directory), ttl_seconds=ttl_seconds)
