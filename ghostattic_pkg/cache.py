"""
On-disk asset cache and the serve-stale-on-error cache wrapper used for
Ghost Content API calls.
"""

import os
import re
import json
import time
import hashlib
import logging
import tempfile
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Union

logger = logging.getLogger('Ghostattic.cache')

DURATION_UNITS = {
    's': 1,
    'm': 60,
    'h': 60 * 60,
    'd': 60 * 60 * 24,
    'w': 60 * 60 * 24 * 7,
    'y': 60 * 60 * 24 * 365,
}

CACHE_FILE_PREFIX = 'ghostattic-cache-'


def parse_duration(duration: Union[str, int, float, timedelta]) -> Optional[float]:
    """
    Convert a cache duration to seconds.

    Accepts "<n><unit>" strings such as "10m" or "30d", plain numbers of
    seconds and timedeltas. "*" returns None, meaning the entry never expires.
    """
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, bool):
        raise ValueError(f"Invalid cache duration: {duration!r}")
    if isinstance(duration, (int, float)):
        return float(duration)
    if isinstance(duration, str):
        value = duration.strip()
        if value == '*':
            return None
        match = re.fullmatch(r'(\d+)([smhdwy]?)', value)
        if match:
            amount, unit = match.groups()
            return float(int(amount) * DURATION_UNITS.get(unit or 's'))
    raise ValueError(f"Invalid cache duration: {duration!r}")


class AssetCache:
    """A single persisted cache entry, addressed by its identifier."""

    TYPES = ('json', 'text', 'buffer')

    def __init__(self, identifier: str, directory: str = '.cache', clock: Callable[[], float] = time.time):
        self.identifier = identifier
        self.directory = directory
        self.clock = clock
        digest = hashlib.md5(identifier.encode('utf-8')).hexdigest()
        self.entry_path = os.path.join(directory, f'{CACHE_FILE_PREFIX}{digest}.json')
        self.buffer_path = os.path.join(directory, f'{CACHE_FILE_PREFIX}{digest}.buffer')
        self._entry = None

    def _read_entry(self) -> Optional[Dict[str, Any]]:
        if self._entry is not None:
            return self._entry
        if not os.path.exists(self.entry_path):
            return None
        try:
            with open(self.entry_path, 'r', encoding='utf-8') as f:
                entry = json.load(f)
        except (IOError, OSError) as e:
            logger.error(f"Failed to read cache entry {self.entry_path}: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt cache entry {self.entry_path}: {e}")
            return None
        if not isinstance(entry, dict) or 'cached_at' not in entry:
            logger.error(f"Malformed cache entry {self.entry_path}")
            return None
        self._entry = entry
        return entry

    def exists(self) -> bool:
        return self._read_entry() is not None

    @property
    def cached_at(self) -> Optional[float]:
        entry = self._read_entry()
        return entry['cached_at'] if entry else None

    def is_cache_valid(self, duration) -> bool:
        """True when an entry exists and is no older than ``duration``."""
        max_age = parse_duration(duration)
        cached_at = self.cached_at
        if cached_at is None:
            return False
        if max_age is None:
            return True
        return self.clock() - cached_at <= max_age

    def get_cached_value(self) -> Any:
        entry = self._read_entry()
        if entry is None:
            return None
        if entry.get('type') == 'buffer':
            try:
                with open(self.buffer_path, 'rb') as f:
                    return f.read()
            except (IOError, OSError) as e:
                logger.error(f"Failed to read cached buffer {self.buffer_path}: {e}")
                return None
        return entry.get('value')

    def save(self, value: Any, value_type: str = 'json') -> None:
        """Persist ``value`` and stamp it with the current time."""
        if value_type not in self.TYPES:
            raise ValueError(f"Unsupported cache value type: {value_type}")
        os.makedirs(self.directory, exist_ok=True)

        entry = {'identifier': self.identifier, 'cached_at': self.clock(), 'type': value_type}
        if value_type == 'buffer':
            self._write_atomic(self.buffer_path, value, binary=True)
        else:
            entry['value'] = value
        self._write_atomic(self.entry_path, json.dumps(entry, ensure_ascii=False), binary=False)
        self._entry = entry
        logger.debug(f"Saved cache entry {self.identifier} -> {self.entry_path}")

    def _write_atomic(self, path: str, data, binary: bool) -> None:
        fd, temp_path = tempfile.mkstemp(dir=self.directory, prefix='.tmp-')
        mode = 'wb' if binary else 'w'
        encoding = None if binary else 'utf-8'
        try:
            with os.fdopen(fd, mode, encoding=encoding) as f:
                f.write(data)
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise


class CacheStatus(Enum):
    FRESH = 'fresh'
    REFRESHED = 'refreshed'
    STALE = 'stale'
    EMPTY = 'empty'


class CacheResult(NamedTuple):
    """Outcome of a cached fetch, keeping track of where the value came from."""
    status: CacheStatus
    value: Any = None
    cached_at: Optional[float] = None
    error: Optional[BaseException] = None

    @property
    def is_fresh(self) -> bool:
        return self.status in (CacheStatus.FRESH, CacheStatus.REFRESHED)


def cache_identifier(key: str, query_args) -> str:
    """Build the identifier for ``key`` called with ``query_args``."""
    serialized = json.dumps(list(query_args), sort_keys=True, separators=(',', ':'), default=str)
    return f'{key}_{serialized}'


class CacheWrapper:
    """
    Serve remote collections from disk while fresh, refetch when stale, and
    fall back to the last stored value when the remote source fails.
    """

    def __init__(self, fetchers: Dict[str, Callable] = None, directory: str = '.cache',
                 clock: Callable[[], float] = time.time):
        self.fetchers = dict(fetchers or {})
        self.directory = directory
        self.clock = clock

    def register(self, key: str, fetcher: Callable) -> None:
        self.fetchers[key] = fetcher

    def asset(self, identifier: str) -> AssetCache:
        return AssetCache(identifier, directory=self.directory, clock=self.clock)

    def fetch(self, key: str, max_age, *query_args) -> Optional[CacheResult]:
        """
        Return a CacheResult for ``key`` called with ``query_args``.

        Unknown keys return None. Remote errors are never raised; the previous
        value on disk is served instead, if there is one.
        """
        fetcher = self.fetchers.get(key)
        if fetcher is None:
            logger.debug(f"No fetcher registered for cache key: {key}")
            return None

        identifier = cache_identifier(key, query_args)
        asset = self.asset(identifier)
        if asset.is_cache_valid(max_age):
            logger.debug(f"Cache hit: {identifier}")
            return CacheResult(CacheStatus.FRESH, asset.get_cached_value(), asset.cached_at)

        try:
            value = fetcher(*query_args)
        except Exception as e:
            if asset.exists():
                logger.warning(f"Fetch failed for {identifier}, serving stale cache: {e}")
                return CacheResult(CacheStatus.STALE, asset.get_cached_value(), asset.cached_at, e)
            logger.warning(f"Fetch failed for {identifier} and nothing is cached: {e}")
            return CacheResult(CacheStatus.EMPTY, None, None, e)

        try:
            asset.save(value, 'json')
        except (IOError, OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist cache entry {identifier}: {e}")
            return CacheResult(CacheStatus.REFRESHED, value, None)

        logger.debug(f"Cache refreshed: {identifier}")
        return CacheResult(CacheStatus.REFRESHED, value, asset.cached_at)

    def fetch_value(self, key: str, max_age, *query_args) -> Any:
        result = self.fetch(key, max_age, *query_args)
        return result.value if result is not None else None
