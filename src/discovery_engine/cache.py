"""
Result cache for discovery runs.

Entries are keyed by (fingerprint, identifier). The fingerprint is a hash
of the registered location set, so adding, removing or moving a location
implicitly invalidates every entry; nothing is invalidated one by one
except through TTL expiry, forget() or flush(). Each entry also records the
discovery's version stamp: a changed version reads as a miss.

Backends must never make discovery incorrect, only faster: every backend
failure is raised as CacheError, which the engine treats as a miss.
"""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Iterable

import duckdb

from .exceptions import CacheError
from .models import CacheEntry, Location
from .store import CacheStore

log = logging.getLogger(__name__)

Clock = Callable[[], float]


def fingerprint(locations: Iterable[Location]) -> str:
    """
    Hash of the location set.

    Order-insensitive: registration order does not change the fingerprint,
    membership and paths do.
    """
    keys = sorted({loc.as_key() for loc in locations})
    blob = json.dumps(keys, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


class ResultCache(ABC):
    @abstractmethod
    def get(self, fingerprint: str, identifier: str, version: str = "1") -> list | None:
        """Return the serialized items for this key, or None on a miss."""

    @abstractmethod
    def put(
        self,
        fingerprint: str,
        identifier: str,
        items: list,
        ttl: float | None = None,
        version: str = "1",
    ) -> None:
        ...

    @abstractmethod
    def forget(self, fingerprint: str, identifier: str) -> None:
        ...

    @abstractmethod
    def flush(self) -> None:
        ...

    def has(self, fingerprint: str, identifier: str, version: str = "1") -> bool:
        return self.get(fingerprint, identifier, version) is not None

    def close(self) -> None:
        pass

    @property
    def description(self) -> str:
        return type(self).__name__


class NullCache(ResultCache):
    """No backing store: every lookup misses."""

    def get(self, fingerprint, identifier, version="1"):
        return None

    def put(self, fingerprint, identifier, items, ttl=None, version="1"):
        pass

    def forget(self, fingerprint, identifier):
        pass

    def flush(self):
        pass


def _expires_at(ttl: float | None, clock: Clock) -> float | None:
    return clock() + ttl if ttl is not None else None


def _is_live(entry: CacheEntry, version: str, clock: Clock) -> bool:
    if entry.version != version:
        log.debug("Cache entry for %s has version %s, want %s", entry.identifier, entry.version, version)
        return False
    return entry.expires_at is None or entry.expires_at > clock()


class MemoryCache(ResultCache):
    """Process-local cache. Payloads are copied through JSON so callers can't alias them."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, fingerprint, identifier, version="1"):
        with self._lock:
            entry = self._entries.get((fingerprint, identifier))
        if entry is None or not _is_live(entry, version, self._clock):
            return None
        return json.loads(json.dumps(entry.items))

    def put(self, fingerprint, identifier, items, ttl=None, version="1"):
        try:
            items = json.loads(json.dumps(items))
        except (TypeError, ValueError) as e:
            raise CacheError(f"Items for {identifier} are not serializable: {e}") from e
        with self._lock:
            self._entries[(fingerprint, identifier)] = CacheEntry(
                fingerprint=fingerprint,
                identifier=identifier,
                version=version,
                items=items,
                expires_at=_expires_at(ttl, self._clock),
            )

    def forget(self, fingerprint, identifier):
        with self._lock:
            self._entries.pop((fingerprint, identifier), None)

    def flush(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class DuckDBCache(ResultCache):
    """Cache persisted in a DuckDB file, shared across boots."""

    def __init__(self, db_path: str, clock: Clock = time.time) -> None:
        self.db_path = db_path
        self._clock = clock
        self._store: CacheStore | None = None

    @property
    def description(self) -> str:
        return f"DuckDBCache({self.db_path})"

    def _get_store(self) -> CacheStore:
        # opened lazily so an unavailable file only fails the first lookup
        if self._store is None:
            try:
                self._store = CacheStore(self.db_path)
            except (duckdb.Error, OSError) as e:
                raise CacheError(f"Cannot open cache {self.db_path}: {e}") from e
        return self._store

    def get(self, fingerprint, identifier, version="1"):
        try:
            entry = self._get_store().get_entry(fingerprint, identifier)
        except duckdb.Error as e:
            raise CacheError(f"Cache read failed: {e}") from e
        except ValueError as e:
            raise CacheError(f"Corrupt cache entry for {identifier}: {e}") from e
        if entry is None or not _is_live(entry, version, self._clock):
            return None
        return entry.items

    def put(self, fingerprint, identifier, items, ttl=None, version="1"):
        entry = CacheEntry(
            fingerprint=fingerprint,
            identifier=identifier,
            version=version,
            items=items,
            expires_at=_expires_at(ttl, self._clock),
        )
        try:
            store = self._get_store()
            store.delete_expired(self._clock())
            store.upsert_entry(entry)
        except duckdb.Error as e:
            raise CacheError(f"Cache write failed: {e}") from e
        except (TypeError, ValueError) as e:
            raise CacheError(f"Items for {identifier} are not serializable: {e}") from e

    def forget(self, fingerprint, identifier):
        try:
            self._get_store().delete_entry(fingerprint, identifier)
        except duckdb.Error as e:
            raise CacheError(f"Cache delete failed: {e}") from e

    def flush(self):
        try:
            self._get_store().delete_all()
        except duckdb.Error as e:
            raise CacheError(f"Cache flush failed: {e}") from e

    def stats(self) -> dict:
        try:
            return self._get_store().stats()
        except duckdb.Error as e:
            raise CacheError(f"Cache stats failed: {e}") from e

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None
