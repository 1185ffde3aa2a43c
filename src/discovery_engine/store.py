"""DuckDB schema and CacheStore: persistence for discovery results.

DuckDB connections are NOT thread-safe: concurrent queries from different
threads corrupt internal state. Every public method on CacheStore holds a
threading.Lock for the full duration of execute-through-fetch so callers
(e.g. the engine's location worker pool) don't need to coordinate.
"""

import json
import logging
import threading
from pathlib import Path

import duckdb

from .models import CacheEntry

log = logging.getLogger(__name__)

_DDL = """
CREATE TABLE IF NOT EXISTS discovery_cache (
    fingerprint     VARCHAR NOT NULL,
    identifier      VARCHAR NOT NULL,
    version         VARCHAR NOT NULL,
    items           VARCHAR NOT NULL,
    item_count      INTEGER DEFAULT 0,
    created_at      TIMESTAMP DEFAULT now(),
    expires_at      DOUBLE,
    PRIMARY KEY (fingerprint, identifier)
);
"""


class CacheStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._con = duckdb.connect(db_path)
        for stmt in _DDL.strip().split(";"):
            stmt = stmt.strip()
            if stmt:
                self._con.execute(stmt)
        log.debug("CacheStore opened: %s", db_path)

    def close(self) -> None:
        with self._lock:
            self._con.close()

    # ── entries ─────────────────────────────────────────────────────────────

    def get_entry(self, fingerprint: str, identifier: str) -> CacheEntry | None:
        with self._lock:
            row = self._con.execute(
                "SELECT fingerprint, identifier, version, items, expires_at "
                "FROM discovery_cache WHERE fingerprint = ? AND identifier = ?",
                [fingerprint, identifier],
            ).fetchone()
        if row is None:
            return None
        return CacheEntry(
            fingerprint=row[0],
            identifier=row[1],
            version=row[2],
            items=json.loads(row[3]),
            expires_at=row[4],
        )

    def upsert_entry(self, entry: CacheEntry) -> None:
        items_json = json.dumps(entry.items, separators=(",", ":"))
        item_count = sum(len(loc.get("items", [])) for loc in entry.items)
        with self._lock:
            self._con.execute(
                """
                INSERT INTO discovery_cache
                    (fingerprint, identifier, version, items, item_count, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?, now(), ?)
                ON CONFLICT (fingerprint, identifier) DO UPDATE SET
                    version    = excluded.version,
                    items      = excluded.items,
                    item_count = excluded.item_count,
                    created_at = now(),
                    expires_at = excluded.expires_at
                """,
                [entry.fingerprint, entry.identifier, entry.version,
                 items_json, item_count, entry.expires_at],
            )

    def delete_entry(self, fingerprint: str, identifier: str) -> None:
        with self._lock:
            self._con.execute(
                "DELETE FROM discovery_cache WHERE fingerprint = ? AND identifier = ?",
                [fingerprint, identifier],
            )

    def delete_expired(self, now: float) -> int:
        with self._lock:
            row = self._con.execute(
                "SELECT COUNT(*) FROM discovery_cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                [now],
            ).fetchone()
            self._con.execute(
                "DELETE FROM discovery_cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                [now],
            )
        return row[0] if row else 0

    def delete_all(self) -> None:
        with self._lock:
            self._con.execute("DELETE FROM discovery_cache")

    # ── stats ────────────────────────────────────────────────────────────────

    def stats(self) -> dict:
        with self._lock:
            row = self._con.execute(
                "SELECT COUNT(*), COUNT(DISTINCT fingerprint), COALESCE(SUM(item_count), 0) "
                "FROM discovery_cache"
            ).fetchone()
            by_identifier = self._con.execute(
                "SELECT identifier, COUNT(*) FROM discovery_cache GROUP BY identifier"
            ).fetchall()
        return {
            "entries": row[0] if row else 0,
            "fingerprints": row[1] if row else 0,
            "items": row[2] if row else 0,
            "by_identifier": {r[0]: r[1] for r in by_identifier},
        }
