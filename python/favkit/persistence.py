"""Durable key-value persistence for favorites.

Two keys are used:

    records key (A)  JSON array of FavoriteRecord dicts
    order key   (B)  JSON array of canonical ids in display order (legacy)

``SQLiteKeyValueStorage`` follows the same patterns as the other SQLite
stores in this package: WAL mode, ``check_same_thread=False`` so the
debounce timer thread can write.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Protocol

from favkit._serialization import dict_to_record, record_to_dict
from favkit.errors import CorruptPersistedState, PersistenceFailure
from favkit.matching import normalize
from favkit.record import FavoriteRecord, sort_newest_first

logger = logging.getLogger(__name__)

DEFAULT_RECORDS_KEY = "favorites.v1"
DEFAULT_ORDER_KEY = "favorites.order.v1"

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class KeyValueStorage(Protocol):
    """Minimal durable string store."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MemoryKeyValueStorage:
    """Dict-backed storage for tests. ``writes`` counts successful sets."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self.writes = 0

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self.writes += 1

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class SQLiteKeyValueStorage:
    """Key-value storage in a single SQLite table.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            cursor = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, now),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._conn.commit()

    def keys(self) -> list[str]:
        with self._lock:
            cursor = self._conn.execute("SELECT key FROM kv_store ORDER BY key")
            return [row["key"] for row in cursor]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()


def encode_records(records: Iterable[FavoriteRecord]) -> str:
    return json.dumps([record_to_dict(r) for r in records], ensure_ascii=False)


def decode_records(raw: str) -> list[FavoriteRecord]:
    """Decode a Key A payload.

    Raises:
        CorruptPersistedState: If the payload is not a JSON array of records.
    """
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise TypeError(f"Expected a JSON array, got {type(data).__name__}")
        return [dict_to_record(d) for d in data]
    except (json.JSONDecodeError, TypeError, KeyError, ValueError) as exc:
        raise CorruptPersistedState(f"Cannot decode favorites: {exc}") from exc


def apply_order(records: list[FavoriteRecord], order: list[str]) -> list[FavoriteRecord]:
    """Order records by a stored id list.

    Records missing from ``order`` are prepended newest first; ids in
    ``order`` with no record are dropped.
    """
    by_id: dict[str, FavoriteRecord] = {}
    for r in records:
        by_id.setdefault(normalize(r.canonical_id), r)
    ordered_ids = [normalize(i) for i in order]
    known = set(ordered_ids)
    unlisted = sort_newest_first(r for k, r in by_id.items() if k not in known)
    listed: list[FavoriteRecord] = []
    seen: set[str] = set()
    for fid in ordered_ids:
        if fid in by_id and fid not in seen:
            listed.append(by_id[fid])
            seen.add(fid)
    dropped = len(known - set(by_id))
    if dropped:
        logger.debug("Dropped %d order entries with no matching record", dropped)
    return unlisted + listed


class FavoritePersistence:
    """Loads and saves the favorites collection through a key-value store.

    Args:
        storage: Durable string store.
        records_key: Key holding the record array.
        order_key: Key holding the legacy display order. None disables it.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        records_key: str = DEFAULT_RECORDS_KEY,
        order_key: str | None = DEFAULT_ORDER_KEY,
    ) -> None:
        self._storage = storage
        self._records_key = records_key
        self._order_key = order_key
        self._lock = threading.Lock()

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    def load(self) -> list[FavoriteRecord]:
        """Load records, treating corrupt or missing state as empty."""
        raw = self._storage.get(self._records_key)
        if not raw:
            return []
        try:
            records = decode_records(raw)
        except CorruptPersistedState:
            logger.warning("Discarding corrupt favorites under key %s", self._records_key, exc_info=True)
            return []

        order = self.load_order()
        if order is not None:
            records = apply_order(records, order)
        logger.info("Loaded %d favorites", len(records))
        return records

    def load_order(self) -> list[str] | None:
        """Read Key B. None when absent or unreadable."""
        if self._order_key is None:
            return None
        raw = self._storage.get(self._order_key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt favorites order under key %s", self._order_key)
            return None
        if not isinstance(data, list):
            return None
        return [str(i) for i in data]

    def save(self, records: list[FavoriteRecord]) -> None:
        """Write records (and the order key).

        Raises:
            PersistenceFailure: If encoding or the storage write fails.
        """
        with self._lock:
            try:
                payload = encode_records(records)
                self._storage.set(self._records_key, payload)
                if self._order_key is not None:
                    order = [normalize(r.canonical_id) for r in records]
                    self._storage.set(self._order_key, json.dumps(order))
            except (TypeError, ValueError, OSError, sqlite3.Error) as exc:
                raise PersistenceFailure(f"Cannot save favorites: {exc}") from exc

    def clear(self) -> None:
        """Delete both persisted keys."""
        with self._lock:
            try:
                self._storage.delete(self._records_key)
                if self._order_key is not None:
                    self._storage.delete(self._order_key)
            except (OSError, sqlite3.Error) as exc:
                raise PersistenceFailure(f"Cannot clear favorites: {exc}") from exc
