"""Tests for favkit.persistence and record serialization."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from favkit._serialization import dict_to_record, parse_timestamp, record_to_dict
from favkit.errors import CorruptPersistedState, PersistenceFailure
from favkit.persistence import (
    DEFAULT_ORDER_KEY,
    DEFAULT_RECORDS_KEY,
    FavoritePersistence,
    MemoryKeyValueStorage,
    SQLiteKeyValueStorage,
    apply_order,
    decode_records,
    encode_records,
)
from favkit.record import FavoriteRecord

_BASE = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _record(fid: str, minutes: int = 0, **kwargs) -> FavoriteRecord:
    return FavoriteRecord(canonical_id=fid, created_at=_BASE + timedelta(minutes=minutes), **kwargs)


class _FailingStorage(MemoryKeyValueStorage):
    def set(self, key: str, value: str) -> None:
        raise sqlite3.OperationalError("disk I/O error")


@pytest.fixture
def sqlite_storage(tmp_path):
    storage = SQLiteKeyValueStorage(str(tmp_path / "favorites.db"))
    yield storage
    storage.close()


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_round_trip(self) -> None:
        rec = _record(
            "card:step:coursea:lesson1:idx3",
            primary_text="hello",
            secondary_text="sawasdee",
            meta_text="sa-wat-dee",
            course_id="coursea",
            lesson_id="lesson1",
            lesson_title="Greetings",
        )
        assert dict_to_record(record_to_dict(rec)) == rec

    def test_legacy_keys(self) -> None:
        rec = dict_to_record(
            {
                "id": "coursea.lesson1.greeting",
                "ru": "hello",
                "th": "sawasdee",
                "phonetic": "sa-wat-dee",
                "courseId": "coursea",
                "lessonId": "lesson1",
                "lessonTitle": "Greetings",
                "createdAt": 1709294400,
            }
        )
        assert rec.canonical_id == "coursea.lesson1.greeting"
        assert rec.primary_text == "hello"
        assert rec.meta_text == "sa-wat-dee"
        assert rec.lesson_title == "Greetings"
        assert rec.created_at == _BASE

    def test_missing_timestamp_is_epoch(self) -> None:
        rec = dict_to_record({"id": "course:a"})
        assert rec.created_at == datetime.fromtimestamp(0, tz=timezone.utc)

    def test_missing_id_raises(self) -> None:
        with pytest.raises(KeyError):
            dict_to_record({"ru": "hello"})

    def test_parse_timestamp(self) -> None:
        assert parse_timestamp("2024-03-01T12:00:00Z") == _BASE
        assert parse_timestamp("2024-03-01T12:00:00") == _BASE
        with pytest.raises(ValueError):
            parse_timestamp(True)
        with pytest.raises(ValueError):
            parse_timestamp([])

    def test_out_of_range_epoch_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(1e20)

    def test_null_id_decodes_as_empty(self) -> None:
        assert dict_to_record({"id": None, "createdAt": 0}).canonical_id == ""

    def test_non_string_id_raises(self) -> None:
        with pytest.raises(ValueError):
            dict_to_record({"id": 42})

    def test_naive_datetime_becomes_utc(self) -> None:
        rec = FavoriteRecord("course:a", created_at=datetime(2024, 3, 1, 12, 0))
        assert rec.created_at == _BASE


class TestCodec:
    def test_decode_not_a_list(self) -> None:
        with pytest.raises(CorruptPersistedState):
            decode_records('{"id": "course:a"}')

    def test_decode_bad_json(self) -> None:
        with pytest.raises(CorruptPersistedState):
            decode_records("[{")

    def test_decode_bad_timestamp(self) -> None:
        with pytest.raises(CorruptPersistedState):
            decode_records('[{"id": "course:a", "createdAt": "yesterday"}]')

    def test_encode_keeps_unicode(self) -> None:
        payload = encode_records([_record("card:step:a:b:idx0", secondary_text="สวัสดี")])
        assert "สวัสดี" in payload


class TestApplyOrder:
    def test_follows_order(self) -> None:
        records = [_record("course:a", 1), _record("course:b", 2)]
        out = apply_order(records, ["course:a", "course:b"])
        assert [r.canonical_id for r in out] == ["course:a", "course:b"]

    def test_unlisted_prepended_newest_first(self) -> None:
        records = [_record("course:a", 1), _record("course:b", 2), _record("course:c", 3)]
        out = apply_order(records, ["course:a"])
        assert [r.canonical_id for r in out] == ["course:c", "course:b", "course:a"]

    def test_unknown_ids_dropped(self) -> None:
        out = apply_order([_record("course:a")], ["course:zzz", "course:a"])
        assert [r.canonical_id for r in out] == ["course:a"]


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------


class TestMemoryStorage:
    def test_set_get_delete(self) -> None:
        storage = MemoryKeyValueStorage()
        storage.set("k", "v")
        assert storage.get("k") == "v"
        assert storage.writes == 1
        storage.delete("k")
        assert storage.get("k") is None
        storage.delete("k")


class TestSQLiteStorage:
    def test_set_get(self, sqlite_storage: SQLiteKeyValueStorage) -> None:
        sqlite_storage.set("k", "v1")
        sqlite_storage.set("k", "v2")
        assert sqlite_storage.get("k") == "v2"
        assert sqlite_storage.keys() == ["k"]

    def test_missing(self, sqlite_storage: SQLiteKeyValueStorage) -> None:
        assert sqlite_storage.get("nope") is None

    def test_delete(self, sqlite_storage: SQLiteKeyValueStorage) -> None:
        sqlite_storage.set("k", "v")
        sqlite_storage.delete("k")
        assert sqlite_storage.get("k") is None

    def test_survives_reopen(self, tmp_path) -> None:
        path = str(tmp_path / "reopen.db")
        first = SQLiteKeyValueStorage(path)
        first.set("k", "v")
        first.close()
        second = SQLiteKeyValueStorage(path)
        try:
            assert second.get("k") == "v"
        finally:
            second.close()


# ---------------------------------------------------------------------------
# FavoritePersistence
# ---------------------------------------------------------------------------


class TestFavoritePersistence:
    def test_empty_load(self) -> None:
        assert FavoritePersistence(MemoryKeyValueStorage()).load() == []

    def test_round_trip(self, sqlite_storage: SQLiteKeyValueStorage) -> None:
        persistence = FavoritePersistence(sqlite_storage)
        records = [
            _record("hack:step:coursea:lesson1:idx3", 3, primary_text="Tip", secondary_text="Remember tones!"),
            _record("card:step:coursea:lesson1:idx0", 2, primary_text="hello", lesson_title="Greetings"),
            _record("course:coursea", 1),
        ]
        persistence.save(records)
        assert persistence.load() == records

    def test_writes_both_keys(self) -> None:
        storage = MemoryKeyValueStorage()
        FavoritePersistence(storage).save([_record("course:a")])
        assert storage.keys() == sorted([DEFAULT_RECORDS_KEY, DEFAULT_ORDER_KEY])
        assert json.loads(storage.get(DEFAULT_ORDER_KEY)) == ["course:a"]
        assert storage.writes == 2

    def test_order_key_disabled(self) -> None:
        storage = MemoryKeyValueStorage()
        FavoritePersistence(storage, order_key=None).save([_record("course:a")])
        assert storage.keys() == [DEFAULT_RECORDS_KEY]
        assert storage.writes == 1

    def test_load_applies_order(self) -> None:
        storage = MemoryKeyValueStorage()
        persistence = FavoritePersistence(storage)
        persistence.save([_record("course:b", 2), _record("course:a", 1)])
        storage.set(DEFAULT_ORDER_KEY, json.dumps(["course:a", "course:b"]))
        assert [r.canonical_id for r in persistence.load()] == ["course:a", "course:b"]

    def test_corrupt_order_ignored(self) -> None:
        storage = MemoryKeyValueStorage()
        persistence = FavoritePersistence(storage)
        persistence.save([_record("course:a", 1), _record("course:b", 2)])
        storage.set(DEFAULT_ORDER_KEY, "not json")
        assert [r.canonical_id for r in persistence.load()] == ["course:a", "course:b"]

    def test_corrupt_records_load_empty(self, caplog: pytest.LogCaptureFixture) -> None:
        storage = MemoryKeyValueStorage({DEFAULT_RECORDS_KEY: "{broken"})
        assert FavoritePersistence(storage).load() == []
        assert "corrupt" in caplog.text

    def test_out_of_range_timestamp_loads_empty(self, caplog: pytest.LogCaptureFixture) -> None:
        storage = MemoryKeyValueStorage({DEFAULT_RECORDS_KEY: '[{"id": "course:a", "createdAt": 1e20}]'})
        assert FavoritePersistence(storage).load() == []
        assert "corrupt" in caplog.text

    def test_legacy_payload(self) -> None:
        payload = json.dumps([{"id": "coursea.lesson1.greeting", "ru": "hello", "createdAt": 1709294400}])
        storage = MemoryKeyValueStorage({DEFAULT_RECORDS_KEY: payload})
        [rec] = FavoritePersistence(storage, order_key=None).load()
        assert rec.canonical_id == "coursea.lesson1.greeting"
        assert rec.primary_text == "hello"

    def test_save_failure_raises(self) -> None:
        with pytest.raises(PersistenceFailure):
            FavoritePersistence(_FailingStorage()).save([_record("course:a")])

    def test_clear(self) -> None:
        storage = MemoryKeyValueStorage()
        persistence = FavoritePersistence(storage)
        persistence.save([_record("course:a")])
        persistence.clear()
        assert storage.keys() == []
        assert persistence.load() == []

    def test_custom_keys(self) -> None:
        storage = MemoryKeyValueStorage()
        FavoritePersistence(storage, records_key="a", order_key="b").save([_record("course:a")])
        assert storage.keys() == ["a", "b"]
