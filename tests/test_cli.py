"""Tests for the CLI inspector (``python -m favkit``)."""

from __future__ import annotations

import json
import os

import pytest
from favkit.__main__ import main
from favkit.persistence import FavoritePersistence, SQLiteKeyValueStorage
from favkit.record import FavoriteRecord

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def db_with_data(tmp_path):
    """Create a temporary SQLite DB with one favorite per category."""
    db_path = str(tmp_path / "favorites.db")
    storage = SQLiteKeyValueStorage(db_path)
    FavoritePersistence(storage).save(
        [
            FavoriteRecord("hack:step:coursea:lesson1:idx4", "Tip", "Remember tones!", "hack:Remember tones!"),
            FavoriteRecord("card:step:coursea:lesson1:idx2", "thank you", "khop khun"),
            FavoriteRecord("course:coursea", "Thai basics"),
        ]
    )
    storage.close()
    return db_path


# ---------------------------------------------------------------------------
# No subcommand
# ---------------------------------------------------------------------------


class TestNoCommand:
    def test_prints_help_and_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out.lower()


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


class TestInspect:
    def test_groups_by_category(self, db_with_data, capsys):
        main(["inspect", db_with_data])
        out = capsys.readouterr().out
        assert "course (1)" in out
        assert "card (1)" in out
        assert "hack (1)" in out
        assert "card:step:coursea:lesson1:idx2" in out
        assert "thank you / khop khun" in out

    def test_category_filter(self, db_with_data, capsys):
        main(["inspect", db_with_data, "--category", "hack"])
        out = capsys.readouterr().out
        assert "hack (1)" in out
        assert "course (" not in out

    def test_missing_db(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["inspect", str(tmp_path / "nope.db")])
        assert exc_info.value.code == 1
        assert "database not found" in capsys.readouterr().err

    def test_empty_db(self, tmp_path, capsys):
        db_path = str(tmp_path / "empty.db")
        SQLiteKeyValueStorage(db_path).close()
        main(["inspect", db_path])
        assert "No favorites stored." in capsys.readouterr().out

    def test_records_key(self, tmp_path, capsys):
        db_path = str(tmp_path / "custom.db")
        storage = SQLiteKeyValueStorage(db_path)
        storage.set("legacy.favorites", json.dumps([{"id": "course:courseb", "ru": "Numbers"}]))
        storage.close()
        main(["--records-key", "legacy.favorites", "inspect", db_path])
        assert "course:courseb" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# ids
# ---------------------------------------------------------------------------


class TestIds:
    def test_prints_sets(self, db_with_data, capsys):
        main(["ids", db_with_data])
        out = capsys.readouterr().out
        assert "courses: 1" in out
        assert "cards: 1" in out
        assert "hacks: 1" in out
        assert "  hack:step:coursea:lesson1:idx4" in out

    def test_missing_db(self, tmp_path):
        path = str(tmp_path / "missing.db")
        with pytest.raises(SystemExit):
            main(["ids", path])
        assert not os.path.exists(path)
