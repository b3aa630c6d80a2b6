"""Unit tests for the Database connection manager and migration system."""

import sqlite3

import pytest

from gaia_search.db import Database


class TestDatabaseCreation:
    """Tests for database file creation and basic lifecycle."""

    def test_database_creates_file(self, tmp_path):
        """Database.initialize() creates the .db file on disk."""
        db_path = tmp_path / "gaia.db"
        db = Database(db_path)
        db.initialize()
        assert db_path.exists()
        db.close()

    def test_database_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "gaia.db"
        db = Database(db_path)
        db.initialize()
        assert db_path.exists()
        db.close()

    def test_in_memory_database(self):
        db = Database(":memory:")
        db.initialize()
        assert db.get_schema_version() == 2
        db.close()

    def test_conn_before_connect_raises(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        with pytest.raises(RuntimeError):
            db.conn

    def test_context_manager_closes(self, tmp_path):
        with Database(tmp_path / "gaia.db") as db:
            db.apply_migrations()
            assert db.get_schema_version() == 2
        with pytest.raises(RuntimeError):
            db.conn


class TestDatabasePragmas:
    """Tests for PRAGMA configuration on connect."""

    def test_database_wal_mode(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        db.connect()
        mode = db.conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"
        db.close()

    def test_database_foreign_keys_enabled(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        db.connect()
        assert db.conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        db.close()

    def test_database_busy_timeout(self, tmp_path):
        """After connect, busy_timeout is set to 5000ms."""
        db = Database(tmp_path / "gaia.db")
        db.connect()
        assert db.conn.execute("PRAGMA busy_timeout").fetchone()[0] == 5000
        db.close()


class TestDatabaseMigrations:
    """Tests for schema version tracking and migration application."""

    def test_database_schema_version(self, tmp_path):
        """After initialize(), get_schema_version() returns latest migration version."""
        db = Database(tmp_path / "gaia.db")
        db.initialize()
        assert db.get_schema_version() == 2
        db.close()

    def test_database_connect_without_initialize(self, tmp_path):
        """connect() without apply_migrations() gives schema version 0."""
        db = Database(tmp_path / "gaia.db")
        db.connect()
        assert db.get_schema_version() == 0
        tables = [
            r[0]
            for r in db.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        ]
        assert tables == []
        db.close()

    def test_migrations_are_idempotent(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        db.initialize()
        assert db.apply_migrations() == 0
        db.close()

    def test_tables_created(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        db.initialize()
        tables = {
            r[0]
            for r in db.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert {"games", "players"} <= tables
        columns = {r[1] for r in db.conn.execute("PRAGMA table_info(games)")}
        assert "winner_ambiguous" in columns
        db.close()

    def test_table_id_unique(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        db.initialize()
        db.conn.execute(
            "INSERT INTO games (table_id, player_count, created_at) VALUES (1, 2, 'x')"
        )
        with pytest.raises(sqlite3.IntegrityError):
            db.conn.execute(
                "INSERT INTO games (table_id, player_count, created_at) VALUES (1, 3, 'y')"
            )
        db.close()

    def test_buildings_must_be_json(self, tmp_path):
        db = Database(tmp_path / "gaia.db")
        db.initialize()
        db.conn.execute(
            "INSERT INTO games (table_id, player_count, created_at) VALUES (1, 1, 'x')"
        )
        with pytest.raises(sqlite3.IntegrityError):
            db.conn.execute(
                "INSERT INTO players (game_id, player_id, player_name, "
                "player_name_normalized, race_id, final_score, is_winner, buildings) "
                "VALUES (1, 5, 'a', 'a', 1, 100, 0, 'not json')"
            )
        db.close()
