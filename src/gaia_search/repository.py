"""Data access layer for stored games and their players.

Provides GameRepository with an atomic game + players insert, reads that
rebuild GameRecord models (timelines parsed back from JSON), compiled
search execution, and the distinct player-name listing used for
autocomplete.

Receives a raw ``sqlite3.Connection`` so tests can pass any connection,
including in-memory databases.  Write methods use ``with self.conn:`` for
automatic commit on success / rollback on exception.  sqlite3 exceptions
(IntegrityError, OperationalError) are NOT caught here -- they propagate
to the ingestion gate and search service, which translate them.
"""

import json
import sqlite3
from datetime import datetime, timezone

from gaia_search.compiler import StorageFilter
from gaia_search.models import BuildingTimeline, GameRecord, ParsedGame, PlayerRecord
from gaia_search.predicate import fold_player_name

# ---------------------------------------------------------------------------
# SQL constants
# ---------------------------------------------------------------------------

INSERT_GAME = """
    INSERT INTO games (
        table_id, game_name, player_count, winner_name, winner_ambiguous,
        min_player_elo, raw_log, created_at
    ) VALUES (
        :table_id, :game_name, :player_count, :winner_name, :winner_ambiguous,
        :min_player_elo, :raw_log, :created_at
    )
"""

INSERT_PLAYER = """
    INSERT INTO players (
        game_id, player_id, player_name, player_name_normalized,
        race_id, final_score, player_elo, is_winner, buildings
    ) VALUES (
        :game_id, :player_id, :player_name, :player_name_normalized,
        :race_id, :final_score, :player_elo, :is_winner, :buildings
    )
"""

SELECT_GAME_COLUMNS = """
    SELECT g.id, g.table_id, g.game_name, g.player_count, g.winner_name,
           g.winner_ambiguous, g.min_player_elo, g.raw_log, g.created_at
    FROM games g
"""

SEARCH_ORDER = " ORDER BY g.created_at DESC, g.table_id DESC"


# ---------------------------------------------------------------------------
# Repository class
# ---------------------------------------------------------------------------

class GameRepository:
    """Data access layer for games and players."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_game(self, game: ParsedGame, created_at: str | None = None) -> GameRecord:
        """Atomically insert a game and all of its players.

        Either every row is written or none is.  A second insert of the
        same table_id raises ``sqlite3.IntegrityError`` from the UNIQUE
        constraint.
        """
        created_at = created_at or datetime.now(timezone.utc).isoformat()
        game_row = {
            "table_id": game.table_id,
            "game_name": game.game_name,
            "player_count": game.player_count,
            "winner_name": game.winner_name,
            "winner_ambiguous": int(game.winner_ambiguous),
            "min_player_elo": game.min_player_elo,
            "raw_log": json.dumps(game.raw_log, default=str) if game.raw_log is not None else None,
            "created_at": created_at,
        }
        with self.conn:
            cursor = self.conn.execute(INSERT_GAME, game_row)
            game_pk = cursor.lastrowid
            for player in game.players:
                self.conn.execute(INSERT_PLAYER, _player_row(game_pk, player))
        return GameRecord(**game.model_dump(exclude={"players"}), players=game.players,
                          created_at=created_at)

    def delete_game(self, table_id: int) -> bool:
        """Delete a game; its players go with it (ON DELETE CASCADE)."""
        with self.conn:
            cursor = self.conn.execute("DELETE FROM games WHERE table_id = ?", (table_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def game_exists(self, table_id: int) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM games WHERE table_id = ?", (table_id,)
        ).fetchone()
        return row is not None

    def get_game(self, table_id: int) -> GameRecord | None:
        """Return a game with its players, or None if not found."""
        row = self.conn.execute(
            SELECT_GAME_COLUMNS + " WHERE g.table_id = ?", (table_id,)
        ).fetchone()
        if row is None:
            return None
        return self._hydrate([row])[0]

    def search(
        self,
        flt: StorageFilter,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[GameRecord]:
        """Return games selected by a compiled filter, newest first."""
        sql = SELECT_GAME_COLUMNS + f" WHERE {flt.where}" + SEARCH_ORDER
        params = list(flt.params)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(offset)
        rows = self.conn.execute(sql, params).fetchall()
        return self._hydrate(rows)

    def matching_table_ids(self, flt: StorageFilter) -> set[int]:
        """Return only the table IDs selected by a compiled filter."""
        rows = self.conn.execute(
            f"SELECT g.table_id FROM games g WHERE {flt.where}", flt.params
        ).fetchall()
        return {r[0] for r in rows}

    def list_player_names(self) -> list[str]:
        """Return every distinct player display name, ascending."""
        rows = self.conn.execute(
            "SELECT DISTINCT player_name FROM players ORDER BY player_name ASC"
        ).fetchall()
        return [r[0] for r in rows]

    def count_games(self) -> int:
        """Return the total number of stored games."""
        return self.conn.execute("SELECT COUNT(*) FROM games").fetchone()[0]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _hydrate(self, game_rows: list[sqlite3.Row]) -> list[GameRecord]:
        """Attach players to game rows and build GameRecord models."""
        if not game_rows:
            return []
        pks = [r["id"] for r in game_rows]
        placeholders = ",".join("?" for _ in pks)
        player_rows = self.conn.execute(
            f"SELECT * FROM players WHERE game_id IN ({placeholders}) ORDER BY id",
            pks,
        ).fetchall()

        players_by_game: dict[int, list[PlayerRecord]] = {pk: [] for pk in pks}
        for p in player_rows:
            players_by_game[p["game_id"]].append(
                PlayerRecord(
                    player_id=p["player_id"],
                    player_name=p["player_name"],
                    race_id=p["race_id"],
                    final_score=p["final_score"],
                    player_elo=p["player_elo"],
                    is_winner=bool(p["is_winner"]),
                    buildings=BuildingTimeline.from_json(p["buildings"]),
                )
            )

        return [
            GameRecord(
                table_id=r["table_id"],
                game_name=r["game_name"],
                player_count=r["player_count"],
                winner_name=r["winner_name"],
                winner_ambiguous=bool(r["winner_ambiguous"]),
                min_player_elo=r["min_player_elo"],
                raw_log=json.loads(r["raw_log"]) if r["raw_log"] else None,
                created_at=r["created_at"],
                players=players_by_game[r["id"]],
            )
            for r in game_rows
        ]


def _player_row(game_pk: int, player: PlayerRecord) -> dict:
    return {
        "game_id": game_pk,
        "player_id": player.player_id,
        "player_name": player.player_name,
        "player_name_normalized": fold_player_name(player.player_name),
        "race_id": player.race_id,
        "final_score": player.final_score,
        "player_elo": player.player_elo,
        "is_winner": int(player.is_winner),
        "buildings": player.buildings.to_json(),
    }
