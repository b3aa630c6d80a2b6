"""Ingestion gate: store a ParsedGame exactly once.

The ``game_exists`` pre-check is only a fast path.  Two ingesters can both
pass it for the same table; the UNIQUE constraint on ``games.table_id``
then rejects the second insert and the resulting IntegrityError is mapped
to the same DuplicateError the fast path raises.
"""

import logging
import sqlite3

from gaia_search.exceptions import DuplicateError, MalformedInput, StorageUnavailable
from gaia_search.models import GameRecord, ParsedGame, TableBundle
from gaia_search.repository import GameRepository
from gaia_search.timeline import normalize_bundle
from gaia_search.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


class IngestionGate:
    """Idempotent, all-or-nothing writer for normalized games.

    Usage::

        gate = IngestionGate(GameRepository(db.conn))
        try:
            game = gate.ingest(parsed)
        except DuplicateError as e:
            game = e.existing
    """

    def __init__(
        self,
        repo: GameRepository,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    ) -> None:
        self.repo = repo
        self.vocabulary = vocabulary

    def ingest(self, parsed: ParsedGame) -> GameRecord:
        """Store *parsed* with all of its players in one transaction.

        Returns:
            The stored GameRecord.

        Raises:
            DuplicateError: If the table ID is already stored; ``existing``
                carries the stored record.
            StorageUnavailable: On transient database failures.
        """
        table_id = parsed.table_id
        try:
            if self.repo.game_exists(table_id):
                logger.info("Table %d already stored, skipping", table_id)
                raise self._duplicate(table_id)

            game = self.repo.insert_game(parsed)
        except sqlite3.IntegrityError as e:
            if not self.repo.game_exists(table_id):
                # Some other constraint failed; the insert was rolled back
                raise MalformedInput(
                    f"Table {table_id}: rejected by storage: {e}", table_id=table_id
                ) from e
            logger.info("Table %d stored concurrently by another ingester", table_id)
            raise self._duplicate(table_id) from e
        except sqlite3.OperationalError as e:
            raise StorageUnavailable(
                f"Table {table_id}: storage unavailable: {e}", table_id=table_id
            ) from e

        logger.info(
            "Stored table %d (%d players, winner=%s, min elo=%s)",
            table_id, game.player_count, game.winner_name, game.min_player_elo,
        )
        return game

    def ingest_bundle(self, bundle: dict | TableBundle) -> GameRecord:
        """Normalize a raw bundle and ingest it.

        Raises:
            MalformedInput: If the bundle cannot be normalized.
            DuplicateError: If the table ID is already stored.
            StorageUnavailable: On transient database failures.
        """
        parsed = normalize_bundle(bundle, self.vocabulary)
        return self.ingest(parsed)

    def _duplicate(self, table_id: int) -> DuplicateError:
        existing = self.repo.get_game(table_id)
        return DuplicateError(
            f"Table {table_id} is already stored", table_id=table_id, existing=existing
        )
