"""Search service: compile, fetch candidates, annotate.

Also owns the shareable query-string form of a request: the request JSON,
URI-encoded, in a single ``q`` parameter.  A missing or malformed ``q``
falls back to the empty request (match everything) because search is
read-only and best-effort.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from urllib.parse import quote, unquote

from pydantic import ValidationError

from gaia_search.compiler import QueryCompiler
from gaia_search.exceptions import StorageUnavailable
from gaia_search.matcher import Label, Matcher
from gaia_search.models import GameRecord, SearchRequest
from gaia_search.predicate import build_predicate
from gaia_search.repository import GameRepository
from gaia_search.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

EMPTY_REQUEST = SearchRequest()


# ---------------------------------------------------------------------------
# Query-string codec
# ---------------------------------------------------------------------------

def encode_query_param(request: SearchRequest) -> str:
    """URI-encode a request for the ``q`` parameter."""
    payload = request.model_dump_json(by_alias=True, exclude_defaults=True)
    return quote(payload, safe="")


def decode_query_param(q: str | None) -> SearchRequest:
    """Decode a ``q`` parameter, falling back to the empty request."""
    if not q:
        return EMPTY_REQUEST
    try:
        return SearchRequest.model_validate_json(unquote(q))
    except (ValidationError, ValueError) as e:
        logger.warning("Malformed search query %r, using empty request: %s", q[:200], e)
        return EMPTY_REQUEST


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SearchResult:
    """One matched game with per-player "matched because" labels."""

    game: GameRecord
    labels: dict[int, list[Label]] = field(default_factory=dict)

    def to_dict(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> dict:
        """Presentation shape: game fields, players, label strings."""
        game = self.game
        return {
            "table_id": game.table_id,
            "game_name": game.game_name,
            "player_count": game.player_count,
            "winner_name": game.winner_name,
            "winner_ambiguous": game.winner_ambiguous,
            "min_player_elo": game.min_player_elo,
            "created_at": game.created_at,
            "players": [
                {
                    "player_id": p.player_id,
                    "player_name": p.player_name,
                    "race_id": p.race_id,
                    "race_name": vocabulary.race_name(p.race_id),
                    "final_score": p.final_score,
                    "player_elo": p.player_elo,
                    "is_winner": p.is_winner,
                    "buildings": p.buildings.as_lists(),
                    "labels": [str(label) for label in self.labels.get(p.player_id, [])],
                }
                for p in game.players
            ],
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class SearchService:
    """Read-side entry point used by pages and the CLI."""

    def __init__(
        self,
        repo: GameRepository,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    ) -> None:
        self.repo = repo
        self.vocabulary = vocabulary
        self.compiler = QueryCompiler(vocabulary)
        self.matcher = Matcher(vocabulary)

    def search(
        self,
        request: SearchRequest,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SearchResult]:
        """Run *request* and annotate every matched game.

        Raises:
            UnknownVocabulary: If the request names an unknown race/structure.
            StorageUnavailable: On transient database failures.
        """
        tree = build_predicate(request, self.vocabulary)
        flt = self.compiler.compile_tree(tree)
        try:
            games = self.repo.search(flt, limit=limit, offset=offset)
        except sqlite3.OperationalError as e:
            raise StorageUnavailable(f"Search failed: {e}") from e

        results: list[SearchResult] = []
        for game in games:
            outcome = self.matcher.evaluate_tree(tree, game)
            if not outcome.matched:
                # Storage and matcher disagree: a bug, not a data condition
                logger.error(
                    "Table %d selected by storage filter but rejected by matcher",
                    game.table_id,
                )
            results.append(SearchResult(game=game, labels=outcome.labels))
        logger.info("Search matched %d game(s)", len(results))
        return results

    def search_query_string(
        self,
        q: str | None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SearchResult]:
        """Search from the shareable ``q`` parameter."""
        return self.search(decode_query_param(q), limit=limit, offset=offset)

    def get_game(self, table_id: int) -> GameRecord | None:
        try:
            return self.repo.get_game(table_id)
        except sqlite3.OperationalError as e:
            raise StorageUnavailable(f"Lookup of table {table_id} failed: {e}") from e

    def player_names(self) -> list[str]:
        """Distinct player names for autocomplete; empty on storage errors."""
        try:
            return self.repo.list_player_names()
        except sqlite3.Error:
            logger.exception("Failed to fetch player names")
            return []
