"""Compile a SearchRequest into a SQLite filter over the games table.

The compiled ``StorageFilter.where`` is a boolean SQL expression over the
alias ``g`` (``games``) with positional ``?`` parameters, ready to drop
into ``SELECT ... FROM games g WHERE <where>``.

Building timelines are stored as JSON arrays of arrays, so "built
structure S within the first N rounds" becomes an EXISTS over
``json_each(p.buildings)`` where the array key (0-based round index) is
below N and the round's own array contains S.
"""

import logging
from dataclasses import dataclass, field

from gaia_search.models import SearchRequest
from gaia_search.predicate import (
    AllOf,
    AnyOf,
    ExistsPlayer,
    IsWinner,
    MinEloAtLeast,
    NameContains,
    Node,
    PlayerCountIs,
    PLAYER_LEAVES,
    RaceIs,
    ScoreAtLeast,
    StructureBuilt,
    build_predicate,
)
from gaia_search.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

EXISTS_PLAYER_SQL = (
    "EXISTS (SELECT 1 FROM players p WHERE p.game_id = g.id AND {predicate})"
)

STRUCTURE_BUILT_SQL = (
    "EXISTS (SELECT 1 FROM json_each(p.buildings) AS r "
    "WHERE r.key < ? "
    "AND EXISTS (SELECT 1 FROM json_each(r.value) AS b WHERE b.value = ?))"
)


@dataclass(frozen=True)
class StorageFilter:
    """A WHERE expression over ``games g`` plus its positional parameters."""

    where: str = "1=1"
    params: tuple = field(default_factory=tuple)

    @property
    def matches_everything(self) -> bool:
        return self.where == "1=1"


class QueryCompiler:
    """Turns search requests into StorageFilters.

    Usage::

        compiler = QueryCompiler()
        flt = compiler.compile(request)
        conn.execute(f"SELECT g.* FROM games g WHERE {flt.where}", flt.params)
    """

    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> None:
        self.vocabulary = vocabulary

    def compile(self, request: SearchRequest) -> StorageFilter:
        """Compile *request*.

        Raises:
            UnknownVocabulary: If a race or structure name is not known.
        """
        return self.compile_tree(build_predicate(request, self.vocabulary))

    def compile_tree(self, tree: Node) -> StorageFilter:
        """Lower an already-built predicate tree."""
        where, params = lower_to_sql(tree)
        logger.debug("Compiled filter: %s %s", where, params)
        return StorageFilter(where=where, params=tuple(params))


def lower_to_sql(node: Node, *, in_player: bool = False) -> tuple[str, list]:
    """Lower a predicate tree to (sql, params).

    Raises:
        TypeError: On unknown node types or player-scope nodes used outside
            ExistsPlayer.
    """
    if isinstance(node, PLAYER_LEAVES) and not in_player:
        raise TypeError(f"{type(node).__name__} is only valid inside ExistsPlayer")

    if isinstance(node, AllOf):
        return _join(node.children, " AND ", "1=1", in_player)
    if isinstance(node, AnyOf):
        return _join(node.children, " OR ", "1=0", in_player)

    if isinstance(node, PlayerCountIs):
        return "g.player_count = ?", [node.count]
    if isinstance(node, MinEloAtLeast):
        return "g.min_player_elo >= ?", [node.elo]
    if isinstance(node, ExistsPlayer):
        if in_player:
            raise TypeError("ExistsPlayer cannot be nested")
        inner, params = lower_to_sql(node.predicate, in_player=True)
        return EXISTS_PLAYER_SQL.format(predicate=inner), params

    if isinstance(node, NameContains):
        return "instr(p.player_name_normalized, ?) > 0", [node.needle]
    if isinstance(node, RaceIs):
        return "p.race_id = ?", [node.race_id]
    if isinstance(node, ScoreAtLeast):
        return "p.final_score >= ?", [node.score]
    if isinstance(node, IsWinner):
        return "p.is_winner = 1", []
    if isinstance(node, StructureBuilt):
        built = STRUCTURE_BUILT_SQL
        params: list = [node.max_round, node.structure_id]
        if node.race_id is None:
            return built, params
        return f"(p.race_id = ? AND {built})", [node.race_id] + params

    raise TypeError(f"Cannot lower node {node!r}")


def _join(
    children: tuple[Node, ...], joiner: str, empty: str, in_player: bool
) -> tuple[str, list]:
    if not children:
        return empty, []
    parts: list[str] = []
    params: list = []
    for child in children:
        sql, child_params = lower_to_sql(child, in_player=in_player)
        parts.append(sql)
        params.extend(child_params)
    if len(parts) == 1:
        return parts[0], params
    return "(" + joiner.join(parts) + ")", params
