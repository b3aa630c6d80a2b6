"""Predicate tree shared by the SQL compiler and the in-memory matcher.

``build_predicate`` is the only place where a SearchRequest is given
meaning.  It resolves race/structure names against the vocabulary and
returns a small immutable tree:

    AnyOf                          OR of clause branches
      AllOf                        one clause
        PlayerCountIs              game-level leaves
        MinEloAtLeast
        ExistsPlayer(AllOf(...))   some single player satisfies all of:
          NameContains
          ScoreAtLeast
          RaceIs
          StructureBuilt           race (optional) + structure by round
        ExistsPlayer(AllOf(IsWinner, RaceIs, NameContains))

Back ends (``compiler.lower_to_sql`` and ``matcher.interpret``) walk the
same tree, so the two can only differ in how a leaf is expressed.

Player-scope nodes are only valid directly below ``ExistsPlayer``.
"""

from dataclasses import dataclass

from gaia_search.models import SearchClause, SearchRequest, StructureCondition
from gaia_search.vocabulary import DEFAULT_VOCABULARY, Vocabulary


class Node:
    """Base class for predicate tree nodes."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AllOf(Node):
    """Conjunction.  No children means true."""

    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class AnyOf(Node):
    """Disjunction.  No children means false."""

    children: tuple[Node, ...] = ()


MATCH_ALL = AllOf()


# ---------------------------------------------------------------------------
# Game-scope leaves
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlayerCountIs(Node):
    count: int


@dataclass(frozen=True)
class MinEloAtLeast(Node):
    """Game's weakest rating >= elo.  Games without ratings never match."""

    elo: int


@dataclass(frozen=True)
class ExistsPlayer(Node):
    """At least one player of the game satisfies ``predicate``."""

    predicate: Node


# ---------------------------------------------------------------------------
# Player-scope leaves
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NameContains(Node):
    """Casefolded substring match on the player's display name."""

    needle: str


@dataclass(frozen=True)
class RaceIs(Node):
    race_id: int


@dataclass(frozen=True)
class ScoreAtLeast(Node):
    score: int


@dataclass(frozen=True)
class IsWinner(Node):
    pass


@dataclass(frozen=True)
class StructureBuilt(Node):
    """Player built ``structure_id`` within the first ``max_round`` rounds.

    When ``race_id`` is set the player must also be that race; keeping both
    in one leaf lets the matcher label exactly the players that satisfied
    the whole structure condition.
    """

    structure_id: int
    max_round: int
    race_id: int | None = None


PLAYER_LEAVES = (NameContains, RaceIs, ScoreAtLeast, IsWinner, StructureBuilt)


# ---------------------------------------------------------------------------
# Front end
# ---------------------------------------------------------------------------

def build_predicate(
    request: SearchRequest,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> Node:
    """Translate a request into a predicate tree.

    Empty clauses are dropped.  If nothing is left the result is
    ``MATCH_ALL``.

    Raises:
        UnknownVocabulary: If any race or structure cannot be resolved.
    """
    branches = tuple(
        _build_clause(clause, vocabulary) for clause in request.effective_clauses()
    )
    if not branches:
        return MATCH_ALL
    if len(branches) == 1:
        return branches[0]
    return AnyOf(branches)


def _build_clause(clause: SearchClause, vocabulary: Vocabulary) -> Node:
    game_level: list[Node] = []
    player_level: list[Node] = []
    winner_level: list[Node] = [IsWinner()]

    if clause.player_count is not None:
        game_level.append(PlayerCountIs(clause.player_count))
    if clause.min_player_elo is not None:
        game_level.append(MinEloAtLeast(clause.min_player_elo))

    if clause.player_name is not None:
        player_level.append(NameContains(fold_needle(clause.player_name)))
    if clause.min_final_score is not None:
        player_level.append(ScoreAtLeast(clause.min_final_score))
    for condition in clause.structure_conditions:
        node = build_structure_condition(condition, vocabulary)
        if node is not None:
            player_level.append(node)

    if clause.winner_race is not None:
        winner_level.append(RaceIs(vocabulary.race_id(clause.winner_race)))
    if clause.winner_name is not None:
        winner_level.append(NameContains(fold_needle(clause.winner_name)))

    children = list(game_level)
    if player_level:
        children.append(ExistsPlayer(AllOf(tuple(player_level))))
    if len(winner_level) > 1:
        children.append(ExistsPlayer(AllOf(tuple(winner_level))))
    return AllOf(tuple(children))


def build_structure_condition(
    condition: StructureCondition,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> Node | None:
    """Resolve one structure condition; None when it constrains nothing."""
    race_id = None if condition.race is None else vocabulary.race_id(condition.race)
    if condition.structure is None:
        return None if race_id is None else RaceIs(race_id)
    max_round = condition.max_round if condition.max_round is not None else vocabulary.max_rounds
    return StructureBuilt(
        structure_id=vocabulary.structure_id(condition.structure),
        max_round=max_round,
        race_id=race_id,
    )


def fold_needle(text: str) -> str:
    """Casefold a substring needle the same way stored names are folded."""
    return fold_player_name(text.strip())


def fold_player_name(name: str) -> str:
    return name.casefold()


def structure_leaves(node: Node) -> list[StructureBuilt]:
    """All StructureBuilt leaves in tree order, without duplicates."""
    found: list[StructureBuilt] = []

    def walk(n: Node) -> None:
        if isinstance(n, (AllOf, AnyOf)):
            for child in n.children:
                walk(child)
        elif isinstance(n, ExistsPlayer):
            walk(n.predicate)
        elif isinstance(n, StructureBuilt) and n not in found:
            found.append(n)

    walk(node)
    return found
