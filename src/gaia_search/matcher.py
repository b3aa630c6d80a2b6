"""Re-evaluate a SearchRequest against an already-fetched game.

The matcher interprets the same predicate tree the compiler lowers to SQL,
so ``Matcher.evaluate(request, game).matched`` agrees with whether the
compiled filter selects ``game``.  It also explains the match: within each
clause that holds, every player satisfying that clause's player conditions
gets a Label per structure condition, carrying the earliest round the
structure was built in.  Games that do not match get no labels.
"""

import logging
from dataclasses import dataclass, field

from gaia_search.models import ParsedGame, PlayerRecord, SearchRequest
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
    fold_player_name,
    structure_leaves,
)
from gaia_search.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Label:
    """Why a player matched: structure built in a given (1-based) round."""

    structure_id: int
    structure_name: str
    round: int

    def __str__(self) -> str:
        return f"{self.structure_name} R{self.round}"


@dataclass
class MatchResult:
    matched: bool
    labels: dict[int, list[Label]] = field(default_factory=dict)


class Matcher:
    """In-memory evaluator for search requests."""

    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> None:
        self.vocabulary = vocabulary

    def evaluate(self, request: SearchRequest, game: ParsedGame) -> MatchResult:
        """Evaluate *request* against *game*.

        Raises:
            UnknownVocabulary: If a race or structure name is not known.
        """
        tree = build_predicate(request, self.vocabulary)
        return self.evaluate_tree(tree, game)

    def evaluate_tree(self, tree: Node, game: ParsedGame) -> MatchResult:
        matched = interpret(tree, game)
        labels = self._labels(tree, game) if matched else {}
        return MatchResult(matched=matched, labels=labels)

    def _labels(self, tree: Node, game: ParsedGame) -> dict[int, list[Label]]:
        scopes = [
            (scope.predicate, structure_leaves(scope.predicate))
            for scope in satisfied_scopes(tree, game)
        ]
        labels: dict[int, list[Label]] = {}
        for player in game.players:
            player_labels: list[Label] = []
            for predicate, leaves in scopes:
                if not leaves or not interpret(predicate, game, player):
                    continue
                for leaf in leaves:
                    found = first_qualifying_round(leaf, player)
                    if found is None:
                        continue
                    label = Label(
                        structure_id=leaf.structure_id,
                        structure_name=self.vocabulary.structure_name(leaf.structure_id),
                        round=found,
                    )
                    if label not in player_labels:
                        player_labels.append(label)
            if player_labels:
                labels[player.player_id] = player_labels
        return labels


def satisfied_scopes(node: Node, game: ParsedGame) -> list[ExistsPlayer]:
    """ExistsPlayer nodes inside the clauses of *node* that hold for *game*."""
    if isinstance(node, AnyOf):
        return [s for child in node.children for s in satisfied_scopes(child, game)]
    if not interpret(node, game):
        return []
    if isinstance(node, AllOf):
        return [s for child in node.children for s in satisfied_scopes(child, game)]
    if isinstance(node, ExistsPlayer):
        return [node]
    return []


def first_qualifying_round(leaf: StructureBuilt, player: PlayerRecord) -> int | None:
    """Earliest round satisfying *leaf* for *player*, or None."""
    if leaf.race_id is not None and player.race_id != leaf.race_id:
        return None
    return player.buildings.first_round_with(leaf.structure_id, leaf.max_round)


def interpret(node: Node, game: ParsedGame, player: PlayerRecord | None = None) -> bool:
    """Evaluate a predicate tree against concrete data.

    Raises:
        TypeError: On unknown node types or player-scope nodes used outside
            ExistsPlayer.
    """
    if isinstance(node, PLAYER_LEAVES) and player is None:
        raise TypeError(f"{type(node).__name__} is only valid inside ExistsPlayer")

    if isinstance(node, AllOf):
        return all(interpret(child, game, player) for child in node.children)
    if isinstance(node, AnyOf):
        return any(interpret(child, game, player) for child in node.children)

    if isinstance(node, PlayerCountIs):
        return game.player_count == node.count
    if isinstance(node, MinEloAtLeast):
        return game.min_player_elo is not None and game.min_player_elo >= node.elo
    if isinstance(node, ExistsPlayer):
        if player is not None:
            raise TypeError("ExistsPlayer cannot be nested")
        return any(interpret(node.predicate, game, p) for p in game.players)

    if isinstance(node, NameContains):
        return node.needle in fold_player_name(player.player_name)
    if isinstance(node, RaceIs):
        return player.race_id == node.race_id
    if isinstance(node, ScoreAtLeast):
        return player.final_score >= node.score
    if isinstance(node, IsWinner):
        return player.is_winner
    if isinstance(node, StructureBuilt):
        return first_qualifying_round(node, player) is not None

    raise TypeError(f"Cannot interpret node {node!r}")
