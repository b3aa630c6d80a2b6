"""Tests for the in-memory matcher and its match labels."""

import pytest

from gaia_search.matcher import Label, Matcher, interpret
from gaia_search.models import (
    BuildingTimeline,
    ParsedGame,
    PlayerRecord,
    SearchClause,
    SearchRequest,
    StructureCondition,
)
from gaia_search.predicate import MATCH_ALL, AnyOf, NameContains

# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------

EMPTY_ROUNDS = [[], [], [], [], [], []]


def make_player(player_id, name, race_id, rounds=None, **overrides):
    data = {
        "player_id": player_id,
        "player_name": name,
        "race_id": race_id,
        "final_score": 140,
        "buildings": BuildingTimeline.from_rounds(rounds or EMPTY_ROUNDS),
    }
    data.update(overrides)
    return PlayerRecord(**data)


def make_game(*players, table_id=1, **overrides):
    data = {
        "table_id": table_id,
        "player_count": len(players),
        "players": list(players),
    }
    data.update(overrides)
    return ParsedGame(**data)


def mine_request(max_round=1, race=None):
    return SearchRequest.of(SearchClause(structure_conditions=(
        StructureCondition(race=race, structure="mine", max_round=max_round),
    )))


@pytest.fixture
def matcher():
    return Matcher()


# ---------------------------------------------------------------------------
# Round bounds
# ---------------------------------------------------------------------------

class TestStructureByRound:
    def test_mine_in_round_one_matches(self, matcher):
        game = make_game(make_player(1, "a", 4, [[4], [], [], [], [], []]))
        result = matcher.evaluate(mine_request(), game)
        assert result.matched
        assert result.labels == {1: [Label(4, "Mine", 1)]}

    def test_mine_only_later_does_not_match(self, matcher):
        game = make_game(make_player(1, "a", 4, [[], [4], [4], [], [], []]))
        result = matcher.evaluate(mine_request(), game)
        assert not result.matched
        assert result.labels == {}

    def test_label_uses_earliest_round(self, matcher):
        game = make_game(make_player(1, "a", 4, [[4], [], [4], [], [], []]))
        result = matcher.evaluate(mine_request(max_round=6), game)
        assert [str(label) for label in result.labels[1]] == ["Mine R1"]

    def test_race_must_be_same_player(self, matcher):
        game = make_game(
            make_player(1, "gleens-player", 4),
            make_player(2, "terran-player", 1, [[4], [], [], [], [], []]),
        )
        assert not matcher.evaluate(mine_request(race="Gleens"), game).matched
        assert matcher.evaluate(mine_request(race="Terrans"), game).matched

    def test_labels_only_for_players_satisfying_race(self, matcher):
        game = make_game(
            make_player(1, "a", 4, [[4], [], [], [], [], []]),
            make_player(2, "b", 1, [[4], [], [], [], [], []]),
        )
        result = matcher.evaluate(mine_request(race="Gleens"), game)
        assert list(result.labels) == [1]


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

class TestLabels:
    def test_race_only_condition_has_no_label(self, matcher):
        game = make_game(make_player(1, "a", 8, [[4], [], [], [], [], []]))
        request = SearchRequest.of(SearchClause(
            structure_conditions=(StructureCondition(race="Ivits"),),
        ))
        result = matcher.evaluate(request, game)
        assert result.matched
        assert result.labels == {}

    def test_several_conditions_each_labelled(self, matcher):
        game = make_game(make_player(1, "a", 4, [[4], [5], [], [7], [], []]))
        request = SearchRequest.of(SearchClause(structure_conditions=(
            StructureCondition(structure="mine", max_round=2),
            StructureCondition(structure="ts", max_round=2),
            StructureCondition(structure="pi", max_round=6),
        )))
        result = matcher.evaluate(request, game)
        assert [str(label) for label in result.labels[1]] == [
            "Mine R1", "Trading Station R2", "Planetary Institute R4",
        ]

    def test_same_label_not_repeated(self, matcher):
        game = make_game(make_player(1, "a", 4, [[4], [], [], [], [], []]))
        request = SearchRequest.of(
            SearchClause(structure_conditions=(StructureCondition(structure="mine", max_round=3),)),
            SearchClause(structure_conditions=(StructureCondition(structure="mine", max_round=2),)),
        )
        result = matcher.evaluate(request, game)
        assert result.labels == {1: [Label(4, "Mine", 1)]}


# ---------------------------------------------------------------------------
# Other predicates
# ---------------------------------------------------------------------------

class TestPredicates:
    def test_empty_request_matches_everything(self, matcher):
        game = make_game(make_player(1, "a", 1))
        assert matcher.evaluate(SearchRequest(), game).matched

    def test_name_substring_is_case_insensitive(self, matcher):
        game = make_game(make_player(1, "AlabeSons", 4))
        request = SearchRequest.of(SearchClause(player_name="alabe"))
        assert matcher.evaluate(request, game).matched

    def test_or_of_clauses(self, matcher):
        game = make_game(make_player(1, "felipetoito", 10))
        request = SearchRequest.of(
            SearchClause(player_name="AlabeSons"),
            SearchClause(player_name="felipetoito"),
        )
        assert matcher.evaluate(request, game).matched

    def test_min_elo_without_ratings_never_matches(self, matcher):
        game = make_game(make_player(1, "a", 1), min_player_elo=None)
        request = SearchRequest.of(SearchClause(min_player_elo=0))
        assert not matcher.evaluate(request, game).matched

    @pytest.mark.parametrize("threshold,expected", [(1700, True), (1750, True), (1800, False)])
    def test_min_elo_threshold(self, matcher, threshold, expected):
        game = make_game(make_player(1, "a", 1, player_elo=1750), min_player_elo=1750)
        request = SearchRequest.of(SearchClause(min_player_elo=threshold))
        assert matcher.evaluate(request, game).matched is expected

    def test_winner_race_and_name_same_player(self, matcher):
        game = make_game(
            make_player(1, "Nova", 4, is_winner=True),
            make_player(2, "Other", 10),
        )
        wrong = SearchRequest.of(SearchClause(winner_race="Bal T'aks", winner_name="nova"))
        right = SearchRequest.of(SearchClause(winner_race="Gleens", winner_name="nova"))
        assert not matcher.evaluate(wrong, game).matched
        assert matcher.evaluate(right, game).matched

    def test_player_count_and_score(self, matcher):
        game = make_game(make_player(1, "a", 1, final_score=99), make_player(2, "b", 4))
        assert matcher.evaluate(
            SearchRequest.of(SearchClause(player_count=2, min_final_score=140)), game,
        ).matched
        assert not matcher.evaluate(
            SearchRequest.of(SearchClause(player_count=3)), game,
        ).matched


class TestInterpret:
    def test_match_all_and_empty_any(self):
        game = make_game(make_player(1, "a", 1))
        assert interpret(MATCH_ALL, game) is True
        assert interpret(AnyOf(), game) is False

    def test_player_leaf_needs_player_scope(self):
        game = make_game(make_player(1, "a", 1))
        with pytest.raises(TypeError):
            interpret(NameContains("a"), game)


class TestLabelScope:
    def test_unmatched_game_has_no_labels(self, matcher):
        game = make_game(make_player(1, "Nova", 4, [[4], [], [], [], [], []]))
        request = SearchRequest.of(SearchClause(
            player_name="vega",
            structure_conditions=(StructureCondition(structure="mine", max_round=1),),
        ))
        result = matcher.evaluate(request, game)
        assert not result.matched
        assert result.labels == {}

    def test_only_players_satisfying_whole_clause_labelled(self, matcher):
        game = make_game(
            make_player(1, "Nova", 4, [[4], [], [], [], [], []]),
            make_player(2, "Vega", 1, [[4], [], [], [], [], []]),
        )
        request = SearchRequest.of(SearchClause(
            player_name="vega",
            structure_conditions=(StructureCondition(structure="mine", max_round=1),),
        ))
        result = matcher.evaluate(request, game)
        assert result.matched
        assert list(result.labels) == [2]

    def test_failing_clause_contributes_no_labels(self, matcher):
        game = make_game(
            make_player(1, "Nova", 4, [[4], [5], [], [], [], []]),
            make_player(2, "Vega", 1),
        )
        request = SearchRequest.of(
            SearchClause(
                player_count=3,
                structure_conditions=(StructureCondition(structure="mine", max_round=1),),
            ),
            SearchClause(structure_conditions=(StructureCondition(structure="ts", max_round=2),)),
        )
        result = matcher.evaluate(request, game)
        assert result.matched
        assert result.labels == {1: [Label(5, "Trading Station", 2)]}
