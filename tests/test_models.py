"""Tests for the pydantic models: timelines, stored games and search requests."""

import pytest
from pydantic import ValidationError

from gaia_search.models import (
    SQLITE_INT_MAX,
    BuildingTimeline,
    ParsedGame,
    PlayerRecord,
    SearchClause,
    SearchRequest,
    StructureCondition,
)


def make_player(player_id=1, **overrides):
    data = {
        "player_id": player_id,
        "player_name": f"player{player_id}",
        "race_id": 1,
        "final_score": 120,
    }
    data.update(overrides)
    return PlayerRecord(**data)


# ---------------------------------------------------------------------------
# BuildingTimeline
# ---------------------------------------------------------------------------

class TestBuildingTimeline:
    def test_json_storage_form_is_sorted_and_compact(self):
        timeline = BuildingTimeline.from_rounds([{5, 4}, [], [6]])
        assert timeline.to_json() == "[[4,5],[],[6]]"

    def test_from_json(self):
        timeline = BuildingTimeline.from_json("[[4],[],[4,5]]")
        assert timeline.rounds == (frozenset({4}), frozenset(), frozenset({4, 5}))
        assert timeline.round_count == 3

    @pytest.mark.parametrize("text", [None, ""])
    def test_from_empty_json(self, text):
        assert BuildingTimeline.from_json(text).rounds == ()

    def test_first_round_with(self):
        timeline = BuildingTimeline.from_rounds([[4], [], [4, 5]])
        assert timeline.first_round_with(4, 6) == 1
        assert timeline.first_round_with(5, 6) == 3
        assert timeline.first_round_with(5, 2) is None
        assert timeline.first_round_with(7, 6) is None

    def test_max_round_past_timeline(self):
        timeline = BuildingTimeline.from_rounds([[], [6]])
        assert timeline.first_round_with(6, 10) == 2

    def test_model_dump_gives_lists(self):
        timeline = BuildingTimeline.from_rounds([{9, 8}])
        assert timeline.model_dump() == {"rounds": [[8, 9]]}


# ---------------------------------------------------------------------------
# ParsedGame
# ---------------------------------------------------------------------------

class TestParsedGame:
    def test_valid_game(self):
        game = ParsedGame(
            table_id=10, player_count=2, players=[make_player(1), make_player(2)],
        )
        assert game.winner_ambiguous is False
        assert game.min_player_elo is None

    def test_player_count_must_match_rows(self):
        with pytest.raises(ValidationError, match="does not match"):
            ParsedGame(table_id=10, player_count=3, players=[make_player(1)])

    def test_duplicate_player_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate player ids"):
            ParsedGame(
                table_id=10, player_count=2, players=[make_player(1), make_player(1)],
            )

    def test_no_players_rejected(self):
        with pytest.raises(ValidationError):
            ParsedGame(table_id=10, player_count=1, players=[])

    def test_table_id_positive(self):
        with pytest.raises(ValidationError):
            ParsedGame(table_id=0, player_count=1, players=[make_player(1)])

    def test_player_race_positive(self):
        with pytest.raises(ValidationError):
            make_player(1, race_id=0)


# ---------------------------------------------------------------------------
# Search request models
# ---------------------------------------------------------------------------

class TestSearchModels:
    def test_blank_strings_are_unset(self):
        clause = SearchClause(player_name="  ", winner_race="", winner_name="")
        assert clause.player_name is None
        assert clause.winner_race is None
        assert clause.is_empty()

    def test_blank_structure_condition_is_empty(self):
        condition = StructureCondition(race="", structure=" ", max_round=3)
        assert condition.is_empty()
        assert SearchClause(structure_conditions=(condition,)).is_empty()

    def test_camel_case_keys_accepted(self):
        request = SearchRequest.model_validate({
            "clauses": [{
                "playerName": "Alabe",
                "playerCount": 3,
                "minPlayerElo": 1700,
                "structureConditions": [
                    {"race": "Gleens", "structure": "mine", "maxRound": 1},
                ],
            }]
        })
        clause = request.clauses[0]
        assert clause.player_name == "Alabe"
        assert clause.player_count == 3
        assert clause.min_player_elo == 1700
        assert clause.structure_conditions[0].max_round == 1

    def test_snake_case_keys_accepted(self):
        clause = SearchClause.model_validate({"player_name": "Nova", "min_final_score": 150})
        assert clause.min_final_score == 150

    def test_effective_clauses_drop_empty(self):
        request = SearchRequest.of(SearchClause(), SearchClause(player_count=4))
        assert request.effective_clauses() == (SearchClause(player_count=4),)
        assert not request.is_empty()
        assert SearchRequest.of(SearchClause()).is_empty()
        assert SearchRequest().is_empty()

    def test_round_bound_must_be_positive(self):
        with pytest.raises(ValidationError):
            StructureCondition(structure="mine", max_round=0)

    def test_models_are_frozen(self):
        clause = SearchClause(player_name="x")
        with pytest.raises(ValidationError):
            clause.player_name = "y"

    @pytest.mark.parametrize(
        "build",
        [
            lambda v: SearchClause(min_player_elo=v),
            lambda v: SearchClause(min_final_score=v),
            lambda v: SearchClause(player_count=v),
            lambda v: StructureCondition(structure="mine", max_round=v),
        ],
    )
    def test_ints_limited_to_storage_range(self, build):
        build(SQLITE_INT_MAX)
        with pytest.raises(ValidationError):
            build(SQLITE_INT_MAX + 1)

    def test_negative_score_below_storage_range(self):
        with pytest.raises(ValidationError):
            SearchClause(min_final_score=-(2**70))
