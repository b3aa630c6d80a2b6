"""Pydantic v2 validation models for ingestion bundles.

A bundle is what the BGA transport hands over for one finished table:
table summary, players, construction facts already reduced to
"player X built structure Y in round Z", and the rating payload.

Both snake_case and the camelCase keys the transport emits are accepted.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .game import SQLITE_INT_MAX, SQLITE_INT_MIN


class BundlePlayer(BaseModel):
    """Per-table player summary."""

    model_config = ConfigDict(populate_by_name=True)

    player_id: int = Field(
        ge=SQLITE_INT_MIN,
        le=SQLITE_INT_MAX,
        validation_alias=AliasChoices("player_id", "externalPlayerId", "playerId"),
    )
    player_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("player_name", "displayName", "playerName"),
    )
    race_id: int = Field(validation_alias=AliasChoices("race_id", "raceId"))
    final_score: int = Field(
        ge=SQLITE_INT_MIN,
        le=SQLITE_INT_MAX,
        validation_alias=AliasChoices("final_score", "finalScore"),
    )


class TimelineFact(BaseModel):
    """One construction: player built structure in round (1-based)."""

    model_config = ConfigDict(populate_by_name=True)

    player_id: int = Field(
        validation_alias=AliasChoices("player_id", "externalPlayerId", "playerId"),
    )
    round: int = Field(ge=1)
    structure_id: int = Field(
        validation_alias=AliasChoices("structure_id", "structureId"),
    )


class RatingEntry(BaseModel):
    """Raw rating as reported by the platform.

    ``raw_rating`` is left untyped: BGA sends numbers, numeric strings, or
    nothing.  The normalizer decides what counts as a rating.
    """

    model_config = ConfigDict(populate_by_name=True)

    player_id: int = Field(
        validation_alias=AliasChoices("player_id", "externalPlayerId", "playerId"),
    )
    raw_rating: Any = Field(
        default=None,
        validation_alias=AliasChoices("raw_rating", "rawRating", "rank_after_game"),
    )


class TableBundle(BaseModel):
    """Everything known about one finished table before normalization."""

    model_config = ConfigDict(populate_by_name=True)

    table_id: int = Field(
        gt=0, le=SQLITE_INT_MAX, validation_alias=AliasChoices("table_id", "tableId"),
    )
    game_name: str = Field(
        default="", validation_alias=AliasChoices("game_name", "gameName"),
    )
    players: list[BundlePlayer] = Field(min_length=1)
    timeline: list[TimelineFact] = Field(
        default_factory=list,
        validation_alias=AliasChoices("timeline", "timelineFacts", "facts"),
    )
    ratings: list[RatingEntry] = Field(default_factory=list)
    winner_name: str | None = Field(
        default=None, validation_alias=AliasChoices("winner_name", "winnerName"),
    )
    winner_player_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("winner_player_id", "winnerPlayerId"),
    )
