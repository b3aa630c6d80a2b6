"""Pydantic v2 models for stored games, players and building timelines.

BuildingTimeline is the per-round record of which structures a player
built.  Round numbers are 1-based everywhere they are surfaced; index 0 of
``rounds`` is round 1.
"""

import json

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from typing_extensions import Self

# SQLite INTEGER is a signed 64-bit value; larger ints cannot be bound
SQLITE_INT_MAX = 2**63 - 1
SQLITE_INT_MIN = -(2**63)


class BuildingTimeline(BaseModel):
    """Ordered rounds, each a set of structure IDs built that round."""

    model_config = ConfigDict(frozen=True)

    rounds: tuple[frozenset[int], ...] = ()

    @classmethod
    def from_rounds(cls, rounds) -> "BuildingTimeline":
        """Build from any iterable of per-round iterables."""
        return cls(rounds=tuple(frozenset(r) for r in rounds))

    @classmethod
    def from_json(cls, text: str | None) -> "BuildingTimeline":
        """Parse the stored JSON array-of-arrays form."""
        if not text:
            return cls()
        return cls.from_rounds(json.loads(text))

    def to_json(self) -> str:
        """Serialize for storage.  Each round is written sorted ascending."""
        return json.dumps(self.as_lists(), separators=(",", ":"))

    def as_lists(self) -> list[list[int]]:
        return [sorted(r) for r in self.rounds]

    @field_serializer("rounds")
    def _serialize_rounds(self, rounds: tuple[frozenset[int], ...]) -> list[list[int]]:
        return [sorted(r) for r in rounds]

    @property
    def round_count(self) -> int:
        return len(self.rounds)

    def first_round_with(self, structure_id: int, max_round: int) -> int | None:
        """Return the earliest 1-based round <= *max_round* containing *structure_id*.

        Returns None when the structure was not built in that window.
        """
        for index, built in enumerate(self.rounds[:max(max_round, 0)]):
            if structure_id in built:
                return index + 1
        return None


class PlayerRecord(BaseModel):
    """One participant of a stored game."""

    player_id: int = Field(ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    player_name: str = Field(min_length=1)
    race_id: int = Field(gt=0, le=SQLITE_INT_MAX)
    final_score: int = Field(ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    player_elo: int | None = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    is_winner: bool = False
    buildings: BuildingTimeline = Field(default_factory=BuildingTimeline)


class ParsedGame(BaseModel):
    """Normalized game ready for ingestion."""

    table_id: int = Field(gt=0, le=SQLITE_INT_MAX)
    game_name: str = ""
    player_count: int = Field(ge=1)
    winner_name: str | None = None
    winner_ambiguous: bool = False
    min_player_elo: int | None = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    players: list[PlayerRecord] = Field(min_length=1)
    raw_log: dict | None = None

    @model_validator(mode="after")
    def check_player_count(self) -> Self:
        """player_count must equal the number of player rows."""
        if self.player_count != len(self.players):
            raise ValueError(
                f"player_count {self.player_count} does not match "
                f"{len(self.players)} player rows"
            )
        return self

    @model_validator(mode="after")
    def check_player_ids_unique(self) -> Self:
        """External player IDs must be unique within a game."""
        ids = [p.player_id for p in self.players]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate player ids in table {self.table_id}: {ids}")
        return self


class GameRecord(ParsedGame):
    """A game as read back from storage."""

    created_at: str = Field(min_length=1)

    def player(self, player_id: int) -> PlayerRecord | None:
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    @property
    def winners(self) -> list[PlayerRecord]:
        return [p for p in self.players if p.is_winner]
