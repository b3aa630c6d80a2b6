"""Pydantic v2 models for search requests.

A SearchRequest is an OR of SearchClause groups.  Inside a clause every
field that is set is AND'ed.  Race and structure values stay as the user
typed them (name, alias or ID); they are resolved against the vocabulary
when the request is compiled, so an unknown name is reported there rather
than swallowed here.

Empty strings count as "not set", matching how the search form posts
untouched inputs.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .game import SQLITE_INT_MAX, SQLITE_INT_MIN


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _SearchModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class StructureCondition(_SearchModel):
    """Player built ``structure`` by round ``max_round``, optionally as ``race``."""

    race: int | str | None = None
    structure: int | str | None = None
    max_round: int | None = Field(default=None, ge=1, le=SQLITE_INT_MAX)

    normalize_blanks = field_validator("race", "structure", mode="before")(
        _blank_to_none
    )

    def is_empty(self) -> bool:
        return self.race is None and self.structure is None


class SearchClause(_SearchModel):
    """One AND-group of conditions."""

    player_name: str | None = None
    player_count: int | None = Field(default=None, ge=1, le=SQLITE_INT_MAX)
    structure_conditions: tuple[StructureCondition, ...] = ()
    min_final_score: int | None = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)
    winner_race: int | str | None = None
    winner_name: str | None = None
    min_player_elo: int | None = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)

    normalize_blanks = field_validator(
        "player_name", "winner_race", "winner_name", mode="before"
    )(_blank_to_none)

    def is_empty(self) -> bool:
        """True when no field would constrain anything."""
        return (
            self.player_name is None
            and self.player_count is None
            and all(c.is_empty() for c in self.structure_conditions)
            and self.min_final_score is None
            and self.winner_race is None
            and self.winner_name is None
            and self.min_player_elo is None
        )


class SearchRequest(_SearchModel):
    """OR of clauses.  No clauses (or only empty ones) matches every game."""

    clauses: tuple[SearchClause, ...] = ()

    @classmethod
    def of(cls, *clauses: SearchClause) -> "SearchRequest":
        return cls(clauses=clauses)

    def effective_clauses(self) -> tuple[SearchClause, ...]:
        """Clauses that constrain something; empty ones are dropped."""
        return tuple(c for c in self.clauses if not c.is_empty())

    def is_empty(self) -> bool:
        return not self.effective_clauses()
