"""Pydantic v2 models for ingestion bundles, stored games and searches.

Re-exports all model classes for convenient import::

    from gaia_search.models import GameRecord, SearchRequest, TableBundle, ...
"""

from .bundle import BundlePlayer, RatingEntry, TableBundle, TimelineFact
from .game import (
    SQLITE_INT_MAX,
    SQLITE_INT_MIN,
    BuildingTimeline,
    GameRecord,
    ParsedGame,
    PlayerRecord,
)
from .search import SearchClause, SearchRequest, StructureCondition

__all__ = [
    "SQLITE_INT_MAX",
    "SQLITE_INT_MIN",
    "BundlePlayer",
    "RatingEntry",
    "TableBundle",
    "TimelineFact",
    "BuildingTimeline",
    "GameRecord",
    "ParsedGame",
    "PlayerRecord",
    "SearchClause",
    "SearchRequest",
    "StructureCondition",
]
