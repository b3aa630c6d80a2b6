"""Fixed race and structure vocabularies for BGA Gaia Project.

A ``Vocabulary`` is an immutable value passed to the normalizer, compiler
and matcher.  ``DEFAULT_VOCABULARY`` holds the BGA tables; tests can build
their own with different IDs or round counts.

Name lookup is forgiving: case, whitespace, punctuation and accents are
ignored, so ``"Bal T'aks"``, ``"baltaks"`` and ``"bal-taks"`` all resolve to
the same race, and ``"trading-station"`` resolves to ``"Trading Station"``.
Integer IDs (or digit strings) are accepted when they are in the table.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from gaia_search.exceptions import UnknownVocabulary

# BGA displays ratings with a fixed 1300 offset added
BGA_ELO_OFFSET = 1300

# Gaia Project is always played over six rounds
GAIA_MAX_ROUNDS = 6

GAIA_RACES: dict[int, str] = {
    1: "Terrans",
    2: "Lantids",
    3: "Xenos",
    4: "Gleens",
    5: "Taklons",
    6: "Ambas",
    7: "Hadsch Hallas",
    8: "Ivits",
    9: "Geodens",
    10: "Bal T'aks",
    11: "Firaks",
    12: "Bescods",
    13: "Nevlas",
    14: "Itars",
}

# Building IDs as they appear in BGA construction moves
GAIA_STRUCTURES: dict[int, str] = {
    4: "Mine",
    5: "Trading Station",
    6: "Research Lab",
    7: "Planetary Institute",
    8: "Academy (Knowledge)",
    9: "Academy (QIC)",
}

GAIA_STRUCTURE_ALIASES: dict[str, int] = {
    "ts": 5,
    "trade station": 5,
    "lab": 6,
    "rl": 6,
    "pi": 7,
    "knowledge academy": 8,
    "academy left": 8,
    "qic academy": 9,
    "academy right": 9,
}

GAIA_RACE_ALIASES: dict[str, int] = {
    "hadsch": 7,
    "hh": 7,
    "bal taks": 10,
}


def fold_name(name: str) -> str:
    """Reduce a name to its lookup key.

    >>> fold_name("Bal T'aks")
    'baltaks'
    >>> fold_name("trading-station")
    'tradingstation'
    """
    folded = unicodedata.normalize("NFKD", name.strip().casefold())
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return re.sub(r"[^0-9a-z]", "", folded)


def _build_index(names: Mapping[int, str], aliases: Mapping[str, int]) -> dict[str, int]:
    index: dict[str, int] = {}
    for ident, name in names.items():
        index[fold_name(name)] = ident
    for alias, ident in aliases.items():
        if ident not in names:
            raise ValueError(f"Alias {alias!r} points at unknown id {ident}")
        index.setdefault(fold_name(alias), ident)
    return index


@dataclass(frozen=True)
class Vocabulary:
    """Bidirectional race/structure tables plus rating and round constants."""

    races: Mapping[int, str]
    structures: Mapping[int, str]
    race_aliases: Mapping[str, int] = field(default_factory=dict)
    structure_aliases: Mapping[str, int] = field(default_factory=dict)
    elo_offset: int = BGA_ELO_OFFSET
    max_rounds: int = GAIA_MAX_ROUNDS

    def __post_init__(self) -> None:
        if self.max_rounds < 1:
            raise ValueError(f"max_rounds must be positive, got {self.max_rounds}")
        # Read-only copies of the caller's tables
        object.__setattr__(self, "races", MappingProxyType(dict(self.races)))
        object.__setattr__(self, "structures", MappingProxyType(dict(self.structures)))
        object.__setattr__(
            self, "_race_index",
            MappingProxyType(_build_index(self.races, self.race_aliases)),
        )
        object.__setattr__(
            self, "_structure_index",
            MappingProxyType(_build_index(self.structures, self.structure_aliases)),
        )

    # ------------------------------------------------------------------
    # name/id -> id
    # ------------------------------------------------------------------

    def race_id(self, value: int | str) -> int:
        """Resolve a race name, alias or ID to its canonical ID.

        Raises:
            UnknownVocabulary: If the value names no race.
        """
        return self._resolve(value, self.races, self._race_index, "race")

    def structure_id(self, value: int | str) -> int:
        """Resolve a structure name, alias or ID to its canonical ID.

        Raises:
            UnknownVocabulary: If the value names no structure.
        """
        return self._resolve(value, self.structures, self._structure_index, "structure")

    # ------------------------------------------------------------------
    # id -> display name
    # ------------------------------------------------------------------

    def race_name(self, race_id: int) -> str:
        try:
            return self.races[race_id]
        except KeyError:
            raise UnknownVocabulary(
                f"Unknown race id {race_id!r}", kind="race", value=race_id
            ) from None

    def structure_name(self, structure_id: int) -> str:
        try:
            return self.structures[structure_id]
        except KeyError:
            raise UnknownVocabulary(
                f"Unknown structure id {structure_id!r}",
                kind="structure",
                value=structure_id,
            ) from None

    def is_race(self, race_id: int) -> bool:
        return race_id in self.races

    def is_structure(self, structure_id: int) -> bool:
        return structure_id in self.structures

    @staticmethod
    def _resolve(
        value: int | str,
        table: Mapping[int, str],
        index: Mapping[str, int],
        kind: str,
    ) -> int:
        # bool is an int subclass; True is never a valid id
        if isinstance(value, int) and not isinstance(value, bool):
            if value in table:
                return value
        elif isinstance(value, str):
            text = value.strip()
            if text.isdigit() and int(text) in table:
                return int(text)
            key = fold_name(text)
            if key in index:
                return index[key]
        raise UnknownVocabulary(f"Unknown {kind} {value!r}", kind=kind, value=value)


DEFAULT_VOCABULARY = Vocabulary(
    races=GAIA_RACES,
    structures=GAIA_STRUCTURES,
    race_aliases=GAIA_RACE_ALIASES,
    structure_aliases=GAIA_STRUCTURE_ALIASES,
)
