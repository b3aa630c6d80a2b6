"""Normalize a BGA table bundle into a ParsedGame.

Provides:
- normalize_bundle: pure function, bundle dict (or TableBundle) in,
  ParsedGame out
- normalize_rating: raw BGA rating -> normalized integer rating or None
- build_timelines: bucket construction facts into dense per-round sets

Packet decoding (which BGA move means which building) happens upstream;
this module only owns round bucketing, rating normalization and winner
resolution.
"""

import logging
import math
from collections import Counter

from pydantic import ValidationError

from gaia_search.exceptions import MalformedInput
from gaia_search.models import (
    SQLITE_INT_MAX,
    SQLITE_INT_MIN,
    BuildingTimeline,
    ParsedGame,
    PlayerRecord,
    TableBundle,
    TimelineFact,
)
from gaia_search.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

# Facts past this multiple of the round count are treated as corrupt
ROUND_LIMIT_FACTOR = 2


def normalize_bundle(
    bundle: dict | TableBundle,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> ParsedGame:
    """Turn one finished-table bundle into a ParsedGame.

    Args:
        bundle: Raw bundle dict from the transport, or an already
            validated TableBundle.
        vocabulary: Race/structure tables and rating/round constants.

    Returns:
        ParsedGame with one PlayerRecord per bundle player.

    Raises:
        MalformedInput: If the bundle is not an object, the table ID or
            player list is missing, a player row is invalid, a race ID is
            unknown, or player IDs repeat.
    """
    if isinstance(bundle, TableBundle):
        table = bundle
        raw_log = bundle.model_dump(mode="json")
    elif isinstance(bundle, dict):
        raw_log = bundle
        table_id = raw_log.get("table_id", raw_log.get("tableId"))
        try:
            table = TableBundle.model_validate(bundle)
        except ValidationError as e:
            raise MalformedInput(
                f"Table {table_id}: invalid bundle: {e}", table_id=_as_int(table_id)
            ) from e
    else:
        raise MalformedInput(
            f"Bundle must be an object, got {type(bundle).__name__}"
        )

    for p in table.players:
        if not vocabulary.is_race(p.race_id):
            raise MalformedInput(
                f"Table {table.table_id}: player {p.player_id} has unknown "
                f"race id {p.race_id}",
                table_id=table.table_id,
            )

    ids = Counter(p.player_id for p in table.players)
    repeated = sorted(pid for pid, n in ids.items() if n > 1)
    if repeated:
        raise MalformedInput(
            f"Table {table.table_id}: duplicate player ids {repeated}",
            table_id=table.table_id,
        )

    ratings = _collect_ratings(table, vocabulary.elo_offset)
    timelines = build_timelines(table, vocabulary)
    winner_ids, ambiguous = _resolve_winners(table)

    present = [r for r in ratings.values() if r is not None]
    min_player_elo = min(present) if present else None

    players = [
        PlayerRecord(
            player_id=p.player_id,
            player_name=p.player_name,
            race_id=p.race_id,
            final_score=p.final_score,
            player_elo=ratings.get(p.player_id),
            is_winner=p.player_id in winner_ids,
            buildings=timelines[p.player_id],
        )
        for p in table.players
    ]

    winner_name = table.winner_name
    if table.winner_player_id is not None and winner_ids:
        winner_name = next(
            p.player_name for p in table.players if p.player_id in winner_ids
        )

    try:
        return ParsedGame(
            table_id=table.table_id,
            game_name=table.game_name,
            player_count=len(players),
            winner_name=winner_name,
            winner_ambiguous=ambiguous,
            min_player_elo=min_player_elo,
            players=players,
            raw_log=raw_log,
        )
    except ValidationError as e:
        raise MalformedInput(
            f"Table {table.table_id}: {e}", table_id=table.table_id
        ) from e


def normalize_rating(raw, offset: int) -> int | None:
    """Subtract the platform offset and round half up.

    Absent, non-numeric and non-finite values give None rather than an
    error: a missing rating is normal for unranked players.

    >>> normalize_rating("1820.4", 1300)
    520
    >>> normalize_rating(None, 1300) is None
    True
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    rating = math.floor(value - offset + 0.5)
    if not SQLITE_INT_MIN <= rating <= SQLITE_INT_MAX:
        return None
    return rating


def build_timelines(
    table: TableBundle,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> dict[int, BuildingTimeline]:
    """Bucket construction facts into dense per-round structure sets.

    Every player gets a timeline covering round 1 through the highest round
    observed in the table, and at least ``vocabulary.max_rounds`` rounds.
    Facts naming an unknown player or structure, or a round beyond
    ``ROUND_LIMIT_FACTOR * vocabulary.max_rounds``, are skipped with a
    warning.
    """
    known_players = {p.player_id for p in table.players}
    round_limit = ROUND_LIMIT_FACTOR * vocabulary.max_rounds
    usable: list[TimelineFact] = []
    for fact in table.timeline:
        if fact.player_id not in known_players:
            logger.warning(
                "Table %d: construction fact for unknown player %d skipped",
                table.table_id, fact.player_id,
            )
            continue
        if not vocabulary.is_structure(fact.structure_id):
            logger.warning(
                "Table %d: unknown structure id %d (player %d, round %d) skipped",
                table.table_id, fact.structure_id, fact.player_id, fact.round,
            )
            continue
        if fact.round > round_limit:
            logger.warning(
                "Table %d: round %d past limit %d (player %d) skipped",
                table.table_id, fact.round, round_limit, fact.player_id,
            )
            continue
        usable.append(fact)

    round_count = max([vocabulary.max_rounds] + [f.round for f in usable])
    buckets: dict[int, list[set[int]]] = {
        pid: [set() for _ in range(round_count)] for pid in known_players
    }
    for fact in usable:
        buckets[fact.player_id][fact.round - 1].add(fact.structure_id)

    return {pid: BuildingTimeline.from_rounds(rounds) for pid, rounds in buckets.items()}


def _collect_ratings(table: TableBundle, offset: int) -> dict[int, int | None]:
    """Map player ID -> normalized rating for players in the table."""
    known_players = {p.player_id for p in table.players}
    ratings: dict[int, int | None] = {}
    for entry in table.ratings:
        if entry.player_id not in known_players:
            logger.debug(
                "Table %d: rating for non-participant %d ignored",
                table.table_id, entry.player_id,
            )
            continue
        ratings[entry.player_id] = normalize_rating(entry.raw_rating, offset)
    return ratings


def _resolve_winners(table: TableBundle) -> tuple[set[int], bool]:
    """Return (winner player IDs, ambiguous flag).

    The external player ID wins when present.  Otherwise the table-level
    winner name is matched exactly against display names; when several
    players share that name they are all flagged and the game is marked
    ambiguous.
    """
    if table.winner_player_id is not None:
        if any(p.player_id == table.winner_player_id for p in table.players):
            return {table.winner_player_id}, False
        logger.warning(
            "Table %d: winner player id %d is not a participant",
            table.table_id, table.winner_player_id,
        )

    if not table.winner_name:
        return set(), False

    matches = {p.player_id for p in table.players if p.player_name == table.winner_name}
    if not matches:
        logger.warning(
            "Table %d: winner %r matches no player name",
            table.table_id, table.winner_name,
        )
    elif len(matches) > 1:
        logger.warning(
            "Table %d: winner name %r is shared by players %s; flagging all",
            table.table_id, table.winner_name, sorted(matches),
        )
    return matches, len(matches) > 1


def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
