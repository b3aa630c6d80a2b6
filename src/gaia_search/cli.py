"""CLI entry point for gaia-search.

Provides ``main()`` as the entry point for the ``gaia-search`` console
script with three subcommands:

Usage::

    gaia-search ingest bundles/*.json          # store normalized games
    gaia-search search --player AlabeSons --structure mine --by-round 1
    gaia-search search --q '%7B%22clauses%22...'   # shareable query string
    gaia-search players                        # distinct names, ascending
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from pydantic import ValidationError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from gaia_search.config import SearchConfig
from gaia_search.db import Database
from gaia_search.exceptions import (
    DuplicateError,
    MalformedInput,
    StorageUnavailable,
    UnknownVocabulary,
)
from gaia_search.ingestion import IngestionGate
from gaia_search.logging_config import setup_logging
from gaia_search.models import SearchClause, SearchRequest, StructureCondition
from gaia_search.repository import GameRepository
from gaia_search.search import SearchService, decode_query_param, encode_query_param

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the gaia-search CLI."""
    parser = argparse.ArgumentParser(
        prog="gaia-search",
        description="Store and search finished Gaia Project games from BGA",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Data directory for the DB and logs (default: data)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="SQLite database path (default: <data-dir>/gaia.db)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest JSON table bundles")
    ingest.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="JSON files holding one bundle or a list of bundles",
    )
    ingest.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Attempts per bundle when the database is busy (default: 5)",
    )

    search = sub.add_parser("search", help="Search stored games")
    search.add_argument("--q", type=str, default=None, help="Encoded query string")
    search.add_argument("--player", type=str, default=None, help="Player name substring")
    search.add_argument("--race", type=str, default=None, help="Race of that player")
    search.add_argument("--structure", type=str, default=None, help="Structure built")
    search.add_argument(
        "--by-round", type=int, default=None, help="Structure built by this round (1-6)",
    )
    search.add_argument("--players", type=int, default=None, help="Player count")
    search.add_argument("--min-score", type=int, default=None, help="Minimum final score")
    search.add_argument("--min-elo", type=int, default=None, help="Minimum game rating")
    search.add_argument("--winner-race", type=str, default=None, help="Winner's race")
    search.add_argument("--winner-name", type=str, default=None, help="Winner name substring")
    search.add_argument("--limit", type=int, default=None, help="Max games (default: 50)")
    search.add_argument("--json", action="store_true", help="Print results as JSON")

    sub.add_parser("players", help="List known player names")
    return parser


def request_from_args(args: argparse.Namespace) -> SearchRequest:
    """Build a SearchRequest from search flags, or decode ``--q`` if given."""
    if args.q:
        return decode_query_param(args.q)

    conditions: tuple[StructureCondition, ...] = ()
    if args.race or args.structure:
        conditions = (
            StructureCondition(
                race=args.race, structure=args.structure, max_round=args.by_round,
            ),
        )
    clause = SearchClause(
        player_name=args.player,
        player_count=args.players,
        structure_conditions=conditions,
        min_final_score=args.min_score,
        winner_race=args.winner_race,
        winner_name=args.winner_name,
        min_player_elo=args.min_elo,
    )
    return SearchRequest.of(clause)


def load_bundles(path: Path) -> list[dict]:
    """Read one bundle or a list of bundles from a JSON file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    return data if isinstance(data, list) else [data]


def ingest_with_retry(gate: IngestionGate, bundle: dict, config: SearchConfig):
    """Ingest one bundle, retrying only on StorageUnavailable."""
    for attempt in Retrying(
        retry=retry_if_exception_type(StorageUnavailable),
        wait=wait_exponential_jitter(initial=0.5, max=config.max_backoff, jitter=0.5),
        stop=stop_after_attempt(config.max_retries),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return gate.ingest_bundle(bundle)


def run_ingest(args: argparse.Namespace, repo: GameRepository, config: SearchConfig) -> dict:
    """Ingest every bundle in ``args.paths``; returns counters."""
    gate = IngestionGate(repo)
    stats = {"stored": 0, "duplicates": 0, "malformed": 0, "unreadable": 0}

    for path in args.paths:
        try:
            bundles = load_bundles(path)
        except (OSError, ValueError) as e:
            logger.error("Cannot read %s: %s", path, e)
            stats["unreadable"] += 1
            continue

        for bundle in bundles:
            try:
                ingest_with_retry(gate, bundle, config)
                stats["stored"] += 1
            except DuplicateError as e:
                logger.info("Already have table %s", e.table_id)
                stats["duplicates"] += 1
            except MalformedInput as e:
                logger.error("Skipping bundle from %s: %s", path, e)
                stats["malformed"] += 1

    return stats


def _format_ingest(stats: dict, wall_time: float, log_file: str) -> str:
    """Format end-of-run ingestion counters into a summary string."""
    lines = [
        "=" * 60,
        "Ingestion complete",
        "-" * 60,
        f"Stored:      {stats['stored']}",
        f"Duplicates:  {stats['duplicates']}",
        f"Malformed:   {stats['malformed']}",
        f"Unreadable:  {stats['unreadable']}",
        "-" * 60,
        f"Wall time:   {wall_time:.1f}s",
        f"Log file:    {log_file}",
        "=" * 60,
    ]
    return "\n".join(lines)


def _format_results(results, service: SearchService) -> str:
    """Render search results as plain text, one block per game."""
    if not results:
        return "No games found"
    lines = [f"Found {len(results)} game{'s' if len(results) != 1 else ''}"]
    for result in results:
        game = result.to_dict(service.vocabulary)
        lines.append(
            f"Table {game['table_id']}  {game['player_count']}p  "
            f"winner={game['winner_name']}  min elo={game['min_player_elo']}"
        )
        for p in game["players"]:
            marker = "*" if p["is_winner"] else " "
            labels = f"  [{', '.join(p['labels'])}]" if p["labels"] else ""
            lines.append(
                f"  {marker} {p['player_name']:<20} {p['race_name']:<14} "
                f"{p['final_score']:>4} pts  elo={p['player_elo']}{labels}"
            )
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the gaia-search console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if (
        args.command == "search"
        and not args.q
        and args.by_round is not None
        and not args.structure
    ):
        parser.error("--by-round needs --structure")

    config_overrides = {"data_dir": args.data_dir, "db_path": f"{args.data_dir}/gaia.db"}
    if args.db_path is not None:
        config_overrides["db_path"] = args.db_path
    if getattr(args, "max_retries", None) is not None:
        config_overrides["max_retries"] = args.max_retries
    config = SearchConfig(**config_overrides)

    log_file = setup_logging(data_dir=config.data_dir, command=args.command)
    db = Database(config.db_path)
    try:
        db.initialize()
        repo = GameRepository(db.conn)

        if args.command == "ingest":
            start_time = time.monotonic()
            stats = run_ingest(args, repo, config)
            logger.info(
                "\n%s", _format_ingest(stats, time.monotonic() - start_time, str(log_file))
            )
            return 0

        service = SearchService(repo)
        if args.command == "players":
            print("\n".join(service.player_names()))
            return 0

        limit = args.limit if args.limit is not None else config.page_size
        try:
            request = request_from_args(args)
            results = service.search(request, limit=limit)
        except ValidationError as e:
            logger.error("Invalid search flags: %s", e)
            return 2
        except UnknownVocabulary as e:
            logger.error("%s", e)
            return 2
        if args.json:
            print(json.dumps(
                {
                    "q": encode_query_param(request),
                    "games": [r.to_dict(service.vocabulary) for r in results],
                },
                indent=2,
            ))
        else:
            print(_format_results(results, service))
        return 0
    except StorageUnavailable as e:
        logger.error("Storage unavailable: %s", e)
        return 1
    finally:
        db.close()
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
