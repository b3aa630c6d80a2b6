"""Search service configuration with sensible defaults for BGA Gaia Project data."""

from dataclasses import dataclass


@dataclass
class SearchConfig:
    """Configuration for ingestion and search.

    Paths are relative to the working directory unless absolute.
    """

    # Persistent data storage
    data_dir: str = "data"
    db_path: str = "data/gaia.db"

    # Search result paging; None means "no limit"
    page_size: int | None = 50

    # tenacity stop_after_attempt for CLI ingestion on StorageUnavailable
    max_retries: int = 5

    # Upper bound (seconds) for the exponential wait between retries
    max_backoff: float = 10.0
