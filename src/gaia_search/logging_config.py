"""Console + file logging for gaia-search commands.

Each CLI run writes its own DEBUG log named after the command, so an
ingestion run and the searches around it can be read separately.
"""

import logging
from datetime import datetime
from pathlib import Path

CONSOLE_FORMAT = "%(asctime)s %(levelname)-5s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"


def setup_logging(
    data_dir: str = "data",
    command: str = "run",
    console_level: int = logging.INFO,
) -> Path:
    """Attach a console handler and a per-run file handler to the root logger.

    The file goes to ``{data_dir}/logs/gaia-search-{command}-{timestamp}.log``
    and records DEBUG and above; the console shows ``console_level`` and
    above.  Root handlers are replaced, not appended to, so repeated calls
    do not duplicate output.

    Returns:
        Path to the new log file.
    """
    log_dir = Path(data_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
    log_file = log_dir / f"gaia-search-{command}-{stamp}.log"

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.addHandler(console)
    root.addHandler(file_handler)

    # Retry notices already reach our own logger through before_sleep_log
    logging.getLogger("tenacity").setLevel(logging.WARNING)

    return log_file
