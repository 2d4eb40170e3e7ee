# src/config/logging_config.py

"""Logging for crawl runs.

Every invocation writes ``logs/crawl_<UTC timestamp>.log`` with the full
``market_prices.*`` record stream, and echoes the same records to stderr
at ``Settings.CONSOLE_LOG_LEVEL``.  Timestamps are UTC in both places,
matching the checkpoint's ``updated_at`` and the Monday cycle boundary,
so a log line can be lined up with the checkpoint it produced.

Only the newest ``Settings.LOG_KEEP_RUNS`` crawl logs are kept; a weekly
schedule that suspends and resumes many times would otherwise fill the
directory.
"""

import logging
import sys
import time
from datetime import UTC, datetime
from pathlib import Path

from src.config.settings import Settings

_LOGGER_NAME = "market_prices"
_LOG_GLOB = "crawl_*.log"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | "
    "%(message)s"
)
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_UTC_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _utc_formatter(fmt: str) -> logging.Formatter:
    formatter = logging.Formatter(fmt, datefmt=_UTC_DATE_FORMAT)
    formatter.converter = time.gmtime
    return formatter


def _console_level() -> int:
    """Resolve the configured console level, falling back to INFO."""
    level = logging.getLevelName(Settings.CONSOLE_LOG_LEVEL)
    return level if isinstance(level, int) else logging.INFO


def _prune_old_logs(logs_dir: Path, keep: int) -> tuple[int, list[Path]]:
    """Delete all but the newest ``keep`` crawl logs.

    Returns the number removed and the paths that could not be deleted.
    """
    # Names embed a sortable timestamp, so name order is age order.
    logs = sorted(logs_dir.glob(_LOG_GLOB))
    removed = 0
    stuck: list[Path] = []
    for path in logs[: max(len(logs) - keep, 0)]:
        try:
            path.unlink()
        except OSError:
            stuck.append(path)
        else:
            removed += 1
    return removed, stuck


def _current_log_file(project_logger: logging.Logger) -> Path | None:
    for handler in project_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def setup_logging() -> Path:
    """Attach the crawl log file and stderr handlers once per process.

    Returns:
        Path of the log file receiving this run's records.  Later calls
        return the file chosen by the first one.
    """
    project_logger = logging.getLogger(_LOGGER_NAME)
    project_logger.setLevel(logging.DEBUG)

    existing = _current_log_file(project_logger)
    if existing is not None:
        return existing

    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    removed, stuck = _prune_old_logs(logs_dir, Settings.LOG_KEEP_RUNS - 1)

    stamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"crawl_{stamp}.log"

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(_utc_formatter(_FILE_FORMAT))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level())
    console_handler.setFormatter(_utc_formatter(_CONSOLE_FORMAT))

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)

    project_logger.debug(
        "Crawl log %s opened, console level %s, %d old logs pruned",
        log_file,
        logging.getLevelName(console_handler.level),
        removed,
    )
    for path in stuck:
        project_logger.warning("Could not prune old log %s", path)
    return log_file
