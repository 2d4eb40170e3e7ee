# main.py

"""Entry point for the market_prices crawler."""

import argparse
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("market_prices.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="market_prices",
        description=(
            "Resumable crawler for Steam Community Market listing prices."
        ),
        epilog=(
            "Exit status: 0 complete or skipped, 75 suspended "
            "(safe to resume), 1 failed (safe to resume)."
        ),
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=False,
        help=(
            "Start a fresh cycle even if this week's cycle completed "
            "(never discards an in-progress cycle). Also: FORCE_FETCH=true."
        ),
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help=f"Checkpoint file (default: {Settings.CHECKPOINT_PATH}).",
    )
    parser.add_argument(
        "--max-runtime",
        type=float,
        default=None,
        dest="max_runtime",
        metavar="MINUTES",
        help=(
            "Wall-clock budget before suspending "
            f"(default: {Settings.MAX_RUNTIME / 60:.0f})."
        ),
    )
    parser.add_argument(
        "--status",
        action="store_true",
        default=False,
        help="Show the checkpoint and the action the next run would take.",
    )
    parser.add_argument(
        "--medians",
        default=None,
        metavar="FILE",
        help=(
            "Print volume-weighted median prices from a saved price "
            "history JSON file instead of crawling."
        ),
    )
    return parser


def main() -> None:
    """Route to the median report, the status report or a crawl run."""
    log_file = setup_logging()
    logger.info("market_prices starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    from src.cli.runner import run_crawl, run_medians, run_status

    if args.medians:
        exit_code = run_medians(args.medians)
    elif args.status:
        exit_code = run_status(
            output=args.output,
            force=args.force or Settings.FORCE_FETCH,
        )
    else:
        try:
            exit_code = run_crawl(
                force=args.force,
                output=args.output,
                max_runtime_minutes=args.max_runtime,
            )
        except Exception:
            logger.critical("Fatal error during crawl", exc_info=True)
            raise
        finally:
            logger.info("market_prices shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
