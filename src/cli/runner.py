# src/cli/runner.py

"""Headless crawl runner, checkpoint status and median price reports."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from src.analytics.median_prices import median_prices, parse_price_history
from src.config.settings import Settings
from src.crawler.cancellation import StopToken, install_signal_handlers
from src.crawler.driver import CrawlDriver, CrawlResult, CrawlStatus
from src.crawler.fetcher import PageFetcher
from src.crawler.planner import apply_force, cycle_start, plan
from src.scrapers.market_client import MarketClient
from src.storage.checkpoint_store import CheckpointStore

logger = logging.getLogger("market_prices.cli")

# Stderr console so stdout stays free for piping
_err = Console(stderr=True)

_STATUS_STYLES: dict[CrawlStatus, str] = {
    CrawlStatus.COMPLETED: "green",
    CrawlStatus.SKIPPED: "cyan",
    CrawlStatus.SUSPENDED: "yellow",
    CrawlStatus.FAILED: "red",
}


def build_driver(
    token: StopToken,
    force: bool = False,
    output: Path | None = None,
    max_runtime: float | None = None,
) -> CrawlDriver:
    """Wire the store, transport and fetcher into a crawl driver."""
    store = CheckpointStore(path=output)
    fetcher = PageFetcher(MarketClient(), token)
    return CrawlDriver(
        store,
        fetcher,
        token,
        force=force,
        max_runtime=max_runtime,
    )


def _print_summary(result: CrawlResult) -> None:
    style = _STATUS_STYLES[result.status]
    resume = (
        f"resume from {result.offset}"
        if result.status in (CrawlStatus.SUSPENDED, CrawlStatus.FAILED)
        and result.offset > 0
        else "no resume offset"
    )
    _err.print(
        f"[{style}]{result.status.value.upper()}[/{style}] "
        f"action={result.action.value} items={result.item_count:,} "
        f"pages={result.pages_fetched} {resume} "
        f"[dim]({escape(result.reason)})[/dim]"
    )


def run_crawl(
    force: bool = False,
    output: str | None = None,
    max_runtime_minutes: float | None = None,
) -> int:
    """Run one crawl and return the process exit code."""
    token = StopToken()
    restore = install_signal_handlers(token)
    try:
        driver = build_driver(
            token,
            force=force or Settings.FORCE_FETCH,
            output=Path(output) if output else None,
            max_runtime=(
                max_runtime_minutes * 60.0
                if max_runtime_minutes is not None
                else None
            ),
        )
        _err.print(
            f"[bold]Crawling market prices[/bold] "
            f"[dim]checkpoint={driver.store.path}[/dim]"
        )
        result = driver.run()
    finally:
        restore()

    logger.info(
        "Crawl finished: status=%s exit_code=%d",
        result.status.value,
        result.exit_code,
    )
    _print_summary(result)
    return result.exit_code


def run_status(
    output: str | None = None,
    force: bool = False,
) -> int:
    """Describe the checkpoint and what the next run would do."""
    store = CheckpointStore(path=Path(output) if output else None)
    snapshot = store.load()
    now = datetime.now(UTC)
    action = apply_force(plan(snapshot.metadata, now), force)

    table = Table(
        title="Checkpoint Status",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("File", str(store.path))
    meta = snapshot.metadata
    table.add_row("Updated at", meta.updated_at if meta else "—")
    table.add_row("Currency", meta.currency if meta else "—")
    table.add_row("Items", f"{len(snapshot.prices):,}")
    table.add_row(
        "Resume from",
        str(snapshot.resume_from) if snapshot.resume_from else "—",
    )
    table.add_row("Cycle start", cycle_start(now).isoformat())
    table.add_row("Next action", f"[bold]{action.value}[/bold]")

    Console().print(table)
    return 0


def _load_history_rows(path: Path) -> list:
    """Rows from a saved ``pricehistory`` response or a bare row list."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("prices")
    if not isinstance(payload, list):
        raise ValueError("expected a list of rows or an object with 'prices'")
    return payload


def run_medians(history: str, now: datetime | None = None) -> int:
    """Print volume-weighted median prices for a saved price history."""
    path = Path(history)
    try:
        rows = _load_history_rows(path)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read price history %s: %s", path, exc)
        _err.print(
            f"[red]Cannot read price history[/red] "
            f"{escape(str(path))}: {escape(str(exc))}"
        )
        return 1

    points = parse_price_history(rows)
    medians = median_prices(points, now=now)
    logger.info(
        "Computed medians from %d of %d history rows", len(points), len(rows),
    )

    table = Table(title="Median Prices", title_style="bold cyan")
    table.add_column("Window", style="bold")
    table.add_column("Price", justify="right")
    for window, value in medians.items():
        table.add_row(window, f"{value:.2f}" if value is not None else "—")

    Console().print(table)
    return 0
