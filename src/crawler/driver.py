# src/crawler/driver.py

"""Crawl state machine: plan, fetch pages, checkpoint, terminate."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from src.config.settings import Settings
from src.crawler.cancellation import StopToken
from src.crawler.fetcher import OutcomeKind, PageFetcher, RateLimitBackoff
from src.crawler.planner import RunAction, apply_force, plan
from src.storage.checkpoint_store import CheckpointStore

logger = logging.getLogger("market_prices.driver")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SUSPENDED = 75  # EX_TEMPFAIL: safe to run again later


class CrawlStatus(Enum):
    """Terminal state of a crawl run."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    SUSPENDED = "suspended"
    FAILED = "failed"


@dataclass
class CrawlResult:
    """Summary of a finished run."""

    status: CrawlStatus
    action: RunAction
    offset: int
    item_count: int
    pages_fetched: int = 0
    reason: str = ""

    @property
    def exit_code(self) -> int:
        if self.status is CrawlStatus.FAILED:
            return EXIT_FAILED
        if self.status is CrawlStatus.SUSPENDED:
            return EXIT_SUSPENDED
        return EXIT_OK


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CrawlDriver:
    """Runs one crawl invocation over the market listing.

    The driver owns the working price mapping for the whole run and
    hands it to the checkpoint store whenever progress is persisted:

    * every ``save_every`` items,
    * before each rate-limit wait,
    * when the time budget runs out or a stop is requested,
    * after an unrecoverable fetch error,
    * when the listing is exhausted (no resume offset).
    """

    def __init__(
        self,
        store: CheckpointStore,
        fetcher: PageFetcher,
        token: StopToken,
        *,
        force: bool = False,
        page_size: int | None = None,
        max_runtime: float | None = None,
        save_every: int | None = None,
        request_delay: float | None = None,
        rate_limit: RateLimitBackoff | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.token = token
        self.force = force
        self.page_size = page_size or Settings.PAGE_SIZE
        self.max_runtime = (
            max_runtime if max_runtime is not None else Settings.MAX_RUNTIME
        )
        self.save_every = save_every or Settings.SAVE_EVERY
        self.request_delay = (
            request_delay if request_delay is not None
            else Settings.REQUEST_DELAY
        )
        self.rate_limit = rate_limit or RateLimitBackoff()
        self._clock = clock
        self._now = now

    # ── Planning ─────────────────────────────────────────

    def run(self) -> CrawlResult:
        """Plan the run and, unless skipping, crawl until a terminal state."""
        snapshot = self.store.load()
        action = apply_force(plan(snapshot.metadata, self._now()), self.force)
        logger.info("Run action: %s", action.value)

        if action is RunAction.SKIP:
            logger.info(
                "All %d items already fetched this week, skipping "
                "(next cycle starts Monday 00:00 UTC)",
                len(snapshot.prices),
            )
            return CrawlResult(
                status=CrawlStatus.SKIPPED,
                action=action,
                offset=0,
                item_count=len(snapshot.prices),
                reason="cycle already complete",
            )

        if action is RunAction.RESET:
            logger.info("Starting fresh fetch cycle")
            prices: dict[str, int] = {}
            offset = 0
        else:
            prices = dict(snapshot.prices)
            offset = snapshot.resume_from
            logger.info(
                "Resuming from offset %d (%d existing prices)",
                offset,
                len(prices),
            )

        return self._crawl(action, prices, offset)

    # ── Fetching ─────────────────────────────────────────

    def _crawl(
        self,
        action: RunAction,
        prices: dict[str, int],
        offset: int,
    ) -> CrawlResult:
        started = self._clock()
        items_since_save = 0
        pages = 0

        try:
            while offset < self.fetcher.known_total:
                if self.token.stop_requested:
                    return self._suspend(
                        action, prices, offset, pages,
                        f"interrupted by {self.token.reason}",
                    )
                if self._clock() - started >= self.max_runtime:
                    return self._suspend(
                        action, prices, offset, pages, "time budget reached",
                    )

                logger.info(
                    "Fetching items %d-%d...",
                    offset,
                    offset + self.page_size,
                )
                outcome = self.fetcher.fetch_with_retry(offset, self.page_size)

                if outcome.kind is OutcomeKind.TRANSIENT_FAILURE:
                    return self._suspend(
                        action, prices, offset, pages,
                        f"interrupted by {self.token.reason} during retry backoff",
                    )

                if outcome.kind is OutcomeKind.RATE_LIMITED:
                    delay = self.rate_limit.next_delay()
                    logger.warning(
                        "Rate limited (total_count dropped to 0), "
                        "attempt %d/%d",
                        self.rate_limit.retries,
                        self.rate_limit.max_retries,
                    )
                    self._checkpoint(prices, offset)
                    if self.rate_limit.exhausted:
                        return self._finish_suspended(
                            action, prices, offset, pages,
                            "rate limit retries exhausted",
                        )
                    logger.info("Waiting %.0fs before retry...", delay)
                    if self.token.sleep(delay):
                        return self._finish_suspended(
                            action, prices, offset, pages,
                            f"interrupted by {self.token.reason} "
                            "during rate-limit wait",
                        )
                    continue

                if outcome.kind is OutcomeKind.END_OF_RESULTS:
                    logger.info("No more results at offset %d, stopping", offset)
                    break

                self.rate_limit.reset()
                page = outcome.page
                if page is None:
                    raise RuntimeError(
                        f"{outcome.kind.value} outcome at offset {offset} "
                        "carried no page"
                    )
                prices.update(page.entries)
                offset += self.page_size
                pages += 1
                items_since_save += page.result_count

                if items_since_save >= self.save_every:
                    logger.info("Checkpoint: saving progress at offset %d", offset)
                    self._checkpoint(prices, self._resume_offset(offset))
                    items_since_save = 0

                if offset < self.fetcher.known_total:
                    self.token.sleep(self.request_delay)

            self._checkpoint(prices, 0)
        except Exception as exc:
            logger.error(
                "Error at offset %d: %s", offset, exc, exc_info=True,
            )
            self._safe_checkpoint(prices, offset, pages)
            result = CrawlResult(
                status=CrawlStatus.FAILED,
                action=action,
                offset=offset,
                item_count=len(prices),
                pages_fetched=pages,
                reason=str(exc),
            )
            self._log_termination(result)
            return result

        result = CrawlResult(
            status=CrawlStatus.COMPLETED,
            action=action,
            offset=0,
            item_count=len(prices),
            pages_fetched=pages,
            reason="all items fetched",
        )
        self._log_termination(result)
        return result

    # ── Checkpointing ────────────────────────────────────

    def _resume_offset(self, offset: int) -> int:
        return offset if offset < self.fetcher.known_total else 0

    def _checkpoint(self, prices: dict[str, int], resume_from: int) -> None:
        self.store.save(prices, resume_from)

    def _safe_checkpoint(
        self,
        prices: dict[str, int],
        offset: int,
        pages: int,
    ) -> None:
        """Best-effort save on the way out; failures are only logged."""
        if offset == 0 and pages == 0:
            # A zero offset would read as "cycle complete" on the next run.
            logger.info(
                "Nothing fetched yet, leaving existing checkpoint untouched"
            )
            return
        logger.info("Saving progress before exit...")
        try:
            self._checkpoint(prices, offset)
        except Exception:
            logger.error(
                "Could not save progress at offset %d", offset, exc_info=True,
            )

    def _suspend(
        self,
        action: RunAction,
        prices: dict[str, int],
        offset: int,
        pages: int,
        reason: str,
    ) -> CrawlResult:
        self._safe_checkpoint(prices, offset, pages)
        return self._finish_suspended(action, prices, offset, pages, reason)

    def _finish_suspended(
        self,
        action: RunAction,
        prices: dict[str, int],
        offset: int,
        pages: int,
        reason: str,
    ) -> CrawlResult:
        result = CrawlResult(
            status=CrawlStatus.SUSPENDED,
            action=action,
            offset=offset,
            item_count=len(prices),
            pages_fetched=pages,
            reason=reason,
        )
        self._log_termination(result)
        return result

    def _log_termination(self, result: CrawlResult) -> None:
        if result.status is CrawlStatus.COMPLETED:
            logger.info(
                "Done: %s, %d prices saved, no resume offset written "
                "(next run this week will skip)",
                result.reason,
                result.item_count,
            )
            return
        log = (
            logger.error
            if result.status is CrawlStatus.FAILED
            else logger.warning
        )
        if result.offset > 0:
            resume = f"next run resumes from offset {result.offset}"
        else:
            resume = "nothing to resume, next run starts over"
        log(
            "Run %s (%s): %d prices held, %s",
            result.status.value,
            result.reason,
            result.item_count,
            resume,
        )
