# src/crawler/fetcher.py

"""Paginated fetching with transient-failure and rate-limit backoff."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from src.config.settings import Settings
from src.crawler.cancellation import StopToken
from src.models.page import Page
from src.scrapers.market_client import TransientTransportError

logger = logging.getLogger("market_prices.fetcher")


class FetchFailedError(TransientTransportError):
    """Transient failures persisted past the retry budget."""

    def __init__(self, offset: int, attempts: int, cause: Exception) -> None:
        super().__init__(
            f"Offset {offset} failed after {attempts} attempts: {cause}"
        )
        self.offset = offset
        self.attempts = attempts


class PageSource(Protocol):
    def fetch_page(self, offset: int, page_size: int) -> Page: ...


class OutcomeKind(Enum):
    """Classification of a single page request."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    RATE_LIMITED = "rate_limited"
    END_OF_RESULTS = "end_of_results"


@dataclass
class PageOutcome:
    """Result of one page request, success or otherwise."""

    kind: OutcomeKind
    page: Page | None = None
    error: Exception | None = None


class RateLimitBackoff:
    """Exponential wait schedule for content-level rate-limit signals.

    Kept apart from the transient retry counter: rate limits clear over
    minutes, transport hiccups over seconds.
    """

    def __init__(
        self,
        base_delay: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.base_delay = (
            base_delay if base_delay is not None
            else Settings.RATE_LIMIT_BASE_DELAY
        )
        self.max_retries = (
            max_retries if max_retries is not None
            else Settings.MAX_RATE_LIMIT_RETRIES
        )
        self.retries = 0

    @property
    def exhausted(self) -> bool:
        return self.retries >= self.max_retries

    def next_delay(self) -> float:
        """Count one more signal and return the wait before retrying."""
        self.retries += 1
        return self.base_delay * 2 ** (self.retries - 1)

    def reset(self) -> None:
        self.retries = 0


class PageFetcher:
    """Drives sequential page requests and classifies their outcomes.

    The first ``total_count`` from a response that is not throttled is
    remembered.  An empty page reporting a total of zero is read as
    throttling rather than the end of the listing whenever results were
    already known to exist, either seen in this run or implied by a
    nonzero starting offset.  That heuristic has not been checked
    against any authoritative error code from the endpoint.
    """

    def __init__(
        self,
        source: PageSource,
        token: StopToken,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> None:
        self.source = source
        self.token = token
        self.max_retries = (
            max_retries if max_retries is not None
            else Settings.MAX_RETRIES
        )
        self.base_delay = (
            base_delay if base_delay is not None
            else Settings.RETRY_BASE_DELAY
        )
        self.total_count: int | None = None

    def attempt(self, offset: int, page_size: int) -> PageOutcome:
        """Issue one request and classify the response.

        An empty page reporting a zero total is throttling once a nonzero
        total has been seen, or when the request starts past offset 0.
        A nonzero offset means earlier pages of this cycle held results,
        which covers the first request of a resumed run.  Such a page
        never becomes the remembered total.
        """
        try:
            page = self.source.fetch_page(offset, page_size)
        except TransientTransportError as exc:
            return PageOutcome(OutcomeKind.TRANSIENT_FAILURE, error=exc)

        if page.is_empty and page.total_count == 0 and (
            self.total_count or offset > 0
        ):
            return PageOutcome(OutcomeKind.RATE_LIMITED, page=page)

        if self.total_count is None:
            self.total_count = page.total_count
            logger.info("Total items on market: %d", page.total_count)

        if page.is_empty:
            return PageOutcome(OutcomeKind.END_OF_RESULTS, page=page)

        return PageOutcome(OutcomeKind.SUCCESS, page=page)

    def fetch_with_retry(self, offset: int, page_size: int) -> PageOutcome:
        """Retry transient failures with ``base_delay * 2**attempt`` waits.

        Returns a ``TRANSIENT_FAILURE`` outcome only when a stop is
        requested during a backoff wait.

        Raises:
            FetchFailedError: every attempt failed.
        """
        attempts = self.max_retries + 1
        attempt = 0
        while True:
            outcome = self.attempt(offset, page_size)
            if outcome.kind is not OutcomeKind.TRANSIENT_FAILURE:
                return outcome

            error = outcome.error or TransientTransportError("unknown error")
            logger.warning(
                "Attempt %d/%d at offset %d failed: %s",
                attempt + 1,
                attempts,
                offset,
                error,
                exc_info=error,
            )
            if attempt + 1 >= attempts:
                raise FetchFailedError(offset, attempts, error)

            if self.token.sleep(self.base_delay * 2 ** attempt):
                return outcome
            attempt += 1

    @property
    def known_total(self) -> float:
        """Total reported by the endpoint, or infinity before the first page."""
        return float("inf") if self.total_count is None else self.total_count
