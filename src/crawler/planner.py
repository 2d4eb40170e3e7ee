# src/crawler/planner.py

"""Decides whether a run starts a fresh cycle, resumes, or skips."""

import logging
from datetime import UTC, datetime, timedelta
from enum import Enum

from src.models.price_snapshot import SnapshotMetadata

logger = logging.getLogger("market_prices.planner")


class RunAction(Enum):
    """What a single crawl invocation should do."""

    RESET = "reset"
    RESUME = "resume"
    SKIP = "skip"


def cycle_start(now: datetime) -> datetime:
    """Return Monday 00:00:00 UTC of the week containing *now*."""
    utc_now = _as_utc(now)
    monday = utc_now - timedelta(days=utc_now.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        return _as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def plan(
    metadata: SnapshotMetadata | None,
    now: datetime,
) -> RunAction:
    """Pick the run action from the last checkpoint's metadata.

    Pure function of ``(metadata, now)``:

    * no metadata, or an unparsable ``updated_at`` -> RESET
    * partial progress from a previous week -> RESET
    * partial progress from this week -> RESUME
    * a completed cycle this week -> SKIP
    * a completed cycle from a previous week -> RESET
    """
    if metadata is None:
        return RunAction.RESET

    updated_at = parse_timestamp(metadata.updated_at)
    if updated_at is None:
        logger.warning(
            "Unparsable updated_at %r in checkpoint",
            metadata.updated_at,
        )
        return RunAction.RESET

    is_current_cycle = updated_at >= cycle_start(now)
    resume_from = metadata.resume_from

    if resume_from > 0 and not is_current_cycle:
        return RunAction.RESET
    if resume_from > 0 and is_current_cycle:
        return RunAction.RESUME
    if resume_from == 0 and is_current_cycle:
        return RunAction.SKIP
    return RunAction.RESET


def apply_force(action: RunAction, force: bool) -> RunAction:
    """Force a fresh cycle unless a cycle is still in progress."""
    if force and action is not RunAction.RESUME:
        logger.info("Forced fetch enabled, overriding %s to reset", action.value)
        return RunAction.RESET
    return action
