# src/storage/checkpoint_store.py

"""Durable JSON checkpoint of the accumulated price snapshot."""

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.price_snapshot import PriceSnapshot, SnapshotMetadata

logger = logging.getLogger("market_prices.storage")


def utc_timestamp(now: datetime | None = None) -> str:
    """Format *now* (default: current time) as ISO-8601 UTC with ``Z``."""
    moment = (now or datetime.now(UTC)).astimezone(UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CheckpointStore:
    """Reads and atomically overwrites the checkpoint artifact.

    The artifact is the only state shared between runs.  Anything that
    cannot be parsed as a snapshot is treated as "no checkpoint" so a
    corrupted file never blocks a fresh start.
    """

    def __init__(
        self,
        path: Path | None = None,
        currency: str | None = None,
    ) -> None:
        self.path: Path = path or Settings.CHECKPOINT_PATH
        self.currency = currency or Settings.CURRENCY

    def load(self) -> PriceSnapshot:
        """Return the persisted snapshot, or an empty one."""
        if not self.path.exists():
            logger.info("No checkpoint at %s", self.path)
            return PriceSnapshot()

        try:
            with open(self.path, encoding="utf-8") as f:
                data: Any = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Checkpoint %s unreadable, starting fresh: %s",
                self.path,
                exc,
            )
            return PriceSnapshot()

        if not isinstance(data, dict):
            logger.warning(
                "Checkpoint %s has no object root, starting fresh",
                self.path,
            )
            return PriceSnapshot()

        raw_prices = data.get("prices")
        prices: dict[str, int] = (
            {str(k): v for k, v in raw_prices.items()}
            if isinstance(raw_prices, dict)
            else {}
        )
        raw_meta = data.get("metadata")
        metadata = (
            SnapshotMetadata.from_dict(raw_meta)
            if isinstance(raw_meta, dict)
            else None
        )
        logger.debug(
            "Loaded %d prices from %s (metadata=%s)",
            len(prices),
            self.path,
            metadata,
        )
        return PriceSnapshot(prices=prices, metadata=metadata)

    def save(self, prices: dict[str, int], resume_from: int = 0) -> None:
        """Persist *prices* with sorted keys and fresh metadata.

        ``resume_from`` is written only when positive; its absence marks
        the cycle as complete.
        """
        metadata = SnapshotMetadata(
            updated_at=utc_timestamp(),
            currency=self.currency,
            item_count=len(prices),
            resume_from=resume_from,
        )
        output = {
            "metadata": metadata.to_dict(),
            "prices": {key: prices[key] for key in sorted(prices)},
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(output, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(
            "Saved %d prices to %s%s",
            metadata.item_count,
            self.path.name,
            f" (will resume from {resume_from})" if resume_from > 0 else "",
        )
