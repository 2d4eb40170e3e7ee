# src/models/price_snapshot.py

"""Accumulated price snapshot model persisted between crawl runs."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SnapshotMetadata:
    """Run metadata stored alongside the price mapping.

    ``resume_from`` is 0 when the checkpoint marks a completed (or not
    yet started) cycle; the artifact omits the key in that case.
    """

    updated_at: str
    currency: str
    item_count: int
    resume_from: int = 0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SnapshotMetadata":
        """Build metadata from the persisted dict, tolerating bad values."""
        resume_from = raw.get("resume_from") or 0
        if not isinstance(resume_from, int) or isinstance(resume_from, bool):
            resume_from = 0
        item_count = raw.get("item_count") or 0
        if not isinstance(item_count, int) or isinstance(item_count, bool):
            item_count = 0
        return cls(
            updated_at=str(raw.get("updated_at") or ""),
            currency=str(raw.get("currency") or ""),
            item_count=item_count,
            resume_from=max(resume_from, 0),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise in artifact key order, dropping a zero resume offset."""
        data: dict[str, Any] = {
            "updated_at": self.updated_at,
            "currency": self.currency,
            "item_count": self.item_count,
        }
        if self.resume_from > 0:
            data["resume_from"] = self.resume_from
        return data


@dataclass
class PriceSnapshot:
    """Item identifier to price (in cents) mapping plus run metadata."""

    prices: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    metadata: SnapshotMetadata | None = None

    @property
    def resume_from(self) -> int:
        """Offset to resume from, 0 when there is nothing to resume."""
        return self.metadata.resume_from if self.metadata else 0
