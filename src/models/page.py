# src/models/page.py

"""Single listing page returned by the market search endpoint."""

from dataclasses import dataclass, field


@dataclass
class Page:
    """A transient batch of accepted (identifier, price) pairs.

    ``result_count`` is the raw number of results the endpoint returned,
    before malformed or zero-priced entries were dropped.
    """

    total_count: int
    entries: list[tuple[str, int]] = field(
        default_factory=lambda: list[tuple[str, int]]()
    )
    result_count: int = 0

    @property
    def is_empty(self) -> bool:
        """True when the endpoint returned no results at all."""
        return self.result_count == 0
