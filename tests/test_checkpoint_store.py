# tests/test_checkpoint_store.py

"""Tests for the JSON checkpoint store."""

import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from typing import Any

from src.storage.checkpoint_store import CheckpointStore, utc_timestamp


class TestCheckpointStore(unittest.TestCase):
    """Save/load behaviour of the checkpoint artifact."""

    def setUp(self) -> None:
        """Point the store at a fresh temp directory."""
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.path = self.tmp_dir / "static" / "latest.json"
        self.store = CheckpointStore(path=self.path)

    def _read_raw(self) -> dict[str, Any]:
        with open(self.path, encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        return data

    def test_missing_file_returns_empty_snapshot(self) -> None:
        """No file means no prices and no metadata."""
        snapshot = self.store.load()
        self.assertEqual(snapshot.prices, {})
        self.assertIsNone(snapshot.metadata)
        self.assertEqual(snapshot.resume_from, 0)

    def test_save_creates_parent_directory(self) -> None:
        """The static/ directory is created on first save."""
        self.store.save({"A": 1})
        self.assertTrue(self.path.exists())

    def test_keys_written_in_sorted_order(self) -> None:
        """Serialized key order is ascending regardless of insertion."""
        self.store.save({"zeta": 3, "alpha": 1, "Mid": 2, "beta": 5})
        self.assertEqual(
            list(self._read_raw()["prices"]),
            ["Mid", "alpha", "beta", "zeta"],
        )

    def test_save_then_load_preserves_content(self) -> None:
        """A mapping survives a save/load cycle unchanged."""
        prices = {"★ Karambit | Fade": 150000, "AK-47 | Redline": 1234}
        self.store.save(prices)
        self.assertEqual(self.store.load().prices, prices)

    def test_identical_content_gives_identical_prices_block(self) -> None:
        """Two saves of the same content serialize the same prices text."""
        self.store.save({"b": 2, "a": 1})
        first = self._read_raw()["prices"]
        self.store.save({"a": 1, "b": 2})
        second = self._read_raw()["prices"]
        self.assertEqual(json.dumps(first), json.dumps(second))

    def test_metadata_fields(self) -> None:
        """Metadata carries currency, item count and a UTC timestamp."""
        self.store.save({"a": 1, "b": 2, "c": 3})
        meta = self._read_raw()["metadata"]
        self.assertEqual(meta["currency"], "USD")
        self.assertEqual(meta["item_count"], 3)
        self.assertTrue(meta["updated_at"].endswith("Z"))
        datetime.fromisoformat(meta["updated_at"])

    def test_metadata_key_order(self) -> None:
        """Metadata keys follow the documented artifact layout."""
        self.store.save({"a": 1}, resume_from=10)
        self.assertEqual(
            list(self._read_raw()["metadata"]),
            ["updated_at", "currency", "item_count", "resume_from"],
        )

    def test_resume_from_omitted_when_zero(self) -> None:
        """A zero offset is the 'cycle complete' marker: no key at all."""
        self.store.save({"a": 1}, resume_from=0)
        self.assertNotIn("resume_from", self._read_raw()["metadata"])

    def test_resume_from_written_when_positive(self) -> None:
        """A positive offset is persisted and loaded back."""
        self.store.save({"a": 1}, resume_from=40)
        self.assertEqual(self._read_raw()["metadata"]["resume_from"], 40)
        self.assertEqual(self.store.load().resume_from, 40)

    def test_corrupt_file_returns_empty_snapshot(self) -> None:
        """Invalid JSON is downgraded to 'no checkpoint'."""
        self.path.parent.mkdir(parents=True)
        self.path.write_text('{"metadata": {"updated_', encoding="utf-8")
        snapshot = self.store.load()
        self.assertEqual(snapshot.prices, {})
        self.assertIsNone(snapshot.metadata)

    def test_non_object_root_returns_empty_snapshot(self) -> None:
        """A JSON list at the root is not a snapshot."""
        self.path.parent.mkdir(parents=True)
        self.path.write_text("[1, 2, 3]", encoding="utf-8")
        self.assertEqual(self.store.load().prices, {})

    def test_non_object_prices_ignored(self) -> None:
        """A malformed prices block loads as an empty mapping."""
        self.path.parent.mkdir(parents=True)
        self.path.write_text(
            json.dumps({"metadata": {"updated_at": "x"}, "prices": [1]}),
            encoding="utf-8",
        )
        snapshot = self.store.load()
        self.assertEqual(snapshot.prices, {})
        self.assertIsNotNone(snapshot.metadata)

    def test_bad_resume_from_treated_as_zero(self) -> None:
        """Non-integer resume offsets never produce a resume."""
        self.path.parent.mkdir(parents=True)
        self.path.write_text(
            json.dumps({
                "metadata": {"updated_at": "x", "resume_from": "ten"},
                "prices": {},
            }),
            encoding="utf-8",
        )
        self.assertEqual(self.store.load().resume_from, 0)

    def test_overwrite_leaves_no_temp_files(self) -> None:
        """Repeated saves fully replace the file without leftovers."""
        for i in range(3):
            self.store.save({"a": i}, resume_from=i)
        self.assertEqual(
            [p.name for p in self.path.parent.iterdir()],
            ["latest.json"],
        )
        self.assertEqual(self.store.load().prices, {"a": 2})

    def test_save_logs_progress_line(self) -> None:
        """Each save reports the item count and the resume state."""
        with self.assertLogs("market_prices.storage", level="INFO") as cm:
            self.store.save({"a": 1, "b": 2}, resume_from=20)
        self.assertTrue(
            any(
                "Saved 2 prices" in line and "resume from 20" in line
                for line in cm.output
            )
        )


class TestUtcTimestamp(unittest.TestCase):
    """Formatting of the updated_at stamp."""

    def test_millisecond_precision_with_z_suffix(self) -> None:
        """Matches the 2026-10-18T12:00:00.000Z layout."""
        from datetime import UTC

        stamp = utc_timestamp(datetime(2026, 10, 18, 12, 0, tzinfo=UTC))
        self.assertEqual(stamp, "2026-10-18T12:00:00.000Z")


if __name__ == "__main__":
    unittest.main()
