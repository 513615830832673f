from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dayflow_vault.database import DayflowVaultDatabase
from dayflow_vault.summary import DaySummaryGenerator, format_duration


class RecordingNarrator:
    def __init__(self) -> None:
        self.calls = 0

    def narrate(self, day, sessions, cards) -> str:
        self.calls += 1
        return f"Narrative for {day} with {len(cards)} cards."


class SummaryTests(unittest.TestCase):
    def test_format_duration(self) -> None:
        self.assertEqual(format_duration(5400), "1h 30m")
        self.assertEqual(format_duration(125), "2m 05s")
        self.assertEqual(format_duration(-3), "0s")

    def test_generates_and_caches(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            start = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
            session_id = db.insert_session(
                start, start + timedelta(minutes=90), title="Deep work", device_name="Laptop"
            )
            db.insert_timeline_card(
                session_id, "2024-05-01T09:00:00+00:00", "2024-05-01T10:00:00+00:00", "Work", "Coding"
            )
            db.insert_frame(session_id, start, Path(tmp_dir) / "a.jpg")
            narrator = RecordingNarrator()
            generator = DaySummaryGenerator(db, narrator=narrator)

            summary = generator.generate_day_summary("2024-05-01")
            self.assertEqual(summary.summary_text, "Narrative for 2024-05-01 with 1 cards.")
            labels = {pattern.label: pattern.value for pattern in summary.usage_patterns}
            self.assertEqual(labels["Sessions"], "1")
            self.assertEqual(labels["Active time"], "1h 30m")
            self.assertEqual(labels["Top category"], "work (60 min)")
            self.assertEqual(labels["Longest session"], "Deep work (90 min)")
            self.assertEqual(summary.active_device_count, 1)
            self.assertEqual(summary.device_stats[0].name, "Laptop")
            self.assertEqual(summary.device_stats[0].device_type, "desktop")
            self.assertEqual(summary.device_stats[0].screenshots, 1)

            generator.generate_day_summary("2024-05-01")
            self.assertEqual(narrator.calls, 1)
            generator.generate_day_summary("2024-05-01", force_refresh=True)
            self.assertEqual(narrator.calls, 2)

    def test_empty_day_uses_fallback(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            narrator = RecordingNarrator()
            summary = DaySummaryGenerator(db, narrator=narrator).generate_day_summary("2024-05-01")
            self.assertEqual(summary.summary_text, "No screen activity was recorded on 2024-05-01.")
            self.assertEqual(summary.usage_patterns, [])
            self.assertEqual(summary.device_stats, [])
            self.assertEqual(narrator.calls, 0)


if __name__ == "__main__":
    unittest.main()
