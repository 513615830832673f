from __future__ import annotations

import sqlite3
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dayflow_vault.database import DayflowVaultDatabase
from dayflow_vault.models import DaySummary, DeviceStat, UsagePattern


class DatabaseTests(unittest.TestCase):
    def test_sessions_for_day_are_ordered_utc(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            later = datetime(2024, 5, 1, 14, 0, tzinfo=timezone.utc)
            earlier = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
            db.insert_session(later, later + timedelta(minutes=30), title="Afternoon")
            db.insert_session(earlier, earlier + timedelta(minutes=45), title="Morning", video_path="C:/v.mp4")
            db.insert_session(earlier + timedelta(days=1), earlier + timedelta(days=1, hours=1), title="Next")

            sessions = db.list_sessions_for_day("2024-05-01")
            self.assertEqual([s.title for s in sessions], ["Morning", "Afternoon"])
            self.assertEqual(sessions[0].start_time.tzinfo, timezone.utc)
            self.assertEqual(sessions[0].duration_minutes, 45)
            self.assertEqual(sessions[0].video_path, "C:/v.mp4")
            self.assertIsNone(sessions[1].video_path)

    def test_cards_and_frames_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            start = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
            session_id = db.insert_session(start, start + timedelta(hours=1))
            db.insert_timeline_card(
                session_id, "2024-05-01T09:30:00+00:00", "2024-05-01T10:00:00+00:00", "Meeting", "Standup"
            )
            db.insert_timeline_card(
                session_id, "2024-05-01T09:00:00+00:00", "2024-05-01T09:30:00+00:00", "Work", "Coding",
                summary="Parser", subcategory="dev",
            )
            db.insert_frame(session_id, start + timedelta(minutes=5), Path(tmp_dir) / "b.jpg")
            db.insert_frame(session_id, start, Path(tmp_dir) / "a.jpg")

            cards = db.list_timeline_cards_for_session(session_id)
            self.assertEqual([card.title for card in cards], ["Coding", "Standup"])
            self.assertEqual(cards[0].subcategory, "dev")
            frames = db.list_frames_for_session(session_id)
            self.assertEqual([Path(f.file_path).name for f in frames], ["a.jpg", "b.jpg"])
            self.assertEqual(db.count_frames_for_session(session_id), 2)

    def test_activities_roll_up_per_day(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            base = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
            db.insert_session(base, base + timedelta(minutes=60), tags=[{"category": "work"}])
            db.insert_session(
                base + timedelta(hours=2),
                base + timedelta(hours=2, minutes=30),
                tags=[{"category": "Meeting"}, {"category": "work"}],
            )
            db.insert_session(base + timedelta(days=2), base + timedelta(days=2, minutes=20))
            db.insert_session(base + timedelta(days=40), base + timedelta(days=40, minutes=20))

            activities = db.list_activities("2024-05-01", "2024-05-31")
            self.assertEqual([a.date for a in activities], ["2024-05-01", "2024-05-03"])
            self.assertEqual(activities[0].session_count, 2)
            self.assertEqual(activities[0].total_duration_minutes, 90)
            self.assertEqual(activities[0].main_categories, ["work", "communication"])
            self.assertEqual(activities[1].main_categories, [])

    def test_day_summary_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            self.assertIsNone(db.get_day_summary("2024-05-01"))
            db.save_day_summary(
                DaySummary(
                    date="2024-05-01",
                    summary_text="Solid maker morning.",
                    usage_patterns=[UsagePattern("Sessions", "2")],
                    device_stats=[DeviceStat("Laptop", "desktop", "1h 30m", 12)],
                    active_device_count=1,
                )
            )
            stored = db.get_day_summary("2024-05-01")
            self.assertIsNotNone(stored)
            self.assertEqual(stored.summary_text, "Solid maker morning.")
            self.assertEqual(stored.usage_patterns, [UsagePattern("Sessions", "2")])
            self.assertEqual(stored.device_stats[0].screenshots, 12)
            self.assertEqual(stored.active_device_count, 1)

    def test_settings_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db = DayflowVaultDatabase(Path(tmp_dir) / "dayflow.sqlite3")
            db.set_setting("weekly_target_minutes", "600")
            self.assertEqual(db.get_setting("weekly_target_minutes"), "600")
            db.set_setting("weekly_target_minutes", "900")
            self.assertEqual(db.get_setting("weekly_target_minutes"), "900")
            self.assertEqual(db.get_setting("missing", "fallback"), "fallback")

    def test_corrupt_timestamp_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            db_file = Path(tmp_dir) / "dayflow.sqlite3"
            db = DayflowVaultDatabase(db_file)
            start = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
            session_id = db.insert_session(start, start + timedelta(minutes=30), title="Broken")
            conn = sqlite3.connect(db_file)
            try:
                conn.execute(
                    "UPDATE sessions SET end_time = ? WHERE id = ?",
                    ("2024-05-01 late", session_id),
                )
                conn.commit()
            finally:
                conn.close()

            with self.assertRaises(ValueError) as ctx:
                db.list_sessions_for_day("2024-05-01")
            self.assertIn("2024-05-01 late", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
