from __future__ import annotations

import unittest
from datetime import date, datetime, timezone

from dayflow_vault.aggregation import (
    NO_SUMMARY,
    TABLE_EMPTY_ROW,
    build_daily_highlights,
    build_month_rollup,
    build_week_summary,
    compact_summary_text,
    compute_week_focus_metrics,
    iso_week_bounds,
    iso_week_label,
    month_bounds,
    parse_day,
    rank_categories,
)
from dayflow_vault.models import ActivityRollup, DaySummary, ExportConfig, Session, TimelineCardRecord
from dayflow_vault.templates import render_template


class FakeStore:
    def __init__(self) -> None:
        self.activities: list[ActivityRollup] = []
        self.sessions: dict[str, list[Session]] = {}
        self.cards: dict[int, list[TimelineCardRecord]] = {}
        self.summaries: dict[str, DaySummary] = {}
        self.broken_summary_days: set[str] = set()
        self.broken_session_days: set[str] = set()
        self.broken_card_sessions: set[int] = set()
        self.requested_ranges: list[tuple[str, str]] = []

    def list_sessions_for_day(self, day: str) -> list[Session]:
        if day in self.broken_session_days:
            raise RuntimeError("session table locked")
        return self.sessions.get(day, [])

    def list_timeline_cards_for_session(self, session_id: int) -> list[TimelineCardRecord]:
        if session_id in self.broken_card_sessions:
            raise RuntimeError("card table corrupted")
        return self.cards.get(session_id, [])

    def list_frames_for_session(self, session_id: int):
        return []

    def list_activities(self, start_day: str, end_day: str) -> list[ActivityRollup]:
        self.requested_ranges.append((start_day, end_day))
        return [a for a in self.activities if start_day <= a.date <= end_day]

    def get_day_summary(self, day: str) -> DaySummary | None:
        if day in self.broken_summary_days:
            raise RuntimeError("database is locked")
        return self.summaries.get(day)


def _session(session_id: int, day: int) -> Session:
    return Session(
        id=session_id,
        start_time=datetime(2024, 5, day, 9, 0, tzinfo=timezone.utc),
        end_time=datetime(2024, 5, day, 10, 0, tzinfo=timezone.utc),
        title="Session",
        summary="",
        tags="[]",
    )


def _card(session_id: int, minutes: int, category: str) -> TimelineCardRecord:
    return TimelineCardRecord(
        id=None,
        session_id=session_id,
        start_time="2024-05-01T09:00:00+00:00",
        end_time=f"2024-05-01T09:{minutes:02d}:00+00:00",
        category=category,
        subcategory="",
        title="",
        summary="",
    )


class TemplateTests(unittest.TestCase):
    def test_user_template_wins_when_not_blank(self) -> None:
        result = render_template("{{title}}{{unknown_key}}", "default", {"title": "Deep work"})
        self.assertEqual(result, "Deep work{{unknown_key}}")

    def test_blank_template_uses_fallback(self) -> None:
        self.assertEqual(render_template("   \n", "# {{date}}", {"date": "2024-05-01"}), "# 2024-05-01")
        self.assertEqual(render_template(None, "{{a}}-{{a}}", {"a": "x"}), "x-x")


class DateRangeTests(unittest.TestCase):
    def test_month_bounds(self) -> None:
        self.assertEqual(month_bounds(date(2024, 2, 14)), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(date(2023, 12, 31)), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_iso_week_bounds_and_label(self) -> None:
        self.assertEqual(iso_week_bounds(date(2024, 5, 1)), (date(2024, 4, 29), date(2024, 5, 5)))
        self.assertEqual(iso_week_label(date(2024, 5, 1)), "2024-W18")
        self.assertEqual(iso_week_label(date(2021, 1, 1)), "2020-W53")
        self.assertEqual(iso_week_bounds(date(2024, 5, 5))[0], date(2024, 4, 29))

    def test_parse_day_rejects_garbage(self) -> None:
        with self.assertRaises(ValueError):
            parse_day("May first")


class RollupTests(unittest.TestCase):
    def test_month_rollup_sums_and_ranks(self) -> None:
        store = FakeStore()
        store.activities = [
            ActivityRollup("2024-05-02", 2, 90, ["work", "communication"]),
            ActivityRollup("2024-05-01", 3, 120, ["learning", "work"]),
            ActivityRollup("2024-04-30", 9, 999, ["idle"]),
        ]
        rollup = build_month_rollup(store, "2024-05-15")
        self.assertEqual(store.requested_ranges, [("2024-05-01", "2024-05-31")])
        self.assertEqual(rollup.label, "2024-05")
        self.assertEqual(rollup.total_sessions, 5)
        self.assertEqual(rollup.total_minutes, 210)
        self.assertEqual(rollup.avg_session_minutes, 42)
        self.assertEqual(rollup.top_categories, "work (2), learning (1), communication (1)")
        self.assertEqual(rollup.table_lines[2], "| [[Daily/2024-05-01]] | 3 | 120 | learning, work |")
        self.assertEqual(len(rollup.table_lines), 4)

    def test_empty_range_has_placeholder_row(self) -> None:
        rollup = build_month_rollup(FakeStore(), "2024-05-15")
        self.assertEqual(rollup.total_sessions, 0)
        self.assertEqual(rollup.avg_session_minutes, 0)
        self.assertEqual(rollup.top_categories, "None")
        self.assertEqual(rollup.table_lines[-1], TABLE_EMPTY_ROW)

    def test_rank_keeps_top_five_first_seen_on_ties(self) -> None:
        activities = [ActivityRollup("2024-05-01", 1, 10, ["f", "e", "d", "c", "b", "a"])]
        ranked = rank_categories(activities)
        self.assertEqual([name for name, _ in ranked], ["f", "e", "d", "c", "b"])

    def test_compact_summary_text(self) -> None:
        self.assertEqual(compact_summary_text("line one\nline two"), "line one line two")
        long_text = "x" * 200
        compacted = compact_summary_text(long_text)
        self.assertEqual(len(compacted), 143)
        self.assertTrue(compacted.endswith("..."))


class WeekSummaryTests(unittest.TestCase):
    def test_week_summary_collects_focus_and_highlights(self) -> None:
        store = FakeStore()
        store.activities = [ActivityRollup("2024-04-30", 1, 60, ["work"])]
        store.sessions = {"2024-04-30": [_session(1, 1)], "2024-05-06": [_session(2, 6)]}
        store.cards = {1: [_card(1, 40, "work"), _card(1, 20, "meeting")], 2: [_card(2, 50, "work")]}
        store.summaries = {"2024-04-30": DaySummary(date="2024-04-30", summary_text="Shipped\nthe parser.")}
        store.broken_summary_days = {"2024-05-01"}

        summary = build_week_summary(store, "2024-05-01", ExportConfig(weekly_focus_weight=60))

        self.assertEqual(summary.week_label, "2024-W18")
        self.assertEqual((summary.week_start, summary.week_end), ("2024-04-29", "2024-05-05"))
        self.assertEqual(summary.total_minutes, 60)
        self.assertEqual(summary.focus_metrics.total_minutes, 60)
        self.assertEqual(summary.focus_metrics.work_minutes, 40)
        self.assertEqual(summary.focus_metrics.communication_minutes, 20)
        self.assertEqual(summary.score_config.effort_weight, 40)
        self.assertEqual(len(summary.daily_highlights), 7)
        self.assertEqual(summary.daily_highlights[0], f"- [[Daily/2024-04-29]]: {NO_SUMMARY}")
        self.assertEqual(summary.daily_highlights[1], "- [[Daily/2024-04-30]]: Shipped the parser.")
        self.assertEqual(summary.daily_highlights[2], f"- [[Daily/2024-05-01]]: {NO_SUMMARY}")

    def test_focus_metrics_skip_unreadable_days_and_sessions(self) -> None:
        store = FakeStore()
        store.sessions = {
            "2024-04-29": [_session(1, 1), _session(2, 1)],
            "2024-05-01": [_session(3, 1)],
        }
        store.cards = {
            1: [_card(1, 30, "work")],
            2: [_card(2, 45, "work")],
            3: [_card(3, 15, "meeting")],
        }
        store.broken_card_sessions = {1}
        store.broken_session_days = {"2024-05-01"}

        metrics = compute_week_focus_metrics(store, date(2024, 4, 29), date(2024, 5, 5))

        self.assertEqual(metrics.total_minutes, 45)
        self.assertEqual(metrics.work_minutes, 45)
        self.assertEqual(metrics.communication_minutes, 0)

    def test_highlights_cover_each_day(self) -> None:
        highlights = build_daily_highlights(FakeStore(), date(2024, 4, 29), date(2024, 5, 5))
        self.assertEqual(len(highlights), 7)
        self.assertTrue(highlights[-1].startswith("- [[Daily/2024-05-05]]"))


if __name__ == "__main__":
    unittest.main()
