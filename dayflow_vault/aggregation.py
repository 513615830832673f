from __future__ import annotations

import calendar
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Sequence

from .metrics import ScoreConfig, WeekFocusMetrics
from .models import ActivityRollup, ExportConfig
from .store import ActivityStore

logger = logging.getLogger(__name__)

TOP_CATEGORY_LIMIT = 5
HIGHLIGHT_MAX_CHARS = 140
NO_CATEGORIES = "None"
NO_SUMMARY = "No summary"

TABLE_HEADER = "| Date | Sessions | Minutes | Main categories |"
TABLE_SEPARATOR = "| --- | --- | --- | --- |"
TABLE_EMPTY_ROW = "| - | 0 | 0 | - |"


@dataclass(frozen=True)
class RangeRollup:
    label: str
    start: str
    end: str
    total_sessions: int
    total_minutes: int
    avg_session_minutes: int
    top_categories: str
    table_lines: list[str] = field(default_factory=list)


@dataclass
class WeekSummaryData:
    week_label: str
    week_start: str
    week_end: str
    total_sessions: int
    total_minutes: int
    avg_session_minutes: int
    top_categories: str
    table_lines: list[str]
    focus_metrics: WeekFocusMetrics
    score_config: ScoreConfig
    daily_highlights: list[str]


def parse_day(day: str) -> date:
    try:
        return date.fromisoformat(day.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {day}") from exc


def month_bounds(day: date) -> tuple[date, date]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def month_label(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def iso_week_bounds(day: date) -> tuple[date, date]:
    week_start = day - timedelta(days=day.isoweekday() - 1)
    return week_start, week_start + timedelta(days=6)


def iso_week_label(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year:04d}-W{week:02d}"


def iter_days(start: date, end: date):
    cursor = start
    while cursor <= end:
        yield cursor
        cursor += timedelta(days=1)


def daily_note_link(day: str) -> str:
    return f"[[Daily/{day}]]"


def rank_categories(activities: Sequence[ActivityRollup], limit: int = TOP_CATEGORY_LIMIT) -> list[tuple[str, int]]:
    """Count the days each category is a main category, most frequent first.

    Ties keep first-seen order, so with date-sorted rollups the category that
    appeared earliest in the range wins.
    """
    counts: Counter[str] = Counter()
    for activity in activities:
        for category in activity.main_categories:
            counts[category] += 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def format_top_categories(ranked: Sequence[tuple[str, int]]) -> str:
    if not ranked:
        return NO_CATEGORIES
    return ", ".join(f"{name} ({count})" for name, count in ranked)


def build_day_table(activities: Sequence[ActivityRollup]) -> list[str]:
    lines = [TABLE_HEADER, TABLE_SEPARATOR]
    if not activities:
        lines.append(TABLE_EMPTY_ROW)
        return lines
    for activity in activities:
        categories = ", ".join(activity.main_categories) if activity.main_categories else "-"
        lines.append(
            f"| {daily_note_link(activity.date)} | {activity.session_count} "
            f"| {activity.total_duration_minutes} | {categories} |"
        )
    return lines


def rollup_range(store: ActivityStore, label: str, start: date, end: date) -> RangeRollup:
    activities = sorted(
        store.list_activities(start.isoformat(), end.isoformat()),
        key=lambda activity: activity.date,
    )
    total_sessions = sum(max(0, activity.session_count) for activity in activities)
    total_minutes = sum(max(0, activity.total_duration_minutes) for activity in activities)
    avg_session_minutes = total_minutes // total_sessions if total_sessions > 0 else 0

    return RangeRollup(
        label=label,
        start=start.isoformat(),
        end=end.isoformat(),
        total_sessions=total_sessions,
        total_minutes=total_minutes,
        avg_session_minutes=avg_session_minutes,
        top_categories=format_top_categories(rank_categories(activities)),
        table_lines=build_day_table(activities),
    )


def build_month_rollup(store: ActivityStore, day: str) -> RangeRollup:
    parsed = parse_day(day)
    start, end = month_bounds(parsed)
    return rollup_range(store, month_label(parsed), start, end)


def compact_summary_text(text: str, max_len: int = HIGHLIGHT_MAX_CHARS) -> str:
    cleaned = text.replace("\n", " ").replace("\r", " ")
    if len(cleaned) <= max_len:
        return cleaned
    return cleaned[:max_len] + "..."


def compute_week_focus_metrics(store: ActivityStore, start: date, end: date) -> WeekFocusMetrics:
    """Re-read every card in the range; unreadable days and sessions are skipped."""
    metrics = WeekFocusMetrics()
    for day in iter_days(start, end):
        day_text = day.isoformat()
        try:
            sessions = store.list_sessions_for_day(day_text)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Sessions for %s unavailable: %s", day_text, exc)
            continue
        for session in sessions:
            if session.id is None:
                continue
            try:
                cards = store.list_timeline_cards_for_session(session.id)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Cards for session %s unavailable: %s", session.id, exc)
                continue
            metrics.add_cards(cards)
    return metrics


def build_daily_highlights(store: ActivityStore, start: date, end: date) -> list[str]:
    highlights: list[str] = []
    for day in iter_days(start, end):
        day_text = day.isoformat()
        try:
            summary = store.get_day_summary(day_text)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Day summary for %s unavailable: %s", day_text, exc)
            summary = None
        if summary is not None and summary.summary_text.strip():
            text = compact_summary_text(summary.summary_text)
        else:
            text = NO_SUMMARY
        highlights.append(f"- {daily_note_link(day_text)}: {text}")
    return highlights


def build_week_summary(store: ActivityStore, day: str, config: ExportConfig) -> WeekSummaryData:
    parsed = parse_day(day)
    start, end = iso_week_bounds(parsed)
    rollup = rollup_range(store, iso_week_label(parsed), start, end)

    return WeekSummaryData(
        week_label=rollup.label,
        week_start=rollup.start,
        week_end=rollup.end,
        total_sessions=rollup.total_sessions,
        total_minutes=rollup.total_minutes,
        avg_session_minutes=rollup.avg_session_minutes,
        top_categories=rollup.top_categories,
        table_lines=rollup.table_lines,
        focus_metrics=compute_week_focus_metrics(store, start, end),
        score_config=ScoreConfig.from_export_config(config),
        daily_highlights=build_daily_highlights(store, start, end),
    )
