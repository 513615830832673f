from __future__ import annotations

from datetime import datetime
from typing import Sequence

from .aggregation import RangeRollup, WeekSummaryData, daily_note_link
from .categories import format_tags, parse_tags
from .metrics import (
    SessionMetrics,
    build_week_insights,
    parse_timestamp,
    render_session_metrics,
    render_week_focus_metrics,
)
from .models import DaySummary, ExportConfig, Session, TimelineCardRecord
from .paths import to_file_url
from .templates import render_template

SOURCE_TAG = "dayflow"
NO_SESSIONS = "- No sessions recorded for this day"
NO_TIMELINE = "- No timeline available"
NO_VIDEO = "No video available"
NOT_AVAILABLE = "None"


def _front_matter(fields: Sequence[tuple[str, object]]) -> list[str]:
    lines = ["---"]
    lines.extend(f"{key}: {value}" for key, value in fields)
    lines.append(f"source: {SOURCE_TAG}")
    lines.append("---")
    return lines


def render_session_list(session_links: Sequence[str]) -> str:
    if not session_links:
        return NO_SESSIONS
    return "\n".join(f"- {link}" for link in session_links)


def render_daily_note(config: ExportConfig, summary: DaySummary, session_links: Sequence[str]) -> str:
    session_list = render_session_list(session_links)

    if summary.usage_patterns:
        usage_patterns = "\n".join(f"- {p.label}: {p.value}" for p in summary.usage_patterns)
    else:
        usage_patterns = "No usage statistics"

    if summary.device_stats:
        device_stats = "\n".join(
            f"- {stat.name} ({stat.device_type}): {stat.total_time}, {stat.screenshots} screenshots"
            for stat in summary.device_stats
        )
    else:
        device_stats = "No device statistics"

    lines = _front_matter(
        [
            ("type", "dayflow-daily"),
            ("date", summary.date),
            ("session_count", len(session_links)),
            ("active_device_count", summary.active_device_count),
        ]
    )
    lines.extend(
        [
            "",
            f"# {summary.date} Screen Activity",
            "",
            summary.summary_text,
            "",
            "## Sessions",
            session_list,
            "",
            "## Usage Patterns",
            usage_patterns,
            "",
            "## Devices",
            device_stats,
            "",
        ]
    )

    return render_template(
        config.daily_template,
        "\n".join(lines),
        {
            "date": summary.date,
            "summary": summary.summary_text,
            "session_list": session_list,
            "usage_patterns": usage_patterns,
            "device_stats": device_stats,
            "active_device_count": str(summary.active_device_count),
        },
    )


def _clock(value: str) -> str:
    parsed = parse_timestamp(value)
    return parsed.strftime("%H:%M") if parsed is not None else value


def render_timeline(cards: Sequence[TimelineCardRecord]) -> str:
    if not cards:
        return NO_TIMELINE
    return "\n".join(
        f"- {_clock(card.start_time)}-{_clock(card.end_time)} "
        f"[{card.category} / {card.subcategory}] {card.title}: {card.summary}"
        for card in cards
    )


def render_video_link(config: ExportConfig, session: Session) -> str:
    if not config.include_video_link:
        return ""
    if not session.video_path:
        return NO_VIDEO
    return f"[Playback video]({to_file_url(session.video_path)})"


def render_session_note(
    config: ExportConfig,
    session: Session,
    cards: Sequence[TimelineCardRecord],
    metrics: SessionMetrics,
    screenshots: str,
) -> str:
    session_date = session.start_time.strftime("%Y-%m-%d")
    session_id = session.id or 0
    start = session.start_time.strftime("%H:%M")
    end = session.end_time.strftime("%H:%M")
    duration = session.duration_minutes
    title = session.title if session.title.strip() else "Untitled session"
    summary_text = session.summary if session.summary.strip() else "No summary yet"
    tags = format_tags(parse_tags(session.tags))
    timeline = render_timeline(cards)
    metrics_text = render_session_metrics(metrics)
    video_link = render_video_link(config, session)

    lines = _front_matter(
        [
            ("type", "dayflow-session"),
            ("date", session_date),
            ("session_id", session_id),
            ("start", start),
            ("end", end),
            ("duration_minutes", duration),
            ("timeline_cards", metrics.timeline_cards),
            ("context_switches", metrics.context_switches),
            ("fragmentation_level", metrics.fragmentation_level),
            ("tags", tags),
        ]
    )
    lines.extend(["", f"# {title}", "", summary_text, "", "## Metrics", metrics_text, "", "## Timeline", timeline])
    if video_link.strip():
        lines.extend(["", "## Video", video_link])
    if screenshots.strip():
        lines.extend(["", "## Screenshots", screenshots])
    lines.append("")

    return render_template(
        config.session_template,
        "\n".join(lines),
        {
            "date": session_date,
            "session_id": str(session_id),
            "start": start,
            "end": end,
            "duration_minutes": str(duration),
            "title": title,
            "summary": summary_text,
            "tags": tags,
            "timeline": timeline,
            "metrics": metrics_text,
            "context_switches": str(metrics.context_switches),
            "fragmentation_level": metrics.fragmentation_level,
            "video_link": video_link,
            "screenshots": screenshots,
        },
    )


def _overview_lines(rollup_sessions: int, minutes: int, avg: int, top_categories: str) -> list[str]:
    return [
        "## Overview",
        f"- Total sessions: {rollup_sessions}",
        f"- Total time: {minutes} min",
        f"- Average session: {avg} min",
        f"- Main categories: {top_categories}",
    ]


def render_month_index(rollup: RangeRollup) -> str:
    lines = _front_matter(
        [
            ("type", "dayflow-index"),
            ("month", rollup.label),
            ("total_sessions", rollup.total_sessions),
            ("total_minutes", rollup.total_minutes),
            ("avg_session_minutes", rollup.avg_session_minutes),
        ]
    )
    lines.extend(["", f"# {rollup.label} Monthly Index", ""])
    lines.extend(
        _overview_lines(
            rollup.total_sessions, rollup.total_minutes, rollup.avg_session_minutes, rollup.top_categories
        )
    )
    lines.extend(["", "## Daily Breakdown", *rollup.table_lines, ""])
    return "\n".join(lines)


def _week_front_matter(doc_type: str, summary: WeekSummaryData) -> list[str]:
    metrics = summary.focus_metrics
    score = summary.score_config
    focus_score, effort_score, productivity_score = metrics.scores(score)
    return _front_matter(
        [
            ("type", doc_type),
            ("week", summary.week_label),
            ("week_start", summary.week_start),
            ("week_end", summary.week_end),
            ("total_sessions", summary.total_sessions),
            ("total_minutes", summary.total_minutes),
            ("avg_session_minutes", summary.avg_session_minutes),
            ("focus_minutes", metrics.focus_minutes),
            ("focus_ratio", metrics.focus_ratio),
            ("distraction_minutes", metrics.distraction_minutes),
            ("distraction_ratio", metrics.distraction_ratio),
            ("communication_minutes", metrics.communication_minutes),
            ("focus_score", focus_score),
            ("effort_score", effort_score),
            ("productivity_score", productivity_score),
            ("focus_weight", score.focus_weight),
            ("effort_weight", score.effort_weight),
            ("target_minutes", score.target_minutes),
        ]
    )


def week_index_link(week_label: str) -> str:
    return f"[[Index/weeks-{week_label}.md]]"


def render_week_index(summary: WeekSummaryData) -> str:
    lines = _week_front_matter("dayflow-week-index", summary)
    lines.extend(["", f"# {summary.week_label} Weekly Index", ""])
    lines.extend(
        _overview_lines(
            summary.total_sessions, summary.total_minutes, summary.avg_session_minutes, summary.top_categories
        )
    )
    lines.extend(
        [
            "",
            "## Focus",
            render_week_focus_metrics(summary.focus_metrics, summary.score_config),
            "",
            "## Daily Breakdown",
            *summary.table_lines,
            "",
        ]
    )
    return "\n".join(lines)


def render_weekly_note(summary: WeekSummaryData) -> str:
    score = summary.score_config
    highlights = "\n".join(summary.daily_highlights) if summary.daily_highlights else "- No daily summaries"
    insights = build_week_insights(
        summary.focus_metrics, score, summary.total_minutes, summary.avg_session_minutes
    )
    insight_text = "\n".join(f"- {item}" for item in insights) if insights else "- No insights"

    lines = _week_front_matter("dayflow-weekly", summary)
    lines.extend(["", f"# {summary.week_label} Weekly Report", ""])
    lines.extend(
        _overview_lines(
            summary.total_sessions, summary.total_minutes, summary.avg_session_minutes, summary.top_categories
        )
    )
    lines.extend(
        [
            "",
            "## Focus",
            render_week_focus_metrics(summary.focus_metrics, score),
            "",
            "## Insights",
            insight_text,
            "",
            "## How Scores Work",
            "- Focus score = share of time spent on work and learning",
            f"- Effort score: {score.target_minutes} min of tracked time scores 100, capped",
            (
                f"- Productivity score = focus score x {score.focus_weight}% "
                f"+ effort score x {score.effort_weight}%"
            ),
            "",
            "## Daily Highlights",
            highlights,
            "",
            "## Week Index",
            f"- {week_index_link(summary.week_label)}",
            "",
        ]
    )
    return "\n".join(lines)


def render_overview(
    day: str,
    month: str,
    week_summary: WeekSummaryData | None,
    updated_at: datetime | None = None,
) -> str:
    stamp = (updated_at or datetime.now()).strftime("%Y-%m-%d %H:%M")
    if week_summary is not None:
        week_link = f"[[Weekly/{week_summary.week_label}]]"
        week_index = week_index_link(week_summary.week_label)
    else:
        week_link = NOT_AVAILABLE
        week_index = NOT_AVAILABLE

    lines = _front_matter([("type", "dayflow-overview"), ("updated_at", stamp)])
    lines += [
        "",
        "# Dayflow Overview",
        "",
        f"- Today: {daily_note_link(day)}",
        f"- This week: {week_link}",
        f"- Week index: {week_index}",
        f"- Month index: [[Index/sessions-{month}.md]]",
        "",
    ]
    return "\n".join(lines)
