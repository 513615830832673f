"""
Day summaries: the narrative, usage patterns and device stats at the top of
every daily note. Summaries are cached in the database and only rebuilt when
missing or when a refresh is forced.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Protocol, Sequence

from .categories import classify_category
from .database import DayflowVaultDatabase
from .metrics import parse_card_minutes
from .models import DaySummary, DeviceStat, Session, TimelineCardRecord, UsagePattern

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_NAME = "This device"
DEFAULT_DEVICE_TYPE = "desktop"


class Narrator(Protocol):
    def narrate(self, day: str, sessions: Sequence[Session], cards: Sequence[TimelineCardRecord]) -> str: ...


def format_duration(total_seconds: int) -> str:
    seconds = max(0, int(total_seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class DaySummaryGenerator:
    def __init__(self, db: DayflowVaultDatabase, narrator: Narrator | None = None):
        self._db = db
        self._narrator = narrator

    def generate_day_summary(self, day: str, force_refresh: bool = False) -> DaySummary:
        if not force_refresh:
            cached = self._db.get_day_summary(day)
            if cached is not None:
                return cached

        sessions = self._db.list_sessions_for_day(day)
        cards: list[TimelineCardRecord] = []
        for session in sessions:
            if session.id is not None:
                cards.extend(self._db.list_timeline_cards_for_session(session.id))

        device_stats = self._device_stats(sessions)
        summary = DaySummary(
            date=day,
            summary_text=self._narrative(day, sessions, cards),
            usage_patterns=_usage_patterns(sessions, cards),
            device_stats=device_stats,
            active_device_count=len(device_stats),
        )
        self._db.save_day_summary(summary)
        logger.info("Generated day summary for %s (%d sessions)", day, len(sessions))
        return summary

    def _narrative(self, day: str, sessions: Sequence[Session], cards: Sequence[TimelineCardRecord]) -> str:
        if self._narrator is not None and sessions:
            return self._narrator.narrate(day, sessions, cards)
        return _fallback_narrative(day, sessions)

    def _device_stats(self, sessions: Sequence[Session]) -> list[DeviceStat]:
        seconds: dict[tuple[str, str], int] = {}
        screenshots: Counter[tuple[str, str]] = Counter()
        for session in sessions:
            key = (
                session.device_name.strip() or DEFAULT_DEVICE_NAME,
                session.device_type.strip() or DEFAULT_DEVICE_TYPE,
            )
            duration = max(0, int((session.end_time - session.start_time).total_seconds()))
            seconds[key] = seconds.get(key, 0) + duration
            if session.id is not None:
                screenshots[key] += self._db.count_frames_for_session(session.id)
        return [
            DeviceStat(
                name=name,
                device_type=device_type,
                total_time=format_duration(total),
                screenshots=screenshots[(name, device_type)],
            )
            for (name, device_type), total in seconds.items()
        ]


def _usage_patterns(sessions: Sequence[Session], cards: Sequence[TimelineCardRecord]) -> list[UsagePattern]:
    if not sessions:
        return []

    total_seconds = sum(max(0, int((s.end_time - s.start_time).total_seconds())) for s in sessions)
    patterns = [
        UsagePattern(label="Sessions", value=str(len(sessions))),
        UsagePattern(label="Active time", value=format_duration(total_seconds)),
    ]

    minutes_by_category: Counter[str] = Counter()
    for card in cards:
        minutes = parse_card_minutes(card)
        if minutes > 0:
            minutes_by_category[classify_category(card.category).value] += minutes
    if minutes_by_category:
        category, minutes = minutes_by_category.most_common(1)[0]
        patterns.append(UsagePattern(label="Top category", value=f"{category} ({minutes} min)"))

    longest = max(sessions, key=lambda s: s.end_time - s.start_time)
    patterns.append(
        UsagePattern(
            label="Longest session",
            value=f"{longest.title or 'Untitled session'} ({longest.duration_minutes} min)",
        )
    )
    return patterns


def _fallback_narrative(day: str, sessions: Sequence[Session]) -> str:
    if not sessions:
        return f"No screen activity was recorded on {day}."
    total_minutes = sum(session.duration_minutes for session in sessions)
    titles = [session.title.strip() for session in sessions if session.title.strip()]
    text = f"Recorded {len(sessions)} sessions totalling {total_minutes} minutes."
    if titles:
        text += " Main activities: " + ", ".join(titles[:5]) + "."
    return text
