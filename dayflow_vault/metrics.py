from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from .categories import ActivityCategory, classify_category
from .models import ExportConfig, TimelineCardRecord

NO_SESSION_METRICS = "No metrics available"
NO_FOCUS_DATA = "No focus data available"


@dataclass(frozen=True)
class SessionMetrics:
    timeline_cards: int
    context_switches: int
    avg_segment_minutes: int
    fragmentation_level: str


def count_context_switches(cards: Sequence[TimelineCardRecord]) -> int:
    switches = 0
    last_category: str | None = None
    for card in cards:
        category = card.category.lower()
        if last_category is not None and last_category != category:
            switches += 1
        last_category = category
    return switches


def fragmentation_level(context_switches: int) -> str:
    if context_switches <= 1:
        return "low"
    if context_switches <= 3:
        return "medium"
    return "high"


def build_session_metrics(cards: Sequence[TimelineCardRecord], duration_minutes: int) -> SessionMetrics:
    count = len(cards)
    switches = count_context_switches(cards)
    avg_segment = 0 if count == 0 else max(0, int(duration_minutes) // count)
    return SessionMetrics(
        timeline_cards=count,
        context_switches=switches,
        avg_segment_minutes=avg_segment,
        fragmentation_level=fragmentation_level(switches),
    )


def render_session_metrics(metrics: SessionMetrics) -> str:
    if metrics.timeline_cards == 0:
        return NO_SESSION_METRICS
    return "\n".join(
        [
            f"- Segments: {metrics.timeline_cards}",
            f"- Context switches: {metrics.context_switches}",
            f"- Average segment: {metrics.avg_segment_minutes} min",
            f"- Fragmentation: {metrics.fragmentation_level}",
        ]
    )


def parse_timestamp(value: str) -> datetime | None:
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_card_minutes(card: TimelineCardRecord) -> int:
    """Whole minutes between a card's start and end, 0 when unusable."""
    start = parse_timestamp(card.start_time)
    end = parse_timestamp(card.end_time)
    if start is None or end is None:
        return 0
    try:
        seconds = (end - start).total_seconds()
    except TypeError:
        # naive and aware timestamps cannot be compared
        return 0
    return max(0, int(seconds // 60))


@dataclass(frozen=True)
class ScoreConfig:
    focus_weight: int
    effort_weight: int
    target_minutes: int

    @classmethod
    def from_export_config(cls, config: ExportConfig) -> "ScoreConfig":
        focus_weight = min(100, max(0, int(config.weekly_focus_weight)))
        return cls(
            focus_weight=focus_weight,
            effort_weight=100 - focus_weight,
            target_minutes=max(1, int(config.weekly_target_minutes)),
        )


@dataclass
class WeekFocusMetrics:
    total_minutes: int = 0
    work_minutes: int = 0
    learning_minutes: int = 0
    communication_minutes: int = 0
    personal_minutes: int = 0
    idle_minutes: int = 0
    other_minutes: int = 0

    def add_cards(self, cards: Iterable[TimelineCardRecord]) -> None:
        for card in cards:
            self.add_card(card)

    def add_card(self, card: TimelineCardRecord) -> None:
        minutes = parse_card_minutes(card)
        if minutes <= 0:
            return
        self.total_minutes += minutes

        category = classify_category(card.category)
        if category is ActivityCategory.WORK:
            self.work_minutes += minutes
        elif category is ActivityCategory.LEARNING:
            self.learning_minutes += minutes
        elif category is ActivityCategory.COMMUNICATION:
            self.communication_minutes += minutes
        elif category is ActivityCategory.PERSONAL:
            self.personal_minutes += minutes
        elif category is ActivityCategory.IDLE:
            self.idle_minutes += minutes
        else:
            self.other_minutes += minutes

    @property
    def focus_minutes(self) -> int:
        return self.work_minutes + self.learning_minutes

    @property
    def distraction_minutes(self) -> int:
        return self.personal_minutes + self.idle_minutes + self.other_minutes

    @property
    def focus_ratio(self) -> int:
        if self.total_minutes == 0:
            return 0
        return max(0, self.focus_minutes * 100 // self.total_minutes)

    @property
    def distraction_ratio(self) -> int:
        if self.total_minutes == 0:
            return 0
        return max(0, self.distraction_minutes * 100 // self.total_minutes)

    @property
    def focus_score(self) -> int:
        return self.focus_ratio

    def effort_score(self, target_minutes: int) -> int:
        if self.total_minutes == 0 or target_minutes <= 0:
            return 0
        return max(0, min(100, self.total_minutes * 100 // target_minutes))

    def productivity_score(self, focus_weight: int, effort_weight: int, target_minutes: int) -> int:
        total_weight = max(1, focus_weight + effort_weight)
        blended = self.focus_score * focus_weight + self.effort_score(target_minutes) * effort_weight
        return blended // total_weight

    def scores(self, score: ScoreConfig) -> tuple[int, int, int]:
        """Return ``(focus_score, effort_score, productivity_score)``."""
        return (
            self.focus_score,
            self.effort_score(score.target_minutes),
            self.productivity_score(score.focus_weight, score.effort_weight, score.target_minutes),
        )


def render_week_focus_metrics(metrics: WeekFocusMetrics, score: ScoreConfig) -> str:
    if metrics.total_minutes == 0:
        return NO_FOCUS_DATA

    focus_score, effort_score, productivity_score = metrics.scores(score)
    return "\n".join(
        [
            f"- Focus time: {metrics.focus_minutes} min ({metrics.focus_ratio}%)",
            f"- Communication time: {metrics.communication_minutes} min",
            f"- Distraction time: {metrics.distraction_minutes} min ({metrics.distraction_ratio}%)",
            f"- Focus score: {focus_score} / 100",
            f"- Effort score: {effort_score} / 100 (target {score.target_minutes} min)",
            (
                f"- Productivity score: {productivity_score} / 100 "
                f"(weights {score.focus_weight}% / {score.effort_weight}%)"
            ),
            (
                f"- Breakdown: work {metrics.work_minutes} / learning {metrics.learning_minutes} / "
                f"personal {metrics.personal_minutes} / idle {metrics.idle_minutes} / "
                f"other {metrics.other_minutes}"
            ),
        ]
    )


def build_week_insights(
    metrics: WeekFocusMetrics,
    score: ScoreConfig,
    total_minutes: int,
    avg_session_minutes: int,
) -> list[str]:
    insights: list[str] = []
    focus_ratio = metrics.focus_ratio
    _, _, productivity_score = metrics.scores(score)

    if focus_ratio >= 70:
        insights.append("Focus was high this week; keep the current rhythm.")
    elif focus_ratio <= 40:
        insights.append("Focus was low this week; cut down on high-distraction activities.")
    else:
        insights.append("Focus was moderate this week; task switching could be tightened.")

    if productivity_score >= 70:
        insights.append("Productivity score is high; effort and focus are well balanced.")
    elif productivity_score <= 40:
        insights.append("Productivity score is low; watch both time invested and focus share.")

    if total_minutes < 300:
        insights.append("Little time was logged this week; the load looks light.")
    elif total_minutes >= 1200:
        insights.append("A lot of time was logged this week; watch out for fatigue.")

    if avg_session_minutes < 20:
        insights.append("Sessions were short on average, a sign of fragmented work.")
    elif avg_session_minutes >= 60:
        insights.append("Sessions were long on average, a sign of deep work.")

    return insights
