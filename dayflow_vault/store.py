from __future__ import annotations

from typing import Protocol

from .models import ActivityRollup, DaySummary, Frame, Session, TimelineCardRecord


class ActivityStore(Protocol):
    """Read operations the exporter needs from the activity database."""

    def list_sessions_for_day(self, day: str) -> list[Session]: ...

    def list_timeline_cards_for_session(self, session_id: int) -> list[TimelineCardRecord]: ...

    def list_frames_for_session(self, session_id: int) -> list[Frame]: ...

    def list_activities(self, start_day: str, end_day: str) -> list[ActivityRollup]: ...

    def get_day_summary(self, day: str) -> DaySummary | None: ...


class DaySummarizer(Protocol):
    def generate_day_summary(self, day: str, force_refresh: bool = False) -> DaySummary: ...
