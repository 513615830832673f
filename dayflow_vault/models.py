from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class Session:
    id: int | None
    start_time: datetime
    end_time: datetime
    title: str
    summary: str
    tags: str
    video_path: str | None = None
    device_name: str = ""
    device_type: str = ""

    @property
    def duration_minutes(self) -> int:
        return max(0, int((self.end_time - self.start_time).total_seconds() // 60))


@dataclass(frozen=True)
class TimelineCardRecord:
    id: int | None
    session_id: int
    start_time: str
    end_time: str
    category: str
    subcategory: str
    title: str
    summary: str


@dataclass(frozen=True)
class Frame:
    id: int
    session_id: int
    captured_at: datetime
    file_path: str


@dataclass(frozen=True)
class UsagePattern:
    label: str
    value: str


@dataclass(frozen=True)
class DeviceStat:
    name: str
    device_type: str
    total_time: str
    screenshots: int


@dataclass(frozen=True)
class DaySummary:
    date: str
    summary_text: str
    usage_patterns: list[UsagePattern] = field(default_factory=list)
    device_stats: list[DeviceStat] = field(default_factory=list)
    active_device_count: int = 0


@dataclass(frozen=True)
class ActivityRollup:
    date: str
    session_count: int
    total_duration_minutes: int
    main_categories: list[str] = field(default_factory=list)


class ExportMode(str, Enum):
    COPY = "copy"
    LINK = "link"


@dataclass
class ExportConfig:
    vault_path: str = ""
    root_folder: str = ""
    include_screenshots: bool = True
    include_video_link: bool = False
    export_mode: ExportMode = ExportMode.COPY
    daily_template: str | None = None
    session_template: str | None = None
    weekly_focus_weight: int = 70
    weekly_target_minutes: int = 1200


@dataclass
class ExportOutcome:
    daily_note_path: Path
    session_paths: list[Path]
    index_note_path: Path | None = None
    week_index_path: Path | None = None
    weekly_note_path: Path | None = None
    overview_path: Path | None = None
    warnings: list[str] = field(default_factory=list)

    def render_message(self) -> str:
        lines = [
            f"Exported daily note: {self.daily_note_path}",
            f"Sessions: {len(self.session_paths)}",
        ]
        if self.index_note_path is not None:
            lines.append(f"Month index: {self.index_note_path}")
        if self.week_index_path is not None:
            lines.append(f"Week index: {self.week_index_path}")
        if self.weekly_note_path is not None:
            lines.append(f"Weekly report: {self.weekly_note_path}")
        if self.overview_path is not None:
            lines.append(f"Overview: {self.overview_path}")
        if self.warnings:
            lines.extend(["", "Warnings:"])
            lines.extend(f"- {warning}" for warning in self.warnings)
        return "\n".join(lines)


@dataclass(frozen=True)
class WeekSummaryPreview:
    week_label: str
    week_start: str
    week_end: str
    total_sessions: int
    total_minutes: int
    avg_session_minutes: int
    top_categories: str
    focus_minutes: int
    distraction_minutes: int
    focus_ratio: int
    distraction_ratio: int
    focus_score: int
    effort_score: int
    productivity_score: int
    focus_weight: int
    effort_weight: int
    target_minutes: int
