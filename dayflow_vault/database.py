from __future__ import annotations

import json
import sqlite3
import threading
from collections import Counter, defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from .categories import parse_tags, tag_categories
from .models import (
    ActivityRollup,
    DaySummary,
    DeviceStat,
    Frame,
    Session,
    TimelineCardRecord,
    UsagePattern,
)

MAX_MAIN_CATEGORIES = 3


class DayflowVaultDatabase:
    def __init__(self, db_file: Path):
        self._db_file = Path(db_file)
        self._db_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_file, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def _connection(self):
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    summary TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    video_path TEXT,
                    device_name TEXT NOT NULL DEFAULT '',
                    device_type TEXT NOT NULL DEFAULT ''
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_start_time
                ON sessions(start_time);

                CREATE TABLE IF NOT EXISTS timeline_cards (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT '',
                    subcategory TEXT NOT NULL DEFAULT '',
                    title TEXT NOT NULL DEFAULT '',
                    summary TEXT NOT NULL DEFAULT ''
                );

                CREATE INDEX IF NOT EXISTS idx_timeline_cards_session
                ON timeline_cards(session_id, start_time);

                CREATE TABLE IF NOT EXISTS frames (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    captured_at TEXT NOT NULL,
                    file_path TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_frames_session
                ON frames(session_id, captured_at);

                CREATE TABLE IF NOT EXISTS day_summaries (
                    day TEXT PRIMARY KEY,
                    summary_text TEXT NOT NULL,
                    usage_patterns TEXT NOT NULL DEFAULT '[]',
                    device_stats TEXT NOT NULL DEFAULT '[]',
                    active_device_count INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            conn.commit()

    def insert_session(
        self,
        start_time: datetime,
        end_time: datetime,
        title: str = "",
        summary: str = "",
        tags: list[dict[str, object]] | None = None,
        video_path: str | None = None,
        device_name: str = "",
        device_type: str = "",
    ) -> int:
        with self._lock, self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO sessions(
                    start_time, end_time, title, summary, tags, video_path, device_name, device_type
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    _to_utc(start_time).isoformat(),
                    _to_utc(end_time).isoformat(),
                    title or "",
                    summary or "",
                    json.dumps(tags or []),
                    video_path,
                    device_name or "",
                    device_type or "",
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def insert_timeline_card(
        self,
        session_id: int,
        start_time: str,
        end_time: str,
        category: str,
        title: str,
        summary: str = "",
        subcategory: str = "",
    ) -> int:
        with self._lock, self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO timeline_cards(
                    session_id, start_time, end_time, category, subcategory, title, summary
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(session_id),
                    start_time.strip(),
                    end_time.strip(),
                    category.strip(),
                    subcategory.strip(),
                    title.strip(),
                    summary.strip(),
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def insert_frame(self, session_id: int, captured_at: datetime, file_path: Path | str) -> int:
        with self._lock, self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO frames(session_id, captured_at, file_path) VALUES (?, ?, ?)",
                (int(session_id), _to_utc(captured_at).isoformat(), str(file_path)),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def list_sessions_for_day(self, day: str) -> list[Session]:
        with self._lock, self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, start_time, end_time, title, summary, tags, video_path, device_name, device_type
                FROM sessions
                WHERE substr(start_time, 1, 10) = ?
                ORDER BY start_time ASC, id ASC
                """,
                (day,),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def list_timeline_cards_for_session(self, session_id: int) -> list[TimelineCardRecord]:
        with self._lock, self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, session_id, start_time, end_time, category, subcategory, title, summary
                FROM timeline_cards
                WHERE session_id = ?
                ORDER BY start_time ASC, id ASC
                """,
                (int(session_id),),
            ).fetchall()
        return [
            TimelineCardRecord(
                id=int(row["id"]),
                session_id=int(row["session_id"]),
                start_time=str(row["start_time"]),
                end_time=str(row["end_time"]),
                category=str(row["category"]),
                subcategory=str(row["subcategory"]),
                title=str(row["title"]),
                summary=str(row["summary"]),
            )
            for row in rows
        ]

    def list_frames_for_session(self, session_id: int) -> list[Frame]:
        with self._lock, self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, session_id, captured_at, file_path
                FROM frames
                WHERE session_id = ?
                ORDER BY captured_at ASC, id ASC
                """,
                (int(session_id),),
            ).fetchall()
        return [
            Frame(
                id=int(row["id"]),
                session_id=int(row["session_id"]),
                captured_at=_parse_utc(str(row["captured_at"])),
                file_path=str(row["file_path"]),
            )
            for row in rows
        ]

    def count_frames_for_session(self, session_id: int) -> int:
        with self._lock, self._connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM frames WHERE session_id = ?",
                (int(session_id),),
            ).fetchone()
        return int(row["total"]) if row is not None else 0

    def list_activities(self, start_day: str, end_day: str) -> list[ActivityRollup]:
        """Per-day rollups for every day in ``[start_day, end_day]`` with sessions."""
        with self._lock, self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, start_time, end_time, title, summary, tags, video_path, device_name, device_type
                FROM sessions
                WHERE substr(start_time, 1, 10) BETWEEN ? AND ?
                ORDER BY start_time ASC, id ASC
                """,
                (start_day, end_day),
            ).fetchall()

        sessions_by_day: dict[str, list[Session]] = defaultdict(list)
        for row in rows:
            session = self._row_to_session(row)
            sessions_by_day[session.start_time.date().isoformat()].append(session)

        rollups: list[ActivityRollup] = []
        for day in sorted(sessions_by_day):
            sessions = sessions_by_day[day]
            categories: Counter[str] = Counter()
            for session in sessions:
                for category in tag_categories(parse_tags(session.tags)):
                    categories[category.value] += 1
            rollups.append(
                ActivityRollup(
                    date=day,
                    session_count=len(sessions),
                    total_duration_minutes=sum(session.duration_minutes for session in sessions),
                    main_categories=[name for name, _ in categories.most_common(MAX_MAIN_CATEGORIES)],
                )
            )
        return rollups

    def save_day_summary(self, summary: DaySummary) -> None:
        now = datetime.now().astimezone().isoformat()
        usage_patterns = [{"label": p.label, "value": p.value} for p in summary.usage_patterns]
        device_stats = [
            {
                "name": stat.name,
                "device_type": stat.device_type,
                "total_time": stat.total_time,
                "screenshots": stat.screenshots,
            }
            for stat in summary.device_stats
        ]
        with self._lock, self._connection() as conn:
            conn.execute(
                """
                INSERT INTO day_summaries(
                    day, summary_text, usage_patterns, device_stats, active_device_count, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(day) DO UPDATE SET
                    summary_text = excluded.summary_text,
                    usage_patterns = excluded.usage_patterns,
                    device_stats = excluded.device_stats,
                    active_device_count = excluded.active_device_count,
                    updated_at = excluded.updated_at
                """,
                (
                    summary.date,
                    summary.summary_text.strip(),
                    json.dumps(usage_patterns),
                    json.dumps(device_stats),
                    int(summary.active_device_count),
                    now,
                ),
            )
            conn.commit()

    def get_day_summary(self, day: str) -> DaySummary | None:
        with self._lock, self._connection() as conn:
            row = conn.execute(
                """
                SELECT day, summary_text, usage_patterns, device_stats, active_device_count
                FROM day_summaries
                WHERE day = ?
                """,
                (day,),
            ).fetchone()
        if row is None:
            return None

        return DaySummary(
            date=str(row["day"]),
            summary_text=str(row["summary_text"]),
            usage_patterns=[
                UsagePattern(label=str(entry.get("label", "")), value=str(entry.get("value", "")))
                for entry in _load_json_list(row["usage_patterns"])
            ],
            device_stats=[
                DeviceStat(
                    name=str(entry.get("name", "")),
                    device_type=str(entry.get("device_type", "")),
                    total_time=str(entry.get("total_time", "")),
                    screenshots=int(entry.get("screenshots", 0) or 0),
                )
                for entry in _load_json_list(row["device_stats"])
            ],
            active_device_count=int(row["active_device_count"]),
        )

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        with self._lock, self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM app_settings WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return default
        return str(row["value"])

    def set_setting(self, key: str, value: str) -> None:
        with self._lock, self._connection() as conn:
            conn.execute(
                """
                INSERT INTO app_settings(key, value)
                VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
            conn.commit()

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        video_path = row["video_path"]
        return Session(
            id=int(row["id"]),
            start_time=_parse_utc(str(row["start_time"])),
            end_time=_parse_utc(str(row["end_time"])),
            title=str(row["title"]),
            summary=str(row["summary"]),
            tags=str(row["tags"]),
            video_path=str(video_path) if video_path else None,
            device_name=str(row["device_name"]),
            device_type=str(row["device_type"]),
        )


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_utc(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid stored timestamp: {value!r}") from exc
    return _to_utc(parsed)


def _load_json_list(raw: object) -> list[dict[str, object]]:
    try:
        parsed = json.loads(str(raw))
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    return [entry for entry in parsed if isinstance(entry, dict)]
