from __future__ import annotations

import logging
from pathlib import Path

from .aggregation import WeekSummaryData, build_month_rollup, build_week_summary, month_label, parse_day
from .metrics import build_session_metrics
from .models import ExportConfig, ExportOutcome, Session, WeekSummaryPreview
from .notes import (
    render_daily_note,
    render_month_index,
    render_overview,
    render_session_note,
    render_week_index,
    render_weekly_note,
)
from .paths import VaultLayout
from .store import ActivityStore, DaySummarizer
from .writer import ArtifactWriter

logger = logging.getLogger(__name__)


class ExportError(RuntimeError):
    """Raised when an export cannot produce the daily note at all."""


class VaultExporter:
    """Writes one day of activity into a note vault.

    Only the preconditions, the directory setup, the day summary, the session
    listing and the daily note itself can abort an export. Every other artifact
    is best effort: its failure is recorded in ``ExportOutcome.warnings`` and
    the export moves on. Re-running an export for the same day rewrites every
    artifact in place.
    """

    def __init__(self, config: ExportConfig):
        self._config = config

    @property
    def config(self) -> ExportConfig:
        return self._config

    def export_day(
        self,
        store: ActivityStore,
        summarizer: DaySummarizer,
        day: str,
        force_refresh: bool = False,
    ) -> ExportOutcome:
        layout = self._resolve_layout()
        writer = ArtifactWriter(self._config, layout)

        try:
            writer.ensure_day_directories(day)
        except OSError as exc:
            raise ExportError(f"Could not create vault folders: {exc}") from exc

        try:
            day_summary = summarizer.generate_day_summary(day, force_refresh)
        except Exception as exc:  # noqa: BLE001
            raise ExportError(f"Day summary generation failed: {exc}") from exc

        try:
            sessions = store.list_sessions_for_day(day)
        except Exception as exc:  # noqa: BLE001
            raise ExportError(f"Could not list sessions for {day}: {exc}") from exc

        warnings: list[str] = []
        session_paths: list[Path] = []
        session_links: list[str] = []
        for session in sessions:
            exported = self._export_session(store, writer, session, day, warnings)
            if exported is not None:
                session_paths.append(exported)
                session_links.append(f"[[{layout.relative(exported)}]]")

        daily_note_path = layout.daily_note(day)
        try:
            writer.write_note(daily_note_path, render_daily_note(self._config, day_summary, session_links))
        except OSError as exc:
            raise ExportError(f"Could not write daily note {daily_note_path}: {exc}") from exc

        index_note_path = self._export_month_index(store, writer, day, warnings)

        week_index_path: Path | None = None
        weekly_note_path: Path | None = None
        week_summary = self._build_week_summary(store, day, warnings)
        if week_summary is not None:
            week_index_path = self._export_week_index(writer, week_summary, warnings)
            weekly_note_path = self._export_weekly_note(writer, week_summary, warnings)

        overview_path = self._export_overview(writer, day, week_summary, warnings)

        logger.info(
            "Exported %s: %d session notes, %d warnings",
            day,
            len(session_paths),
            len(warnings),
        )
        return ExportOutcome(
            daily_note_path=daily_note_path,
            session_paths=session_paths,
            index_note_path=index_note_path,
            week_index_path=week_index_path,
            weekly_note_path=weekly_note_path,
            overview_path=overview_path,
            warnings=warnings,
        )

    def preview_week_summary(self, store: ActivityStore, day: str) -> WeekSummaryPreview:
        summary = build_week_summary(store, day, self._config)
        metrics = summary.focus_metrics
        score = summary.score_config
        focus_score, effort_score, productivity_score = metrics.scores(score)
        return WeekSummaryPreview(
            week_label=summary.week_label,
            week_start=summary.week_start,
            week_end=summary.week_end,
            total_sessions=summary.total_sessions,
            total_minutes=summary.total_minutes,
            avg_session_minutes=summary.avg_session_minutes,
            top_categories=summary.top_categories,
            focus_minutes=metrics.focus_minutes,
            distraction_minutes=metrics.distraction_minutes,
            focus_ratio=metrics.focus_ratio,
            distraction_ratio=metrics.distraction_ratio,
            focus_score=focus_score,
            effort_score=effort_score,
            productivity_score=productivity_score,
            focus_weight=score.focus_weight,
            effort_weight=score.effort_weight,
            target_minutes=score.target_minutes,
        )

    def _resolve_layout(self) -> VaultLayout:
        vault_path = self._config.vault_path.strip()
        if not vault_path:
            raise ExportError("Vault path is not configured.")
        if not Path(vault_path).exists():
            raise ExportError(f"Vault path does not exist: {vault_path}")
        return VaultLayout.from_vault(vault_path, self._config.root_folder)

    def _export_session(
        self,
        store: ActivityStore,
        writer: ArtifactWriter,
        session: Session,
        day: str,
        warnings: list[str],
    ) -> Path | None:
        session_id = session.id or 0
        try:
            cards = store.list_timeline_cards_for_session(session_id)
            metrics = build_session_metrics(cards, session.duration_minutes)
            screenshots = ""
            if self._config.include_screenshots:
                frames = store.list_frames_for_session(session_id)
                screenshots = writer.render_screenshots(frames, day, session_id, warnings)
            content = render_session_note(self._config, session, cards, metrics, screenshots)
            return writer.write_note(writer.layout.session_note(day, session), content)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Session %s export failed: %s", session_id, exc)
            warnings.append(f"Session {session_id} export failed: {exc}")
            return None

    def _export_month_index(
        self,
        store: ActivityStore,
        writer: ArtifactWriter,
        day: str,
        warnings: list[str],
    ) -> Path | None:
        try:
            rollup = build_month_rollup(store, day)
            return writer.write_note(writer.layout.month_index(rollup.label), render_month_index(rollup))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Month index failed: %s", exc)
            warnings.append(f"Month index generation failed: {exc}")
            return None

    def _build_week_summary(
        self,
        store: ActivityStore,
        day: str,
        warnings: list[str],
    ) -> WeekSummaryData | None:
        try:
            return build_week_summary(store, day, self._config)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Week summary failed: %s", exc)
            warnings.append(f"Week summary data failed: {exc}")
            return None

    def _export_week_index(
        self,
        writer: ArtifactWriter,
        summary: WeekSummaryData,
        warnings: list[str],
    ) -> Path | None:
        try:
            return writer.write_note(writer.layout.week_index(summary.week_label), render_week_index(summary))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Week index failed: %s", exc)
            warnings.append(f"Week index generation failed: {exc}")
            return None

    def _export_weekly_note(
        self,
        writer: ArtifactWriter,
        summary: WeekSummaryData,
        warnings: list[str],
    ) -> Path | None:
        try:
            return writer.write_note(writer.layout.weekly_note(summary.week_label), render_weekly_note(summary))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Weekly report failed: %s", exc)
            warnings.append(f"Weekly report generation failed: {exc}")
            return None

    def _export_overview(
        self,
        writer: ArtifactWriter,
        day: str,
        week_summary: WeekSummaryData | None,
        warnings: list[str],
    ) -> Path | None:
        try:
            content = render_overview(day, month_label(parse_day(day)), week_summary)
            return writer.write_note(writer.layout.overview(), content)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Overview failed: %s", exc)
            warnings.append(f"Overview generation failed: {exc}")
            return None
