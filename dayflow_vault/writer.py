from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Sequence

from PIL import Image

from .models import ExportConfig, ExportMode, Frame
from .paths import VaultLayout, to_file_url

logger = logging.getLogger(__name__)

NO_SCREENSHOTS = "No screenshots available"

_JPEG_SUFFIXES = {".jpg", ".jpeg"}


def pick_screenshots(frames: Sequence[Frame]) -> list[Frame]:
    """First and last frame of a session, collapsed to one when they match."""
    if not frames:
        return []
    first = frames[0]
    last = frames[-1]
    if len(frames) == 1 or first.file_path == last.file_path:
        return [first]
    return [first, last]


class ArtifactWriter:
    def __init__(self, config: ExportConfig, layout: VaultLayout):
        self._config = config
        self._layout = layout

    @property
    def layout(self) -> VaultLayout:
        return self._layout

    def ensure_day_directories(self, day: str) -> None:
        self._layout.daily_dir.mkdir(parents=True, exist_ok=True)
        self._layout.sessions_dir(day).mkdir(parents=True, exist_ok=True)
        if self._config.include_screenshots:
            self._layout.assets_dir(day).mkdir(parents=True, exist_ok=True)

    def write_note(self, path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", path)
        return path

    def render_screenshots(
        self,
        frames: Sequence[Frame],
        day: str,
        session_id: int,
        warnings: list[str],
    ) -> str:
        targets = pick_screenshots(frames)
        if not targets:
            return NO_SCREENSHOTS

        lines: list[str] = []
        for index, frame in enumerate(targets):
            try:
                lines.append(self.prepare_screenshot(frame, day, session_id, index))
            except (OSError, ValueError) as exc:
                logger.warning("Screenshot %s of session %s failed: %s", index, session_id, exc)
                warnings.append(f"Session {session_id} screenshot {index} failed: {exc}")
                lines.append(f"Screenshot failed: {exc}")
        return "\n".join(lines)

    def prepare_screenshot(self, frame: Frame, day: str, session_id: int, index: int) -> str:
        source = Path(frame.file_path)
        if not source.exists():
            raise FileNotFoundError(f"Screenshot file not found: {frame.file_path}")

        if self._config.export_mode is ExportMode.LINK:
            return f"![]({to_file_url(frame.file_path)})"

        assets_dir = self._layout.assets_dir(day)
        assets_dir.mkdir(parents=True, exist_ok=True)
        target = assets_dir / f"session-{session_id}-{index}.jpg"
        _copy_as_jpeg(source, target)
        return f"![]({self._layout.relative(target)})"


def _copy_as_jpeg(source: Path, target: Path) -> None:
    if source.suffix.lower() in _JPEG_SUFFIXES:
        shutil.copyfile(source, target)
        return
    with Image.open(source) as image:
        converted = image if image.mode == "RGB" else image.convert("RGB")
        converted.save(target, format="JPEG", quality=85, optimize=True)
