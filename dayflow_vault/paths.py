from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .models import Session

APP_DIR_NAME = "DayflowVault"

_UNSAFE_FILENAME_CHARS = '/\\:*?"<>|'


def data_directory() -> Path:
    local_appdata = os.environ.get("LOCALAPPDATA")
    if local_appdata:
        base = Path(local_appdata)
    else:
        base = Path.home() / "AppData" / "Local"
    return base / APP_DIR_NAME


def database_path() -> Path:
    return data_directory() / "dayflow.sqlite3"


def sanitize_filename(raw: str) -> str:
    return "".join("_" if char in _UNSAFE_FILENAME_CHARS else char for char in raw)


def to_file_url(path: str) -> str:
    normalized = path.replace("\\", "/").replace(" ", "%20")
    if ":/" in normalized:
        return f"file:///{normalized}"
    return f"file://{normalized}"


def session_note_filename(session: Session) -> str:
    return "{}_{}-{}_session-{}.md".format(
        sanitize_filename(session.start_time.strftime("%Y-%m-%d")),
        sanitize_filename(session.start_time.strftime("%H%M")),
        sanitize_filename(session.end_time.strftime("%H%M")),
        session.id or 0,
    )


@dataclass(frozen=True)
class VaultLayout:
    """Deterministic locations of every exported artifact for one vault."""

    root: Path

    @classmethod
    def from_vault(cls, vault_path: str, root_folder: str = "") -> "VaultLayout":
        vault_root = Path(vault_path.strip())
        folder = (root_folder or "").strip()
        return cls(vault_root / folder if folder else vault_root)

    @property
    def daily_dir(self) -> Path:
        return self.root / "Daily"

    @property
    def index_dir(self) -> Path:
        return self.root / "Index"

    @property
    def weekly_dir(self) -> Path:
        return self.root / "Weekly"

    def sessions_dir(self, day: str) -> Path:
        return self.root / "Sessions" / sanitize_filename(day)

    def assets_dir(self, day: str) -> Path:
        return self.root / "Assets" / sanitize_filename(day)

    def daily_note(self, day: str) -> Path:
        return self.daily_dir / f"{sanitize_filename(day)}.md"

    def session_note(self, day: str, session: Session) -> Path:
        return self.sessions_dir(day) / session_note_filename(session)

    def month_index(self, month_label: str) -> Path:
        return self.index_dir / f"sessions-{month_label}.md"

    def week_index(self, week_label: str) -> Path:
        return self.index_dir / f"weeks-{week_label}.md"

    def weekly_note(self, week_label: str) -> Path:
        return self.weekly_dir / f"{week_label}.md"

    def overview(self) -> Path:
        return self.index_dir / "overview.md"

    def relative(self, path: Path) -> str:
        """Vault-relative reference with forward slashes, as notes link to it."""
        return path.relative_to(self.root).as_posix()
