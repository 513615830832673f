from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from .ai import SUPPORTED_PROVIDERS, AINarrator
from .database import DayflowVaultDatabase
from .models import ExportConfig, ExportMode

logger = logging.getLogger(__name__)

VAULT_PATH_SETTING_KEY = "vault_path"
ROOT_FOLDER_SETTING_KEY = "vault_root_folder"
INCLUDE_SCREENSHOTS_SETTING_KEY = "vault_include_screenshots"
INCLUDE_VIDEO_LINK_SETTING_KEY = "vault_include_video_link"
EXPORT_MODE_SETTING_KEY = "vault_export_mode"
DAILY_TEMPLATE_SETTING_KEY = "vault_daily_template"
SESSION_TEMPLATE_SETTING_KEY = "vault_session_template"
WEEKLY_FOCUS_WEIGHT_SETTING_KEY = "weekly_focus_weight"
WEEKLY_TARGET_MINUTES_SETTING_KEY = "weekly_target_minutes"
AI_PROVIDER_SETTING_KEY = "ai_provider"
AI_MODEL_SETTING_KEY = "ai_model"
AI_API_KEY_SETTING_KEY = "ai_api_key"
AI_ENDPOINT_SETTING_KEY = "ai_endpoint"

CONFIG_PACKAGE_VERSION = 1

_EXPORT_FIELDS = {
    "vault_path": VAULT_PATH_SETTING_KEY,
    "root_folder": ROOT_FOLDER_SETTING_KEY,
    "include_screenshots": INCLUDE_SCREENSHOTS_SETTING_KEY,
    "include_video_link": INCLUDE_VIDEO_LINK_SETTING_KEY,
    "export_mode": EXPORT_MODE_SETTING_KEY,
    "daily_template": DAILY_TEMPLATE_SETTING_KEY,
    "session_template": SESSION_TEMPLATE_SETTING_KEY,
    "weekly_focus_weight": WEEKLY_FOCUS_WEIGHT_SETTING_KEY,
    "weekly_target_minutes": WEEKLY_TARGET_MINUTES_SETTING_KEY,
}

_AI_FIELDS = {
    "provider": AI_PROVIDER_SETTING_KEY,
    "model": AI_MODEL_SETTING_KEY,
    "api_key": AI_API_KEY_SETTING_KEY,
    "endpoint": AI_ENDPOINT_SETTING_KEY,
}


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


def _as_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _as_template(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def normalize_export_config(raw: Mapping[str, Any]) -> ExportConfig:
    """Build an ExportConfig from loosely typed values, filling defaults."""
    defaults = ExportConfig()
    mode = raw.get("export_mode") or defaults.export_mode
    mode_text = (mode.value if isinstance(mode, ExportMode) else str(mode)).strip().lower()
    try:
        export_mode = ExportMode(mode_text)
    except ValueError:
        logger.warning("Unknown export mode %r, using %s", mode_text, defaults.export_mode.value)
        export_mode = defaults.export_mode

    focus_weight = _as_int(raw.get("weekly_focus_weight"), defaults.weekly_focus_weight)
    target_minutes = _as_int(raw.get("weekly_target_minutes"), defaults.weekly_target_minutes)

    return ExportConfig(
        vault_path=str(raw.get("vault_path") or "").strip(),
        root_folder=str(raw.get("root_folder") or "").strip(),
        include_screenshots=_as_bool(raw.get("include_screenshots"), defaults.include_screenshots),
        include_video_link=_as_bool(raw.get("include_video_link"), defaults.include_video_link),
        export_mode=export_mode,
        daily_template=_as_template(raw.get("daily_template")),
        session_template=_as_template(raw.get("session_template")),
        weekly_focus_weight=min(100, max(0, focus_weight)),
        weekly_target_minutes=max(1, target_minutes),
    )


def export_config_to_dict(config: ExportConfig) -> dict[str, Any]:
    return {
        "vault_path": config.vault_path,
        "root_folder": config.root_folder,
        "include_screenshots": config.include_screenshots,
        "include_video_link": config.include_video_link,
        "export_mode": config.export_mode.value,
        "daily_template": config.daily_template,
        "session_template": config.session_template,
        "weekly_focus_weight": config.weekly_focus_weight,
        "weekly_target_minutes": config.weekly_target_minutes,
    }


def load_export_config(db: DayflowVaultDatabase) -> ExportConfig:
    raw = {name: db.get_setting(key) for name, key in _EXPORT_FIELDS.items()}
    return normalize_export_config(raw)


def save_export_config(db: DayflowVaultDatabase, config: ExportConfig) -> None:
    for name, value in export_config_to_dict(config).items():
        if isinstance(value, bool):
            text = "1" if value else "0"
        elif value is None:
            text = ""
        else:
            text = str(value)
        db.set_setting(_EXPORT_FIELDS[name], text)


def load_ai_settings(db: DayflowVaultDatabase) -> dict[str, str]:
    return {name: (db.get_setting(key, "") or "") for name, key in _AI_FIELDS.items()}


def save_ai_settings(db: DayflowVaultDatabase, settings: Mapping[str, str]) -> None:
    for name, key in _AI_FIELDS.items():
        db.set_setting(key, str(settings.get(name, "") or "").strip())


def build_narrator(settings: Mapping[str, str]) -> AINarrator | None:
    provider = str(settings.get("provider", "")).strip()
    model = str(settings.get("model", "")).strip()
    if not provider or not model:
        return None
    return AINarrator(
        provider=provider,
        api_key=str(settings.get("api_key", "")),
        model=model,
        endpoint=str(settings.get("endpoint", "")),
    )


def build_config_package(
    config: ExportConfig,
    ai_settings: Mapping[str, str],
    include_secrets: bool = False,
) -> dict[str, Any]:
    ai = {name: str(ai_settings.get(name, "") or "") for name in _AI_FIELDS}
    if not include_secrets:
        ai["api_key"] = ""
    return {
        "version": CONFIG_PACKAGE_VERSION,
        "exported_at": datetime.now().astimezone().isoformat(),
        "include_secrets": include_secrets,
        "app_config": {
            "export": export_config_to_dict(config),
            "ai": ai,
        },
    }


def read_config_package(payload: Mapping[str, Any]) -> tuple[ExportConfig, dict[str, str]]:
    """Validate an exported settings package and fill any missing section."""
    version = _as_int(payload.get("version"), 0)
    if version < 1 or version > CONFIG_PACKAGE_VERSION:
        raise ValueError(f"Unsupported config package version: {payload.get('version')}")
    app_config = payload.get("app_config")
    if not isinstance(app_config, Mapping):
        raise ValueError("Config package is missing app_config.")

    export_section = app_config.get("export")
    ai_section = app_config.get("ai")
    config = normalize_export_config(export_section if isinstance(export_section, Mapping) else {})
    if not isinstance(ai_section, Mapping):
        ai_section = {}
    ai = {name: str(ai_section.get(name, "") or "").strip() for name in _AI_FIELDS}
    provider = ai["provider"].lower()
    if provider and provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported provider in config package: {ai['provider']}")
    ai["provider"] = provider
    return config, ai
