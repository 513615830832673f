from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ActivityCategory(str, Enum):
    WORK = "work"
    COMMUNICATION = "communication"
    LEARNING = "learning"
    PERSONAL = "personal"
    IDLE = "idle"
    OTHER = "other"


_CATEGORY_ALIASES = {
    "work": ActivityCategory.WORK,
    "communication": ActivityCategory.COMMUNICATION,
    "meeting": ActivityCategory.COMMUNICATION,
    "learning": ActivityCategory.LEARNING,
    "research": ActivityCategory.LEARNING,
    "personal": ActivityCategory.PERSONAL,
    "idle": ActivityCategory.IDLE,
    "break": ActivityCategory.IDLE,
}


def classify_category(raw: str | None) -> ActivityCategory:
    """Map a free-text category label onto one of the six canonical buckets.

    Never fails: empty, ``None`` and unrecognised labels all land in OTHER.
    """
    return _CATEGORY_ALIASES.get((raw or "").lower(), ActivityCategory.OTHER)


def parse_tags(raw: str | None) -> list[dict[str, Any]]:
    if not raw or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    return [entry for entry in parsed if isinstance(entry, dict)]


def tag_categories(tags: list[dict[str, Any]]) -> list[ActivityCategory]:
    return [classify_category(str(tag.get("category", ""))) for tag in tags]


def format_tags(tags: list[dict[str, Any]]) -> str:
    if not tags:
        return "[]"
    values = ", ".join(category.value for category in tag_categories(tags))
    return f"[{values}]"
