from __future__ import annotations

from typing import Mapping


def render_template(template: str | None, fallback: str, values: Mapping[str, str]) -> str:
    """Fill ``{{name}}`` placeholders in the user template, or in ``fallback``.

    A blank user template counts as absent. Placeholders without a value are
    left in the output untouched.
    """
    content = template if template is not None and template.strip() else fallback
    for key, value in values.items():
        content = content.replace("{{" + key + "}}", str(value))
    return content
