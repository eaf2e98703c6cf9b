"""{{token}} substitution for certificate templates."""
import re
from typing import Any, Mapping

SIGNATURE_SLOTS = 4

_REMAINING_TOKEN = re.compile(r"\{\{[^}]+\}\}")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def fill_placeholders(html: str, data: Mapping[str, Any]) -> str:
    """
    Replace every {{key}} whose key is in data, then blank any token left over.

    Unknown tokens are removed rather than reported so that templates and
    field sets can drift between versions without breaking rendering.
    """
    result = html
    for key, value in data.items():
        result = result.replace("{{" + str(key) + "}}", _as_text(value))
    return _REMAINING_TOKEN.sub("", result)


def signature_display_flags(data: Mapping[str, Any]) -> dict[str, str]:
    """
    Compute sig{i}Display for each signature slot.

    "block" when the slot has an image URL, otherwise "none" so the template
    falls back to a name-only line.
    """
    return {
        f"sig{i}Display": "block" if data.get(f"sig{i}Url") else "none"
        for i in range(1, SIGNATURE_SLOTS + 1)
    }
