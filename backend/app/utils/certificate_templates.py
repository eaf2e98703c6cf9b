"""Certificate template store: the seven fixed HTML designs on disk."""
import logging
from pathlib import Path
from typing import Optional

from app.config import get_settings
from app.exceptions import InvalidTemplateId, TemplateNotFound

logger = logging.getLogger(__name__)

MIN_TEMPLATE_ID = 1
MAX_TEMPLATE_ID = 7

TEMPLATES = [
    {"id": 1, "name": "Classic Formal", "description": "Traditional academic style"},
    {"id": 2, "name": "Modern Minimal", "description": "Sleek dark design"},
    {"id": 3, "name": "Royal Blue", "description": "Clean white body with blue header"},
    {"id": 4, "name": "Emerald Tech", "description": "Green split panel"},
    {"id": 5, "name": "Vintage Parchment", "description": "Old-world heritage style"},
    {"id": 6, "name": "Vibrant Purple", "description": "Contemporary gradient"},
    {"id": 7, "name": "Sunrise Orange", "description": "Energetic warm design"},
]

# Keyed by resolved file path so a changed CERTIFICATE_TEMPLATE_DIR is not served stale
_template_cache: dict[str, str] = {}


def list_templates() -> list[dict]:
    """Return the catalogue of available designs."""
    return [dict(t) for t in TEMPLATES]


def validate_template_id(template_id) -> int:
    """
    Coerce a template id to int and check it is in range.

    Accepts ints and numeric strings (query parameters arrive as text).
    Booleans are rejected even though they are ints in Python.
    """
    if isinstance(template_id, bool):
        raise InvalidTemplateId(f"Invalid templateId: {template_id}. Must be 1-7.")
    try:
        value = int(template_id)
    except (TypeError, ValueError):
        raise InvalidTemplateId(f"Invalid templateId: {template_id}. Must be 1-7.")
    if isinstance(template_id, float) and template_id != value:
        raise InvalidTemplateId(f"Invalid templateId: {template_id}. Must be 1-7.")
    if value < MIN_TEMPLATE_ID or value > MAX_TEMPLATE_ID:
        raise InvalidTemplateId(f"Invalid templateId: {template_id}. Must be 1-7.")
    return value


def template_path(template_id: int, template_dir: Optional[str] = None) -> Path:
    base = Path(template_dir or get_settings().CERTIFICATE_TEMPLATE_DIR)
    return base / f"template{template_id}.html"


def load_template(template_id, template_dir: Optional[str] = None) -> str:
    """
    Read the raw HTML for a template id.

    Raises:
        InvalidTemplateId: id is not an integer in [1, 7]
        TemplateNotFound: the backing file is missing
    """
    valid_id = validate_template_id(template_id)
    path = template_path(valid_id, template_dir)
    cache_key = str(path.resolve())

    cached = _template_cache.get(cache_key)
    if cached is not None:
        return cached

    if not path.is_file():
        raise TemplateNotFound(f"Template file not found: template{valid_id}.html")

    html = path.read_text(encoding="utf-8")
    _template_cache[cache_key] = html
    logger.debug(f"Loaded certificate template {valid_id} from {path}")
    return html


def clear_template_cache() -> None:
    _template_cache.clear()
