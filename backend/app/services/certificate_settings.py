"""
Effective certificate settings.

Settings are resolved from an ordered list of layers: configured defaults,
then the event's stored CertificateSettings row, then per-request overrides.
Each layer is a flat dict in the same shape as the result; merge_layers
applies them left to right and ignores empty values.
"""
import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models.certificate import CertificateSettings
from app.utils.placeholders import SIGNATURE_SLOTS

logger = logging.getLogger(__name__)

CUSTOM_FIELDS_KEY = "customFields"


def merge_layers(base: dict, *layers: Optional[dict]) -> dict:
    """
    Merge override layers onto base, last layer wins.

    Falsy values (None, "", 0, empty dict) never override. customFields maps
    are merged key by key, so a request can add or replace single fields
    without dropping the ones stored for the event.
    """
    result = dict(base)
    result[CUSTOM_FIELDS_KEY] = dict(base.get(CUSTOM_FIELDS_KEY) or {})

    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if not value:
                continue
            if key == CUSTOM_FIELDS_KEY:
                result[CUSTOM_FIELDS_KEY].update(value)
            else:
                result[key] = value

    return result


def default_layer(settings: Optional[Settings] = None) -> dict:
    """System defaults as a base layer."""
    settings = settings or get_settings()
    layer: dict[str, Any] = {
        "collegeName": settings.COLLEGE_NAME,
        "collegeTagline": settings.COLLEGE_TAGLINE,
        "logoLeft": settings.LOGO_LEFT_URL,
        "logoRight": settings.LOGO_RIGHT_URL,
        "templateId": 1,
        CUSTOM_FIELDS_KEY: {},
    }
    for i in range(1, SIGNATURE_SLOTS + 1):
        layer[f"sig{i}Name"] = getattr(settings, f"SIG{i}_NAME")
        layer[f"sig{i}Title"] = getattr(settings, f"SIG{i}_TITLE")
        layer[f"sig{i}Url"] = getattr(settings, f"SIG{i}_URL")
    return layer


def layer_from_settings(doc: Optional[CertificateSettings]) -> dict:
    """
    Translate a stored settings row into an override layer.

    Signatures map positionally onto slots 1-4; extra entries are ignored.
    """
    if doc is None:
        return {}

    layer: dict[str, Any] = {
        "templateId": doc.template_id,
        "logoLeft": doc.logo_left,
        "logoRight": doc.logo_right,
        CUSTOM_FIELDS_KEY: dict(doc.custom_fields or {}),
    }
    for index, sig in enumerate((doc.signatures or [])[:SIGNATURE_SLOTS]):
        if not isinstance(sig, dict):
            continue
        slot = index + 1
        layer[f"sig{slot}Name"] = sig.get("name")
        layer[f"sig{slot}Title"] = sig.get("title")
        layer[f"sig{slot}Url"] = sig.get("image_url")
    return layer


def request_layer(custom_fields: Optional[dict] = None, template_id: Optional[int] = None) -> dict:
    """Per-request overrides; custom fields merge onto the stored map."""
    layer: dict[str, Any] = {}
    if template_id:
        layer["templateId"] = template_id
    if custom_fields:
        layer[CUSTOM_FIELDS_KEY] = dict(custom_fields)
    return layer


async def get_settings_doc(session: AsyncSession, event_id: int) -> Optional[CertificateSettings]:
    result = await session.execute(
        select(CertificateSettings).where(CertificateSettings.event_id == event_id)
    )
    return result.scalar_one_or_none()


async def resolve_effective_settings(
    session: AsyncSession,
    event_id: int,
    custom_fields: Optional[dict] = None,
    template_id: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> dict:
    """
    Build the effective settings for an event.

    A missing settings row is not an error; the defaults are returned.
    """
    doc = await get_settings_doc(session, event_id)
    if doc is None:
        logger.debug(f"No certificate settings stored for event {event_id}, using defaults")

    return merge_layers(
        default_layer(settings),
        layer_from_settings(doc),
        request_layer(custom_fields, template_id),
    )
