"""Certificate API routes: generation, delivery, preview and verification."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from app.dependencies import get_current_active_user, get_certificate_service
from app.api.exceptions import bad_request, service_error
from app.api.utils.dependencies import get_event_service
from app.exceptions import CertificateError
from app.models.user import User
from app.schemas.certificate import (
    CertificateResponse,
    CertificateSettingsUpdate,
    GenerateBulkRequest,
    ResendSingleRequest,
)
from app.services.certificate_service import CertificateService
from app.services.event_service import EventService
from app.utils.certificate_templates import list_templates

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/certificates", tags=["Certificates"])

# Query parameters of /preview that are not template custom fields
PREVIEW_RESERVED_PARAMS = {"eventId", "userId", "templateId", "dummy", "format"}


# ============== Public ==============

@router.get("/verify/{certificate_id}")
async def verify_certificate(
    certificate_id: str,
    service: CertificateService = Depends(get_certificate_service)
):
    """Public lookup of a certificate by its human-readable id."""
    data = await service.verify(certificate_id)
    if data is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "valid": False, "message": "Certificate not found"},
        )
    return {"success": True, "valid": True, "data": data}


@router.get("/templates")
async def get_templates():
    """List the available certificate designs."""
    return {"success": True, "data": list_templates()}


# ============== Settings (Event Managers) ==============

@router.get("/settings/{event_id}")
async def get_certificate_settings(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """Stored certificate settings of an event and the effective merged values."""
    try:
        await events.require_manageable_event(event_id, current_user)
        result = await service.get_settings(event_id)
    except CertificateError as e:
        raise service_error(e) from e
    return {"success": True, **result}


@router.post("/settings/{event_id}")
async def update_certificate_settings(
    event_id: int,
    data: CertificateSettingsUpdate,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """Create or update certificate settings. Omitted fields keep their stored value."""
    try:
        await events.require_manageable_event(event_id, current_user)
        result = await service.update_settings(
            event_id,
            data.model_dump(exclude_unset=True),
            actor_id=current_user.id,
        )
    except CertificateError as e:
        raise service_error(e) from e
    return {"success": True, **result}


# ============== Preview ==============

@router.get("/preview")
async def preview_certificate(
    request: Request,
    event_id: Optional[int] = Query(None, alias="eventId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    template_id: Optional[str] = Query(None, alias="templateId"),
    dummy: bool = Query(False),
    response_format: Optional[str] = Query(None, alias="format"),
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """
    Render a certificate without storing it.

    Any extra query parameter is treated as a custom field value, e.g.
    `?dummy=true&templateId=3&eventTitle=Demo`. With `format=html` the
    filled HTML is returned directly.
    """
    custom_fields = {
        key: value for key, value in request.query_params.items()
        if key not in PREVIEW_RESERVED_PARAMS
    }

    try:
        if event_id:
            await events.require_manageable_event(event_id, current_user)
        result = await service.preview(
            event_id=event_id,
            user_id=user_id,
            template_id=template_id,
            custom_fields=custom_fields or None,
            dummy=dummy,
        )
    except CertificateError as e:
        raise service_error(e) from e

    if response_format == "html":
        return HTMLResponse(content=result["html"])
    return {"success": True, "html": result["html"], "certificateId": result["certificateId"]}


# ============== Generation and Delivery ==============

@router.post("/generate-bulk")
async def generate_bulk(
    data: GenerateBulkRequest,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """Generate (and by default email) certificates for every present attendee."""
    if not data.event_id:
        raise bad_request("eventId is required")

    try:
        await events.require_manageable_event(data.event_id, current_user)
        return await service.generate_for_event(
            data.event_id,
            send_email=data.send_email,
            save_pdf=True,
            force_regenerate=data.force_regenerate,
            actor_id=current_user.id,
        )
    except CertificateError as e:
        raise service_error(e) from e


@router.post("/resend-failed/{event_id}")
async def resend_failed(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """Retry failed deliveries that are still below the retry limit."""
    try:
        await events.require_manageable_event(event_id, current_user)
        return await service.resend_failed(event_id, actor_id=current_user.id)
    except CertificateError as e:
        raise service_error(e) from e


@router.post("/resend-single")
async def resend_single(
    data: ResendSingleRequest,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """Re-deliver one participant's certificate."""
    if not data.event_id or not data.user_id:
        raise bad_request("eventId and userId are required")

    try:
        await events.require_manageable_event(data.event_id, current_user)
        await service.resend_single(data.event_id, data.user_id, actor_id=current_user.id)
    except CertificateError as e:
        logger.warning(f"Resend of certificate for user {data.user_id} in event {data.event_id} failed: {e}")
        raise service_error(e) from e

    return {"success": True, "message": "Certificate resent successfully"}


@router.get("/list/{event_id}")
async def list_certificates(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: CertificateService = Depends(get_certificate_service)
):
    """Delivery statistics and the latest certificates of an event."""
    try:
        await events.require_manageable_event(event_id, current_user)
        result = await service.list_event_certificates(event_id)
    except CertificateError as e:
        raise service_error(e) from e

    return {
        "success": True,
        "stats": result["stats"],
        "data": [
            CertificateResponse.model_validate(cert).model_dump(by_alias=True, mode="json")
            for cert in result["data"]
        ],
    }
