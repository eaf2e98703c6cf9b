"""Pydantic schemas for certificate endpoints.

Request and response bodies use camelCase keys; fields can also be
populated by their snake_case names.
"""
from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SignatureSlot(CamelModel):
    """One signature block; stored as {name, title, image_url}."""
    name: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None


class CertificateSettingsUpdate(CamelModel):
    """Body of POST /settings/{event_id}. Omitted fields are left unchanged."""
    template_id: Optional[int] = None
    logo_left: Optional[str] = Field(None, max_length=500)
    logo_right: Optional[str] = Field(None, max_length=500)
    signatures: Optional[List[SignatureSlot]] = None
    custom_fields: Optional[Dict[str, str]] = None
    auto_send_after_event_end: Optional[bool] = None


class GenerateBulkRequest(CamelModel):
    """Body of POST /generate-bulk. event_id is checked by the route so a missing id is a 400."""
    event_id: Optional[int] = None
    force_regenerate: bool = False
    send_email: bool = True


class ResendSingleRequest(CamelModel):
    """Body of POST /resend-single."""
    event_id: Optional[int] = None
    user_id: Optional[int] = None


class CertificateUser(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    department: Optional[str] = None


class CertificateResponse(CamelModel):
    """A certificate record as listed for event managers."""
    id: int
    certificate_id: str
    event_id: int
    user_id: int
    template_id: int
    issued_at: Optional[datetime] = None
    pdf_path: str = ""
    status: str
    delivery_status: str
    email_sent: bool
    email_sent_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    retry_count: int
    last_attempt_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[CertificateUser] = None
