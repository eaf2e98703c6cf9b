"""Domain exceptions raised by the services layer.

Routes translate these into HTTP errors with the helpers in
app.api.exceptions; batch operations record them on the affected
certificate instead of failing the whole request.
"""


class CertificateError(Exception):
    """Base class for all domain errors."""


class ValidationError(CertificateError):
    """Bad or missing input (400)."""


class NotFoundError(CertificateError):
    """Event, user or certificate does not exist (404)."""


class PermissionDeniedError(CertificateError):
    """Caller may not act on this event (403)."""


class RenderError(CertificateError):
    """Template or PDF engine failure."""


class InvalidTemplateId(RenderError):
    """Template id is not an integer in [1, 7]."""


class TemplateNotFound(RenderError):
    """Template id is valid but its file is missing on disk."""


class CertificateIdExhausted(CertificateError):
    """No free certificate id found within the attempt budget (strict mode only)."""


class DeliveryError(CertificateError):
    """Mail transport failure; the original exception is chained."""


class NoAttachmentContent(DeliveryError):
    """Neither PDF bytes nor a readable PDF path were supplied."""
