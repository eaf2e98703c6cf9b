"""Standard HTTP exceptions for common cases."""
from fastapi import HTTPException, status

from app.exceptions import (
    CertificateError, ValidationError, NotFoundError, PermissionDeniedError,
    RenderError, DeliveryError,
)


def forbidden(message: str = "Not authorized to perform this action") -> HTTPException:
    """
    Return 403 Forbidden exception.

    Examples:
        raise forbidden()  # Uses default message
        raise forbidden("Only the event creator can delete this event")
    """
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=message
    )


def bad_request(message: str) -> HTTPException:
    """
    Return 400 Bad Request exception.

    Examples:
        raise bad_request("eventId is required")
    """
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=message
    )


def unauthorized(message: str = "Incorrect email or password") -> HTTPException:
    """Return 401 Unauthorized exception."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message
    )


def unprocessable(message: str) -> HTTPException:
    """Return 422 Unprocessable Entity exception (template or PDF rendering failed)."""
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=message
    )


def bad_gateway(message: str) -> HTTPException:
    """Return 502 Bad Gateway exception (the mail provider rejected or failed a send)."""
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=message
    )


def rate_limited(message: str = "Too many requests. Please try again later.") -> HTTPException:
    """
    Return 429 Too Many Requests exception.

    Examples:
        raise rate_limited()  # Uses default message
        raise rate_limited("Too many login attempts. Please wait 15 minutes before trying again.")
    """
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=message
    )


def service_error(error: CertificateError) -> HTTPException:
    """
    Translate a domain exception into the matching HTTP exception.

    Examples:
        except CertificateError as e:
            raise service_error(e) from e
    """
    message = str(error)
    if isinstance(error, ValidationError):
        return bad_request(message)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    if isinstance(error, PermissionDeniedError):
        return forbidden(message)
    if isinstance(error, RenderError):
        return unprocessable(message)
    if isinstance(error, DeliveryError):
        return bad_gateway(message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)
