"""FastAPI dependencies for authentication, authorization and services."""
from typing import Optional
from fastapi import Cookie, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.certificate_service import CertificateService
from app.api.utils.request import extract_bearer_token
from app.config import get_settings


settings = get_settings()


async def get_auth_service(
    db: AsyncSession = Depends(get_db)
) -> AuthService:
    """
    Dependency to get auth service.

    Args:
        db: Database session

    Returns:
        AuthService instance
    """
    return AuthService(
        session=db,
        session_expiry_hours=settings.SESSION_EXPIRY_HOURS
    )


async def get_certificate_service(
    db: AsyncSession = Depends(get_db)
) -> CertificateService:
    """Dependency to get the certificate service bound to the request's session."""
    return CertificateService(db)


async def get_session_token(
    request: Request,
    session_token: Optional[str] = Cookie(None, alias="session_token")
) -> Optional[str]:
    """
    Extract the session token.

    An `Authorization: Bearer` header wins over the session cookie.

    Returns:
        Session token or None
    """
    return extract_bearer_token(request) or session_token


async def get_current_user(
    session_token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get the current authenticated user.

    Raises:
        HTTPException: If not authenticated or session invalid
    """
    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await auth_service.validate_session(session_token)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get the current active user.

    Raises:
        HTTPException: If user is not active
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )
    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Get the current platform admin.

    Platform admins can manage every event and its certificates.

    Raises:
        HTTPException: If user is not an admin
    """
    if not current_user.is_admin_role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized. Admin access required."
        )
    return current_user
