"""Authentication API routes."""
from datetime import datetime, timezone, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Response, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import (
    get_auth_service,
    get_current_active_user,
    get_session_token
)
from app.services.auth_service import AuthService
from app.services.history_service import HistoryService
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    PasswordChangeRequest,
    PasswordChangeResponse,
    RegisterRequest,
    UserResponse,
)
from app.exceptions import CertificateError
from app.models.user_history import HistoryAction
from app.config import get_settings
from app.api.utils.request import extract_client_metadata
from app.api.exceptions import unauthorized, rate_limited, service_error


router = APIRouter(prefix="/api/auth", tags=["Authentication"])
settings = get_settings()

LOGIN_WINDOW_MINUTES = 15
LOGIN_MAX_ATTEMPTS = 5

# Rate limiting storage, per process
# Key: IP address, Value: list of login attempt timestamps
_login_rate_limit_cache: dict = {}


def check_login_rate_limit(
    ip_address: Optional[str],
    window_minutes: int = LOGIN_WINDOW_MINUTES,
    max_attempts: int = LOGIN_MAX_ATTEMPTS
) -> bool:
    """
    Check if IP address has exceeded login rate limit.

    Args:
        ip_address: Client IP address
        window_minutes: Time window in minutes (default 15)
        max_attempts: Maximum login attempts allowed (default 5)

    Returns:
        True if rate limit exceeded, False if OK to proceed
    """
    now = datetime.now(timezone.utc)
    cache_key = f"login_{ip_address}"

    window_start = now - timedelta(minutes=window_minutes)
    attempts = [ts for ts in _login_rate_limit_cache.get(cache_key, []) if ts > window_start]

    if len(attempts) >= max_attempts:
        _login_rate_limit_cache[cache_key] = attempts
        return True

    attempts.append(now)
    _login_rate_limit_cache[cache_key] = attempts
    return False


def clear_login_rate_limit(ip_address: Optional[str]) -> None:
    """Clear login rate limit for an IP address after successful login."""
    _login_rate_limit_cache.pop(f"login_{ip_address}", None)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate user and create session.

    Rate limited to 5 attempts per 15 minutes per IP address. The session
    token is set as a cookie and also returned for bearer authentication.

    Raises:
        HTTPException: If authentication fails or rate limit exceeded
    """
    ip_address, user_agent = extract_client_metadata(request)
    history = HistoryService(db)

    if check_login_rate_limit(ip_address):
        await history.log_login_failed(
            login_data.email,
            ip_address=ip_address,
            user_agent=user_agent
        )
        raise rate_limited(
            "Too many login attempts. Please wait 15 minutes before trying again."
        )

    user = await auth_service.authenticate_user(
        email=login_data.email,
        password=login_data.password
    )

    if not user:
        await history.log_login_failed(
            login_data.email,
            ip_address=ip_address,
            user_agent=user_agent
        )
        raise unauthorized("Incorrect email or password")

    clear_login_rate_limit(ip_address)

    session_token, expires_at = await auth_service.create_session(
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent
    )

    response.set_cookie(
        key="session_token",
        value=session_token,
        httponly=True,
        secure=not settings.DEBUG,  # HTTPS only in production
        samesite="lax",
        max_age=settings.SESSION_EXPIRY_HOURS * 3600,
        path="/"
    )

    await history.log_login(user.id, ip_address=ip_address, user_agent=user_agent)

    return LoginResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        token=session_token,
        expires_at=expires_at
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    session_token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Logout user by invalidating session."""
    ip_address, user_agent = extract_client_metadata(request)
    await HistoryService(db).log_logout(
        current_user.id,
        ip_address=ip_address,
        user_agent=user_agent
    )

    if session_token:
        await auth_service.invalidate_session(session_token)

    response.delete_cookie(
        key="session_token",
        path="/"
    )

    return LogoutResponse(message="Logout successful")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
):
    """Get current authenticated user information."""
    return UserResponse.model_validate(current_user)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a regular user account.

    Raises:
        HTTPException: 400 if the email is already registered
    """
    try:
        user = await auth_service.register_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            department=data.department,
        )
    except CertificateError as e:
        raise service_error(e) from e

    ip_address, user_agent = extract_client_metadata(request)
    await HistoryService(db).log(
        HistoryAction.REGISTERED,
        user_id=user.id,
        description="Registered account",
        ip_address=ip_address,
        user_agent=user_agent
    )
    return UserResponse.model_validate(user)


@router.post("/change-password", response_model=PasswordChangeResponse)
async def change_password(
    data: PasswordChangeRequest,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_db)
):
    """Change the current user's password (requires the current password)."""
    changed = await auth_service.change_password(
        current_user, data.current_password, data.new_password
    )
    if not changed:
        raise unauthorized("Current password is incorrect")

    ip_address, user_agent = extract_client_metadata(request)
    await HistoryService(db).log(
        HistoryAction.CHANGED_PASSWORD,
        user_id=current_user.id,
        description="Changed password",
        ip_address=ip_address,
        user_agent=user_agent
    )
    return PasswordChangeResponse(message="Password changed successfully")
