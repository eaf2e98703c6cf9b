"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings, get_version
from app.api.exceptions import service_error
from app.api.routes import auth, event, attendance, certificates
from app.dependencies import get_current_admin_user
from app.exceptions import CertificateError
from app.tasks import start_scheduler, stop_scheduler, list_jobs


# Configure logging - force INFO level even if uvicorn configured it already
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logging.getLogger().setLevel(logging.INFO)

# Silence SQLAlchemy query logging (too verbose)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)

# Silence passlib bcrypt version warning (known compatibility issue with bcrypt 4.x)
logging.getLogger('passlib.handlers.bcrypt').setLevel(logging.ERROR)

settings = get_settings()
logger = logging.getLogger(__name__)


async def bootstrap_admin() -> None:
    """
    Create the initial platform admin from ADMIN_EMAIL / ADMIN_PASSWORD.

    Only runs if no admin exists yet, so a restart never resets a password.
    """
    from sqlalchemy import select
    from app.database import AsyncSessionLocal
    from app.models.user import User, UserRole
    from app.utils.security import hash_password

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(User).where(User.role == UserRole.ADMIN.value).limit(1)
        )
        if result.scalar_one_or_none():
            logger.info("  Admin bootstrap: Skipped (admin users already exist)")
            return

        logger.info("  Admin bootstrap: No admins found, creating initial admin user...")
        session.add(User(
            email=settings.ADMIN_EMAIL,
            first_name=settings.ADMIN_FIRST_NAME,
            last_name=settings.ADMIN_LAST_NAME,
            role=UserRole.ADMIN.value,
            is_active=True,
            is_verified=True,
            password_hash=hash_password(settings.ADMIN_PASSWORD),
        ))
        await session.commit()
        logger.info("  Admin bootstrap: Created initial admin user %s", settings.ADMIN_EMAIL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Event Certificate API %s starting...", get_version())
    logger.info("  Environment: %s", settings.ENVIRONMENT.upper())
    logger.info("  Database: %s", settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured')
    logger.info("  Session expiry: %d hours", settings.SESSION_EXPIRY_HOURS)
    logger.info("  PDF conversion: %s", settings.PDF_CONVERSION_MODE)

    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        try:
            await bootstrap_admin()
        except Exception as e:
            logger.error("  Admin bootstrap: Failed - %s", e)
    else:
        logger.info("  Admin bootstrap: Skipped (ADMIN_EMAIL not configured)")

    # The scheduler runs in exactly one process: here, or run_scheduler.py
    if settings.RUN_SCHEDULER_IN_WEB:
        logger.info("  Background scheduler: Starting...")
        try:
            await start_scheduler()
            logger.info("  Background scheduler: Started successfully")
        except Exception as e:
            logger.error("  Background scheduler: Failed to start - %s", e)
    else:
        logger.info("  Background scheduler: Disabled in web process")

    yield  # Application runs

    logger.info("Event Certificate API shutting down...")
    if settings.RUN_SCHEDULER_IN_WEB:
        try:
            await stop_scheduler()
            logger.info("  Background scheduler: Stopped")
        except Exception as e:
            logger.error("  Background scheduler: Error during shutdown - %s", e)


app = FastAPI(
    title="Event Certificate API",
    description="API for events, attendance and participation certificates",
    version=get_version(),
    docs_url="/api/docs" if settings.DEBUG else None,  # Disable docs in production
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)


app.include_router(auth.router)
app.include_router(event.router)
app.include_router(attendance.router)
app.include_router(certificates.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": get_version()}


@app.get("/api/admin/scheduler/jobs", dependencies=[Depends(get_current_admin_user)])
async def get_scheduled_jobs():
    """Get list of scheduled background jobs."""
    return {"jobs": list_jobs()}


@app.exception_handler(CertificateError)
async def certificate_error_handler(request, exc: CertificateError):
    """Domain errors a route did not translate itself."""
    http_exc = service_error(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.DEBUG:
        import traceback
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "traceback": traceback.format_exc()
            }
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
