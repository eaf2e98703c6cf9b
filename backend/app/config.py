"""Application configuration management."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path
import subprocess
import logging


DEFAULT_TEMPLATE_DIR = str(Path(__file__).parent / "templates" / "certificates")


class Settings(BaseSettings):
    """Application settings."""

    # Database
    DATABASE_URL: str

    @property
    def async_database_url(self) -> str:
        """Get DATABASE_URL with asyncpg driver for async SQLAlchemy.

        Converts postgresql:// to postgresql+asyncpg:// automatically.
        This allows flexibility in how the DATABASE_URL is provided.
        """
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.DATABASE_URL

    # Application
    ENVIRONMENT: str = "development"  # development, staging, or production
    SECRET_KEY: str = ""
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    FRONTEND_URL: str = "http://localhost:3000"  # Base URL for verification links in emails

    # Default Admin User (optional - for automatic bootstrapping on startup)
    ADMIN_EMAIL: str = ""  # If set, creates the first admin user on startup
    ADMIN_PASSWORD: str = ""  # Required if ADMIN_EMAIL is set
    ADMIN_FIRST_NAME: str = "Admin"
    ADMIN_LAST_NAME: str = "User"

    # Session Configuration
    SESSION_EXPIRY_HOURS: int = 24

    # SendGrid (optional - only needed for sending certificate emails)
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""
    SENDGRID_FROM_NAME: str = "Institution's Innovation Council"
    SENDGRID_SANDBOX_MODE: bool = False  # Enable to validate emails without sending
    TEST_EMAIL_OVERRIDE: str = ""  # If set, all emails go to this address instead

    # Certificate branding defaults (overridden per event by certificate settings)
    COLLEGE_NAME: str = "DAV College Jalandhar"
    COLLEGE_TAGLINE: str = "NAAC Re-Accredited with Grade A | DBT-Star College Status | DST-FIST Supported"
    LOGO_LEFT_URL: str = "https://via.placeholder.com/150?text=Left+Logo"
    LOGO_RIGHT_URL: str = "https://via.placeholder.com/150?text=Right+Logo"

    # Certificate signature slots
    SIG1_NAME: str = "Dr. Dinesh Arora"
    SIG1_TITLE: str = "Vice President IIC"
    SIG1_URL: str = ""
    SIG2_NAME: str = "Dr. Rajeev Puri"
    SIG2_TITLE: str = "Convener IIC"
    SIG2_URL: str = ""
    SIG3_NAME: str = "Dr. Manav Aggarwal"
    SIG3_TITLE: str = "Internship Coordinator"
    SIG3_URL: str = ""
    SIG4_NAME: str = "Dr. Rajesh Kumar"
    SIG4_TITLE: str = "Principal"
    SIG4_URL: str = ""

    # Certificate generation
    CERTIFICATE_TEMPLATE_DIR: str = DEFAULT_TEMPLATE_DIR
    CERTIFICATE_OUTPUT_DIR: str = "generated_certificates"
    CERTIFICATE_MAX_RETRIES: int = 3  # Failed deliveries at or above this are left alone
    CERTIFICATE_ID_STRICT: bool = False  # Raise instead of reusing a colliding ID
    CERTIFICATE_AUTOSEND_INTERVAL_HOURS: int = 1
    RUN_SCHEDULER_IN_WEB: bool = True  # Disable when the run_scheduler.py worker is deployed

    # PDF rendering
    PDF_CONVERSION_MODE: str = "chromium"  # "chromium" (local Playwright) or "gotenberg"
    GOTENBERG_URL: str = ""
    PDF_RENDER_TIMEOUT_MS: int = 60000
    PDF_SETTLE_DELAY_MS: int = 800

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_version() -> str:
    """
    Get application version string.

    In staging: Returns version with commit hash (e.g., "v1.0.0+abc1234")
    In production: Returns clean version (e.g., "v1.0.0")
    """
    from app.version import VERSION

    settings = get_settings()
    version_str = f"v{VERSION}"

    if settings.ENVIRONMENT == "staging":
        try:
            commit_hash = subprocess.check_output(
                ["git", "rev-parse", "--short=7", "HEAD"],
                stderr=subprocess.DEVNULL,
                text=True
            ).strip()
            version_str = f"{version_str}+{commit_hash}"
        except (subprocess.CalledProcessError, FileNotFoundError):
            logger = logging.getLogger(__name__)
            logger.warning("Could not retrieve git commit hash for version string")

    return version_str
