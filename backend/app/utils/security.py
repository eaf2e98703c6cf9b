"""Security utilities for password hashing and session tokens."""
import hashlib
import secrets
from passlib.context import CryptContext

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash. A missing hash never verifies."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def generate_session_token(nbytes: int = 32) -> str:
    """Generate a URL-safe session token handed to the client once."""
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a session token, as stored in the sessions table."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
