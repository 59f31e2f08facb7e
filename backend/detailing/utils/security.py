"""Password hashing and JWT helpers."""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from detailing.config import get_settings
from detailing.exceptions import AuthenticationError
from detailing.models.user import UserRole

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
PASSWORD_RESET_TOKEN = "password_reset"


# =============================================================================
# Password Utilities
# =============================================================================

def hash_password(password: str) -> str:
    """Hash a password for storing."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a stored password against a provided password."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def hash_token(token: str) -> str:
    """SHA-256 of a refresh token; only the hash is stored."""
    return hashlib.sha256(token.encode()).hexdigest()


def new_token_family() -> str:
    return secrets.token_hex(16)


def role_for_email(email: str) -> UserRole:
    """Addresses listed in ADMIN_EMAILS are admins."""
    admins = {e.strip().lower() for e in settings.ADMIN_EMAILS}
    return UserRole.ADMIN if email.strip().lower() in admins else UserRole.CUSTOMER


# =============================================================================
# JWT Token Utilities
# =============================================================================

def create_access_token(
    subject: str,
    role: str,
    session_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a short-lived JWT access token."""
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": subject,
        "role": role,
        "type": ACCESS_TOKEN,
        "exp": expire,
        "iat": datetime.utcnow(),
    }
    if session_id:
        to_encode["sid"] = session_id
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(subject: str, session_id: str, family: str, expires_at: datetime) -> str:
    """Refresh token bound to a session and its rotation family."""
    to_encode = {
        "sub": subject,
        "sid": session_id,
        "family": family,
        "type": REFRESH_TOKEN,
        "exp": expires_at,
        # Unique per issue so a rotated token never equals the previous one
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(to_encode, settings.JWT_REFRESH_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_password_reset_token(subject: str, email: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    to_encode = {"sub": subject, "email": email, "type": PASSWORD_RESET_TOKEN, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict:
    """Decode and validate one of our own tokens."""
    secret = settings.JWT_REFRESH_SECRET_KEY if expected_type == REFRESH_TOKEN else settings.JWT_SECRET_KEY
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Could not validate credentials", code="INVALID_TOKEN")

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError("Invalid token type", code="INVALID_TOKEN")
    return payload


def decode_supabase_token(token: str) -> Optional[dict]:
    """Decode a Supabase Auth access token. None when not configured or invalid."""
    if not settings.SUPABASE_JWT_SECRET:
        return None
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        return None
