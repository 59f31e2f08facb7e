"""API dependencies for dependency injection and authentication."""

import logging
import secrets
from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, Request, status, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as aioredis

from detailing.database import get_db, get_redis
from detailing.config import get_settings
from detailing.exceptions import AuthenticationError, ForbiddenError
from detailing.models.user import UserProfile, UserSession, ADMIN_ROLES
from detailing.services.auth_service import AuthService
from detailing.services.rate_limiter import RateLimiter
from detailing.utils.security import ACCESS_TOKEN, decode_supabase_token, decode_token

settings = get_settings()
logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# =============================================================================
# Authentication Dependencies
# =============================================================================

async def _user_from_token(token: str, db: AsyncSession) -> UserProfile:
    """Resolve a bearer token: our own access token first, then a Supabase Auth token."""
    try:
        payload = decode_token(token, ACCESS_TOKEN)
    except AuthenticationError:
        claims = decode_supabase_token(token)
        if not claims:
            raise _unauthorized("Could not validate credentials")
        user, _ = await AuthService(db).get_or_create_supabase_user(claims)
        if not user:
            raise _unauthorized("Could not validate credentials")
        return user

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise _unauthorized("Could not validate credentials")

    session_id = payload.get("sid")
    if session_id:
        session = await db.get(UserSession, UUID(session_id))
        if not session or not session.is_active:
            raise _unauthorized("Session expired or revoked")

    user = await db.get(UserProfile, user_id)
    if user is None:
        raise _unauthorized("User not found or inactive")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    """Get current authenticated user from the bearer token."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    user = await _user_from_token(credentials.credentials, db)
    if not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


async def get_current_customer(
    user: UserProfile = Depends(get_current_user),
) -> UserProfile:
    """Any signed-in account can use the customer portal."""
    return user


async def get_current_admin(
    user: UserProfile = Depends(get_current_user),
) -> UserProfile:
    """Require the current user to be an admin."""
    if user.role not in ADMIN_ROLES:
        raise ForbiddenError("Admin access required", code="ADMIN_REQUIRED")
    return user


async def get_current_session_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UUID]:
    """Session id from the caller's access token, if it has one."""
    if not credentials:
        return None
    try:
        payload = decode_token(credentials.credentials, ACCESS_TOKEN)
    except AuthenticationError:
        return None
    sid = payload.get("sid")
    return UUID(sid) if sid else None


# =============================================================================
# Optional Auth Dependencies
# =============================================================================

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[UserProfile]:
    """Get user if authenticated, None otherwise."""
    if not credentials:
        return None

    try:
        return await get_current_user(credentials, db)
    except HTTPException:
        return None


# =============================================================================
# Cron and Rate Limiting
# =============================================================================

async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Cron endpoints require 'Authorization: Bearer <CRON_SECRET>'."""
    if not settings.CRON_SECRET:
        logger.warning("Cron endpoint called but CRON_SECRET is not configured")
        raise _unauthorized("Unauthorized")

    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise _unauthorized("Unauthorized")


async def get_rate_limiter(redis: aioredis.Redis = Depends(get_redis)) -> RateLimiter:
    return RateLimiter(redis)


def rate_limit(action: str):
    """Dependency factory limiting an action per client IP."""

    async def dependency(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        await limiter.check(action, get_client_ip(request))

    return dependency
