"""Authentication endpoints."""

from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.api.deps import (
    get_client_ip,
    get_current_user,
    get_current_session_id,
    get_rate_limiter,
    rate_limit,
)
from detailing.exceptions import NotFoundError
from detailing.models.user import UserProfile
from detailing.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
    TokenResponse,
    UserResponse,
    SessionResponse,
)
from detailing.services.auth_service import AuthService
from detailing.services.rate_limiter import RateLimiter

router = APIRouter()


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("register"))],
)
async def register(
    data: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Create a customer account and start a session."""
    service = AuthService(db)
    return await service.register(
        data,
        user_agent=request.headers.get("user-agent"),
        ip_address=get_client_ip(request),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Email/password login. Limited per email address."""
    await limiter.check("login", data.email)

    service = AuthService(db)
    tokens = await service.login(
        data.email,
        data.password,
        remember_me=data.remember_me,
        user_agent=request.headers.get("user-agent"),
        ip_address=get_client_ip(request),
    )
    await limiter.reset("login", data.email)
    return tokens


@router.post(
    "/refresh",
    response_model=TokenResponse,
    dependencies=[Depends(rate_limit("refresh"))],
)
async def refresh(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a refresh token for a new token pair."""
    service = AuthService(db)
    return await service.refresh(data.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    user: UserProfile = Depends(get_current_user),
    session_id: Optional[UUID] = Depends(get_current_session_id),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the current session."""
    if session_id:
        await AuthService(db).revoke_session(session_id, user.id)


@router.get("/me", response_model=UserResponse)
async def me(user: UserProfile = Depends(get_current_user)):
    return user


@router.get("/sessions", response_model=List[SessionResponse])
async def list_sessions(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService(db).list_sessions(user.id)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_session(
    session_id: UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await AuthService(db).revoke_session(session_id, user.id, "revoked_by_user"):
        raise NotFoundError("Session not found")


@router.post(
    "/password-reset",
    dependencies=[Depends(rate_limit("password_reset"))],
)
async def request_password_reset(
    data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    """Send a reset link. Always answers the same way so it never reveals which emails are registered."""
    await AuthService(db).request_password_reset(data.email)
    return {"message": "If an account exists for this email, a reset link has been sent"}


@router.post("/password-reset/confirm")
async def confirm_password_reset(
    data: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).reset_password(data.token, data.new_password)
    return {"message": "Password has been reset. Please log in again."}
