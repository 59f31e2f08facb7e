"""Auth service - local accounts, refresh-token sessions and password reset."""

import logging
from datetime import datetime, timedelta
from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.exceptions import AuthenticationError, ConflictError, ValidationError
from detailing.models.user import UserProfile, UserSession
from detailing.schemas.auth import RegisterRequest, TokenResponse, UserResponse
from detailing.services.email_service import EmailService
from detailing.utils.phone import normalize_phone
from detailing.utils.security import (
    PASSWORD_RESET_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    new_token_family,
    role_for_email,
    verify_password,
)
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class AuthService:
    """Service for authentication and sessions."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or EmailService(db)

    async def get_user_by_email(self, email: str) -> Optional[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(func.lower(UserProfile.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def register(
        self,
        data: RegisterRequest,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenResponse:
        """
        Create an account and log it in.
        A guest account created at checkout (no password yet) is claimed instead.
        """
        try:
            phone = normalize_phone(data.phone)
        except ValueError as e:
            raise ValidationError(str(e), code="INVALID_PHONE")

        email = data.email.lower()
        user = await self.get_user_by_email(email)
        if user and user.password_hash:
            raise ConflictError("An account with this email already exists", code="EMAIL_EXISTS")

        if user:
            user.password_hash = hash_password(data.password)
            user.first_name = data.first_name
            user.last_name = data.last_name
            user.phone = phone or user.phone
        else:
            user = UserProfile(
                email=email,
                password_hash=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                phone=phone,
                role=role_for_email(email),
                is_active=True,
            )
            self.db.add(user)
        await self.db.flush()

        logger.info("Registered account %s", email)
        return await self._start_session(user, False, user_agent, ip_address)

    async def login(
        self,
        email: str,
        password: str,
        remember_me: bool = False,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenResponse:
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
        if not user.is_active:
            raise AuthenticationError("Account is disabled", code="ACCOUNT_DISABLED")

        return await self._start_session(user, remember_me, user_agent, ip_address)

    async def _start_session(
        self,
        user: UserProfile,
        remember_me: bool,
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> TokenResponse:
        now = datetime.utcnow()
        days = settings.REMEMBER_ME_EXPIRE_DAYS if remember_me else settings.REFRESH_TOKEN_EXPIRE_DAYS

        await self._enforce_session_limit(user.id)

        session = UserSession(
            user_id=user.id,
            refresh_token_family=new_token_family(),
            user_agent=(user_agent or "")[:500] or None,
            ip_address=ip_address,
            remember_me=remember_me,
            expires_at=now + timedelta(days=days),
            last_activity_at=now,
        )
        self.db.add(session)
        await self.db.flush()

        user.last_login_at = now
        tokens = self._issue_tokens(user, session)
        await self.db.commit()
        return tokens

    def _issue_tokens(self, user: UserProfile, session: UserSession) -> TokenResponse:
        """Issue an access/refresh pair and remember the refresh token's hash."""
        refresh_token = create_refresh_token(
            str(user.id), str(session.id), session.refresh_token_family, session.expires_at
        )
        session.refresh_token_hash = hash_token(refresh_token)
        access_token = create_access_token(str(user.id), user.role.value, str(session.id))
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            session_id=session.id,
            user=UserResponse.model_validate(user),
        )

    async def list_sessions(self, user_id: UUID) -> List[UserSession]:
        result = await self.db.execute(
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.revoked_at.is_(None),
                UserSession.expires_at > datetime.utcnow(),
            )
            .order_by(UserSession.created_at)
        )
        return list(result.scalars())

    async def _enforce_session_limit(self, user_id: UUID) -> None:
        """Revoke the oldest sessions so a new one fits under the limit."""
        sessions = await self.list_sessions(user_id)
        excess = len(sessions) - settings.MAX_SESSIONS_PER_USER + 1
        for session in sessions[:max(0, excess)]:
            self._revoke(session, "session_limit")

    def _revoke(self, session: UserSession, reason: str) -> None:
        session.revoked_at = datetime.utcnow()
        session.revoke_reason = reason

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Rotate a refresh token. Replaying an old token kills the session."""
        payload = decode_token(refresh_token, REFRESH_TOKEN)

        try:
            session_id = UUID(payload.get("sid", ""))
        except ValueError:
            raise AuthenticationError("Invalid refresh token", code="INVALID_TOKEN")

        session = await self.db.get(UserSession, session_id)
        if not session or not session.is_active:
            raise AuthenticationError("Session expired or revoked", code="SESSION_REVOKED")
        if session.refresh_token_family != payload.get("family") or str(session.user_id) != payload["sub"]:
            raise AuthenticationError("Invalid refresh token", code="INVALID_TOKEN")

        if session.refresh_token_hash != hash_token(refresh_token):
            self._revoke(session, "token_reuse")
            await self.db.commit()
            logger.warning("Refresh token reuse detected for session %s, session revoked", session.id)
            raise AuthenticationError("Refresh token has already been used", code="TOKEN_REUSED")

        user = await self.db.get(UserProfile, session.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive", code="INVALID_TOKEN")

        session.last_activity_at = datetime.utcnow()
        tokens = self._issue_tokens(user, session)
        await self.db.commit()
        return tokens

    async def validate_session(self, session_id: UUID) -> bool:
        session = await self.db.get(UserSession, session_id)
        return bool(session and session.is_active)

    async def revoke_session(self, session_id: UUID, user_id: UUID, reason: str = "logout") -> bool:
        session = await self.db.get(UserSession, session_id)
        if not session or session.user_id != user_id:
            return False
        if session.revoked_at is None:
            self._revoke(session, reason)
            await self.db.commit()
        return True

    async def revoke_all_sessions(self, user_id: UUID, reason: str = "logout_all") -> int:
        sessions = await self.list_sessions(user_id)
        for session in sessions:
            self._revoke(session, reason)
        await self.db.commit()
        return len(sessions)

    # =========================================================================
    # Password reset
    # =========================================================================

    async def request_password_reset(self, email: str) -> Optional[str]:
        """
        Email a reset link. Unknown addresses are ignored silently.
        Returns the token (for callers that need it, e.g. tests).
        """
        user = await self.get_user_by_email(email)
        if not user or not user.is_active:
            logger.info("Password reset requested for unknown address")
            return None

        token = create_password_reset_token(str(user.id), user.email)
        link = f"{settings.APP_URL}/auth/reset-password?token={token}"
        try:
            await self.email_service.send_password_reset(user, link)
        except Exception:
            logger.exception("Failed to send password reset email to %s", user.email)
        return token

    async def reset_password(self, token: str, new_password: str) -> UserProfile:
        payload = decode_token(token, PASSWORD_RESET_TOKEN)
        user = await self.db.get(UserProfile, UUID(payload["sub"]))
        if not user or not user.is_active or user.email != payload.get("email"):
            raise AuthenticationError("Invalid or expired reset token", code="INVALID_TOKEN")

        user.password_hash = hash_password(new_password)
        await self.revoke_all_sessions(user.id, "password_reset")
        logger.info("Password reset for %s", user.email)
        return user

    async def change_password(
        self,
        user: UserProfile,
        current_password: str,
        new_password: str,
        keep_session_id: Optional[UUID] = None,
    ) -> int:
        """
        Change a signed-in user's password. Every other session is revoked.
        Returns the number of sessions revoked.
        """
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", code="INVALID_PASSWORD")

        user.password_hash = hash_password(new_password)
        revoked = 0
        for session in await self.list_sessions(user.id):
            if session.id != keep_session_id:
                self._revoke(session, "password_change")
                revoked += 1
        await self.db.commit()
        logger.info("Password changed for %s", user.email)
        return revoked

    async def get_or_create_supabase_user(self, claims: dict) -> Tuple[Optional[UserProfile], bool]:
        """Match a Supabase Auth user to a profile by id, creating one on first sight."""
        try:
            user_id = UUID(claims["sub"])
        except (KeyError, ValueError):
            return None, False

        user = await self.db.get(UserProfile, user_id)
        if user:
            return user, False

        email = (claims.get("email") or "").lower()
        if not email:
            return None, False

        # Profile created at checkout before the Supabase account existed
        user = await self.get_user_by_email(email)
        if user:
            return user, False

        metadata = claims.get("user_metadata") or {}
        user = UserProfile(
            id=user_id,
            email=email,
            first_name=metadata.get("first_name") or email.split("@")[0],
            last_name=metadata.get("last_name") or "",
            phone=claims.get("phone") or None,
            role=role_for_email(email),
            is_active=True,
            email_verified=bool(claims.get("email_confirmed_at")),
        )
        self.db.add(user)
        await self.db.commit()
        logger.info("Created profile for Supabase user %s", email)
        return user, True
