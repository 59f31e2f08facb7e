"""User profile and session models."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from detailing.database import Base


class UserRole(str, PyEnum):
    """User roles for access control."""
    CUSTOMER = "customer"        # Books and manages own bookings
    ADMIN = "admin"              # Runs the business dashboard
    SUPER_ADMIN = "super_admin"  # Admin plus account management


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)


class UserProfile(Base):
    """User entity - customers and admins share one table."""

    __tablename__ = "user_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Auth (password_hash is empty for guest and Supabase-managed accounts)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255))

    # Profile
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20))

    # Role
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)

    # Status
    is_active = Column(Boolean, default=True)
    email_verified = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at = Column(DateTime)

    # Relationships
    vehicles = relationship("CustomerVehicle", back_populates="user", cascade="all, delete-orphan")
    addresses = relationship("CustomerAddress", back_populates="user", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="customer", foreign_keys="Booking.customer_id")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in [self.first_name, self.last_name] if part)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f"<UserProfile {self.email} ({self.role.value})>"


class UserSession(Base):
    """
    Login session backing a refresh token family.
    A refresh token is only valid while its hash matches the latest one
    issued for the session.
    """

    __tablename__ = "user_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False)

    # Token rotation
    refresh_token_family = Column(String(64), nullable=False)
    refresh_token_hash = Column(String(64))

    # Device
    user_agent = Column(String(500))
    ip_address = Column(String(64))
    remember_me = Column(Boolean, default=False)

    # Lifetime
    expires_at = Column(DateTime, nullable=False)
    last_activity_at = Column(DateTime, default=datetime.utcnow)
    revoked_at = Column(DateTime)
    revoke_reason = Column(String(100))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("UserProfile", back_populates="sessions")

    __table_args__ = (
        Index("ix_user_sessions_user_active", "user_id", "revoked_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None and self.expires_at > datetime.utcnow()

    def __repr__(self):
        return f"<UserSession {self.id} user={self.user_id}>"
