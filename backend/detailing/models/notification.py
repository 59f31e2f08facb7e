"""Email delivery tracking models."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, Enum, Index
from sqlalchemy.dialects.postgresql import UUID
from detailing.database import Base


class EmailStatus(str, PyEnum):
    """Email delivery status."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class EmailNotification(Base):
    """
    Track every transactional email for delivery confirmation and retry.
    The rendered content is stored so a failed send can be replayed as-is.
    """

    __tablename__ = "email_notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # What triggered this email
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="SET NULL"))
    template = Column(String(100), nullable=False)  # 'booking_confirmation', 'payment_reminder', etc.

    # Envelope
    recipient = Column(String(255), nullable=False)
    reply_to = Column(String(255))
    subject = Column(String(255), nullable=False)

    # Content
    html = Column(Text, nullable=False)
    text = Column(Text)

    # Delivery
    status = Column(Enum(EmailStatus), default=EmailStatus.PENDING, nullable=False)
    external_id = Column(String(100))  # Resend email id

    # Error handling
    error_message = Column(Text)
    retry_count = Column(Integer, default=0)
    max_retries = Column(Integer, default=3)
    next_retry_at = Column(DateTime)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    sent_at = Column(DateTime)
    failed_at = Column(DateTime)

    __table_args__ = (
        Index("ix_email_notifications_retry", "status", "next_retry_at"),
    )

    def __repr__(self):
        return f"<EmailNotification {self.template} to {self.recipient}>"
