"""Payment, reminder and cron result schemas."""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel


class OverduePayment(BaseModel):
    id: UUID
    booking_reference: str
    customer_name: str
    customer_email: str
    total_price: float
    payment_link: str
    created_at: datetime
    hours_overdue: int
    reminder_count: int


class ReminderRunResult(BaseModel):
    success: bool
    processed: int
    sent: int
    errors: List[str]


class DeadlineFailure(BaseModel):
    booking_reference: str
    error: str


class DeadlineRunResult(BaseModel):
    success: bool
    processed: List[str]
    failed: List[DeadlineFailure]
    message: str


class WebhookResult(BaseModel):
    received: bool = True
    skipped: bool = False
    ignored: bool = False
    processed: bool = False
    already_paid: bool = False
    reason: Optional[str] = None
    booking_reference: Optional[str] = None
    event_type: Optional[str] = None
