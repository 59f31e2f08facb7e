"""Reschedule request schemas."""

from datetime import datetime, date, time
from typing import Optional, Literal
from uuid import UUID
from pydantic import BaseModel, Field, model_validator

from detailing.models.booking import RescheduleStatus


class RescheduleRequestCreate(BaseModel):
    requested_date: date
    requested_time: time
    reason: str = Field(..., min_length=1, max_length=1000)


class RescheduleRespond(BaseModel):
    """Admin response to a pending request."""
    action: Literal["approve", "reject", "propose"]
    admin_response: Optional[str] = Field(None, max_length=2000)
    admin_notes: Optional[str] = None
    proposed_date: Optional[date] = None
    proposed_time: Optional[time] = None

    @model_validator(mode="after")
    def check_proposal(self):
        if self.action == "propose" and not (self.proposed_date and self.proposed_time):
            raise ValueError("proposed_date and proposed_time are required to propose a new time")
        return self


class RescheduleRequestResponse(BaseModel):
    id: UUID
    booking_id: UUID
    customer_id: UUID
    original_date: date
    original_time: time
    requested_date: date
    requested_time: time
    reason: str
    status: RescheduleStatus
    admin_response: Optional[str]
    responded_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class AdminRescheduleRequestResponse(RescheduleRequestResponse):
    booking_reference: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    admin_notes: Optional[str] = None


class AdminReschedule(BaseModel):
    """Admin moves a booking directly."""
    new_date: date
    new_time: time
    reason: Optional[str] = Field(None, max_length=1000)


class AdminRescheduleResult(BaseModel):
    message: str = "Booking rescheduled successfully"
    booking_id: UUID
    booking_reference: str
    status: str
    old_date: date
    old_time: time
    new_date: date
    new_time: time
    reason: Optional[str] = None
