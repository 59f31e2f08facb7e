"""Time slot and availability schemas."""

from datetime import datetime, date, time
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field


class TimeSlotCreate(BaseModel):
    slot_date: date
    start_time: time
    notes: Optional[str] = None


class TimeSlotBulkCreate(BaseModel):
    slots: List[TimeSlotCreate] = Field(..., min_length=1, max_length=500)


class TimeSlotUpdate(BaseModel):
    slot_date: Optional[date] = None
    start_time: Optional[time] = None
    notes: Optional[str] = None


class TimeSlotResponse(BaseModel):
    id: UUID
    slot_date: date
    start_time: time
    is_available: bool
    booking_reference: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PublicSlotResponse(BaseModel):
    """Slot as shown to customers - no booking details."""
    id: UUID
    slot_date: date
    start_time: time
    is_available: bool

    class Config:
        from_attributes = True


class DayAvailability(BaseModel):
    date: date
    is_available: bool
    available_count: int
    slots: List[PublicSlotResponse]


class AvailabilityResponse(BaseModel):
    date_from: date
    date_to: date
    days: List[DayAvailability]


class BulkCreateResult(BaseModel):
    created: List[TimeSlotResponse]
    skipped_duplicates: List[str]
    skipped_past: List[str]
    message: str


class SlotBookRequest(BaseModel):
    booking_reference: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None


class SlotReleaseRequest(BaseModel):
    reason: str = Field("Released by admin", max_length=500)


class SlotReleaseResponse(BaseModel):
    slot: TimeSlotResponse
    cancelled_booking_reference: Optional[str] = None
    email_sent: bool = False
