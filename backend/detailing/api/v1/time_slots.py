"""Time slot availability endpoints."""

from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.api.deps import get_current_admin
from detailing.exceptions import ValidationError
from detailing.models.user import UserProfile
from detailing.schemas.time_slot import (
    AvailabilityResponse,
    PublicSlotResponse,
    SlotBookRequest,
    TimeSlotResponse,
)
from detailing.services.time_slot_service import TimeSlotService
from detailing.utils.time_validation import local_now

router = APIRouter()

MAX_RANGE_DAYS = 90


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Bookable days and slots for the booking calendar."""
    date_from = date_from or local_now().date()
    date_to = date_to or date_from + timedelta(days=30)
    if (date_to - date_from).days > MAX_RANGE_DAYS:
        raise ValidationError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

    days = await TimeSlotService(db).get_availability(date_from, date_to)
    return AvailabilityResponse(date_from=date_from, date_to=date_to, days=days)


@router.get("", response_model=List[PublicSlotResponse])
async def list_slots(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    available_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    return await TimeSlotService(db).list_slots(date_from or local_now().date(), date_to, available_only)


@router.post("/{slot_id}/book", response_model=TimeSlotResponse)
async def book_slot(
    slot_id: UUID,
    data: SlotBookRequest,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Hold a slot against a booking reference (e.g. a phone booking)."""
    return await TimeSlotService(db).book_slot(slot_id, data.booking_reference, data.notes)
