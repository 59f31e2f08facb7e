"""Public booking endpoints - quotes, booking creation and lookup."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.api.deps import get_optional_user
from detailing.exceptions import NotFoundError
from detailing.models.user import UserProfile
from detailing.schemas.booking import (
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    DistanceInfo,
    PriceQuoteRequest,
    PriceQuoteResponse,
)
from detailing.services.booking_service import BookingService
from detailing.services.payment_service import generate_payment_instructions
from detailing.services.pricing_service import PricingService

router = APIRouter()


@router.post("/quote", response_model=PriceQuoteResponse)
async def get_quote(data: PriceQuoteRequest, db: AsyncSession = Depends(get_db)):
    """Price a service for a vehicle size, including travel surcharge."""
    quote = await PricingService(db).calculate_quote(data.service_id, data.vehicle_size, data.postcode)

    distance = None
    if quote.distance:
        distance = DistanceInfo(
            postcode=quote.postcode,
            distance_km=quote.distance.distance_km,
            distance_miles=quote.distance.distance_miles,
            within_free_radius=quote.distance.within_free_radius,
            surcharge=quote.distance.surcharge,
            description=quote.distance.description,
        )

    return PriceQuoteResponse(
        service_id=quote.service.id,
        service_name=quote.service.name,
        vehicle_size=quote.vehicle_size,
        size_label=quote.size_label,
        base_price=float(quote.base_price),
        distance_surcharge=float(quote.distance_surcharge),
        total_price=float(quote.total_price),
        estimated_duration=quote.estimated_duration,
        distance=distance,
    )


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    user: Optional[UserProfile] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a booking.
    Signed-in customers book for themselves; guests pass their details and
    an account is created for them.
    """
    service = BookingService(db)
    booking, is_new_customer = await service.create_booking(data, user)

    payment = generate_payment_instructions(
        float(booking.total_price), booking.booking_reference, booking.payment_deadline
    )
    return BookingCreatedResponse(
        booking=BookingResponse.model_validate(booking),
        payment=payment,
        is_new_customer=is_new_customer,
        message=f"Booking {booking.booking_reference} received. Please complete payment to secure your slot.",
    )


@router.get("/lookup", response_model=BookingResponse)
async def lookup_booking(
    reference: str = Query(..., min_length=5),
    email: EmailStr = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Find a booking by reference; the email must match the booking's customer."""
    booking = await BookingService(db).get_by_reference(reference)
    if not booking or not booking.customer or booking.customer.email.lower() != email.lower():
        raise NotFoundError("Booking not found")
    return booking
