"""Pydantic schemas for request/response validation."""

from detailing.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)
from detailing.schemas.customer import (
    VehicleCreate,
    VehicleResponse,
    AddressCreate,
    AddressResponse,
)
from detailing.schemas.service import ServiceResponse, PricingSchema
from detailing.schemas.time_slot import TimeSlotCreate, TimeSlotResponse, DayAvailability
from detailing.schemas.booking import (
    BookingCreate,
    BookingResponse,
    AdminBookingResponse,
    PriceQuoteRequest,
    PriceQuoteResponse,
)
from detailing.schemas.reschedule import RescheduleRequestCreate, RescheduleRespond

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "RefreshRequest",
    "TokenResponse",
    "UserResponse",
    "VehicleCreate",
    "VehicleResponse",
    "AddressCreate",
    "AddressResponse",
    "ServiceResponse",
    "PricingSchema",
    "TimeSlotCreate",
    "TimeSlotResponse",
    "DayAvailability",
    "BookingCreate",
    "BookingResponse",
    "AdminBookingResponse",
    "PriceQuoteRequest",
    "PriceQuoteResponse",
    "RescheduleRequestCreate",
    "RescheduleRespond",
]
