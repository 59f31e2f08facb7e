"""SQLAlchemy models."""

from detailing.models.user import UserProfile, UserRole, UserSession
from detailing.models.customer import CustomerVehicle, CustomerAddress
from detailing.models.service import ServiceCategory, Service, ServicePricing
from detailing.models.time_slot import TimeSlot
from detailing.models.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    PaymentMethod,
    BookingServiceItem,
    BookingStatusHistory,
    BookingRescheduleRequest,
    RescheduleStatus,
)
from detailing.models.notification import EmailNotification, EmailStatus

__all__ = [
    "UserProfile",
    "UserRole",
    "UserSession",
    "CustomerVehicle",
    "CustomerAddress",
    "ServiceCategory",
    "Service",
    "ServicePricing",
    "TimeSlot",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "PaymentMethod",
    "BookingServiceItem",
    "BookingStatusHistory",
    "BookingRescheduleRequest",
    "RescheduleStatus",
    "EmailNotification",
    "EmailStatus",
]
