"""Business logic services."""

from detailing.services.email_service import EmailService
from detailing.services.pricing_service import PricingService
from detailing.services.catalog_service import CatalogService
from detailing.services.time_slot_service import TimeSlotService
from detailing.services.payment_service import PaymentService
from detailing.services.booking_service import BookingService
from detailing.services.cancellation_service import CancellationService
from detailing.services.reschedule_service import RescheduleService
from detailing.services.payment_reminder_service import PaymentReminderService
from detailing.services.customer_service import CustomerService
from detailing.services.auth_service import AuthService
from detailing.services.admin_service import AdminService
from detailing.services.rate_limiter import RateLimiter

__all__ = [
    "EmailService",
    "PricingService",
    "CatalogService",
    "TimeSlotService",
    "PaymentService",
    "BookingService",
    "CancellationService",
    "RescheduleService",
    "PaymentReminderService",
    "CustomerService",
    "AuthService",
    "AdminService",
    "RateLimiter",
]
