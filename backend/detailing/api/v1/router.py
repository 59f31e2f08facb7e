"""Main router for API v1."""

from fastapi import APIRouter

from detailing.api.v1 import auth, services, bookings, time_slots, webhooks, cron
from detailing.api.v1.admin.router import router as admin_router
from detailing.api.v1.customer.router import router as customer_router

api_router = APIRouter()

# =============================================================================
# Authentication (shared)
# =============================================================================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# =============================================================================
# Public Booking Flow
# =============================================================================
api_router.include_router(
    services.router,
    prefix="/services",
    tags=["Services"]
)
api_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["Bookings"]
)
api_router.include_router(
    time_slots.router,
    prefix="/time-slots",
    tags=["Time Slots"]
)

# =============================================================================
# Role-Based Routes
# =============================================================================

# Customer Portal Routes
api_router.include_router(
    customer_router,
    prefix="/customer",
    tags=["Customer Portal"]
)

# Admin Dashboard Routes
api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["Admin Dashboard"]
)

# =============================================================================
# Webhooks and Scheduled Jobs
# =============================================================================
api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"]
)
api_router.include_router(
    cron.router,
    prefix="/cron",
    tags=["Cron"]
)
