"""Admin dashboard statistics."""

from datetime import date
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.models.booking import (
    Booking, BookingStatus, PaymentStatus, BookingRescheduleRequest, RescheduleStatus,
)
from detailing.models.user import UserProfile, UserRole
from detailing.schemas.admin import DashboardStats
from detailing.utils.status_transitions import STATUS_CATEGORIES
from detailing.utils.time_validation import local_now


class AdminService:
    """Service for admin dashboard queries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _count(self, model, *conditions) -> int:
        result = await self.db.execute(select(func.count(model.id)).where(*conditions))
        return result.scalar() or 0

    async def get_dashboard_stats(self, today: Optional[date] = None) -> DashboardStats:
        today = today or local_now().date()
        month_start = today.replace(day=1)
        inactive = list(STATUS_CATEGORIES["inactive"])

        revenue = await self.db.execute(
            select(func.coalesce(func.sum(Booking.total_price), 0)).where(
                Booking.payment_status == PaymentStatus.PAID,
                Booking.scheduled_date >= month_start,
                Booking.scheduled_date <= today,
            )
        )

        return DashboardStats(
            today_bookings=await self._count(
                Booking, Booking.scheduled_date == today, Booking.status.notin_(inactive)
            ),
            pending_bookings=await self._count(Booking, Booking.status == BookingStatus.PENDING),
            confirmed_bookings=await self._count(Booking, Booking.status == BookingStatus.CONFIRMED),
            upcoming_bookings=await self._count(
                Booking,
                Booking.scheduled_date >= today,
                Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED]),
            ),
            awaiting_payment=await self._count(
                Booking,
                Booking.payment_status.in_([PaymentStatus.PENDING, PaymentStatus.FAILED]),
                Booking.status.notin_(inactive),
            ),
            completed_this_month=await self._count(
                Booking,
                Booking.status == BookingStatus.COMPLETED,
                Booking.scheduled_date >= month_start,
            ),
            revenue_this_month=float(revenue.scalar() or 0),
            total_customers=await self._count(UserProfile, UserProfile.role == UserRole.CUSTOMER),
            pending_reschedule_requests=await self._count(
                BookingRescheduleRequest, BookingRescheduleRequest.status == RescheduleStatus.PENDING
            ),
        )
