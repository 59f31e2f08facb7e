"""Admin dashboard schemas."""

from pydantic import BaseModel


class DashboardStats(BaseModel):
    today_bookings: int
    pending_bookings: int
    confirmed_bookings: int
    upcoming_bookings: int
    awaiting_payment: int
    completed_this_month: int
    revenue_this_month: float
    total_customers: int
    pending_reschedule_requests: int
