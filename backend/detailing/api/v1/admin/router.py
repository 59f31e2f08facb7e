"""Admin API routes for the web dashboard."""

import math
from datetime import date
from typing import Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from detailing.database import get_db
from detailing.api.deps import get_current_admin
from detailing.exceptions import NotFoundError
from detailing.models.booking import BookingStatus, PaymentStatus, RescheduleStatus
from detailing.models.notification import EmailStatus
from detailing.models.user import UserProfile
from detailing.schemas.admin import DashboardStats
from detailing.schemas.auth import UserResponse
from detailing.schemas.booking import (
    AdminBookingDetail,
    AdminBookingResponse,
    AdminCancelRequest,
    AdminNotesUpdate,
    BookingListResponse,
    BookingResponse,
    CancellationResponse,
    CustomEmailRequest,
    CustomEmailResponse,
    MarkPaidRequest,
    StatusHistoryResponse,
    StatusOption,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from detailing.schemas.customer import AddressResponse, CustomerSummary, VehicleResponse
from detailing.schemas.payment import DeadlineRunResult, OverduePayment, ReminderRunResult
from detailing.schemas.reschedule import (
    AdminReschedule,
    AdminRescheduleRequestResponse,
    AdminRescheduleResult,
    RescheduleRespond,
)
from detailing.schemas.service import (
    CategoryCreate,
    CategoryResponse,
    PricingSchema,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from detailing.schemas.time_slot import (
    BulkCreateResult,
    SlotReleaseRequest,
    SlotReleaseResponse,
    TimeSlotBulkCreate,
    TimeSlotCreate,
    TimeSlotResponse,
    TimeSlotUpdate,
)
from detailing.services.admin_service import AdminService
from detailing.services.booking_service import BookingService
from detailing.services.cancellation_service import CancellationService
from detailing.services.catalog_service import CatalogService, to_service_response
from detailing.services.customer_service import CustomerService
from detailing.services.email_service import EmailService
from detailing.services.payment_reminder_service import PaymentReminderService
from detailing.services.reschedule_service import RescheduleService
from detailing.services.time_slot_service import TimeSlotService
from detailing.utils.status_transitions import get_status_label, get_valid_next_statuses

router = APIRouter()


# =============================================================================
# Pydantic Schemas
# =============================================================================

class CustomerListResponse(BaseModel):
    items: List[CustomerSummary]
    total: int
    page: int
    page_size: int
    total_pages: int


class CustomerDetailResponse(BaseModel):
    """Customer with their vehicles, addresses and bookings."""
    customer: UserResponse
    vehicles: List[VehicleResponse]
    addresses: List[AddressResponse]
    bookings: List[BookingResponse]


def _total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


def _to_admin_request(request) -> AdminRescheduleRequestResponse:
    response = AdminRescheduleRequestResponse.model_validate(request)
    booking = request.booking
    if booking:
        response.booking_reference = booking.booking_reference
        if booking.customer:
            response.customer_name = f"{booking.customer.first_name} {booking.customer.last_name}".strip()
            response.customer_email = booking.customer.email
    return response


# =============================================================================
# Dashboard
# =============================================================================

@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService(db).get_dashboard_stats()


# =============================================================================
# Bookings
# =============================================================================

@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    status: Optional[BookingStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """List bookings with filters."""
    bookings, total = await BookingService(db).list_bookings(
        status=status,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        page_size=page_size,
    )
    return BookingListResponse(
        items=[AdminBookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=_total_pages(total, page_size),
    )


@router.get("/bookings/{booking_id}", response_model=AdminBookingDetail)
async def get_booking(
    booking_id: UUID,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Booking detail with its status history and allowed next statuses."""
    service = BookingService(db)
    booking = await service.get_by_id(booking_id)
    if not booking:
        raise NotFoundError("Booking not found")

    detail = AdminBookingDetail.model_validate(booking)
    history = await service.get_history(booking_id)
    detail.history = [StatusHistoryResponse.model_validate(h) for h in history]
    detail.next_statuses = [
        StatusOption(status=s, label=get_status_label(s))
        for s in get_valid_next_statuses(booking.status)
    ]
    return detail


@router.patch("/bookings/{booking_id}/status", response_model=StatusUpdateResponse)
async def update_booking_status(
    booking_id: UUID,
    data: StatusUpdateRequest,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a booking to a new status.
    Destructive or warned transitions need confirm=true.
    """
    booking, warnings = await BookingService(db).update_status(
        booking_id,
        data.status,
        changed_by=admin,
        reason=data.reason,
        notes=data.notes,
        confirm=data.confirm,
    )
    return StatusUpdateResponse(booking=AdminBookingResponse.model_validate(booking), warnings=warnings)


@router.post("/bookings/{booking_id}/mark-paid", response_model=AdminBookingResponse)
async def mark_booking_paid(
    booking_id: UUID,
    data: MarkPaidRequest,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).mark_paid(
        booking_id,
        payment_method=data.payment_method,
        payment_reference=data.payment_reference,
        notes=data.admin_notes,
        admin=admin,
        send_email=data.send_confirmation_email,
    )


@router.patch("/bookings/{booking_id}/notes", response_model=AdminBookingResponse)
async def update_booking_notes(
    booking_id: UUID,
    data: AdminNotesUpdate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).update_admin_notes(booking_id, data.admin_notes)


@router.post("/bookings/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: UUID,
    data: AdminCancelRequest,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CancellationService(db).admin_cancel(booking_id, admin, data.reason, data.refund_amount)


@router.post("/bookings/{booking_id}/reschedule", response_model=AdminRescheduleResult)
async def reschedule_booking(
    booking_id: UUID,
    data: AdminReschedule,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Move a booking to a new date and time and tell the customer."""
    booking, old_date, old_time = await RescheduleService(db).admin_reschedule(
        booking_id, data.new_date, data.new_time, admin=admin, reason=data.reason
    )
    return AdminRescheduleResult(
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        status=booking.status.value,
        old_date=old_date,
        old_time=old_time,
        new_date=booking.scheduled_date,
        new_time=booking.scheduled_start_time,
        reason=data.reason,
    )


@router.post("/bookings/{booking_id}/email", response_model=CustomEmailResponse)
async def email_booking_customer(
    booking_id: UUID,
    data: CustomEmailRequest,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Send a free-text email to the booking's customer. Logged like every other email."""
    booking = await BookingService(db).get_by_id(booking_id)
    if not booking or not booking.customer:
        raise NotFoundError("Booking not found")

    notification = await EmailService(db).send_custom(
        booking.customer, data.subject, data.message, booking_id=booking.id
    )
    return CustomEmailResponse(
        sent=notification.status == EmailStatus.SENT,
        notification_id=notification.id,
        error=notification.error_message,
    )


# =============================================================================
# Customers
# =============================================================================

@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    customers, total = await CustomerService(db).list_customers(search, page, page_size)
    return CustomerListResponse(
        items=customers,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=_total_pages(total, page_size),
    )


@router.get("/customers/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(
    customer_id: UUID,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    service = CustomerService(db)
    customer = await service.get_by_id(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")

    return CustomerDetailResponse(
        customer=UserResponse.model_validate(customer),
        vehicles=await service.list_vehicles(customer_id),
        addresses=await service.list_addresses(customer_id),
        bookings=await BookingService(db).list_customer_bookings(customer_id),
    )


# =============================================================================
# Time Slots
# =============================================================================

@router.get("/time-slots", response_model=List[TimeSlotResponse])
async def list_time_slots(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    available_only: bool = Query(False),
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TimeSlotService(db).list_slots(date_from, date_to, available_only)


@router.post("/time-slots", response_model=TimeSlotResponse, status_code=status.HTTP_201_CREATED)
async def create_time_slot(
    data: TimeSlotCreate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TimeSlotService(db).create_slot(data, created_by=admin.id)


@router.post("/time-slots/bulk", response_model=BulkCreateResult, status_code=status.HTTP_201_CREATED)
async def bulk_create_time_slots(
    data: TimeSlotBulkCreate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create many slots at once; past and duplicate slots are skipped and reported."""
    return await TimeSlotService(db).bulk_create(data.slots, created_by=admin.id)


@router.patch("/time-slots/{slot_id}", response_model=TimeSlotResponse)
async def update_time_slot(
    slot_id: UUID,
    data: TimeSlotUpdate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TimeSlotService(db).update_slot(slot_id, data)


@router.delete("/time-slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_slot(
    slot_id: UUID,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await TimeSlotService(db).delete_slot(slot_id)


@router.post("/time-slots/{slot_id}/release", response_model=SlotReleaseResponse)
async def release_time_slot(
    slot_id: UUID,
    data: SlotReleaseRequest,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Free a booked slot. The booking holding it is cancelled and the customer told."""
    slot, booking, email_sent = await TimeSlotService(db).release_slot(slot_id, data.reason, admin)
    return SlotReleaseResponse(
        slot=TimeSlotResponse.model_validate(slot),
        cancelled_booking_reference=booking.booking_reference if booking else None,
        email_sent=email_sent,
    )


# =============================================================================
# Reschedule Requests
# =============================================================================

@router.get("/reschedule-requests", response_model=List[AdminRescheduleRequestResponse])
async def list_reschedule_requests(
    status: Optional[RescheduleStatus] = Query(None),
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    requests = await RescheduleService(db).list_requests(status)
    return [_to_admin_request(r) for r in requests]


@router.post("/reschedule-requests/{request_id}/respond", response_model=AdminRescheduleRequestResponse)
async def respond_to_reschedule_request(
    request_id: UUID,
    data: RescheduleRespond,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    request = await RescheduleService(db).respond(
        request_id,
        data.action,
        admin=admin,
        admin_response=data.admin_response,
        admin_notes=data.admin_notes,
        proposed_date=data.proposed_date,
        proposed_time=data.proposed_time,
    )
    return _to_admin_request(request)


# =============================================================================
# Services
# =============================================================================

@router.get("/services", response_model=List[ServiceResponse])
async def list_all_services(
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    services = await CatalogService(db).list_services(include_inactive=True)
    return [to_service_response(s) for s in services]


@router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    service = await CatalogService(db).create_service(data)
    return to_service_response(service)


@router.patch("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    service = await CatalogService(db).update_service(service_id, data)
    if not service:
        raise NotFoundError("Service not found")
    return to_service_response(service)


@router.put("/services/{service_id}/pricing", response_model=ServiceResponse)
async def set_service_pricing(
    service_id: UUID,
    data: PricingSchema,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    service = await CatalogService(db).set_pricing(service_id, data)
    if not service:
        raise NotFoundError("Service not found")
    return to_service_response(service)


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CatalogService(db).create_category(data)


# =============================================================================
# Payments
# =============================================================================

@router.get("/payment-reminders", response_model=List[OverduePayment])
async def list_overdue_payments(
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Unpaid bookings old enough to be chased."""
    return await PaymentReminderService(db).get_overdue_payments()


@router.post("/payment-reminders", response_model=ReminderRunResult)
async def send_payment_reminders(
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await PaymentReminderService(db).process_payment_reminders()


@router.post("/check-payment-deadlines", response_model=DeadlineRunResult)
async def check_payment_deadlines(
    admin: UserProfile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Mark unpaid bookings past their payment deadline as payment failed."""
    return await PaymentReminderService(db).check_payment_deadlines()
