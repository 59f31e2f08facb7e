"""Booking-related Pydantic schemas."""

from datetime import datetime, date, time
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from detailing.models.booking import BookingStatus, PaymentStatus, PaymentMethod
from detailing.schemas.customer import VehicleBase, AddressBase
from detailing.utils.vehicle_size import normalize_size


# =============================================================================
# Quotes
# =============================================================================

class PriceQuoteRequest(BaseModel):
    service_id: UUID
    vehicle_size: str
    postcode: Optional[str] = None

    @field_validator("vehicle_size")
    @classmethod
    def check_size(cls, v):
        size = normalize_size(v)
        if size is None:
            raise ValueError("Vehicle size must be one of S, M, L, XL")
        return size


class DistanceInfo(BaseModel):
    postcode: str
    distance_km: float
    distance_miles: float
    within_free_radius: bool
    surcharge: float
    description: str


class PriceQuoteResponse(BaseModel):
    service_id: UUID
    service_name: str
    vehicle_size: str
    size_label: str
    base_price: float
    distance_surcharge: float
    total_price: float
    estimated_duration: int
    distance: Optional[DistanceInfo] = None


# =============================================================================
# Create
# =============================================================================

class BookingCustomerInput(BaseModel):
    """Guest checkout details. Ignored when the caller is logged in."""
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    password: Optional[str] = Field(None, min_length=8, max_length=128)


class BookingVehicleInput(VehicleBase):
    pass


class BookingAddressInput(AddressBase):
    pass


class BookingCreate(BaseModel):
    """Schema for creating a booking from the booking wizard."""

    service_id: UUID
    time_slot_id: UUID

    customer: Optional[BookingCustomerInput] = None

    # Vehicle - either saved vehicle ID or inline
    vehicle_id: Optional[UUID] = None
    vehicle: Optional[BookingVehicleInput] = None

    # Address - either saved address ID or inline
    address_id: Optional[UUID] = None
    address: Optional[BookingAddressInput] = None

    special_instructions: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_vehicle_and_address(self):
        if not self.vehicle_id and not self.vehicle:
            raise ValueError("Either vehicle_id or vehicle must be provided")
        if not self.address_id and not self.address:
            raise ValueError("Either address_id or address must be provided")
        return self


# =============================================================================
# Responses
# =============================================================================

class BookingServiceItemResponse(BaseModel):
    service_id: UUID
    service_name: str
    price: float
    estimated_duration: Optional[int]

    class Config:
        from_attributes = True


class BookingCustomerResponse(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    id: UUID
    booking_reference: str
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod]
    payment_deadline: Optional[datetime]
    scheduled_date: date
    scheduled_start_time: time
    scheduled_end_time: Optional[time]
    estimated_duration: Optional[int]
    vehicle_size: Optional[str]
    base_price: float
    distance_surcharge: float
    total_price: float
    vehicle_details: Optional[dict]
    service_address: Optional[dict]
    special_instructions: Optional[str]
    services: List[BookingServiceItemResponse] = []
    created_at: datetime
    confirmed_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]

    class Config:
        from_attributes = True


class AdminBookingResponse(BookingResponse):
    customer: Optional[BookingCustomerResponse]
    payment_reference: Optional[str]
    admin_notes: Optional[str]
    payment_reminder_count: Optional[int]
    time_slot_id: Optional[UUID]


class StatusHistoryResponse(BaseModel):
    id: UUID
    from_status: Optional[str]
    to_status: str
    changed_by: Optional[UUID]
    reason: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class StatusOption(BaseModel):
    status: BookingStatus
    label: str


class AdminBookingDetail(AdminBookingResponse):
    history: List[StatusHistoryResponse] = []
    next_statuses: List[StatusOption] = []


class BookingListResponse(BaseModel):
    items: List[AdminBookingResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class PaymentInstructions(BaseModel):
    payment_link: str
    amount: float
    currency: str
    reference: str
    deadline: datetime
    instructions: List[str]


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    payment: PaymentInstructions
    is_new_customer: bool
    message: str


# =============================================================================
# Admin actions
# =============================================================================

class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = None
    confirm: bool = False  # Required for destructive or warned transitions


class StatusUpdateResponse(BaseModel):
    booking: AdminBookingResponse
    warnings: List[str] = []


class MarkPaidRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.PAYPAL
    payment_reference: Optional[str] = Field(None, max_length=100)
    admin_notes: Optional[str] = None
    send_confirmation_email: bool = True


class AdminNotesUpdate(BaseModel):
    admin_notes: str


# =============================================================================
# Cancellation
# =============================================================================

class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    acknowledge_no_refund: bool = False


class AdminCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    refund_amount: Optional[float] = Field(None, ge=0)


class CustomEmailRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=10000)


class CustomEmailResponse(BaseModel):
    sent: bool
    notification_id: UUID
    error: Optional[str] = None


class CancellationPolicyResponse(BaseModel):
    can_cancel: bool
    hours_until_appointment: float
    refund_eligible: bool
    requires_acknowledgement: bool
    warning_message: Optional[str]


class CancellationResponse(BaseModel):
    booking: BookingResponse
    policy: CancellationPolicyResponse
    refund_amount: float
    time_slot_freed: bool
    email_sent: bool
    message: str
