"""Booking models - the core entity of the system."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, ForeignKey, Text, Date, Time, Integer, Numeric, JSON, Enum, Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from detailing.database import Base


class BookingStatus(str, PyEnum):
    """Booking status enumeration."""
    PENDING = "pending"                # Created, awaiting payment/confirmation
    PROCESSING = "processing"          # Payment in flight
    PAYMENT_FAILED = "payment_failed"  # Deadline passed or payment rejected
    CONFIRMED = "confirmed"            # Paid or confirmed by admin
    RESCHEDULED = "rescheduled"        # Moved to a new date/time
    IN_PROGRESS = "in_progress"        # Detailer on site
    COMPLETED = "completed"            # Work finished
    DECLINED = "declined"              # Rejected by admin
    CANCELLED = "cancelled"            # Cancelled by customer or admin
    NO_SHOW = "no_show"                # Customer/vehicle unavailable


class PaymentStatus(str, PyEnum):
    """Payment status enumeration."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, PyEnum):
    """How the booking was paid."""
    PAYPAL = "paypal"
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class RescheduleStatus(str, PyEnum):
    """Reschedule request status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Booking(Base):
    """Booking entity - a detailing appointment for one vehicle."""

    __tablename__ = "bookings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_reference = Column(String(50), nullable=False, unique=True, index=True)

    customer_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False)
    vehicle_id = Column(UUID(as_uuid=True), ForeignKey("customer_vehicles.id"))
    address_id = Column(UUID(as_uuid=True), ForeignKey("customer_addresses.id"))
    time_slot_id = Column(UUID(as_uuid=True), ForeignKey("time_slots.id"))

    # Scheduling
    scheduled_date = Column(Date, nullable=False)
    scheduled_start_time = Column(Time, nullable=False)
    scheduled_end_time = Column(Time)
    estimated_duration = Column(Integer)  # minutes

    # Status
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)

    # Payment
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod))
    payment_reference = Column(String(100))
    payment_deadline = Column(DateTime)
    payment_reminder_count = Column(Integer, default=0)
    last_payment_reminder_at = Column(DateTime)

    # Pricing
    vehicle_size = Column(String(2))
    base_price = Column(Numeric(10, 2), nullable=False)
    distance_surcharge = Column(Numeric(10, 2), default=0)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Snapshots (kept even if the vehicle/address is later edited)
    vehicle_details = Column(JSON)
    service_address = Column(JSON)

    # Notes
    special_instructions = Column(Text)
    admin_notes = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancelled_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id"))
    cancellation_reason = Column(Text)

    # Relationships
    customer = relationship(
        "UserProfile", back_populates="bookings", foreign_keys=[customer_id], lazy="selectin"
    )
    vehicle = relationship("CustomerVehicle", lazy="selectin")
    address = relationship("CustomerAddress", lazy="selectin")
    time_slot = relationship("TimeSlot")
    services = relationship(
        "BookingServiceItem", back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )
    status_history = relationship(
        "BookingStatusHistory", back_populates="booking", cascade="all, delete-orphan",
        order_by="BookingStatusHistory.created_at",
    )
    reschedule_requests = relationship(
        "BookingRescheduleRequest", back_populates="booking", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_bookings_customer", "customer_id"),
        Index("ix_bookings_schedule", "scheduled_date", "scheduled_start_time"),
        Index("ix_bookings_payment_deadline", "status", "payment_status", "payment_deadline"),
    )

    @property
    def scheduled_at(self) -> datetime:
        return datetime.combine(self.scheduled_date, self.scheduled_start_time)

    def __repr__(self):
        return f"<Booking {self.booking_reference}>"


class BookingServiceItem(Base):
    """A service line on a booking, priced at booking time."""

    __tablename__ = "booking_services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id"), nullable=False)

    service_details = Column(JSON)  # name/category snapshot
    price = Column(Numeric(10, 2), nullable=False)
    estimated_duration = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="services")

    @property
    def service_name(self) -> str:
        return (self.service_details or {}).get("name", "Service")

    def __repr__(self):
        return f"<BookingServiceItem {self.booking_id} {self.service_id}>"


class BookingStatusHistory(Base):
    """Track all status changes for auditing."""

    __tablename__ = "booking_status_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)

    # Status change
    from_status = Column(String(50))
    to_status = Column(String(50), nullable=False)

    # Who made the change (null = system)
    changed_by = Column(UUID(as_uuid=True))

    reason = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="status_history")

    def __repr__(self):
        return f"<BookingStatusHistory {self.from_status} -> {self.to_status}>"


class BookingRescheduleRequest(Base):
    """Customer request to move a booking, answered by an admin."""

    __tablename__ = "booking_reschedule_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False)

    # Where it was, where the customer wants it
    original_date = Column(Date, nullable=False)
    original_time = Column(Time, nullable=False)
    requested_date = Column(Date, nullable=False)
    requested_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=False)

    # Admin response
    status = Column(Enum(RescheduleStatus), default=RescheduleStatus.PENDING, nullable=False)
    admin_response = Column(Text)
    admin_notes = Column(Text)
    responded_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id"))
    responded_at = Column(DateTime)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    booking = relationship("Booking", back_populates="reschedule_requests", lazy="selectin")

    __table_args__ = (
        Index("ix_reschedule_requests_booking_status", "booking_id", "status"),
    )

    def __repr__(self):
        return f"<BookingRescheduleRequest {self.booking_id} {self.status.value}>"
