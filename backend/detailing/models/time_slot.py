"""Bookable time slots."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Time, Date, Index
from sqlalchemy.dialects.postgresql import UUID
from detailing.database import Base


class TimeSlot(Base):
    """
    A bookable calendar interval.
    is_available is flipped with a conditional UPDATE so that only one
    booking can ever claim a slot.
    """

    __tablename__ = "time_slots"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)

    # Availability
    is_available = Column(Boolean, default=True, nullable=False)
    booking_reference = Column(String(50))
    notes = Column(Text)

    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id"))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_time_slots_date_start", "slot_date", "start_time", unique=True),
    )

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.slot_date, self.start_time)

    def __repr__(self):
        return f"<TimeSlot {self.slot_date} {self.start_time} available={self.is_available}>"
