"""Customer vehicles and service addresses."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Integer, Float
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from detailing.database import Base


class CustomerVehicle(Base):
    """Vehicles a customer has booked (or saved) for detailing."""

    __tablename__ = "customer_vehicles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False)

    # Vehicle
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer)
    color = Column(String(50))
    registration = Column(String(20))  # Formatted UK plate, e.g. 'AB12 CDE'
    vehicle_size = Column(String(2), nullable=False, default="M")  # S, M, L, XL
    notes = Column(Text)

    # Flags
    is_primary = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("UserProfile", back_populates="vehicles")

    @property
    def display_name(self) -> str:
        parts = [str(self.year) if self.year else None, self.make, self.model]
        return " ".join(p for p in parts if p)

    def __repr__(self):
        return f"<CustomerVehicle {self.make} {self.model} ({self.vehicle_size})>"


class CustomerAddress(Base):
    """Service addresses - customers can have multiple."""

    __tablename__ = "customer_addresses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False)

    # Address Label
    name = Column(String(50), default="Home")

    # Address Components
    address_line_1 = Column(String(255), nullable=False)
    address_line_2 = Column(String(255))
    city = Column(String(100), nullable=False)
    county = Column(String(100))
    postal_code = Column(String(10), nullable=False)  # Formatted UK postcode

    # Cached distance from the business base
    distance_miles = Column(Float)

    # Default flag
    is_primary = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("UserProfile", back_populates="addresses")

    @property
    def full_address(self) -> str:
        """Return formatted full address."""
        parts = [self.address_line_1]
        if self.address_line_2:
            parts.append(self.address_line_2)
        parts.append(self.city)
        parts.append(self.postal_code)
        return ", ".join(parts)

    def __repr__(self):
        return f"<CustomerAddress {self.address_line_1}, {self.postal_code}>"
