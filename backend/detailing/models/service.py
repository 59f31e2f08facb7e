"""Service catalogue models."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Integer, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from detailing.database import Base


class ServiceCategory(Base):
    """Grouping for services (e.g. 'Exterior', 'Full Valet')."""

    __tablename__ = "service_categories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    services = relationship("Service", back_populates="category")

    def __repr__(self):
        return f"<ServiceCategory {self.name}>"


class Service(Base):
    """A detailing service that can be booked."""

    __tablename__ = "services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category_id = Column(UUID(as_uuid=True), ForeignKey("service_categories.id"))

    name = Column(String(150), nullable=False)
    short_description = Column(String(255))
    full_description = Column(Text)
    base_duration_minutes = Column(Integer, default=60)

    is_active = Column(Boolean, default=True)
    display_order = Column(Integer, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("ServiceCategory", back_populates="services")
    pricing = relationship("ServicePricing", back_populates="service", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Service {self.name}>"


class ServicePricing(Base):
    """Price of a service per vehicle size."""

    __tablename__ = "service_pricing"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, unique=True)

    small = Column(Numeric(10, 2))
    medium = Column(Numeric(10, 2))
    large = Column(Numeric(10, 2))
    extra_large = Column(Numeric(10, 2))

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    service = relationship("Service", back_populates="pricing")

    def prices(self) -> dict:
        """Prices keyed by column name, skipping unset sizes."""
        values = {
            "small": self.small,
            "medium": self.medium,
            "large": self.large,
            "extra_large": self.extra_large,
        }
        return {k: v for k, v in values.items() if v is not None}

    def __repr__(self):
        return f"<ServicePricing {self.service_id}>"
