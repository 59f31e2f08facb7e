"""Service catalogue schemas."""

from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field


class CategoryResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    display_order: int

    class Config:
        from_attributes = True


class PricingSchema(BaseModel):
    """Price per vehicle size (GBP)."""
    small: Optional[float] = Field(None, ge=0)
    medium: Optional[float] = Field(None, ge=0)
    large: Optional[float] = Field(None, ge=0)
    extra_large: Optional[float] = Field(None, ge=0)

    class Config:
        from_attributes = True


class ServiceResponse(BaseModel):
    id: UUID
    name: str
    short_description: Optional[str]
    full_description: Optional[str]
    category: Optional[CategoryResponse]
    base_duration_minutes: int
    is_active: bool
    display_order: int
    pricing: Optional[PricingSchema]
    price_from: Optional[float] = None
    price_to: Optional[float] = None


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    short_description: Optional[str] = Field(None, max_length=255)
    full_description: Optional[str] = None
    category_id: Optional[UUID] = None
    base_duration_minutes: int = Field(60, gt=0, le=24 * 60)
    display_order: int = 0
    is_active: bool = True
    pricing: Optional[PricingSchema] = None


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    short_description: Optional[str] = Field(None, max_length=255)
    full_description: Optional[str] = None
    category_id: Optional[UUID] = None
    base_duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    display_order: int = 0


class VehicleSizeResponse(BaseModel):
    code: str
    label: str
    examples: str


class ServiceListResponse(BaseModel):
    services: List[ServiceResponse]
    vehicle_sizes: List[VehicleSizeResponse]
