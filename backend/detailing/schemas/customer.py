"""Customer profile, vehicle and address schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from detailing.utils.license_plate import validate_uk_plate, format_uk_plate
from detailing.utils.postcode import validate_uk_postcode, format_uk_postcode
from detailing.utils.vehicle_size import normalize_size


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


# =============================================================================
# Vehicles
# =============================================================================

def _clean_registration(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    if not validate_uk_plate(v):
        raise ValueError("Invalid UK registration plate")
    return format_uk_plate(v)


def _clean_size(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    size = normalize_size(v)
    if size is None:
        raise ValueError("Vehicle size must be one of S, M, L, XL")
    return size


def _clean_postcode(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if not validate_uk_postcode(v):
        raise ValueError("Invalid UK postcode")
    return format_uk_postcode(v)


class VehicleBase(BaseModel):
    make: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    color: Optional[str] = Field(None, max_length=50)
    registration: Optional[str] = Field(None, max_length=20)
    vehicle_size: Optional[str] = None  # S/M/L/XL, detected when omitted
    notes: Optional[str] = None

    @field_validator("registration")
    @classmethod
    def check_registration(cls, v):
        return _clean_registration(v)

    @field_validator("vehicle_size")
    @classmethod
    def check_size(cls, v):
        return _clean_size(v)


class VehicleCreate(VehicleBase):
    is_primary: bool = False


class VehicleUpdate(BaseModel):
    make: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    color: Optional[str] = Field(None, max_length=50)
    registration: Optional[str] = Field(None, max_length=20)
    vehicle_size: Optional[str] = None
    notes: Optional[str] = None
    is_primary: Optional[bool] = None

    @field_validator("registration")
    @classmethod
    def check_registration(cls, v):
        return _clean_registration(v)

    @field_validator("vehicle_size")
    @classmethod
    def check_size(cls, v):
        return _clean_size(v)


class VehicleResponse(BaseModel):
    id: UUID
    make: str
    model: str
    year: Optional[int]
    color: Optional[str]
    registration: Optional[str]
    vehicle_size: str
    notes: Optional[str]
    is_primary: bool
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Addresses
# =============================================================================

class AddressBase(BaseModel):
    name: Optional[str] = Field("Home", max_length=50)
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    county: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., max_length=10)

    @field_validator("postal_code")
    @classmethod
    def check_postcode(cls, v):
        return _clean_postcode(v)


class AddressCreate(AddressBase):
    is_primary: bool = False


class AddressUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    address_line_1: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    county: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=10)
    is_primary: Optional[bool] = None

    @field_validator("postal_code")
    @classmethod
    def check_postcode(cls, v):
        return _clean_postcode(v)


class AddressResponse(BaseModel):
    id: UUID
    name: Optional[str]
    address_line_1: str
    address_line_2: Optional[str]
    city: str
    county: Optional[str]
    postal_code: str
    distance_miles: Optional[float]
    is_primary: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CustomerSummary(BaseModel):
    """Customer row for admin listings."""
    id: UUID
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    is_active: bool
    booking_count: int = 0
    total_spent: float = 0
    created_at: datetime
