"""Customer portal API routes."""

from typing import Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.api.deps import get_current_customer, get_current_session_id
from detailing.exceptions import NotFoundError
from detailing.models.booking import BookingStatus
from detailing.models.user import UserProfile
from detailing.schemas.auth import PasswordChange, UserResponse
from detailing.schemas.booking import (
    BookingResponse,
    CancelRequest,
    CancellationPolicyResponse,
    CancellationResponse,
)
from detailing.schemas.customer import (
    ProfileUpdate,
    VehicleCreate,
    VehicleUpdate,
    VehicleResponse,
    AddressCreate,
    AddressUpdate,
    AddressResponse,
)
from detailing.schemas.reschedule import RescheduleRequestCreate, RescheduleRequestResponse
from detailing.services.auth_service import AuthService
from detailing.services.booking_service import BookingService
from detailing.services.cancellation_service import CancellationService
from detailing.services.customer_service import CustomerService
from detailing.services.reschedule_service import RescheduleService

router = APIRouter()


# =============================================================================
# Profile
# =============================================================================

@router.get("/profile", response_model=UserResponse)
async def get_profile(customer: UserProfile = Depends(get_current_customer)):
    return customer


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).update_profile(customer, data)


@router.post("/password")
async def change_password(
    data: PasswordChange,
    customer: UserProfile = Depends(get_current_customer),
    session_id: Optional[UUID] = Depends(get_current_session_id),
    db: AsyncSession = Depends(get_db),
):
    """Change password after checking the current one. Other devices are signed out."""
    await AuthService(db).change_password(
        customer, data.current_password, data.new_password, keep_session_id=session_id
    )
    return {"message": "Password updated successfully"}


# =============================================================================
# Vehicles
# =============================================================================

@router.get("/vehicles", response_model=List[VehicleResponse])
async def list_vehicles(
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).list_vehicles(customer.id)


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    data: VehicleCreate,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """Add a vehicle. Size is detected from make and model when not given."""
    return await CustomerService(db).create_vehicle(customer.id, data)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    vehicle = await CustomerService(db).get_vehicle(vehicle_id, customer.id)
    if not vehicle:
        raise NotFoundError("Vehicle not found")
    return vehicle


@router.patch("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: UUID,
    data: VehicleUpdate,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).update_vehicle(vehicle_id, customer.id, data)


@router.post("/vehicles/{vehicle_id}/primary", response_model=VehicleResponse)
async def set_primary_vehicle(
    vehicle_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).set_primary_vehicle(vehicle_id, customer.id)


@router.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    await CustomerService(db).delete_vehicle(vehicle_id, customer.id)


# =============================================================================
# Addresses
# =============================================================================

@router.get("/addresses", response_model=List[AddressResponse])
async def list_addresses(
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).list_addresses(customer.id)


@router.post("/addresses", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(
    data: AddressCreate,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).create_address(customer.id, data)


@router.get("/addresses/{address_id}", response_model=AddressResponse)
async def get_address(
    address_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    address = await CustomerService(db).get_address(address_id, customer.id)
    if not address:
        raise NotFoundError("Address not found")
    return address


@router.patch("/addresses/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: UUID,
    data: AddressUpdate,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).update_address(address_id, customer.id, data)


@router.post("/addresses/{address_id}/primary", response_model=AddressResponse)
async def set_primary_address(
    address_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService(db).set_primary_address(address_id, customer.id)


@router.delete("/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(
    address_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    await CustomerService(db).delete_address(address_id, customer.id)


# =============================================================================
# Bookings
# =============================================================================

@router.get("/bookings", response_model=List[BookingResponse])
async def list_my_bookings(
    status: Optional[BookingStatus] = Query(None),
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await BookingService(db).list_customer_bookings(customer.id, status)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_my_booking(
    booking_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    booking = await BookingService(db).get_by_id(booking_id)
    if not booking or booking.customer_id != customer.id:
        raise NotFoundError("Booking not found")
    return booking


@router.get("/bookings/{booking_id}/cancellation-policy", response_model=CancellationPolicyResponse)
async def get_cancellation_policy(
    booking_id: UUID,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """What happens if the customer cancels now."""
    return await CancellationService(db).get_policy(booking_id, customer.id)


@router.post("/bookings/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: UUID,
    data: CancelRequest,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a booking.
    Inside the notice window acknowledge_no_refund must be true.
    """
    return await CancellationService(db).cancel_booking(
        booking_id, customer.id, data.reason, data.acknowledge_no_refund
    )


@router.post(
    "/bookings/{booking_id}/reschedule",
    response_model=RescheduleRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_reschedule(
    booking_id: UUID,
    data: RescheduleRequestCreate,
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await RescheduleService(db).request_reschedule(
        booking_id,
        customer.id,
        data.requested_date,
        data.requested_time,
        data.reason,
    )


@router.get("/reschedule-requests", response_model=List[RescheduleRequestResponse])
async def list_my_reschedule_requests(
    customer: UserProfile = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await RescheduleService(db).list_customer_requests(customer.id)
