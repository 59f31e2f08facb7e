"""Customer service - profile, vehicles and addresses."""

import logging
from datetime import datetime
from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.exceptions import ConflictError, NotFoundError, ValidationError
from detailing.models.booking import Booking, PaymentStatus
from detailing.models.customer import CustomerVehicle, CustomerAddress
from detailing.models.user import UserProfile, UserRole
from detailing.schemas.customer import (
    ProfileUpdate,
    VehicleCreate,
    VehicleUpdate,
    AddressCreate,
    AddressUpdate,
    CustomerSummary,
)
from detailing.services.pricing_service import PricingService
from detailing.utils.phone import normalize_phone
from detailing.utils.status_transitions import STATUS_CATEGORIES
from detailing.utils.vehicle_size import detect_vehicle_size

logger = logging.getLogger(__name__)


class CustomerService:
    """Service for customer operations."""

    def __init__(self, db: AsyncSession, pricing_service: Optional[PricingService] = None):
        self.db = db
        self.pricing = pricing_service or PricingService(db)

    async def get_by_id(self, user_id: UUID) -> Optional[UserProfile]:
        """Get customer by ID."""
        return await self.db.get(UserProfile, user_id)

    async def get_by_email(self, email: str) -> Optional[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(func.lower(UserProfile.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def update_profile(self, user: UserProfile, data: ProfileUpdate) -> UserProfile:
        """Update customer profile."""
        update_data = data.model_dump(exclude_unset=True)
        if "phone" in update_data:
            try:
                update_data["phone"] = normalize_phone(update_data["phone"])
            except ValueError as e:
                raise ValidationError(str(e), code="INVALID_PHONE")

        for field, value in update_data.items():
            setattr(user, field, value)

        user.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(user)
        return user

    # =========================================================================
    # Vehicles
    # =========================================================================

    async def list_vehicles(self, user_id: UUID) -> List[CustomerVehicle]:
        result = await self.db.execute(
            select(CustomerVehicle)
            .where(CustomerVehicle.user_id == user_id, CustomerVehicle.is_active == True)
            .order_by(CustomerVehicle.is_primary.desc(), CustomerVehicle.created_at)
        )
        return list(result.scalars())

    async def get_vehicle(self, vehicle_id: UUID, user_id: UUID) -> Optional[CustomerVehicle]:
        result = await self.db.execute(
            select(CustomerVehicle).where(
                CustomerVehicle.id == vehicle_id,
                CustomerVehicle.user_id == user_id,
                CustomerVehicle.is_active == True,
            )
        )
        return result.scalar_one_or_none()

    async def _clear_primary(self, model, user_id: UUID) -> None:
        await self.db.execute(
            update(model)
            .where(model.user_id == user_id, model.is_primary == True)
            .values(is_primary=False)
            .execution_options(synchronize_session=False)
        )

    async def create_vehicle(self, user_id: UUID, data: VehicleCreate) -> CustomerVehicle:
        existing = await self.list_vehicles(user_id)
        is_primary = data.is_primary or not existing
        if is_primary:
            await self._clear_primary(CustomerVehicle, user_id)

        values = data.model_dump(exclude={"is_primary"})
        if not values.get("vehicle_size"):
            values["vehicle_size"] = detect_vehicle_size(data.make, data.model)

        vehicle = CustomerVehicle(user_id=user_id, is_primary=is_primary, **values)
        self.db.add(vehicle)
        await self.db.commit()
        await self.db.refresh(vehicle)
        return vehicle

    async def update_vehicle(
        self, vehicle_id: UUID, user_id: UUID, data: VehicleUpdate
    ) -> CustomerVehicle:
        vehicle = await self.get_vehicle(vehicle_id, user_id)
        if not vehicle:
            raise NotFoundError("Vehicle not found")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("is_primary"):
            await self._clear_primary(CustomerVehicle, user_id)

        # Re-detect size when make/model change and no size was given
        if ("make" in update_data or "model" in update_data) and not update_data.get("vehicle_size"):
            update_data["vehicle_size"] = detect_vehicle_size(
                update_data.get("make", vehicle.make), update_data.get("model", vehicle.model)
            )
        elif "vehicle_size" in update_data and not update_data["vehicle_size"]:
            del update_data["vehicle_size"]

        for field, value in update_data.items():
            setattr(vehicle, field, value)

        await self.db.commit()
        await self.db.refresh(vehicle)
        return vehicle

    async def set_primary_vehicle(self, vehicle_id: UUID, user_id: UUID) -> CustomerVehicle:
        vehicle = await self.get_vehicle(vehicle_id, user_id)
        if not vehicle:
            raise NotFoundError("Vehicle not found")
        await self._clear_primary(CustomerVehicle, user_id)
        vehicle.is_primary = True
        await self.db.commit()
        await self.db.refresh(vehicle)
        return vehicle

    async def delete_vehicle(self, vehicle_id: UUID, user_id: UUID) -> None:
        """Delete a vehicle; vehicles with bookings are deactivated instead."""
        vehicle = await self.get_vehicle(vehicle_id, user_id)
        if not vehicle:
            raise NotFoundError("Vehicle not found")

        used = await self.db.execute(select(Booking.id).where(Booking.vehicle_id == vehicle_id).limit(1))
        if used.first():
            vehicle.is_active = False
            vehicle.is_primary = False
        else:
            await self.db.delete(vehicle)
        await self.db.commit()

    # =========================================================================
    # Addresses
    # =========================================================================

    async def list_addresses(self, user_id: UUID) -> List[CustomerAddress]:
        result = await self.db.execute(
            select(CustomerAddress)
            .where(CustomerAddress.user_id == user_id)
            .order_by(CustomerAddress.is_primary.desc(), CustomerAddress.created_at)
        )
        return list(result.scalars())

    async def get_address(self, address_id: UUID, user_id: UUID) -> Optional[CustomerAddress]:
        """Get a specific address."""
        result = await self.db.execute(
            select(CustomerAddress).where(
                CustomerAddress.id == address_id,
                CustomerAddress.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def create_address(self, user_id: UUID, data: AddressCreate) -> CustomerAddress:
        existing = await self.list_addresses(user_id)
        is_primary = data.is_primary or not existing
        if is_primary:
            await self._clear_primary(CustomerAddress, user_id)

        distance = await self.pricing.calculate_distance(data.postal_code)
        address = CustomerAddress(
            user_id=user_id,
            is_primary=is_primary,
            distance_miles=distance.distance_miles,
            **data.model_dump(exclude={"is_primary"}),
        )
        self.db.add(address)
        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def update_address(
        self, address_id: UUID, user_id: UUID, data: AddressUpdate
    ) -> CustomerAddress:
        address = await self.get_address(address_id, user_id)
        if not address:
            raise NotFoundError("Address not found")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("is_primary"):
            await self._clear_primary(CustomerAddress, user_id)
        if update_data.get("postal_code") and update_data["postal_code"] != address.postal_code:
            distance = await self.pricing.calculate_distance(update_data["postal_code"])
            update_data["distance_miles"] = distance.distance_miles

        for field, value in update_data.items():
            if value is None and field in ("address_line_1", "city", "postal_code", "is_primary"):
                continue
            setattr(address, field, value)

        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def set_primary_address(self, address_id: UUID, user_id: UUID) -> CustomerAddress:
        address = await self.get_address(address_id, user_id)
        if not address:
            raise NotFoundError("Address not found")
        await self._clear_primary(CustomerAddress, user_id)
        address.is_primary = True
        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def delete_address(self, address_id: UUID, user_id: UUID) -> None:
        """Delete an address that no active booking uses."""
        address = await self.get_address(address_id, user_id)
        if not address:
            raise NotFoundError("Address not found")

        in_use = await self.db.execute(
            select(Booking.id).where(
                Booking.address_id == address_id,
                Booking.status.in_(list(STATUS_CATEGORIES["active"])),
            ).limit(1)
        )
        if in_use.first():
            raise ConflictError("Address is used by an active booking", code="ADDRESS_IN_USE")

        # Past bookings keep their address snapshot
        await self.db.execute(
            update(Booking).where(Booking.address_id == address_id).values(address_id=None)
        )
        await self.db.delete(address)
        await self.db.commit()

    # =========================================================================
    # Admin
    # =========================================================================

    async def list_customers(
        self,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[CustomerSummary], int]:
        """Customers with booking counts and total paid."""
        booking_count = func.count(Booking.id)
        total_spent = func.coalesce(
            func.sum(Booking.total_price).filter(Booking.payment_status == PaymentStatus.PAID), 0
        )
        query = (
            select(UserProfile, booking_count, total_spent)
            .outerjoin(Booking, Booking.customer_id == UserProfile.id)
            .where(UserProfile.role == UserRole.CUSTOMER)
            .group_by(UserProfile.id)
        )
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(
                UserProfile.email.ilike(term),
                UserProfile.first_name.ilike(term),
                UserProfile.last_name.ilike(term),
                UserProfile.phone.ilike(term),
            ))

        count_query = select(func.count()).select_from(
            select(UserProfile.id).where(UserProfile.role == UserRole.CUSTOMER).subquery()
            if not search else query.subquery()
        )
        total = (await self.db.execute(count_query)).scalar()

        query = query.order_by(UserProfile.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        rows = (await self.db.execute(query)).all()

        customers = [
            CustomerSummary(
                id=user.id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                phone=user.phone,
                is_active=user.is_active,
                booking_count=count or 0,
                total_spent=float(spent or 0),
                created_at=user.created_at,
            )
            for user, count, spent in rows
        ]
        return customers, total
