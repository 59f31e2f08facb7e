"""Catalog service - services, categories and pricing."""

from typing import Optional, List
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.exc import IntegrityError

from detailing.exceptions import ConflictError, NotFoundError
from detailing.models.service import Service, ServiceCategory, ServicePricing
from detailing.schemas.service import (
    CategoryCreate,
    PricingSchema,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    VehicleSizeResponse,
    CategoryResponse,
)
from detailing.utils.vehicle_size import SIZE_LABELS, SIZE_EXAMPLES


def vehicle_sizes() -> List[VehicleSizeResponse]:
    return [
        VehicleSizeResponse(code=code, label=label, examples=SIZE_EXAMPLES[code])
        for code, label in SIZE_LABELS.items()
    ]


def to_service_response(service: Service) -> ServiceResponse:
    """Build the public view, including the price range across sizes."""
    pricing = None
    price_from = price_to = None
    if service.pricing and service.pricing.is_active:
        pricing = PricingSchema.model_validate(service.pricing)
        values = [float(v) for v in service.pricing.prices().values()]
        if values:
            price_from, price_to = min(values), max(values)

    return ServiceResponse(
        id=service.id,
        name=service.name,
        short_description=service.short_description,
        full_description=service.full_description,
        category=CategoryResponse.model_validate(service.category) if service.category else None,
        base_duration_minutes=service.base_duration_minutes,
        is_active=service.is_active,
        display_order=service.display_order or 0,
        pricing=pricing,
        price_from=price_from,
        price_to=price_to,
    )


class CatalogService:
    """Service for the service catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_services(self, include_inactive: bool = False) -> List[Service]:
        query = (
            select(Service)
            .options(selectinload(Service.pricing), selectinload(Service.category))
            .order_by(Service.display_order, Service.name)
        )
        if not include_inactive:
            query = query.where(Service.is_active == True)
        result = await self.db.execute(query)
        return list(result.scalars())

    async def get_service(self, service_id: UUID) -> Optional[Service]:
        result = await self.db.execute(
            select(Service)
            .options(selectinload(Service.pricing), selectinload(Service.category))
            .where(Service.id == service_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_categories(self) -> List[ServiceCategory]:
        result = await self.db.execute(
            select(ServiceCategory)
            .where(ServiceCategory.is_active == True)
            .order_by(ServiceCategory.display_order, ServiceCategory.name)
        )
        return list(result.scalars())

    async def create_category(self, data: CategoryCreate) -> ServiceCategory:
        category = ServiceCategory(**data.model_dump())
        self.db.add(category)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("A category with this name already exists")
        await self.db.refresh(category)
        return category

    async def create_service(self, data: ServiceCreate) -> Service:
        if data.category_id and not await self.db.get(ServiceCategory, data.category_id):
            raise NotFoundError("Category not found")

        service = Service(**data.model_dump(exclude={"pricing"}))
        self.db.add(service)
        await self.db.flush()

        if data.pricing:
            self.db.add(ServicePricing(service_id=service.id, **data.pricing.model_dump()))

        await self.db.commit()
        return await self.get_service(service.id)

    async def update_service(self, service_id: UUID, data: ServiceUpdate) -> Optional[Service]:
        service = await self.get_service(service_id)
        if not service:
            return None

        updates = data.model_dump(exclude_unset=True)
        if updates.get("category_id") and not await self.db.get(ServiceCategory, updates["category_id"]):
            raise NotFoundError("Category not found")

        for field, value in updates.items():
            setattr(service, field, value)

        await self.db.commit()
        return await self.get_service(service_id)

    async def set_pricing(self, service_id: UUID, data: PricingSchema) -> Optional[Service]:
        """Create or replace the price table for a service."""
        service = await self.get_service(service_id)
        if not service:
            return None

        if service.pricing:
            for field, value in data.model_dump().items():
                setattr(service.pricing, field, value)
            service.pricing.is_active = True
        else:
            self.db.add(ServicePricing(service_id=service.id, **data.model_dump()))

        await self.db.commit()
        return await self.get_service(service_id)
