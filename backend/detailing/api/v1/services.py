"""Public service catalogue endpoints."""

from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from detailing.database import get_db
from detailing.exceptions import NotFoundError
from detailing.schemas.service import (
    CategoryResponse,
    ServiceListResponse,
    ServiceResponse,
    VehicleSizeResponse,
)
from detailing.services.catalog_service import CatalogService, to_service_response, vehicle_sizes

router = APIRouter()


@router.get("", response_model=ServiceListResponse)
async def list_services(db: AsyncSession = Depends(get_db)):
    """Active services with per-size pricing."""
    services = await CatalogService(db).list_services()
    return ServiceListResponse(
        services=[to_service_response(s) for s in services],
        vehicle_sizes=vehicle_sizes(),
    )


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await CatalogService(db).list_categories()


@router.get("/vehicle-sizes", response_model=List[VehicleSizeResponse])
async def list_vehicle_sizes():
    return vehicle_sizes()


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: UUID, db: AsyncSession = Depends(get_db)):
    service = await CatalogService(db).get_service(service_id)
    if not service or not service.is_active:
        raise NotFoundError("Service not found")
    return to_service_response(service)
