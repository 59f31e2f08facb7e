"""Pricing service - per-size service prices plus travel surcharge."""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from detailing.exceptions import NotFoundError, ValidationError
from detailing.integrations.postcodes_client import PostcodesClient
from detailing.models.service import Service
from detailing.utils.postcode import (
    DistanceResult,
    distance_from_coordinates,
    format_uk_postcode,
    lookup_known_postcode,
    validate_uk_postcode,
)
from detailing.utils.vehicle_size import SIZE_PRICE_COLUMNS, get_size_label
from detailing.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class PriceQuote:
    service: Service
    vehicle_size: str
    base_price: Decimal
    distance_surcharge: Decimal
    total_price: Decimal
    estimated_duration: int
    postcode: Optional[str] = None
    distance: Optional[DistanceResult] = None

    @property
    def size_label(self) -> str:
        return get_size_label(self.vehicle_size)


class PricingService:
    """Service for price quotes."""

    def __init__(self, db: AsyncSession, postcodes: Optional[PostcodesClient] = None):
        self.db = db
        self.postcodes = postcodes or PostcodesClient()

    async def calculate_distance(self, postcode: str) -> DistanceResult:
        """
        Distance and surcharge from the business base.
        Coordinates come from the built-in table first, then postcodes.io.
        Unlocatable postcodes get the minimum surcharge.
        """
        coords = lookup_known_postcode(postcode)
        if coords is None:
            coords = await self.postcodes.get_coordinates(format_uk_postcode(postcode).replace(" ", ""))
        result = distance_from_coordinates(coords)
        if not result.resolved:
            logger.info("Could not locate postcode %s, applying minimum surcharge", postcode)
        return result

    async def get_service(self, service_id: UUID) -> Optional[Service]:
        result = await self.db.execute(
            select(Service)
            .options(selectinload(Service.pricing), selectinload(Service.category))
            .where(Service.id == service_id)
        )
        return result.scalar_one_or_none()

    async def calculate_quote(
        self,
        service_id: UUID,
        vehicle_size: str,
        postcode: Optional[str] = None,
    ) -> PriceQuote:
        """Price a service for a vehicle size, with travel surcharge when a postcode is given."""
        service = await self.get_service(service_id)
        if not service or not service.is_active:
            raise NotFoundError("Service not found")

        column = SIZE_PRICE_COLUMNS.get(vehicle_size)
        if column is None:
            raise ValidationError("Vehicle size must be one of S, M, L, XL")

        price = getattr(service.pricing, column, None) if service.pricing else None
        if price is None or (service.pricing and not service.pricing.is_active):
            raise ValidationError(
                f"No {get_size_label(vehicle_size).lower()} vehicle pricing for {service.name}",
                code="PRICING_UNAVAILABLE",
            )

        base_price = to_money(price)
        surcharge = Decimal("0.00")
        distance = None
        formatted = None

        if postcode:
            if not validate_uk_postcode(postcode):
                raise ValidationError("Invalid UK postcode", code="INVALID_POSTCODE")
            formatted = format_uk_postcode(postcode)
            distance = await self.calculate_distance(formatted)
            surcharge = to_money(distance.surcharge)

        return PriceQuote(
            service=service,
            vehicle_size=vehicle_size,
            base_price=base_price,
            distance_surcharge=surcharge,
            total_price=base_price + surcharge,
            estimated_duration=service.base_duration_minutes or settings.DEFAULT_SERVICE_DURATION_MINUTES,
            postcode=formatted,
            distance=distance,
        )
