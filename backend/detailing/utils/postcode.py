"""UK postcode helpers and distance-based travel surcharge."""

import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from detailing.config import get_settings

settings = get_settings()

# SW9 (Stockwell/Brixton) - the business base
BUSINESS_POSTCODE = "SW9"
BUSINESS_LOCATION = (51.4719, -0.1162)

EARTH_RADIUS_KM = 6371
KM_TO_MILES = 0.621371

# Used when a postcode cannot be located: charge the minimum surcharge
UNRESOLVED_DISTANCE_KM = 50.0
UNRESOLVED_DISTANCE_MILES = 31.1

_UK_POSTCODE = re.compile(r"^[A-Z]{1,2}[0-9]{1,2}[A-Z]?\s?[0-9][A-Z]{2}$", re.IGNORECASE)

KNOWN_POSTCODES = {
    # Central London
    "SW1A1AA": (51.5014, -0.1419),
    "EC1A1BB": (51.5174, -0.0930),
    "W1A0AX": (51.5154, -0.1447),
    # South London
    "SW81DT": (51.4875, -0.1687),
    "SE11PB": (51.4754, -0.0638),
    "SW21AD": (51.4552, -0.1756),
    # North London
    "N11AA": (51.5514, -0.1167),
    "N193DL": (51.5656, -0.2126),
    # East London
    "E11AA": (51.5099, -0.0059),
    "E145AB": (51.5254, 0.0417),
    # West London
    "W21DT": (51.5074, -0.2297),
    "SW71AA": (51.4924, -0.1615),
    # Outer London
    "CR01AA": (51.3791, -0.0648),
    "UB11AA": (51.5046, -0.4804),
    "RM11AA": (51.5755, 0.1426),
    "KT11AA": (51.4085, -0.3064),
}


@dataclass
class DistanceResult:
    distance_km: float
    distance_miles: float
    within_free_radius: bool
    surcharge: float
    resolved: bool = True

    @property
    def description(self) -> str:
        if self.within_free_radius:
            return f"{self.distance_miles} miles from {BUSINESS_POSTCODE} - No travel charge"
        excess = self.distance_miles - settings.FREE_RADIUS_MILES
        return (
            f"{self.distance_miles} miles from {BUSINESS_POSTCODE} - "
            f"£{self.surcharge:.2f} travel charge ({excess:.1f} miles beyond free radius)"
        )


def validate_uk_postcode(postcode: str) -> bool:
    if not postcode:
        return False
    return bool(_UK_POSTCODE.match(postcode.strip()))


def clean_postcode(postcode: str) -> str:
    return re.sub(r"\s+", "", postcode or "").upper()


def format_uk_postcode(postcode: str) -> str:
    """'sw98ab' -> 'SW9 8AB'."""
    clean = clean_postcode(postcode)
    if len(clean) >= 3:
        return f"{clean[:-3]} {clean[-3:]}"
    return clean


def lookup_known_postcode(postcode: str) -> Optional[Tuple[float, float]]:
    """Exact match on the built-in table, then the first entry sharing the area prefix."""
    clean = clean_postcode(postcode)
    if clean in KNOWN_POSTCODES:
        return KNOWN_POSTCODES[clean]

    area = clean[:2]
    for known, coords in KNOWN_POSTCODES.items():
        if known.startswith(area):
            return coords
    return None


def haversine_km(point1: Tuple[float, float], point2: Tuple[float, float]) -> float:
    lat1, lon1 = point1
    lat2, lon2 = point2
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def calculate_surcharge(distance_miles: float) -> float:
    """Travel surcharge: free inside the radius, then per mile clamped to [min, max]."""
    if distance_miles <= settings.FREE_RADIUS_MILES:
        return 0.0

    excess = distance_miles - settings.FREE_RADIUS_MILES
    surcharge = excess * settings.SURCHARGE_PER_MILE

    if surcharge < settings.MIN_SURCHARGE:
        return settings.MIN_SURCHARGE
    if surcharge > settings.MAX_SURCHARGE:
        return settings.MAX_SURCHARGE
    return round(surcharge, 2)


def distance_from_coordinates(coords: Optional[Tuple[float, float]]) -> DistanceResult:
    if coords is None:
        return DistanceResult(
            distance_km=UNRESOLVED_DISTANCE_KM,
            distance_miles=UNRESOLVED_DISTANCE_MILES,
            within_free_radius=False,
            surcharge=settings.MIN_SURCHARGE,
            resolved=False,
        )

    km = haversine_km(BUSINESS_LOCATION, coords)
    miles = km * KM_TO_MILES
    return DistanceResult(
        distance_km=round(km, 2),
        distance_miles=round(miles, 2),
        within_free_radius=miles <= settings.FREE_RADIUS_MILES,
        surcharge=calculate_surcharge(miles),
    )
