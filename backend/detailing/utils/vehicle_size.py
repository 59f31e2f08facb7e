"""Vehicle size detection from make and model."""

from typing import Optional

SIZE_LABELS = {
    "S": "Small",
    "M": "Medium",
    "L": "Large",
    "XL": "Extra Large",
}

SIZE_EXAMPLES = {
    "S": "Hatchbacks, Mini",
    "M": "Saloons, Compact SUVs",
    "L": "Estates, Large SUVs",
    "XL": "Vans, Luxury Cars",
}

# Pricing column for each size code
SIZE_PRICE_COLUMNS = {
    "S": "small",
    "M": "medium",
    "L": "large",
    "XL": "extra_large",
}

# Accepted spellings from forms and older clients
_SIZE_ALIASES = {
    "s": "S", "small": "S",
    "m": "M", "medium": "M",
    "l": "L", "large": "L",
    "xl": "XL", "extra_large": "XL", "extra large": "XL", "extra-large": "XL",
}

_SMALL = (
    "mini", "smart", "fiat 500", "toyota aygo", "ford ka", "citroen c1",
    "peugeot 108", "hyundai i10", "volkswagen up",
)

_LARGE = (
    "range rover", "bmw x5", "bmw x6", "bmw x7", "audi q7", "audi q8",
    "mercedes gle", "mercedes gls", "mercedes g-class", "volvo xc90",
    "porsche cayenne", "estate", "touring",
)

_EXTRA_LARGE = (
    "van", "transit", "sprinter", "mercedes v-class", "volkswagen crafter",
    "iveco daily", "bentley", "rolls royce", "ferrari", "lamborghini",
    "maserati", "aston martin",
)


def normalize_size(value: Optional[str]) -> Optional[str]:
    """Map 'medium', 'm', 'M' etc. to a size code. None if unrecognised."""
    if not value:
        return None
    return _SIZE_ALIASES.get(value.strip().lower())


def detect_vehicle_size(make: str, model: str) -> str:
    """
    Guess the size class of a vehicle.

    Small models are checked first, then large, then extra large, so
    'Mini Countryman' stays small and 'BMW X5' is large. Anything
    unmatched is a medium saloon.
    """
    make = (make or "").strip()
    model = (model or "").strip()
    if not make or not model:
        return "M"

    make_model = f"{make} {model}".lower()
    model_lower = model.lower()

    if any(k in make_model for k in _SMALL) or "hatchback" in model_lower:
        return "S"

    if any(k in make_model for k in _LARGE) or "suv" in model_lower or "4x4" in model_lower:
        return "L"

    if any(k in make_model for k in _EXTRA_LARGE):
        return "XL"

    return "M"


def get_size_label(size: str) -> str:
    return SIZE_LABELS.get(size, "Medium")
