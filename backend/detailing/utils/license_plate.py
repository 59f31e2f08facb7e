"""UK registration plate validation and formatting."""

import re

# Current (AB12 CDE), prefix (A123 BCD), suffix (ABC 123D) and dateless formats
_UK_PLATE = re.compile(
    r"^("
    r"[A-Z]{2}[0-9]{2}\s?[A-Z]{3}"
    r"|[A-Z][0-9]{1,3}\s?[A-Z]{3}"
    r"|[A-Z]{3}\s?[0-9]{1,3}[A-Z]"
    r"|[0-9]{1,4}\s?[A-Z]{1,3}"
    r"|[A-Z]{1,3}\s?[0-9]{1,4}"
    r")$"
)

_CURRENT = re.compile(r"^([A-Z]{2}[0-9]{2})([A-Z]{3})$")
_PREFIX = re.compile(r"^([A-Z][0-9]{1,3})([A-Z]{3})$")


def validate_uk_plate(plate: str) -> bool:
    if not plate or not plate.strip():
        return False
    clean = re.sub(r"\s+", " ", plate.strip()).upper()
    return bool(_UK_PLATE.match(clean))


def format_uk_plate(plate: str) -> str:
    """Format a plate with the conventional single space, e.g. 'AB12 CDE'."""
    if not plate:
        return ""
    clean = re.sub(r"\s+", "", plate).upper()

    match = _CURRENT.match(clean) or _PREFIX.match(clean)
    if match:
        return f"{match.group(1)} {match.group(2)}"

    return re.sub(r"\s+", " ", plate.strip()).upper()
