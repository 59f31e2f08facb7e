"""UK phone number validation."""

from typing import Optional

import phonenumbers

DEFAULT_REGION = "GB"


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Parse a phone number (national UK or international) to E.164.
    Returns None for blank input; raises ValueError when invalid.
    """
    if phone is None or not phone.strip():
        return None
    try:
        parsed = phonenumbers.parse(phone, DEFAULT_REGION)
    except phonenumbers.NumberParseException:
        raise ValueError("Invalid phone number")
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError("Invalid phone number")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
