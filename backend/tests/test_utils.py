"""Tests for the small validation helpers."""

from datetime import date, datetime, time

import pytest

from detailing.utils.license_plate import format_uk_plate, validate_uk_plate
from detailing.utils.phone import normalize_phone
from detailing.utils.postcode import format_uk_postcode, validate_uk_postcode
from detailing.utils.time_validation import format_time, hours_until, is_slot_in_past
from detailing.utils.vehicle_size import detect_vehicle_size, normalize_size


class TestVehicleSize:

    @pytest.mark.parametrize("make,model,expected", [
        ("Mini", "Countryman", "S"),
        ("Volkswagen", "Polo Hatchback", "S"),
        ("BMW", "X5", "L"),
        ("Land Rover", "Range Rover Sport", "L"),
        ("Ford", "Transit", "XL"),
        ("Ford", "Focus", "M"),
        ("", "Focus", "M"),
    ])
    def test_detect(self, make, model, expected):
        assert detect_vehicle_size(make, model) == expected

    def test_normalize(self):
        assert normalize_size("medium") == "M"
        assert normalize_size(" xl ") == "XL"
        assert normalize_size("Extra Large") == "XL"
        assert normalize_size("huge") is None
        assert normalize_size(None) is None


class TestLicensePlate:

    @pytest.mark.parametrize("plate", ["AB12 CDE", "ab12cde", "A123 BCD", "ABC 123D", "1 ABC"])
    def test_valid(self, plate):
        assert validate_uk_plate(plate)

    @pytest.mark.parametrize("plate", ["", "   ", "AB12 CDEF", "12345678"])
    def test_invalid(self, plate):
        assert not validate_uk_plate(plate)

    def test_format_inserts_space(self):
        assert format_uk_plate("ab12cde") == "AB12 CDE"
        assert format_uk_plate("a123bcd") == "A123 BCD"


class TestPostcode:

    def test_validate(self):
        assert validate_uk_postcode("SW9 8AB")
        assert validate_uk_postcode("sw98ab")
        assert not validate_uk_postcode("12345")
        assert not validate_uk_postcode("")

    def test_format(self):
        assert format_uk_postcode("sw98ab") == "SW9 8AB"
        assert format_uk_postcode("EC1A 1BB") == "EC1A 1BB"


class TestPhone:

    def test_national_number_to_e164(self):
        assert normalize_phone("07400 123456") == "+447400123456"

    def test_blank_is_none(self):
        assert normalize_phone("  ") is None
        assert normalize_phone(None) is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            normalize_phone("12")


class TestTimeValidation:
    now = datetime(2030, 6, 1, 9, 0)

    def test_slot_inside_buffer_is_past(self):
        assert is_slot_in_past(date(2030, 6, 1), time(9, 20), 30, self.now)

    def test_slot_after_buffer_is_bookable(self):
        assert not is_slot_in_past(date(2030, 6, 1), time(9, 30), 30, self.now)

    def test_hours_until(self):
        assert hours_until(date(2030, 6, 2), time(9, 0), self.now) == 24

    def test_format_time(self):
        assert format_time(time(9, 5)) == "09:05"
