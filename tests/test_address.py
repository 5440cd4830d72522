"""
Tests for move_explainer/address.py

Covers:
  - Accepted and rejected address shapes
  - Case preservation
  - Field tagging in Address.parse
"""

import pytest

from move_explainer.address import Address, is_valid_sui_address, validate_sui_address
from move_explainer.errors import InvalidAddressError, ValidationError

VALID = "0x" + "a" * 64


class TestAddressValidation:
    def test_valid_address(self):
        assert Address(VALID).as_str() == VALID

    def test_too_short(self):
        with pytest.raises(InvalidAddressError):
            Address("0x" + "a" * 63)

    def test_too_long(self):
        with pytest.raises(InvalidAddressError):
            Address("0x" + "a" * 65)

    def test_wrong_prefix(self):
        with pytest.raises(InvalidAddressError):
            Address("1x" + "a" * 64)

    def test_non_hex_tail(self):
        with pytest.raises(InvalidAddressError):
            Address("0x" + "g" * 64)

    def test_uppercase_prefix_rejected(self):
        with pytest.raises(InvalidAddressError):
            Address("0X" + "a" * 64)

    def test_non_ascii_digits_rejected(self):
        # Arabic-Indic digits are str.isdigit() but not hex
        with pytest.raises(InvalidAddressError):
            Address("0x" + "١" * 64)

    def test_non_string(self):
        with pytest.raises(InvalidAddressError):
            Address(12345)

    def test_is_validation_error(self):
        with pytest.raises(ValidationError):
            validate_sui_address("")

    @pytest.mark.parametrize("raw,expected", [
        (VALID, True),
        ("0x" + "0123456789abcdefABCDEF" * 2 + "0" * 20, True),
        ("0x" + "a" * 63, False),
        ("1x" + "a" * 64, False),
        ("0x" + "g" * 64, False),
        ("", False),
    ])
    def test_predicate(self, raw, expected):
        assert is_valid_sui_address(raw) is expected


class TestAddressValue:
    def test_case_preserved(self):
        mixed = "0x" + "AbCdEf" * 10 + "abcd"
        assert Address(mixed).as_str() == mixed
        assert str(Address(mixed)) == mixed

    def test_equality_by_value(self):
        assert Address(VALID) == Address(VALID)

    def test_immutable(self):
        addr = Address(VALID)
        with pytest.raises(Exception):
            addr.value = "0x" + "b" * 64

    def test_parse_tags_field(self):
        with pytest.raises(InvalidAddressError) as exc:
            Address.parse("0x1", field="owner")
        assert exc.value.field == "owner"
        assert exc.value.code == "invalid_format"
        assert "owner" in exc.value.message
