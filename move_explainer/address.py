"""
Sui address value type.

A Sui account/package/object identifier is 32 bytes rendered as ``0x``
followed by 64 hex digits. ``Address`` is only ever built from text that
passes that check, and the text is kept exactly as given (no lower-casing).
"""

import string
from dataclasses import dataclass

from .errors import InvalidAddressError

ADDRESS_LENGTH = 66
ADDRESS_PREFIX = "0x"

_HEX_DIGITS = frozenset(string.hexdigits)


def validate_sui_address(raw: str) -> None:
    """Raise ``InvalidAddressError`` unless *raw* is a well-formed address."""
    if not isinstance(raw, str):
        raise InvalidAddressError("Address must be a string")
    if len(raw) != ADDRESS_LENGTH:
        raise InvalidAddressError(
            f"Address must have length {ADDRESS_LENGTH} chars, got {len(raw)}"
        )
    if not raw.startswith(ADDRESS_PREFIX):
        raise InvalidAddressError("Address must have prefix 0x")
    if not all(c in _HEX_DIGITS for c in raw[2:]):
        raise InvalidAddressError("Address must be a hex number")


def is_valid_sui_address(raw: str) -> bool:
    try:
        validate_sui_address(raw)
    except InvalidAddressError:
        return False
    return True


@dataclass(frozen=True)
class Address:
    """Validated on-chain address."""

    value: str

    def __post_init__(self):
        validate_sui_address(self.value)

    @classmethod
    def parse(cls, raw: str, *, field: str = "") -> "Address":
        """Build an Address, tagging the validation error with *field*."""
        try:
            return cls(raw)
        except InvalidAddressError as e:
            raise InvalidAddressError(
                f"{field}: {e.message}" if field else e.message, field=field
            ) from None

    def as_str(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value
