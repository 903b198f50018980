"""Algorand address validation."""

from algosdk import encoding

from gaius_engine.common.exceptions import InvalidAddressError


def is_valid_address(value: object) -> bool:
    """Check the base32 encoding and checksum of an Algorand address."""
    if not isinstance(value, str) or not value:
        return False
    return encoding.is_valid_address(value)


def validate_address(value: object) -> str:
    """Return ``value`` unchanged if it is a valid address, else raise."""
    if not is_valid_address(value):
        raise InvalidAddressError(f"Invalid wallet address: {value!r}")
    return value
