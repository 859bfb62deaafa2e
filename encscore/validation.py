"""
Input validation for boundary values.

Addresses, plaintext inputs and hex-encoded proofs are checked here before
they reach the contract.
"""

import re
from typing import Any, Optional

from .ciphertext import UINT32_MAX


HEX_PATTERN = re.compile(r'^[a-fA-F0-9]*$')
ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_address(value: str, field_name: str = "address") -> str:
    """
    Validate a 20-byte account or contract address.

    Returns:
        The address in lowercase form
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.strip()
    if not ADDRESS_PATTERN.match(value):
        raise ValidationError(field_name, "must be a 0x-prefixed 20-byte hex address")

    return value.lower()


def validate_uint32(value: Any, field_name: str) -> int:
    """Validate a plaintext value that will be encrypted as euint32."""
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be an integer")
    try:
        int_value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, "must be an integer")

    if int_value < 0 or int_value > UINT32_MAX:
        raise ValidationError(field_name, f"must be between 0 and {UINT32_MAX}")

    return int_value


def decode_hex_bytes(value: str, field_name: str, allow_empty: bool = True) -> bytes:
    """Decode "0x"-prefixed (or bare) hex into bytes."""
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    body = value.strip()
    if body.lower().startswith("0x"):
        body = body[2:]

    if not body and not allow_empty:
        raise ValidationError(field_name, "cannot be empty")

    if len(body) % 2 or not HEX_PATTERN.match(body):
        raise ValidationError(field_name, "must be valid hexadecimal")

    return bytes.fromhex(body)


def encode_hex_bytes(data: Optional[bytes]) -> str:
    return "0x" + (data or b"").hex()
