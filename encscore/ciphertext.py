"""
Ciphertext references.

A CiphertextRef is an opaque handle to an encrypted value. It carries no
plaintext and is meaningful only together with the contract instance and
chain it was minted under.

Handle format:
    "0x" + 64 lowercase hex characters (32 bytes)
    The last byte encodes the encrypted type.
"""

from dataclasses import dataclass
from enum import Enum

from .errors import MalformedReference


HANDLE_BYTES = 32
ZERO_HANDLE = "0x" + "00" * HANDLE_BYTES

UINT32_MAX = 2 ** 32 - 1


class EncryptedType(str, Enum):
    """Encrypted value types understood by the scoring engine."""
    EBOOL = "ebool"
    EUINT32 = "euint32"

    @property
    def type_byte(self) -> int:
        return _TYPE_BYTES[self]

    @classmethod
    def from_type_byte(cls, value: int) -> "EncryptedType":
        for kind, byte in _TYPE_BYTES.items():
            if byte == value:
                return kind
        raise MalformedReference(
            f"unknown encrypted type byte 0x{value:02x}",
            type_byte=value,
        )


_TYPE_BYTES = {
    EncryptedType.EBOOL: 0x00,
    EncryptedType.EUINT32: 0x04,
}


def normalize_handle(handle: str) -> str:
    """
    Validate a handle string and return its canonical (lowercase) form.

    Raises:
        MalformedReference: wrong type, length or alphabet, or the zero handle
    """
    if not isinstance(handle, str):
        raise MalformedReference("handle must be a string")

    value = handle.strip().lower()
    if not value.startswith("0x"):
        raise MalformedReference("handle must be 0x-prefixed", handle=handle)

    body = value[2:]
    if len(body) != HANDLE_BYTES * 2:
        raise MalformedReference(
            f"handle must be {HANDLE_BYTES} bytes",
            handle=handle,
        )
    try:
        bytes.fromhex(body)
    except ValueError:
        raise MalformedReference("handle must be hexadecimal", handle=handle)

    if value == ZERO_HANDLE:
        raise MalformedReference("the zero handle is not a ciphertext", handle=handle)

    return value


@dataclass(frozen=True)
class CiphertextRef:
    """
    Immutable reference to an encrypted value.

    Produced only by the ProofVerifier (external input) or by the
    ConfidentialArithmeticEngine (homomorphic results). Contract logic never
    branches on it; comparisons go through the engine and yield another
    reference.
    """
    handle: str

    def __post_init__(self):
        object.__setattr__(self, "handle", normalize_handle(self.handle))
        # Fails on an unknown type byte
        EncryptedType.from_type_byte(int(self.handle[-2:], 16))

    @property
    def kind(self) -> EncryptedType:
        return EncryptedType.from_type_byte(int(self.handle[-2:], 16))

    def is_bool(self) -> bool:
        return self.kind == EncryptedType.EBOOL

    def __str__(self) -> str:
        return self.handle


def as_ref(value) -> CiphertextRef:
    """Coerce a handle string (or an existing ref) into a CiphertextRef."""
    if isinstance(value, CiphertextRef):
        return value
    return CiphertextRef(value)
