"""
Error taxonomy for the confidential scoring engine.

Every failure raised inside a state transition aborts the whole transaction:
staged permission grants are discarded and no ledger or threshold write
happens. Callers see a rejected operation plus an identifiable ErrorCode.
"""

from enum import Enum
from typing import Any, Dict


class ErrorCode(str, Enum):
    """Error kinds surfaced at the contract boundary."""
    INVALID_PROOF = "INVALID_PROOF"
    PROTOCOL_MISMATCH = "PROTOCOL_MISMATCH"
    NO_RECORD = "NO_RECORD"
    UNAUTHORIZED = "UNAUTHORIZED"
    MALFORMED_REFERENCE = "MALFORMED_REFERENCE"


class EncryptedCreditScoreError(Exception):
    """Base class for all contract-level failures."""

    code: ErrorCode = None

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidProof(EncryptedCreditScoreError):
    """A ciphertext/proof pair failed verification (forged, replayed, wrong context)."""
    code = ErrorCode.INVALID_PROOF


class ProtocolMismatch(EncryptedCreditScoreError):
    """The deployment environment does not run the expected confidential protocol."""
    code = ErrorCode.PROTOCOL_MISMATCH


# Name used by the contract ABI
ZamaProtocolUnsupported = ProtocolMismatch


class NoRecord(EncryptedCreditScoreError):
    """Query against an account that never submitted credit data."""
    code = ErrorCode.NO_RECORD


class Unauthorized(EncryptedCreditScoreError):
    """The caller is not allowed to perform the operation."""
    code = ErrorCode.UNAUTHORIZED


class MalformedReference(EncryptedCreditScoreError):
    """A ciphertext reference is structurally invalid or of the wrong type."""
    code = ErrorCode.MALFORMED_REFERENCE
