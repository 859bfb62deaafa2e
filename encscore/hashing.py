"""
Hashing helpers.

All hashes use SHA-256. Handles and contract addresses are derived from
canonical JSON so that the same inputs always produce the same identifiers.
"""

import hashlib
from typing import Any, Union

from .canonicalization import canonicalize
from .ciphertext import HANDLE_BYTES, EncryptedType


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 and return lowercase hex."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def sha256_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def derive_handle(seed: Any, kind: EncryptedType) -> str:
    """
    Derive a ciphertext handle from a seed object.

    The first 31 bytes come from SHA-256(CJE(seed)); the last byte is the
    encrypted type.
    """
    digest = sha256_bytes(canonicalize(seed))[:HANDLE_BYTES - 1]
    return "0x" + (digest + bytes([kind.type_byte])).hex()


def predict_contract_address(deployer: str, nonce: int) -> str:
    """
    Predict the address of a contract deployed by `deployer` at `nonce`.

    Deployment tooling needs the address before construction because the
    constructor's threshold input is bound to it.
    """
    digest = sha256_hex(canonicalize({"deployer": deployer.lower(), "nonce": nonce}))
    return "0x" + digest[-40:]
