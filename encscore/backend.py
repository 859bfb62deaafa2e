"""
Confidential arithmetic backends.

The scoring core never implements encryption. It talks to a backend through
the narrow ConfidentialBackend interface: homomorphic operations take handles
and return new handles. Only the decryption relay ever calls decrypt().

MockConfidentialBackend is the in-process reference backend used by the
local devnet, the CLI and the tests. It keeps plaintexts in a private vault
keyed by handle and reproduces euint32 semantics (wrap modulo 2^32). It is
NOT cryptographically secure.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

from .ciphertext import UINT32_MAX, EncryptedType, normalize_handle
from .errors import MalformedReference
from .hashing import derive_handle


UINT32_MOD = UINT32_MAX + 1


class ConfidentialBackend(ABC):
    """Abstract interface to a confidential-arithmetic coprocessor."""

    @property
    @abstractmethod
    def chain_id(self) -> int:
        """Chain the backend mints handles for."""
        pass

    @property
    @abstractmethod
    def protocol_id(self) -> int:
        """Confidential protocol version the backend implements."""
        pass

    @abstractmethod
    def encrypt_input(self, value: int, kind: EncryptedType, binding: Dict[str, Any]) -> str:
        """
        Encrypt a client-supplied value for one (contract, user) binding.

        Returns:
            The new handle
        """
        pass

    @abstractmethod
    def trivial_encrypt(self, value: int, kind: EncryptedType) -> str:
        """Encrypt a public constant."""
        pass

    @abstractmethod
    def add(self, a: str, b: str) -> str:
        pass

    @abstractmethod
    def sub(self, a: str, b: str) -> str:
        pass

    @abstractmethod
    def mul_scalar(self, a: str, scalar: int) -> str:
        pass

    @abstractmethod
    def div_scalar(self, a: str, divisor: int) -> str:
        """Integer division by a public divisor, truncating toward zero."""
        pass

    @abstractmethod
    def min_scalar(self, a: str, cap: int) -> str:
        pass

    @abstractmethod
    def ge(self, a: str, b: str) -> str:
        """Encrypted a >= b; returns an ebool handle."""
        pass

    @abstractmethod
    def decrypt(self, handle: str) -> int:
        """Recover the plaintext. Reserved for the decryption relay."""
        pass


class MockConfidentialBackend(ConfidentialBackend):
    """
    Plaintext-vault backend with euint32 semantics.

    Thread-safe. Handles are derived from the operation, its operands and a
    monotonically increasing sequence number, so every result is a fresh
    reference.
    """

    def __init__(self, chain_id: int, protocol_id: int):
        self._chain_id = chain_id
        self._protocol_id = protocol_id
        self._vault: Dict[str, Tuple[EncryptedType, int]] = {}
        self._seq = 0
        self._lock = threading.RLock()

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def protocol_id(self) -> int:
        return self._protocol_id

    # ------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------

    def _mint(self, kind: EncryptedType, value: int, op: str, operands: Any) -> str:
        with self._lock:
            self._seq += 1
            handle = derive_handle(
                {
                    "chain_id": self._chain_id,
                    "op": op,
                    "operands": operands,
                    "seq": self._seq,
                },
                kind,
            )
            self._vault[handle] = (kind, value)
            return handle

    def _load(self, handle: str) -> Tuple[EncryptedType, int]:
        key = normalize_handle(handle)
        with self._lock:
            entry = self._vault.get(key)
        if entry is None:
            raise MalformedReference("unknown ciphertext handle", handle=key)
        return entry

    def _load_uint(self, handle: str) -> int:
        kind, value = self._load(handle)
        if kind != EncryptedType.EUINT32:
            raise MalformedReference(
                f"expected euint32 operand, got {kind.value}",
                handle=handle,
            )
        return value

    @staticmethod
    def _encode(value: int, kind: EncryptedType) -> int:
        if kind == EncryptedType.EBOOL:
            return 1 if value else 0
        return value % UINT32_MOD

    # ------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------

    def encrypt_input(self, value: int, kind: EncryptedType, binding: Dict[str, Any]) -> str:
        return self._mint(kind, self._encode(value, kind), "input", binding)

    def trivial_encrypt(self, value: int, kind: EncryptedType) -> str:
        return self._mint(kind, self._encode(value, kind), "trivial", [])

    # ------------------------------------------------------------
    # Homomorphic operations
    # ------------------------------------------------------------

    def add(self, a: str, b: str) -> str:
        result = (self._load_uint(a) + self._load_uint(b)) % UINT32_MOD
        return self._mint(EncryptedType.EUINT32, result, "add", [a, b])

    def sub(self, a: str, b: str) -> str:
        result = (self._load_uint(a) - self._load_uint(b)) % UINT32_MOD
        return self._mint(EncryptedType.EUINT32, result, "sub", [a, b])

    def mul_scalar(self, a: str, scalar: int) -> str:
        result = (self._load_uint(a) * scalar) % UINT32_MOD
        return self._mint(EncryptedType.EUINT32, result, "mul", [a, scalar])

    def div_scalar(self, a: str, divisor: int) -> str:
        if divisor <= 0:
            raise ValueError("divisor must be positive")
        result = self._load_uint(a) // divisor
        return self._mint(EncryptedType.EUINT32, result, "div", [a, divisor])

    def min_scalar(self, a: str, cap: int) -> str:
        result = min(self._load_uint(a), cap % UINT32_MOD)
        return self._mint(EncryptedType.EUINT32, result, "min", [a, cap])

    def ge(self, a: str, b: str) -> str:
        result = 1 if self._load_uint(a) >= self._load_uint(b) else 0
        return self._mint(EncryptedType.EBOOL, result, "ge", [a, b])

    # ------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------

    def decrypt(self, handle: str) -> int:
        _, value = self._load(handle)
        return value
