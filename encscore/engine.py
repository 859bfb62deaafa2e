"""
Confidential Arithmetic Engine.

Stateless homomorphic operations over CiphertextRefs. Each operation calls
the backend and registers its result with the PermissionManager for the
contract's own computation context before returning it, so every value the
engine hands out can be reused in a later computation. Operands the context
holds no grant on are refused, which keeps fabricated handles out of every
computation.

Semantics (euint32):
    add, subtract        wrap modulo 2^32
    scalar_multiply      (a * numerator) // denominator, product wraps mod 2^32
    clamp_min(a, cap)    min(a, cap)
    greater_or_equal     ebool, decrypts to exactly 0 or 1
"""

from .acl import PermissionManager
from .backend import ConfidentialBackend
from .ciphertext import UINT32_MAX, CiphertextRef, EncryptedType, as_ref
from .errors import MalformedReference, Unauthorized


class ConfidentialArithmeticEngine:
    """Homomorphic operations bound to one contract's computation context."""

    def __init__(self, backend: ConfidentialBackend, acl: PermissionManager, context_principal: str):
        self._backend = backend
        self._acl = acl
        self.context_principal = context_principal.lower()

    def _register(self, handle: str) -> CiphertextRef:
        ref = CiphertextRef(handle)
        self._acl.grant(ref, self.context_principal)
        return ref

    def _uint(self, value) -> str:
        ref = as_ref(value)
        if ref.kind != EncryptedType.EUINT32:
            raise MalformedReference(
                f"expected euint32 operand, got {ref.kind.value}",
                handle=ref.handle,
            )
        # Operands must be verified inputs or earlier results of this context
        if not self._acl.is_granted(ref, self.context_principal):
            raise Unauthorized(
                "computation context is not allowed on operand",
                handle=ref.handle,
                principal=self.context_principal,
            )
        return ref.handle

    @staticmethod
    def _scalar(value: int, name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer")
        if value < 0 or value > UINT32_MAX:
            raise ValueError(f"{name} must fit in 32 bits")
        return value

    def constant(self, value: int) -> CiphertextRef:
        """Trivially encrypt a public constant."""
        value = self._scalar(value, "value")
        return self._register(self._backend.trivial_encrypt(value, EncryptedType.EUINT32))

    def add(self, a, b) -> CiphertextRef:
        return self._register(self._backend.add(self._uint(a), self._uint(b)))

    def subtract(self, a, b) -> CiphertextRef:
        return self._register(self._backend.sub(self._uint(a), self._uint(b)))

    def scalar_multiply(self, a, numerator: int, denominator: int = 1) -> CiphertextRef:
        """
        Multiply by the fraction numerator/denominator.

        Rounds by truncation, like integer division of the scaled product.
        """
        numerator = self._scalar(numerator, "numerator")
        denominator = self._scalar(denominator, "denominator")
        if denominator == 0:
            raise ValueError("denominator must be positive")

        handle = self._uint(a)
        if numerator != 1:
            handle = self._backend.mul_scalar(handle, numerator)
            # The intermediate product stays usable inside this context only
            self._register(handle)
        if denominator != 1:
            handle = self._backend.div_scalar(handle, denominator)
        if numerator == 1 and denominator == 1:
            handle = self._backend.mul_scalar(handle, 1)
        return self._register(handle)

    def clamp_min(self, a, cap: int) -> CiphertextRef:
        """At most `cap`: encrypted min(a, cap)."""
        cap = self._scalar(cap, "cap")
        return self._register(self._backend.min_scalar(self._uint(a), cap))

    def greater_or_equal(self, a, b) -> CiphertextRef:
        return self._register(self._backend.ge(self._uint(a), self._uint(b)))
