"""
Encrypted inputs and their proofs.

Client side:
    builder = gateway.create_encrypted_input(contract_address, user_address)
    enc = builder.add32(50000).add32(30).add32(85).encrypt()
    # enc.handles[i] + enc.input_proof go into the contract call

Contract side:
    ref = verifier.ingest(handle, input_proof, sender, contract_address)

An InputProof binds a batch of handles to (chain, contract instance,
submitter) and is signed by the input gateway with Ed25519. One proof covers
every handle of its batch; it authorizes nothing outside that batch and
nothing for any other contract, chain or submitter.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .backend import ConfidentialBackend
from .canonicalization import canonicalize
from .ciphertext import CiphertextRef, EncryptedType
from .errors import InvalidProof, MalformedReference
from .keys import KeyProvider, verify_ed25519
from .logging_config import audit_log
from .validation import ValidationError, validate_address, validate_uint32

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputProof:
    """Signed attestation over one batch of encrypted inputs."""
    kid: str
    chain_id: int
    contract_address: str
    user_address: str
    handles: Tuple[str, ...]
    signature: str

    def binding(self) -> Dict[str, Any]:
        """The signed portion of the proof."""
        return {
            "kid": self.kid,
            "chain_id": self.chain_id,
            "contract_address": self.contract_address,
            "user_address": self.user_address,
            "handles": list(self.handles),
        }

    def to_bytes(self) -> bytes:
        d = self.binding()
        d["signature"] = self.signature
        return canonicalize(d)

    @classmethod
    def from_bytes(cls, data: bytes) -> "InputProof":
        """
        Parse a serialized proof.

        Raises:
            InvalidProof: empty or malformed proof bytes
        """
        if not data:
            raise InvalidProof("empty input proof")
        try:
            raw = json.loads(data.decode("utf-8"))
            return cls(
                kid=str(raw["kid"]),
                chain_id=int(raw["chain_id"]),
                contract_address=str(raw["contract_address"]).lower(),
                user_address=str(raw["user_address"]).lower(),
                handles=tuple(str(h).lower() for h in raw["handles"]),
                signature=str(raw["signature"]),
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise InvalidProof("malformed input proof") from e


@dataclass(frozen=True)
class EncryptedInput:
    """Handles plus the single proof that covers all of them."""
    handles: Tuple[str, ...]
    input_proof: bytes


class EncryptedInputBuilder:
    """Accumulates plaintext values for one (contract, user) binding."""

    def __init__(self, gateway: "InputGateway", contract_address: str, user_address: str):
        self._gateway = gateway
        self.contract_address = validate_address(contract_address, "contract_address")
        self.user_address = validate_address(user_address, "user_address")
        self._values: List[Tuple[int, EncryptedType]] = []

    def add32(self, value: int) -> "EncryptedInputBuilder":
        self._values.append((validate_uint32(value, "value"), EncryptedType.EUINT32))
        return self

    def add_bool(self, value: bool) -> "EncryptedInputBuilder":
        self._values.append((1 if value else 0, EncryptedType.EBOOL))
        return self

    def encrypt(self) -> EncryptedInput:
        if not self._values:
            raise ValidationError("values", "at least one value is required")
        return self._gateway.attest(self.contract_address, self.user_address, self._values)


class InputGateway:
    """
    Encrypts client inputs through the backend and attests them.

    Plays the role of the off-chain input verifier: only batches it signed
    will pass ProofVerifier.ingest.
    """

    def __init__(self, backend: ConfidentialBackend, key_provider: KeyProvider):
        self._backend = backend
        self._keys = key_provider

    def create_encrypted_input(self, contract_address: str, user_address: str) -> EncryptedInputBuilder:
        return EncryptedInputBuilder(self, contract_address, user_address)

    def attest(
        self,
        contract_address: str,
        user_address: str,
        values: List[Tuple[int, EncryptedType]]
    ) -> EncryptedInput:
        handles = []
        for index, (value, kind) in enumerate(values):
            handles.append(self._backend.encrypt_input(
                value,
                kind,
                {
                    "contract_address": contract_address,
                    "user_address": user_address,
                    "index": index,
                },
            ))

        unsigned = InputProof(
            kid=self._keys.get_kid(),
            chain_id=self._backend.chain_id,
            contract_address=contract_address,
            user_address=user_address,
            handles=tuple(handles),
            signature="",
        )
        kid, sig_b64 = self._keys.sign_input_attestation(canonicalize(unsigned.binding()))
        proof = InputProof(
            kid=kid,
            chain_id=unsigned.chain_id,
            contract_address=contract_address,
            user_address=user_address,
            handles=unsigned.handles,
            signature=sig_b64,
        )
        logger.debug("attested %d encrypted inputs for %s", len(handles), user_address)
        return EncryptedInput(handles=tuple(handles), input_proof=proof.to_bytes())


class ProofVerifier:
    """
    Validates externally supplied (handle, proof) pairs.

    A pair is accepted only when the proof was signed by a trusted input
    verifier key for exactly this chain, contract instance and submitter,
    and lists the handle. Every failure raises InvalidProof.
    """

    def __init__(self, key_provider: KeyProvider, chain_id: int):
        self._keys = key_provider
        self._chain_id = chain_id

    def ingest(
        self,
        handle: str,
        proof: bytes,
        expected_submitter: str,
        contract_address: str,
        expected_kind: EncryptedType = EncryptedType.EUINT32
    ) -> CiphertextRef:
        """
        Turn an external ciphertext into a trusted CiphertextRef.

        Raises:
            InvalidProof: on any verification failure
        """
        submitter = expected_submitter.lower()
        try:
            return self._verify(handle, proof, submitter, contract_address.lower(), expected_kind)
        except InvalidProof as e:
            audit_log.input_rejected(submitter, handle if isinstance(handle, str) else None, e.message)
            raise

    def _verify(
        self,
        handle: str,
        proof: bytes,
        submitter: str,
        contract_address: str,
        expected_kind: EncryptedType
    ) -> CiphertextRef:
        try:
            ref = CiphertextRef(handle)
        except MalformedReference as e:
            raise InvalidProof(f"malformed handle: {e.message}") from e

        parsed = InputProof.from_bytes(proof)

        # Read per call so a rotated trust store reaches deployed contracts
        trusted = self._keys.get_trust_store().get("input_verifier_keys", {})
        public_key = trusted.get(parsed.kid)
        if not public_key:
            raise InvalidProof("unknown input verifier key", kid=parsed.kid)

        if not verify_ed25519(parsed.signature, canonicalize(parsed.binding()), public_key):
            raise InvalidProof("input proof signature does not verify", kid=parsed.kid)

        if parsed.chain_id != self._chain_id:
            raise InvalidProof(
                "input proof was produced for another chain",
                expected=self._chain_id,
                observed=parsed.chain_id,
            )
        if parsed.contract_address != contract_address:
            raise InvalidProof(
                "input proof was produced for another contract",
                expected=contract_address,
                observed=parsed.contract_address,
            )
        if parsed.user_address != submitter:
            raise InvalidProof(
                "input proof was produced for another submitter",
                expected=submitter,
                observed=parsed.user_address,
            )

        if ref.handle not in parsed.handles:
            raise InvalidProof("handle is not covered by the input proof", handle=ref.handle)

        if ref.kind != expected_kind:
            raise InvalidProof(
                f"expected {expected_kind.value} input, got {ref.kind.value}",
                handle=ref.handle,
            )

        return ref
