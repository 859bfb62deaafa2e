"""
Key management for input attestations.

The input gateway signs every encrypted-input batch with an Ed25519 key;
the ProofVerifier checks those signatures against a trust store of
public keys keyed by kid.
"""

import base64
import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .config import load_json_cached
from .validation import validate_address


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


class KeyProvider(ABC):
    """Abstract interface for input attestation signing and trust store retrieval."""

    @abstractmethod
    def sign_input_attestation(self, payload: bytes) -> Tuple[str, str]:
        """
        Sign a payload and return (kid, signature_b64).

        Args:
            payload: The canonical JSON bytes to sign
        """
        pass

    @abstractmethod
    def get_trust_store(self) -> Dict[str, Any]:
        """
        Get the trust store containing public keys.

        Returns:
            Dict containing input_verifier_keys (kid -> public key b64)
        """
        pass

    @abstractmethod
    def get_kid(self) -> str:
        pass


class EphemeralKeyProvider(KeyProvider):
    """
    In-memory key provider with a freshly generated Ed25519 key.

    For local devnets and tests; keys vanish with the process.
    """

    def __init__(self, kid: str = "input-verifier-01", signing_key: Optional[SigningKey] = None):
        self._kid = kid
        self._sk = signing_key or SigningKey.generate()

    def sign_input_attestation(self, payload: bytes) -> Tuple[str, str]:
        sig = self._sk.sign(payload).signature
        return self._kid, b64e(sig)

    def get_trust_store(self) -> Dict[str, Any]:
        return build_trust_store({self._kid: self._sk.verify_key})

    def get_kid(self) -> str:
        return self._kid


class FileKeyProvider(KeyProvider):
    """
    File-based key provider using Ed25519 keys stored in JSON files.

    The trust store is read through the TTL config cache on every proof
    check, so deployed contracts pick up a rotated trust store once the
    cache entry expires (CONFIG_CACHE_TTL) without a restart.
    """

    def __init__(self, signing_key_path: str, trust_store_path: str):
        self._signing_key_path = signing_key_path
        self._trust_store_path = trust_store_path

        with open(self._signing_key_path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        self._kid = raw["kid"]
        self._sk = SigningKey(b64d(raw["private_key_b64"]))

    def sign_input_attestation(self, payload: bytes) -> Tuple[str, str]:
        sig = self._sk.sign(payload).signature
        return self._kid, b64e(sig)

    def get_trust_store(self) -> Dict[str, Any]:
        return load_json_cached(self._trust_store_path)

    def get_kid(self) -> str:
        return self._kid


def build_trust_store(keys: Dict[str, VerifyKey], trust_store_id: str = "encscore-input-verifiers") -> Dict[str, Any]:
    """Build a trust store document from kid -> VerifyKey."""
    return {
        "trust_store_id": trust_store_id,
        "input_verifier_keys": {kid: b64e(bytes(vk)) for kid, vk in keys.items()},
    }


def write_key_material(output_dir: str, kid: str = "input-verifier-01") -> Dict[str, str]:
    """
    Generate an input attestation key and its trust store on disk.

    Returns:
        Paths of the written files
    """
    secrets_dir = os.path.join(output_dir, "secrets")
    trust_dir = os.path.join(output_dir, "trust")
    os.makedirs(secrets_dir, exist_ok=True)
    os.makedirs(trust_dir, exist_ok=True)

    sk = SigningKey.generate()
    key_path = os.path.join(secrets_dir, "input_signing_key.json")
    trust_path = os.path.join(trust_dir, "trust_store.json")

    with open(key_path, "w", encoding="utf-8") as f:
        json.dump({"kid": kid, "private_key_b64": b64e(bytes(sk))}, f, indent=2)

    with open(trust_path, "w", encoding="utf-8") as f:
        json.dump(build_trust_store({kid: sk.verify_key}), f, indent=2)

    return {"signing_key": key_path, "trust_store": trust_path}


def verify_ed25519(signature_b64: str, payload: bytes, public_key_b64: str) -> bool:
    """
    Verify an Ed25519 signature.

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        vk = VerifyKey(b64d(public_key_b64))
        vk.verify(payload, b64d(signature_b64))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


def write_account_key(output_dir: str, address: str) -> Dict[str, str]:
    """
    Generate a request signing key for an account and register its public
    key in trust/account_keys.json (created or extended in place).

    Returns:
        Paths of the written files
    """
    address = validate_address(address, "address")
    secrets_dir = os.path.join(output_dir, "secrets")
    trust_dir = os.path.join(output_dir, "trust")
    os.makedirs(secrets_dir, exist_ok=True)
    os.makedirs(trust_dir, exist_ok=True)

    sk = SigningKey.generate()
    key_path = os.path.join(secrets_dir, f"account_{address}.json")
    registry_path = os.path.join(trust_dir, "account_keys.json")

    with open(key_path, "w", encoding="utf-8") as f:
        json.dump({"address": address, "private_key_b64": b64e(bytes(sk))}, f, indent=2)

    registry = {"account_keys": {}}
    if os.path.exists(registry_path):
        with open(registry_path, "r", encoding="utf-8") as f:
            registry = json.load(f)
    registry.setdefault("account_keys", {})[address] = b64e(bytes(sk.verify_key))

    with open(registry_path, "w", encoding="utf-8") as f:
        json.dump(registry, f, indent=2, sort_keys=True)

    return {"signing_key": key_path, "account_keys": registry_path}


def load_account_key(path: str) -> SigningKey:
    """Load an account signing key written by write_account_key."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return SigningKey(b64d(raw["private_key_b64"]))
