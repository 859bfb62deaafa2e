"""
Request authentication for the node.

Every request that acts as an account (submitting credit data, updating the
threshold, asking for a decryption) carries an Ed25519 signature made with
that account's registered key over the canonical JSON of

    {action, address, body_hash, contract_address, issued_at, nonce}

where body_hash is the SHA-256 of the canonical request body without its
auth block. The node refuses unknown accounts, bad signatures, stale
requests and reused nonces before the claimed address reaches the contract
or the decryption relay.
"""

import secrets
import threading
import time
from typing import Any, Dict, Optional, Tuple

from nacl.signing import SigningKey, VerifyKey

from ..canonicalization import canonicalize
from ..config import load_json_cached
from ..hashing import sha256_hex
from ..keys import b64e, verify_ed25519
from ..validation import validate_address

ACTION_SUBMIT_CREDIT_DATA = "submit_credit_data"
ACTION_SET_THRESHOLD = "set_threshold"
ACTION_DECRYPT = "decrypt"


class RequestAuthError(Exception):
    """A request signature check failed; reason is the wire-level code."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class AccountKeyRegistry:
    """Thread-safe address -> Ed25519 public key (b64) mapping."""

    def __init__(self, keys: Optional[Dict[str, str]] = None):
        self._lock = threading.RLock()
        self._keys: Dict[str, str] = {}
        for address, public_key in (keys or {}).items():
            self._keys[validate_address(address, "address")] = public_key

    @classmethod
    def from_file(cls, path: str) -> "AccountKeyRegistry":
        return cls(load_json_cached(path).get("account_keys", {}))

    def register(self, address: str, verify_key: VerifyKey) -> str:
        address = validate_address(address, "address")
        with self._lock:
            self._keys[address] = b64e(bytes(verify_key))
        return address

    def public_key(self, address: str) -> Optional[str]:
        with self._lock:
            return self._keys.get(address.lower())


class NonceStore:
    """Seen (address, nonce) pairs, kept until their request would expire."""

    def __init__(self):
        self._lock = threading.Lock()
        self._seen: Dict[Tuple[str, str], int] = {}

    def insert(self, address: str, nonce: str, expires_at: int, now: int) -> bool:
        """Record a nonce; False if it was already used."""
        with self._lock:
            self._seen = {k: exp for k, exp in self._seen.items() if exp >= now}
            key = (address, nonce)
            if key in self._seen:
                return False
            self._seen[key] = expires_at
            return True


def signing_payload(
    action: str,
    address: str,
    contract_address: str,
    body: Dict[str, Any],
    issued_at: int,
    nonce: str
) -> bytes:
    return canonicalize({
        "action": action,
        "address": address.lower(),
        "body_hash": sha256_hex(canonicalize(body)),
        "contract_address": contract_address.lower(),
        "issued_at": issued_at,
        "nonce": nonce,
    })


def sign_request(
    signing_key: SigningKey,
    action: str,
    address: str,
    contract_address: str,
    body: Dict[str, Any],
    issued_at: Optional[int] = None,
    nonce: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the auth block for a request body, client side.

    Args:
        signing_key: The account's Ed25519 key
        action: One of the ACTION_* names
        address: The account the request acts as
        contract_address: The contract hosted by the node
        body: The request body, without the auth block

    Returns:
        {"issued_at", "nonce", "sig_b64"} to send as the request's "auth"
    """
    issued_at = int(time.time()) if issued_at is None else issued_at
    nonce = nonce or secrets.token_hex(16)
    payload = signing_payload(action, address, contract_address, body, issued_at, nonce)
    return {
        "issued_at": issued_at,
        "nonce": nonce,
        "sig_b64": b64e(signing_key.sign(payload).signature),
    }


class RequestAuthenticator:
    """Checks signed requests against the account registry."""

    def __init__(
        self,
        registry: AccountKeyRegistry,
        freshness_seconds: int,
        max_skew_seconds: int,
        nonces: Optional[NonceStore] = None
    ):
        self.registry = registry
        self._freshness = freshness_seconds
        self._max_skew = max_skew_seconds
        self._nonces = nonces or NonceStore()

    def authenticate(
        self,
        action: str,
        address: str,
        contract_address: str,
        body: Dict[str, Any],
        auth: Any,
        now: Optional[int] = None
    ) -> None:
        """
        Raises:
            RequestAuthError: unless `auth` proves the request was made by `address`
        """
        now = int(time.time()) if now is None else now

        if auth is None:
            raise RequestAuthError("MISSING_SIGNATURE")

        public_key = self.registry.public_key(address)
        if not public_key:
            raise RequestAuthError("UNKNOWN_ACCOUNT")

        issued_at = int(auth.issued_at)
        if issued_at <= 0:
            raise RequestAuthError("MISSING_ISSUED_AT")

        payload = signing_payload(action, address, contract_address, body, issued_at, auth.nonce)
        if not verify_ed25519(auth.sig_b64, payload, public_key):
            raise RequestAuthError("INVALID_SIGNATURE")

        if (now - issued_at) > (self._freshness + self._max_skew):
            raise RequestAuthError("REQUEST_EXPIRED")
        if (issued_at - now) > self._max_skew:
            raise RequestAuthError("ISSUED_IN_FUTURE")

        # Only signed requests may consume a nonce
        if not self._nonces.insert(address, auth.nonce, issued_at + self._freshness + self._max_skew, now):
            raise RequestAuthError("REPLAY")
