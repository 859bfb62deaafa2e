"""
Decryption relay.

Off-chain collaborator that turns a standing permission grant into a
plaintext for the granted principal. The scoring core never calls it; it
only records grants the relay later consults.

A user decryption succeeds only when both the requesting principal and the
contract that produced the value hold grants on the ciphertext.
"""

from .acl import PermissionManager
from .backend import ConfidentialBackend
from .ciphertext import as_ref
from .errors import Unauthorized
from .logging_config import audit_log


class DecryptionRelay:
    """Serves user decryptions for granted ciphertexts."""

    def __init__(self, backend: ConfidentialBackend, acl: PermissionManager):
        self._backend = backend
        self._acl = acl

    def user_decrypt(self, ref, principal: str, contract_address: str) -> int:
        """
        Decrypt `ref` for `principal`.

        Raises:
            Unauthorized: principal or contract lacks a grant
            MalformedReference: the handle is malformed or unknown
        """
        ref = as_ref(ref)
        principal = principal.lower()
        contract_address = contract_address.lower()

        if not self._acl.is_granted(ref, principal):
            audit_log.decryption_denied(principal, ref.handle, "principal not granted")
            raise Unauthorized("principal is not allowed to decrypt this value",
                               principal=principal, handle=ref.handle)
        if not self._acl.is_granted(ref, contract_address):
            audit_log.decryption_denied(principal, ref.handle, "contract not granted")
            raise Unauthorized("contract is not allowed on this value",
                               contract_address=contract_address, handle=ref.handle)

        value = self._backend.decrypt(ref.handle)
        audit_log.decryption_served(principal, ref.handle)
        return value
