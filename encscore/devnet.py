"""
Local devnet.

Wires a MockConfidentialBackend, an input gateway, the shared permission
manager and the decryption relay into one process, and deploys
EncryptedCreditScore instances the way the deployment tooling does:

    net = LocalDevnet()
    contract = net.deploy(deployer, threshold=50)   # authenticated input
    contract = net.deploy(deployer)                 # internal default path

    enc = net.create_encrypted_input(contract.address, alice).add32(50000).add32(30).add32(85).encrypt()
    contract.submit_credit_data(alice, enc.handles[0], enc.input_proof, ...)
    net.user_decrypt(contract.get_credit_score(alice), alice, contract.address)
"""

import logging
import threading
from typing import Dict, Optional

from .acl import PermissionManager
from .backend import MockConfidentialBackend
from .contract import EncryptedCreditScore
from .hashing import predict_contract_address
from .keys import EphemeralKeyProvider, KeyProvider
from .parameters import AuthenticatedThreshold, DefaultThreshold
from .proofs import EncryptedInputBuilder, InputGateway, ProofVerifier
from .protocol import resolve_network
from .relay import DecryptionRelay
from .scoring import DEFAULT_POLICY, ScoringPolicy
from .validation import validate_address

logger = logging.getLogger(__name__)


class LocalDevnet:
    """In-process chain with one confidential backend."""

    def __init__(self, chain_id: int = 31337, key_provider: Optional[KeyProvider] = None):
        network = resolve_network(chain_id)
        self.chain_id = chain_id
        self.backend = MockConfidentialBackend(chain_id, network.protocol_id)
        self.keys = key_provider or EphemeralKeyProvider()
        self.gateway = InputGateway(self.backend, self.keys)
        self.acl = PermissionManager()
        self.relay = DecryptionRelay(self.backend, self.acl)
        self._nonces: Dict[str, int] = {}
        self._lock = threading.Lock()

    def verifier(self) -> ProofVerifier:
        return ProofVerifier(self.keys, self.chain_id)

    def next_contract_address(self, deployer: str) -> str:
        deployer = validate_address(deployer, "deployer")
        with self._lock:
            return predict_contract_address(deployer, self._nonces.get(deployer, 0))

    def deploy(
        self,
        deployer: str,
        threshold: Optional[int] = None,
        policy: ScoringPolicy = DEFAULT_POLICY
    ) -> EncryptedCreditScore:
        """
        Deploy a contract; encrypt `threshold` as an authenticated input when
        given, otherwise use the internal default threshold.
        """
        deployer = validate_address(deployer, "deployer")
        address = self.next_contract_address(deployer)

        if threshold is None:
            threshold_init = DefaultThreshold()
        else:
            enc = self.create_encrypted_input(address, deployer).add32(threshold).encrypt()
            threshold_init = AuthenticatedThreshold(enc.handles[0], enc.input_proof)

        contract = EncryptedCreditScore(
            address=address,
            deployer=deployer,
            chain_id=self.chain_id,
            backend=self.backend,
            verifier=self.verifier(),
            acl=self.acl,
            threshold_init=threshold_init,
            policy=policy,
        )
        with self._lock:
            self._nonces[deployer] = self._nonces.get(deployer, 0) + 1

        logger.info("deployed EncryptedCreditScore at %s", address)
        return contract

    def create_encrypted_input(self, contract_address: str, user_address: str) -> EncryptedInputBuilder:
        return self.gateway.create_encrypted_input(contract_address, user_address)

    def user_decrypt(self, ref, principal: str, contract_address: str) -> int:
        return self.relay.user_decrypt(ref, principal, contract_address)
