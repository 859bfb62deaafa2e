"""
EncryptedCreditScore contract.

The confidential scoring engine behind the on-chain interface:

    construct(threshold_init)            authenticated input or internal default
    set_threshold(sender, handle, proof) owner only, proof-checked
    submit_credit_data(sender, ...)      verify inputs, score, overwrite record
    has_credit_data(user)                plaintext existence flag
    get_credit_score(user)               CiphertextRef (NoRecord if absent)
    get_qualification_status(user)       CiphertextRef to an ebool
    get_threshold()                      CiphertextRef
    confidential_protocol_id()           plaintext protocol id

State transitions run one at a time under the contract lock. Each one is
atomic: every input is verified and every derived value computed before the
single ledger or threshold write, and permission grants stay staged until
the transition completes. Any failure leaves state exactly as it was.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Optional

from .acl import PermissionManager
from .backend import ConfidentialBackend
from .ciphertext import CiphertextRef
from .engine import ConfidentialArithmeticEngine
from .errors import ProtocolMismatch, Unauthorized
from .ledger import AccountLedger, AccountRecord
from .logging_config import audit_log, get_transaction_id, transaction_id_var
from .parameters import (
    AuthenticatedThreshold,
    DefaultThreshold,
    ThresholdInit,
    ThresholdStore,
)
from .proofs import ProofVerifier
from .protocol import NetworkConfig, ensure_protocol
from .scoring import DEFAULT_POLICY, ScoringPolicy
from .validation import validate_address

logger = logging.getLogger(__name__)


class EncryptedCreditScore:
    """
    Confidential credit scoring contract instance.

    Args:
        address: The instance's own address (its computation context)
        deployer: Owner; the only principal allowed to set the threshold
        chain_id: Chain the instance is deployed on
        backend: Confidential arithmetic backend
        verifier: Proof verifier for external inputs
        acl: Shared permission manager
        threshold_init: AuthenticatedThreshold or DefaultThreshold
        policy: Scoring formula constants
    """

    def __init__(
        self,
        *,
        address: str,
        deployer: str,
        chain_id: int,
        backend: ConfidentialBackend,
        verifier: ProofVerifier,
        acl: PermissionManager,
        threshold_init: ThresholdInit,
        policy: ScoringPolicy = DEFAULT_POLICY
    ):
        self.address = validate_address(address, "address")
        self.owner = validate_address(deployer, "deployer")
        self.network: NetworkConfig = ensure_protocol(chain_id, backend.protocol_id)
        if backend.chain_id != chain_id:
            raise ProtocolMismatch(
                f"backend serves chain {backend.chain_id}, not {chain_id}",
                chain_id=chain_id,
                backend_chain_id=backend.chain_id,
            )

        self._acl = acl
        self._verifier = verifier
        self._engine = ConfidentialArithmeticEngine(backend, acl, self.address)
        self._ledger = AccountLedger()
        self._policy = policy
        self._lock = threading.RLock()

        with self._transaction("constructor"):
            initial = self._initial_threshold(threshold_init)
            self._acl.grant(initial, self.owner)
            self._parameters = ThresholdStore(initial)

        audit_log.threshold_updated(
            self.owner,
            initial.handle,
            bootstrap=isinstance(threshold_init, DefaultThreshold),
        )

    # ------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str):
        """Serialize, tag and stage one state transition."""
        with self._lock:
            # Keep the caller's correlation id (e.g. an HTTP request) if set
            token = transaction_id_var.set(get_transaction_id() or str(uuid.uuid4()))
            try:
                with self._acl.transaction():
                    yield
            except Exception as e:
                logger.info("%s reverted: %s", operation, type(e).__name__)
                raise
            finally:
                transaction_id_var.reset(token)

    def _ingest(self, handle: str, input_proof: Optional[bytes], sender: str) -> CiphertextRef:
        ref = self._verifier.ingest(handle, input_proof or b"", sender, self.address)
        self._acl.grant(ref, self.address)
        return ref

    def _initial_threshold(self, threshold_init: ThresholdInit) -> CiphertextRef:
        if isinstance(threshold_init, DefaultThreshold):
            return self._engine.constant(threshold_init.value)
        if isinstance(threshold_init, AuthenticatedThreshold):
            return self._ingest(threshold_init.handle, threshold_init.input_proof, self.owner)
        raise TypeError("threshold_init must be AuthenticatedThreshold or DefaultThreshold")

    # ------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------

    def set_threshold(self, sender: str, handle: str, input_proof: bytes) -> None:
        """
        Replace the global threshold with a verified encrypted input.

        Raises:
            Unauthorized: sender is not the owner
            InvalidProof: the input fails verification
        """
        sender = validate_address(sender, "sender")
        if sender != self.owner:
            audit_log.threshold_update_denied(sender, self.owner)
            raise Unauthorized("only the owner may set the threshold", sender=sender)

        with self._transaction("setThreshold"):
            ref = self._ingest(handle, input_proof, sender)
            self._acl.grant(ref, self.owner)
            self._parameters.replace(ref)

        audit_log.threshold_updated(sender, ref.handle)

    def submit_credit_data(
        self,
        sender: str,
        income: str,
        income_proof: bytes,
        debt_ratio: str,
        debt_ratio_proof: bytes,
        repayment_score: str,
        repayment_score_proof: bytes
    ) -> None:
        """
        Score the sender's encrypted inputs and overwrite their record.

        Raises:
            InvalidProof: any of the three inputs fails verification
        """
        sender = validate_address(sender, "sender")

        with self._transaction("submitCreditData"):
            income_ref = self._ingest(income, income_proof, sender)
            debt_ref = self._ingest(debt_ratio, debt_ratio_proof, sender)
            self._ingest(repayment_score, repayment_score_proof, sender)

            previous = self._ledger.get(sender)
            outcome = self._policy.evaluate(
                self._engine,
                income_ref,
                debt_ref,
                self._parameters.threshold,
                score_on_file=previous.current_score if previous else None,
            )

            record = AccountRecord(
                last_score=outcome.prior_score,
                current_score=outcome.new_score,
                qualification=outcome.qualification,
            )
            for ref in record.references():
                self._acl.grant(ref, self.address)
                self._acl.grant(ref, sender)

            self._ledger.write(sender, record)

        audit_log.credit_data_submitted(
            sender,
            outcome.first_submission,
            record.current_score.handle,
            record.qualification.handle,
        )

    # ------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------

    def has_credit_data(self, user: str) -> bool:
        return self._ledger.has_record(validate_address(user, "user"))

    def get_credit_score(self, user: str) -> CiphertextRef:
        """Raises NoRecord if the user never submitted."""
        return self._ledger.require(validate_address(user, "user")).current_score

    def get_qualification_status(self, user: str) -> CiphertextRef:
        """Raises NoRecord if the user never submitted."""
        return self._ledger.require(validate_address(user, "user")).qualification

    def get_last_score(self, user: str) -> CiphertextRef:
        return self._ledger.require(validate_address(user, "user")).last_score

    def get_threshold(self) -> CiphertextRef:
        return self._parameters.threshold

    def confidential_protocol_id(self) -> int:
        return self.network.protocol_id

    @property
    def chain_id(self) -> int:
        return self.network.chain_id

    def account_count(self) -> int:
        return len(self._ledger)
