"""
encscore: Confidential Credit Scoring Engine

Version: 0.1.0

Users submit financial attributes as encrypted inputs. The engine verifies
each input against its proof, computes a credit score and a qualification
flag homomorphically, keeps per-account encrypted state across
submissions, and records which principals may later decrypt which
ciphertext. It never sees a plaintext.

Usage:
    from encscore import LocalDevnet

    net = LocalDevnet()
    contract = net.deploy(deployer, threshold=50)

    enc = (net.create_encrypted_input(contract.address, alice)
           .add32(50000).add32(30).add32(85).encrypt())
    contract.submit_credit_data(
        alice,
        enc.handles[0], enc.input_proof,
        enc.handles[1], enc.input_proof,
        enc.handles[2], enc.input_proof,
    )

    score = net.user_decrypt(contract.get_credit_score(alice), alice, contract.address)
    qualified = net.user_decrypt(contract.get_qualification_status(alice), alice, contract.address)
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Ciphertexts
from .ciphertext import (
    CiphertextRef,
    EncryptedType,
    ZERO_HANDLE,
    normalize_handle,
)

# Errors
from .errors import (
    ErrorCode,
    EncryptedCreditScoreError,
    InvalidProof,
    ProtocolMismatch,
    ZamaProtocolUnsupported,
    NoRecord,
    Unauthorized,
    MalformedReference,
)
from .validation import ValidationError

# Backend and engine
from .backend import ConfidentialBackend, MockConfidentialBackend
from .engine import ConfidentialArithmeticEngine
from .acl import PermissionManager

# Inputs and proofs
from .keys import KeyProvider, EphemeralKeyProvider, FileKeyProvider
from .proofs import (
    InputProof,
    EncryptedInput,
    EncryptedInputBuilder,
    InputGateway,
    ProofVerifier,
)

# Contract
from .scoring import ScoringPolicy, ScoreOutcome, DEFAULT_POLICY
from .ledger import AccountRecord, AccountLedger
from .parameters import (
    AuthenticatedThreshold,
    DefaultThreshold,
    ThresholdStore,
    DEFAULT_THRESHOLD,
    threshold_init_from_abi,
)
from .protocol import NetworkConfig, SUPPORTED_NETWORKS, resolve_network
from .contract import EncryptedCreditScore

# Off-chain collaborators
from .relay import DecryptionRelay
from .devnet import LocalDevnet


__all__ = [
    "__version__",

    # Ciphertexts
    "CiphertextRef",
    "EncryptedType",
    "ZERO_HANDLE",
    "normalize_handle",

    # Errors
    "ErrorCode",
    "EncryptedCreditScoreError",
    "InvalidProof",
    "ProtocolMismatch",
    "ZamaProtocolUnsupported",
    "NoRecord",
    "Unauthorized",
    "MalformedReference",
    "ValidationError",

    # Backend and engine
    "ConfidentialBackend",
    "MockConfidentialBackend",
    "ConfidentialArithmeticEngine",
    "PermissionManager",

    # Inputs and proofs
    "KeyProvider",
    "EphemeralKeyProvider",
    "FileKeyProvider",
    "InputProof",
    "EncryptedInput",
    "EncryptedInputBuilder",
    "InputGateway",
    "ProofVerifier",

    # Contract
    "ScoringPolicy",
    "ScoreOutcome",
    "DEFAULT_POLICY",
    "AccountRecord",
    "AccountLedger",
    "AuthenticatedThreshold",
    "DefaultThreshold",
    "ThresholdStore",
    "DEFAULT_THRESHOLD",
    "threshold_init_from_abi",
    "NetworkConfig",
    "SUPPORTED_NETWORKS",
    "resolve_network",
    "EncryptedCreditScore",

    # Off-chain collaborators
    "DecryptionRelay",
    "LocalDevnet",
]
