"""
Confidential protocol identity.

Each deployment targets one network; the network fixes the confidential
protocol id the instance reports through confidentialProtocolId. A contract
constructed on an unsupported chain, or over a backend speaking a different
protocol, fails with ZamaProtocolUnsupported.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .errors import ZamaProtocolUnsupported
from .logging_config import audit_log


@dataclass(frozen=True)
class NetworkConfig:
    """A network the scoring contract can be deployed on."""
    name: str
    chain_id: int
    protocol_id: int


MAINNET = NetworkConfig(name="mainnet", chain_id=1, protocol_id=1)
SEPOLIA = NetworkConfig(name="sepolia", chain_id=11155111, protocol_id=10001)
HARDHAT = NetworkConfig(name="hardhat", chain_id=31337, protocol_id=31337)

SUPPORTED_NETWORKS: Dict[int, NetworkConfig] = {
    n.chain_id: n for n in (MAINNET, SEPOLIA, HARDHAT)
}


def resolve_network(chain_id: int) -> NetworkConfig:
    """
    Look up the network for a chain id.

    Raises:
        ZamaProtocolUnsupported: the chain has no confidential protocol
    """
    network = SUPPORTED_NETWORKS.get(chain_id)
    if network is None:
        audit_log.protocol_mismatch(chain_id, None, None)
        raise ZamaProtocolUnsupported(
            f"no confidential protocol configured for chain {chain_id}",
            chain_id=chain_id,
        )
    return network


def ensure_protocol(chain_id: int, backend_protocol_id: Optional[int]) -> NetworkConfig:
    """
    Check that the backend speaks the protocol the network expects.

    Raises:
        ZamaProtocolUnsupported: unsupported chain or protocol mismatch
    """
    network = resolve_network(chain_id)
    if backend_protocol_id != network.protocol_id:
        audit_log.protocol_mismatch(chain_id, network.protocol_id, backend_protocol_id)
        raise ZamaProtocolUnsupported(
            f"backend protocol {backend_protocol_id} does not match "
            f"{network.name} protocol {network.protocol_id}",
            chain_id=chain_id,
            expected_protocol_id=network.protocol_id,
            backend_protocol_id=backend_protocol_id,
        )
    return network
