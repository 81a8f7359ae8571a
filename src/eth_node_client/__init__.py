"""Custodial Ethereum node client.

Derives per-user deposit addresses from a single seed, reads balances and
transactions, sends and sweeps ether through a signing node, estimates gas
fees, and replays blocks and ERC-20 ``Transfer`` logs so that incoming
deposits can be detected.
"""

from eth_node_client.client import EthereumClient
from eth_node_client.config import ClientConfig, load_config
from eth_node_client.errors import (
    DecodeError,
    DerivationError,
    EthereumClientError,
    NotFoundError,
    RpcError,
    TransportError,
    ValidationError,
)
from eth_node_client.models import (
    BlockTransaction,
    DerivedAddress,
    ERC20ContractMeta,
    ERC20TransferEvent,
    ERC20TransferInput,
    GasEstimate,
    TransactionReceipt,
)
from eth_node_client.replay import BlockReplayStream, LogReplayStream, ReplayState
from eth_node_client.transport import EthereumTransport, Web3Transport

__all__ = [
    "EthereumClient",
    "ClientConfig",
    "load_config",
    "DecodeError",
    "DerivationError",
    "EthereumClientError",
    "NotFoundError",
    "RpcError",
    "TransportError",
    "ValidationError",
    "BlockTransaction",
    "DerivedAddress",
    "ERC20ContractMeta",
    "ERC20TransferEvent",
    "ERC20TransferInput",
    "GasEstimate",
    "TransactionReceipt",
    "BlockReplayStream",
    "LogReplayStream",
    "ReplayState",
    "EthereumTransport",
    "Web3Transport",
]
