"""Immutable value records returned by the client and its replay streams."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class DerivedAddress:
    """A deposit or collection address derived from a seed.

    Only public artifacts are kept; the private key is never stored here.
    """

    address: str
    derivation_path: str
    derivation_index: int


@dataclass(frozen=True)
class BlockTransaction:
    """A transaction as observed in a block, with value in ether."""

    hash: str
    from_address: str | None
    to_address: str | None  # None for contract creation
    amount: Decimal
    confirmations: int | None  # None while pending
    input: str | None
    timestamp: datetime | None
    block_number: int | None = None


@dataclass(frozen=True)
class TransactionReceipt:
    """Settlement outcome of a mined transaction."""

    hash: str
    from_address: str | None
    to_address: str | None
    confirmations: int
    block_number: int
    gas_used: int | None = None
    status: int | None = None


@dataclass(frozen=True)
class GasEstimate:
    gas_price: int
    gas_limit: int
    fee: Decimal


@dataclass(frozen=True)
class ERC20TransferEvent:
    """A ``Transfer`` log emitted by some token contract.

    ``removed`` is set when the node reports the log as dropped by a reorg.
    """

    transaction_hash: str
    contract_address: str
    block_number: int | None = None
    log_index: int | None = None
    removed: bool = False


@dataclass(frozen=True)
class ERC20TransferInput:
    """Decoded call data of a ``transfer(address,uint256)`` call.

    ``to`` and ``value`` are decoded independently; either is ``None`` when
    its segment of the call data cannot be decoded.
    """

    input: str
    method_id: str | None
    to: str | None
    value: int | None
    is_transfer: bool = False


@dataclass(frozen=True)
class ERC20ContractMeta:
    name: str | None
    symbol: str | None
    decimals: int | None
    total_supply: int | None
