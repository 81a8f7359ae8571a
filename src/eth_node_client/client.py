"""Custodial Ethereum client facade.

Composes key derivation, fee estimation, transaction building, ERC-20
decoding and the replay streams into the operations a wallet service
consumes.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from eth_node_client.config import ClientConfig
from eth_node_client.erc20 import ERC20Contract, decode_transfer_input
from eth_node_client.errors import NotFoundError, ValidationError
from eth_node_client.fees import FeeEstimator
from eth_node_client.keys import KeyDerivationEngine, register_key
from eth_node_client.models import (
    BlockTransaction,
    DerivedAddress,
    ERC20TransferInput,
    TransactionReceipt,
)
from eth_node_client.replay import (
    BlockReplayStream,
    LogReplayStream,
    block_timestamp,
    confirmations,
    decode_transaction,
    to_hex,
)
from eth_node_client.transactions import TransactionBuilder
from eth_node_client.transport import LATEST, PENDING, EthereumTransport, Web3Transport
from eth_node_client.units import is_valid_address, to_ether

logger = logging.getLogger("eth_node_client.client")

COLLECTION_INDEX = 0


class EthereumClient:
    """Orchestrates derivation, transport and decoding for a custodial wallet.

    Parameters
    ----------
    transport:
        Node transport; every operation reads fresh data through it.
    config:
        Collection and user secrets plus replay settings.
    """

    def __init__(self, transport: EthereumTransport, config: ClientConfig) -> None:
        self.transport = transport
        self.config = config
        self.collection_keys = KeyDerivationEngine(
            config.collection.mnemonic, config.collection.passphrase
        )
        self.user_keys = KeyDerivationEngine(config.user.mnemonic, config.user.passphrase)
        self.fees = FeeEstimator(transport)
        self.transactions = TransactionBuilder(transport, self.fees)

    @classmethod
    def from_config(cls, config: ClientConfig) -> EthereumClient:
        """Build a client with a :class:`Web3Transport` for ``config.node``."""
        transport = Web3Transport(
            url=config.node.url,
            request_timeout=config.node.request_timeout,
            poa=config.node.poa,
        )
        return cls(transport, config)

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def init_collection_address(self) -> str:
        """Derive the collection key and register it with the node.

        Only needed once, during initial setup.
        """
        logger.info("Generate new ethereum collection address at index 0")
        key = self.collection_keys.derive(COLLECTION_INDEX)
        address = register_key(self.transport, key, self.config.collection.account_password)
        logger.info(f"New ethereum collection address has been generated: {address}")
        return address

    def get_collection_address(self) -> str:
        """The collection address, derived locally without a node call."""
        return self.collection_keys.address(COLLECTION_INDEX)

    def get_new_address(self, index: int) -> DerivedAddress:
        """Derive the user deposit address at *index* and register its key."""
        logger.info(f"Generate new ethereum address at index {index}")
        key = self.user_keys.derive(index)
        address = register_key(self.transport, key, self.config.user.account_password)
        logger.info(f"New ethereum address has been generated: {address}")
        return DerivedAddress(
            address=address,
            derivation_path=key.derivation_path,
            derivation_index=index,
        )

    def is_valid_address(self, address: str) -> bool:
        return is_valid_address(address)

    # ------------------------------------------------------------------
    # Balances and transfers
    # ------------------------------------------------------------------

    def get_address_balance(self, address: str, confirmed: bool = True) -> Decimal:
        """Balance in ether at the ``latest`` (confirmed) or ``pending`` block."""
        logger.info(f"Get ethereum address balance: {address}")
        if not is_valid_address(address):
            raise ValidationError(f"Address is invalid: {address}")

        balance = to_ether(self.transport.get_balance(address, LATEST if confirmed else PENDING))
        logger.info(f"Ethereum address balance is: {balance} ETH")
        return balance

    def send_from_collection_address(
        self,
        address_to: str,
        amount: Decimal | str,
        fee: Decimal | str,
    ) -> str:
        """Send *amount* ether to *address_to*, spending at most *fee* ether on gas."""
        return self.transactions.send_from_collection(
            collection_address=self.get_collection_address(),
            account_password=self.config.collection.account_password,
            to_address=address_to,
            amount=amount,
            fee=fee,
        )

    def sweep_total_balance_to_collection_account(self, address_from: str, fee: Decimal | str) -> str:
        """Move the confirmed balance of a deposit address, less *fee*, to the collection."""
        return self.transactions.sweep(
            from_address=address_from,
            collection_address=self.get_collection_address(),
            account_password=self.config.user.account_password,
            fee=fee,
        )

    # ------------------------------------------------------------------
    # Replay streams
    # ------------------------------------------------------------------

    def replay_block_transactions(self, replay_block_count: int | None = None) -> BlockReplayStream:
        """Stream block transactions starting *replay_block_count* blocks back."""
        if replay_block_count is None:
            replay_block_count = self.config.replay.block_count
        return BlockReplayStream(self.transport, replay_block_count, self.config.node.poll_interval)

    def replay_log_erc20_transactions(self, replay_block_count: int | None = None) -> LogReplayStream:
        """Stream ERC-20 ``Transfer`` events starting *replay_block_count* blocks back."""
        if replay_block_count is None:
            replay_block_count = self.config.replay.block_count
        return LogReplayStream(self.transport, replay_block_count, self.config.node.poll_interval)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _fetch_transaction(self, tx_hash: str):
        transaction = self.transport.get_transaction(tx_hash)
        if transaction is None:
            raise NotFoundError(f"Transaction {tx_hash} not found")
        return transaction

    def _fetch_receipt(self, tx_hash: str):
        receipt = self.transport.get_transaction_receipt(tx_hash)
        if receipt is None:
            raise NotFoundError(f"Transaction {tx_hash} has no receipt yet")
        return receipt

    def get_transaction(self, tx_hash: str) -> BlockTransaction:
        transaction = self._fetch_transaction(tx_hash)

        timestamp = None
        block_number = transaction.get("blockNumber")
        if block_number is not None:
            timestamp = block_timestamp(self.transport.get_block(block_number, full_transactions=False))

        return decode_transaction(transaction, self.transport.get_block_number(), timestamp)

    def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt:
        receipt = self._fetch_receipt(tx_hash)
        block_number = receipt["blockNumber"]
        return TransactionReceipt(
            hash=to_hex(receipt["transactionHash"]),
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
            confirmations=confirmations(self.transport.get_block_number(), block_number),
            block_number=block_number,
            gas_used=receipt.get("gasUsed"),
            status=receipt.get("status"),
        )

    def get_transaction_fee(self, tx_hash: str) -> Decimal:
        """Fee actually paid: ``gasUsed`` from the receipt times the transaction's gas price."""
        transaction = self._fetch_transaction(tx_hash)
        receipt = self._fetch_receipt(tx_hash)
        return to_ether(receipt["gasUsed"] * transaction["gasPrice"])

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def estimate_transaction_fee(self, price: int | None = None) -> Decimal:
        """Fee in ether for a plain transfer at *price* wei/gas, or the current price."""
        return self.fees.estimate_fee(price)

    # ------------------------------------------------------------------
    # ERC-20
    # ------------------------------------------------------------------

    def get_erc20_contract(self, contract_address: str) -> ERC20Contract:
        if not is_valid_address(contract_address):
            raise ValidationError(f"Contract address is invalid: {contract_address}")
        return ERC20Contract(self.transport, contract_address)

    def decode_erc20_input(self, data: str) -> ERC20TransferInput:
        return decode_transfer_input(data)
