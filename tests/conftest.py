"""Shared fixtures: an in-memory node that implements the transport protocol."""

from __future__ import annotations

from collections import deque
from typing import Any

import pytest
from eth_account import Account

from eth_node_client.client import EthereumClient
from eth_node_client.config import AccountConfig, ClientConfig, NodeConfig, ReplayConfig
from eth_node_client.errors import NotFoundError, RpcError

# Hardhat / Anvil development mnemonic
COLLECTION_MNEMONIC = "test test test test test test test test test test test junk"
USER_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

HARDHAT_ADDRESS_0 = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
HARDHAT_ADDRESS_1 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
HARDHAT_ADDRESS_3 = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
HARDHAT_KEY_0 = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ABANDON_ADDRESS_0 = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"

ETHER = 10**18
GENESIS_TIME = 1_600_000_000


class FakeTransport:
    """In-memory stand-in for a geth node.

    ``requests`` records every method called, in order; ``fail`` maps a
    method name to an exception it should raise.
    """

    def __init__(self, head: int = 100) -> None:
        self.head = head
        self.blocks: dict[int, dict[str, Any]] = {}
        self.balances: dict[str, int] = {}
        self.pending_balances: dict[str, int] = {}
        self.nonces: dict[str, int] = {}
        self.gas_price = 20 * 10**9
        self.imported: dict[str, str] = {}
        self.sent: list[tuple[dict[str, Any], str]] = []
        self.send_error: RpcError | None = None
        self.transactions: dict[str, dict[str, Any]] = {}
        self.receipts: dict[str, dict[str, Any]] = {}
        self.contract_results: dict[tuple[str, str], bytes] = {}
        self.filters: dict[str, dict[str, Any]] = {}
        self.filter_logs: list[dict[str, Any]] = []
        self.filter_changes: deque[list[dict[str, Any]]] = deque()
        self.uninstalled: list[str] = []
        self.fail: dict[str, Exception] = {}
        self.requests: list[str] = []

    def _record(self, name: str) -> None:
        self.requests.append(name)
        if name in self.fail:
            raise self.fail[name]

    # Accounts

    def import_raw_key(self, private_key_hex: str, passphrase: str) -> str:
        self._record("import_raw_key")
        address = Account.from_key(bytes.fromhex(private_key_hex)).address
        if address in self.imported:
            raise RpcError("account already exists", code=-32000)
        self.imported[address] = passphrase
        return address.lower()

    def get_balance(self, address: str, block: str = "latest") -> int:
        self._record("get_balance")
        if block == "pending":
            return self.pending_balances.get(address.lower(), 0)
        return self.balances.get(address.lower(), 0)

    def get_transaction_count(self, address: str, block: str = "latest") -> int:
        self._record("get_transaction_count")
        return self.nonces.get(address.lower(), 0)

    def send_transaction(self, transaction: dict[str, Any], passphrase: str) -> str:
        self._record("send_transaction")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((transaction, passphrase))
        sender = transaction["from"].lower()
        self.nonces[sender] = self.nonces.get(sender, 0) + 1
        return "0x" + f"{len(self.sent):064x}"

    # Chain data

    def add_block(self, number: int, transactions: list[dict[str, Any]] | None = None) -> dict[str, Any]:
        block = {
            "number": number,
            "timestamp": GENESIS_TIME + number * 12,
            "transactions": [dict(tx, blockNumber=number) for tx in transactions or []],
        }
        self.blocks[number] = block
        for tx in block["transactions"]:
            self.transactions[tx["hash"]] = tx
        return block

    def get_transaction(self, tx_hash: str) -> dict[str, Any] | None:
        self._record("get_transaction")
        return self.transactions.get(tx_hash)

    def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        self._record("get_transaction_receipt")
        return self.receipts.get(tx_hash)

    def get_block(self, number: int, full_transactions: bool = False) -> dict[str, Any]:
        self._record("get_block")
        if number > self.head:
            raise NotFoundError(f"Block {number} not found")
        if number in self.blocks:
            return self.blocks[number]
        return {"number": number, "timestamp": GENESIS_TIME + number * 12, "transactions": []}

    def get_gas_price(self) -> int:
        self._record("get_gas_price")
        return self.gas_price

    def get_block_number(self) -> int:
        self._record("get_block_number")
        return self.head

    # Log filters

    def new_log_filter(self, params: dict[str, Any]) -> str:
        self._record("new_log_filter")
        filter_id = hex(len(self.filters) + 1)
        self.filters[filter_id] = params
        return filter_id

    def get_filter_logs(self, filter_id: str) -> list[dict[str, Any]]:
        self._record("get_filter_logs")
        return list(self.filter_logs)

    def get_filter_changes(self, filter_id: str) -> list[dict[str, Any]]:
        self._record("get_filter_changes")
        if filter_id not in self.filters:
            raise RpcError("filter not found")
        return self.filter_changes.popleft() if self.filter_changes else []

    def uninstall_filter(self, filter_id: str) -> bool:
        self._record("uninstall_filter")
        self.uninstalled.append(filter_id)
        return self.filters.pop(filter_id, None) is not None

    # Contracts

    def call(self, to: str, data: str, block: str = "latest") -> bytes:
        self._record("call")
        return self.contract_results.get((to.lower(), data), b"")


def make_tx(tx_hash: str, value: int = ETHER, to: str | None = HARDHAT_ADDRESS_1, **extra) -> dict[str, Any]:
    tx = {
        "hash": tx_hash,
        "from": HARDHAT_ADDRESS_0,
        "to": to,
        "value": value,
        "input": "0x",
        "gasPrice": 20 * 10**9,
    }
    tx.update(extra)
    return tx


def make_log(tx_hash: str, block_number: int, log_index: int = 0, **extra) -> dict[str, Any]:
    log = {
        "transactionHash": tx_hash,
        "address": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "blockNumber": block_number,
        "logIndex": log_index,
        "removed": False,
    }
    log.update(extra)
    return log


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        node=NodeConfig(poll_interval=0.0),
        collection=AccountConfig(
            mnemonic=COLLECTION_MNEMONIC,
            passphrase="",
            account_password="collection-pw",
        ),
        user=AccountConfig(
            mnemonic=USER_MNEMONIC,
            passphrase="",
            account_password="user-pw",
        ),
        replay=ReplayConfig(block_count=10),
    )


@pytest.fixture
def client(transport: FakeTransport, config: ClientConfig) -> EthereumClient:
    return EthereumClient(transport, config)
