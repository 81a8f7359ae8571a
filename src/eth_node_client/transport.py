"""JSON-RPC transport to a single upstream node.

:class:`EthereumTransport` is the narrow interface the rest of the package
depends on. :class:`Web3Transport` implements it on top of web3.py and is the
only place where web3 exceptions are translated into the package's own error
types.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol, TypeVar

from web3 import Web3
from web3.exceptions import (
    BlockNotFound,
    ProviderConnectionError,
    TransactionNotFound,
    Web3RPCError,
)
from web3.middleware import ExtraDataToPOAMiddleware

from eth_node_client.errors import NotFoundError, RpcError, TransportError

logger = logging.getLogger("eth_node_client.transport")

T = TypeVar("T")

LATEST = "latest"
PENDING = "pending"


class EthereumTransport(Protocol):
    """Request/response operations the client needs from its node.

    Quantities are plain ``int`` wei values; blocks, transactions, receipts
    and logs are mappings keyed by their JSON-RPC field names.
    """

    def import_raw_key(self, private_key_hex: str, passphrase: str) -> str: ...

    def get_balance(self, address: str, block: str = LATEST) -> int: ...

    def get_transaction_count(self, address: str, block: str = LATEST) -> int: ...

    def send_transaction(self, transaction: dict[str, Any], passphrase: str) -> str: ...

    def get_transaction(self, tx_hash: str) -> dict[str, Any]: ...

    def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any]: ...

    def get_block(self, number: int, full_transactions: bool = False) -> dict[str, Any]: ...

    def get_gas_price(self) -> int: ...

    def get_block_number(self) -> int: ...

    def new_log_filter(self, params: dict[str, Any]) -> str: ...

    def get_filter_logs(self, filter_id: str) -> list[dict[str, Any]]: ...

    def get_filter_changes(self, filter_id: str) -> list[dict[str, Any]]: ...

    def uninstall_filter(self, filter_id: str) -> bool: ...

    def call(self, to: str, data: str, block: str = LATEST) -> bytes: ...


def _rpc_error(exc: Web3RPCError) -> RpcError:
    """Extract the upstream ``error`` object from a web3 RPC exception."""
    response = getattr(exc, "rpc_response", None) or {}
    error = response.get("error") if isinstance(response, dict) else None
    if isinstance(error, dict):
        return RpcError(str(error.get("message", exc)), code=error.get("code"))
    return RpcError(str(getattr(exc, "message", exc)))


class Web3Transport:
    """:class:`EthereumTransport` backed by a ``web3.Web3`` HTTP client.

    Parameters
    ----------
    url:
        HTTP JSON-RPC endpoint of the node.
    request_timeout:
        Per-request timeout in seconds.
    poa:
        Inject ``ExtraDataToPOAMiddleware`` for proof-of-authority chains.
    web3:
        An already-built ``Web3`` instance; overrides *url*.
    """

    def __init__(
        self,
        url: str = "http://127.0.0.1:8545",
        request_timeout: float = 30.0,
        poa: bool = False,
        web3: Web3 | None = None,
    ) -> None:
        if web3 is None:
            web3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": request_timeout}))
            if poa:
                web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.w3 = web3

    def _request(self, name: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except (TransactionNotFound, BlockNotFound) as exc:
            # Both subclass Web3RPCError.
            raise NotFoundError(str(exc)) from exc
        except Web3RPCError as exc:
            error = _rpc_error(exc)
            logger.error(f"{name} failed: {error.message}")
            raise error from exc
        except (OSError, ProviderConnectionError) as exc:
            logger.error(f"{name} failed: {exc}")
            raise TransportError(str(exc)) from exc

    def _raw(self, method: str, params: list[Any]) -> Any:
        return self._request(method, lambda: self.w3.manager.request_blocking(method, params))

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def import_raw_key(self, private_key_hex: str, passphrase: str) -> str:
        return self._raw("personal_importRawKey", [private_key_hex, passphrase])

    def get_balance(self, address: str, block: str = LATEST) -> int:
        checksum = Web3.to_checksum_address(address)
        return self._request("eth_getBalance", lambda: self.w3.eth.get_balance(checksum, block))

    def get_transaction_count(self, address: str, block: str = LATEST) -> int:
        checksum = Web3.to_checksum_address(address)
        return self._request(
            "eth_getTransactionCount",
            lambda: self.w3.eth.get_transaction_count(checksum, block),
        )

    def send_transaction(self, transaction: dict[str, Any], passphrase: str) -> str:
        tx_hash = self._raw("personal_sendTransaction", [transaction, passphrase])
        return tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)

    # ------------------------------------------------------------------
    # Chain data
    # ------------------------------------------------------------------

    def get_transaction(self, tx_hash: str) -> dict[str, Any]:
        return self._request("eth_getTransactionByHash", lambda: self.w3.eth.get_transaction(tx_hash))

    def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any]:
        return self._request(
            "eth_getTransactionReceipt",
            lambda: self.w3.eth.get_transaction_receipt(tx_hash),
        )

    def get_block(self, number: int, full_transactions: bool = False) -> dict[str, Any]:
        return self._request(
            "eth_getBlockByNumber",
            lambda: self.w3.eth.get_block(number, full_transactions=full_transactions),
        )

    def get_gas_price(self) -> int:
        return self._request("eth_gasPrice", lambda: self.w3.eth.gas_price)

    def get_block_number(self) -> int:
        return self._request("eth_blockNumber", lambda: self.w3.eth.block_number)

    # ------------------------------------------------------------------
    # Log filters
    # ------------------------------------------------------------------

    def new_log_filter(self, params: dict[str, Any]) -> str:
        return self._request("eth_newFilter", lambda: self.w3.eth.filter(params).filter_id)

    def get_filter_logs(self, filter_id: str) -> list[dict[str, Any]]:
        return self._request("eth_getFilterLogs", lambda: list(self.w3.eth.get_filter_logs(filter_id)))

    def get_filter_changes(self, filter_id: str) -> list[dict[str, Any]]:
        return self._request(
            "eth_getFilterChanges",
            lambda: list(self.w3.eth.get_filter_changes(filter_id)),
        )

    def uninstall_filter(self, filter_id: str) -> bool:
        return self._request("eth_uninstallFilter", lambda: self.w3.eth.uninstall_filter(filter_id))

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def call(self, to: str, data: str, block: str = LATEST) -> bytes:
        checksum = Web3.to_checksum_address(to)
        return bytes(
            self._request("eth_call", lambda: self.w3.eth.call({"to": checksum, "data": data}, block))
        )
