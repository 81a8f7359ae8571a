"""Ether transfer construction and broadcast through the signing node."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from eth_node_client.errors import ValidationError
from eth_node_client.fees import FeeEstimator
from eth_node_client.transport import LATEST
from eth_node_client.units import is_valid_address, to_ether, to_wei

if TYPE_CHECKING:
    from eth_node_client.transport import EthereumTransport

logger = logging.getLogger("eth_node_client.transactions")


@dataclass(frozen=True)
class TransactionRequest:
    """An unsigned legacy ether transfer, quantities in wei."""

    from_address: str
    nonce: int
    gas_price: int
    gas: int
    to_address: str
    value: int

    def to_rpc(self) -> dict[str, Any]:
        """Render as the ``personal_sendTransaction`` parameter object."""
        return {
            "from": self.from_address,
            "to": self.to_address,
            "nonce": hex(self.nonce),
            "gasPrice": hex(self.gas_price),
            "gas": hex(self.gas),
            "value": hex(self.value),
        }


def _as_decimal(amount: Decimal | int | str, label: str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except ArithmeticError as exc:
        raise ValidationError(f"{label} is not a decimal amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"{label} is not a finite amount: {amount!r}")
    return value


class TransactionBuilder:
    """Builds and broadcasts ether transfers.

    The nonce is read from the node for every transfer and never cached, so
    rapid sequential sends from the same account do not reuse a nonce.
    """

    def __init__(self, transport: EthereumTransport, fees: FeeEstimator | None = None) -> None:
        self._transport = transport
        self._fees = fees or FeeEstimator(transport)

    def build_ether_transfer(
        self,
        from_address: str,
        to_address: str,
        value: int,
        gas_price: int,
    ) -> TransactionRequest:
        """Validate the transfer and fill in the sender's current nonce."""
        if not is_valid_address(to_address):
            raise ValidationError(f"Address to is invalid: {to_address}")
        if value <= 0:
            raise ValidationError("Amount must be > 0")

        nonce = self._transport.get_transaction_count(from_address, LATEST)
        return TransactionRequest(
            from_address=from_address,
            nonce=nonce,
            gas_price=gas_price,
            gas=self._fees.gas_limit,
            to_address=to_address,
            value=value,
        )

    def broadcast(self, request: TransactionRequest, account_password: str) -> str:
        """Have the node sign *request* with the unlocked account and send it."""
        return self._transport.send_transaction(request.to_rpc(), account_password)

    def _gas_price_for(self, fee: Decimal) -> int:
        if fee <= 0:
            raise ValidationError("Fee must be > 0")
        price = self._fees.estimate_price(fee)
        if price <= 0:
            raise ValidationError(f"Fee {fee} is below the minimum of one wei per gas")
        return price

    def send_from_collection(
        self,
        collection_address: str,
        account_password: str,
        to_address: str,
        amount: Decimal | int | str,
        fee: Decimal | int | str,
    ) -> str:
        """Send *amount* ether from the collection address to *to_address*.

        The collection's confirmed balance must cover ``amount + fee``.
        Returns the transaction hash.
        """
        amount = _as_decimal(amount, "Amount")
        fee = _as_decimal(fee, "Fee")

        if not is_valid_address(to_address):
            raise ValidationError(f"Address to is invalid: {to_address}")
        if amount <= 0:
            raise ValidationError("Amount must be > 0")

        value = to_wei(amount)
        fee_wei = to_wei(fee)
        price = self._gas_price_for(fee)

        logger.info(
            f"Send ethereum from collection address {collection_address}, to address {to_address}, "
            f"amount: {amount}, price: {price}, limit: {self._fees.gas_limit}"
        )

        balance = self._transport.get_balance(collection_address, LATEST)
        if balance < value + fee_wei:
            raise ValidationError(
                f"Collection balance {to_ether(balance)} eth does not cover "
                f"amount {amount} + fee {fee} eth"
            )

        request = self.build_ether_transfer(collection_address, to_address, value, price)
        tx_hash = self.broadcast(request, account_password)

        logger.info(f"Ethereum has been sent with transaction hash: {tx_hash}")
        return tx_hash

    def sweep(
        self,
        from_address: str,
        collection_address: str,
        account_password: str,
        fee: Decimal | int | str,
    ) -> str:
        """Move the whole confirmed balance of *from_address*, minus *fee*, to the collection.

        Returns the transaction hash.
        """
        fee = _as_decimal(fee, "Fee")

        if not is_valid_address(from_address):
            raise ValidationError(f"Address from is invalid: {from_address}")

        fee_wei = to_wei(fee)
        price = self._gas_price_for(fee)

        balance = self._transport.get_balance(from_address, LATEST)
        value = balance - fee_wei

        logger.info(
            f"Sweep total balance {to_ether(balance)} eth of address {from_address} "
            f"to collection address with fee {fee} eth."
        )

        if value <= 0:
            raise ValidationError("Total balance - fee must be > 0")

        request = self.build_ether_transfer(from_address, collection_address, value, price)
        tx_hash = self.broadcast(request, account_password)

        logger.info(f"Ethereum has been swept with transaction hash: {tx_hash}")
        return tx_hash
