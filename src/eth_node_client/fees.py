"""Gas fee arithmetic for plain ether transfers."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from eth_node_client.errors import ValidationError
from eth_node_client.models import GasEstimate
from eth_node_client.units import to_ether, to_wei

if TYPE_CHECKING:
    from eth_node_client.transport import EthereumTransport

logger = logging.getLogger("eth_node_client.fees")

# Yellow paper G_transaction: paid by every transaction without call data.
GAS_LIMIT_ZERO_DATA_TRANSACTION = 21000


class FeeEstimator:
    """Converts between a gas price (wei per gas) and a transfer fee (ether).

    The gas limit is fixed at :data:`GAS_LIMIT_ZERO_DATA_TRANSACTION`; the
    node is only consulted when no gas price is supplied.
    """

    gas_limit = GAS_LIMIT_ZERO_DATA_TRANSACTION

    def __init__(self, transport: EthereumTransport | None = None) -> None:
        self._transport = transport

    def gas_price(self) -> int:
        """Current network gas price in wei."""
        if self._transport is None:
            raise ValidationError("A gas price is required when no node transport is configured")
        logger.info("Get gas price")
        price = self._transport.get_gas_price()
        logger.info(f"Gas price is: {price} wei {to_ether(price)} eth")
        return price

    def estimate_fee(self, gas_price: int | None = None) -> Decimal:
        """Fee in ether for a transfer at *gas_price* (current price if omitted)."""
        if gas_price is None:
            gas_price = self.gas_price()
        if gas_price < 0:
            raise ValidationError(f"Gas price must be >= 0, got {gas_price}")
        return to_ether(self.gas_limit * gas_price)

    def estimate_price(self, fee: Decimal | str) -> int:
        """Highest gas price whose fee does not exceed *fee* ether."""
        return to_wei(fee) // self.gas_limit

    def estimate(self, gas_price: int | None = None) -> GasEstimate:
        if gas_price is None:
            gas_price = self.gas_price()
        return GasEstimate(
            gas_price=gas_price,
            gas_limit=self.gas_limit,
            fee=self.estimate_fee(gas_price),
        )
