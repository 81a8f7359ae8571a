"""Conversion between wei and ether, and address format checks."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from eth_utils import is_hex_address
from web3 import Web3

from eth_node_client.errors import ValidationError

ETHER_DECIMALS = 18

# Largest value a uint256 balance or transfer can hold.
MAX_WEI = 2**256 - 1


def to_ether(wei: int) -> Decimal:
    """Convert an integer amount of wei into ether without rounding."""
    if isinstance(wei, bool) or not isinstance(wei, int):
        raise ValidationError(f"Wei amount must be an integer, got {wei!r}")
    if wei < 0:
        raise ValidationError(f"Wei amount must be >= 0, got {wei}")
    if wei > MAX_WEI:
        raise ValidationError(f"Wei amount exceeds 2**256 - 1, got {wei}")
    # from_wei returns a plain int 0 for zero
    return Decimal(Web3.from_wei(wei, "ether"))


def to_wei(ether: Decimal | int | str) -> int:
    """Convert an ether amount into wei.

    Raises :class:`ValidationError` for negative amounts and for amounts
    with more than 18 fractional digits, which have no exact wei value.
    """
    try:
        amount = Decimal(str(ether))
    except InvalidOperation as exc:
        raise ValidationError(f"Not a decimal amount: {ether!r}") from exc

    if not amount.is_finite():
        raise ValidationError(f"Not a finite amount: {ether!r}")
    if amount < 0:
        raise ValidationError(f"Ether amount must be >= 0, got {amount}")
    if amount == 0:
        return 0
    if amount.normalize().as_tuple().exponent < -ETHER_DECIMALS:
        raise ValidationError(
            f"Ether amount {amount} has more than {ETHER_DECIMALS} decimal places"
        )
    try:
        return Web3.to_wei(amount, "ether")
    except ValueError as exc:
        raise ValidationError(f"Ether amount {amount} is out of range: {exc}") from exc


def is_valid_address(address: str) -> bool:
    """Return True for a ``0x``-prefixed 20-byte hex address.

    Case is ignored; a mixed-case address is accepted whether or not its
    EIP-55 checksum matches.
    """
    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    return is_hex_address(address)
