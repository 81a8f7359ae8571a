"""ERC-20 support: read-only contract calls and transfer call-data decoding.

Contract calls (``name``, ``symbol``, ``decimals``, ``totalSupply``) are
encoded and decoded with eth-abi. Transfer call data is decoded by the small
word decoders below, which only know the two static types a
``transfer(address,uint256)`` call carries.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector

from eth_node_client.errors import DecodeError
from eth_node_client.models import ERC20ContractMeta, ERC20TransferInput

if TYPE_CHECKING:
    from eth_node_client.transport import EthereumTransport

logger = logging.getLogger("eth_node_client.erc20")

# keccak256("Transfer(address,address,uint256)")
TRANSFER_EVENT_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

# First four bytes of keccak256("transfer(address,uint256)")
TRANSFER_METHOD_ID = "0xa9059cbb"

WORD_HEX_LENGTH = 64
SELECTOR_HEX_LENGTH = 8

_WORD_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_SELECTOR_RE = re.compile(r"^[0-9a-fA-F]{8}")


# ---------------------------------------------------------------------------
# Word decoders
# ---------------------------------------------------------------------------


def decode_uint256(word: str) -> int:
    """Decode one 32-byte ABI word (64 hex chars, no prefix) as ``uint256``."""
    if not _WORD_RE.match(word):
        raise DecodeError(f"Expected a 32-byte hex word, got {len(word)} chars")
    return int(word, 16)


def decode_address(word: str) -> str:
    """Decode one 32-byte ABI word as an ``address``.

    The upper 12 bytes must be zero padding. Returns a lowercase ``0x``
    address.
    """
    value = decode_uint256(word)
    if value >> 160:
        raise DecodeError("Address word has non-zero padding")
    return "0x" + word[-40:].lower()


def decode_transfer_input(data: str) -> ERC20TransferInput:
    """Decode ``transfer(address,uint256)`` call data.

    The recipient and the amount are decoded independently: a malformed or
    truncated segment leaves only its own field as ``None``.
    """
    body = data[2:] if data[:2] in ("0x", "0X") else data

    method_id = None
    if _SELECTOR_RE.match(body):
        method_id = "0x" + body[:SELECTOR_HEX_LENGTH].lower()

    to_word = body[SELECTOR_HEX_LENGTH:SELECTOR_HEX_LENGTH + WORD_HEX_LENGTH]
    value_word = body[SELECTOR_HEX_LENGTH + WORD_HEX_LENGTH:SELECTOR_HEX_LENGTH + 2 * WORD_HEX_LENGTH]

    try:
        to = decode_address(to_word)
    except DecodeError:
        logger.warning(f"Cannot decode address from input {data}")
        to = None

    try:
        value = decode_uint256(value_word)
    except DecodeError:
        logger.warning(f"Cannot decode value from input {data}")
        value = None

    return ERC20TransferInput(
        input=data,
        method_id=method_id,
        to=to,
        value=value,
        is_transfer=method_id == TRANSFER_METHOD_ID,
    )


# ---------------------------------------------------------------------------
# Contract calls
# ---------------------------------------------------------------------------


def encode_call(function_name: str) -> str:
    """ABI-encode a zero-argument call to *function_name*."""
    selector = function_signature_to_4byte_selector(f"{function_name}()")
    return "0x" + selector.hex()


class ERC20Contract:
    """Read-only view of an ERC-20 token contract.

    Every accessor performs a fresh ``eth_call``; nothing is cached. A call
    that returns no data (not a token, or the function is missing) or data
    that does not decode as the declared type yields ``None``.
    """

    FUNC_NAME = "name"
    FUNC_SYMBOL = "symbol"
    FUNC_DECIMALS = "decimals"
    FUNC_TOTAL_SUPPLY = "totalSupply"

    def __init__(self, transport: EthereumTransport, contract_address: str) -> None:
        self._transport = transport
        self.address = contract_address

    def __repr__(self) -> str:
        return f"ERC20Contract({self.address!r})"

    def _call(self, function_name: str, output_type: str) -> Any:
        result = self._transport.call(self.address, encode_call(function_name))
        if not result:
            return None
        try:
            (value,) = abi_decode([output_type], bytes(result))
        except (DecodingError, UnicodeDecodeError) as exc:
            logger.warning(
                f"Cannot decode {function_name}() of {self.address} as {output_type}: {exc}"
            )
            return None
        return value

    def name(self) -> str | None:
        return self._call(self.FUNC_NAME, "string")

    def symbol(self) -> str | None:
        return self._call(self.FUNC_SYMBOL, "string")

    def decimals(self) -> int | None:
        return self._call(self.FUNC_DECIMALS, "uint8")

    def total_supply(self) -> int | None:
        return self._call(self.FUNC_TOTAL_SUPPLY, "uint256")

    def metadata(self) -> ERC20ContractMeta:
        return ERC20ContractMeta(
            name=self.name(),
            symbol=self.symbol(),
            decimals=self.decimals(),
            total_supply=self.total_supply(),
        )
