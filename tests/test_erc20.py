"""Tests for ERC-20 contract calls and transfer call-data decoding."""

import pytest
from eth_abi import encode as abi_encode
from web3 import Web3

from conftest import FakeTransport
from eth_node_client.erc20 import (
    TRANSFER_EVENT_TOPIC,
    TRANSFER_METHOD_ID,
    ERC20Contract,
    decode_address,
    decode_transfer_input,
    decode_uint256,
    encode_call,
)
from eth_node_client.errors import DecodeError

TOKEN = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
RECIPIENT = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"


def transfer_data(to: str = RECIPIENT, amount: int = 1_500_000) -> str:
    return TRANSFER_METHOD_ID + to[2:].rjust(64, "0") + f"{amount:064x}"


class TestSignatures:

    def test_transfer_topic(self):
        expected = "0x" + bytes(Web3.keccak(text="Transfer(address,address,uint256)")).hex()
        assert TRANSFER_EVENT_TOPIC == expected

    def test_transfer_method_id(self):
        expected = "0x" + bytes(Web3.keccak(text="transfer(address,uint256)"))[:4].hex()
        assert TRANSFER_METHOD_ID == expected

    @pytest.mark.parametrize(
        "name, selector",
        [
            ("name", "0x06fdde03"),
            ("symbol", "0x95d89b41"),
            ("decimals", "0x313ce567"),
            ("totalSupply", "0x18160ddd"),
        ],
    )
    def test_encode_call(self, name, selector):
        assert encode_call(name) == selector


class TestWordDecoders:

    def test_uint256(self):
        assert decode_uint256("0" * 62 + "ff") == 255

    def test_uint256_max(self):
        assert decode_uint256("f" * 64) == 2**256 - 1

    def test_short_word(self):
        with pytest.raises(DecodeError):
            decode_uint256("ff")

    def test_non_hex_word(self):
        with pytest.raises(DecodeError):
            decode_uint256("g" * 64)

    def test_address_unpadded(self):
        assert decode_address(RECIPIENT[2:].rjust(64, "0")) == RECIPIENT

    def test_address_lowercased(self):
        assert decode_address("70997970C51812dc3A010C7d01b50e0d17dc79C8".rjust(64, "0")) == RECIPIENT

    def test_address_dirty_padding(self):
        with pytest.raises(DecodeError):
            decode_address("1" + RECIPIENT[2:].rjust(63, "0"))


class TestDecodeTransferInput:
    """Each field is decoded on its own."""

    def test_full_transfer(self):
        decoded = decode_transfer_input(transfer_data())
        assert decoded.to == RECIPIENT
        assert decoded.value == 1_500_000
        assert decoded.method_id == TRANSFER_METHOD_ID
        assert decoded.is_transfer

    def test_without_prefix(self):
        decoded = decode_transfer_input(transfer_data()[2:])
        assert decoded.to == RECIPIENT
        assert decoded.value == 1_500_000

    def test_truncated_input(self):
        decoded = decode_transfer_input(TRANSFER_METHOD_ID + "0000")
        assert decoded.to is None
        assert decoded.value is None
        assert decoded.is_transfer

    def test_truncated_value_keeps_recipient(self):
        data = transfer_data()[:-10]
        decoded = decode_transfer_input(data)
        assert decoded.to == RECIPIENT
        assert decoded.value is None

    def test_bad_recipient_keeps_value(self):
        data = TRANSFER_METHOD_ID + "f" * 64 + f"{42:064x}"
        decoded = decode_transfer_input(data)
        assert decoded.to is None
        assert decoded.value == 42

    def test_trailing_data_ignored(self):
        decoded = decode_transfer_input(transfer_data() + "deadbeef")
        assert decoded.value == 1_500_000

    def test_other_selector(self):
        decoded = decode_transfer_input("0x095ea7b3" + transfer_data()[10:])
        assert not decoded.is_transfer
        assert decoded.method_id == "0x095ea7b3"
        assert decoded.to == RECIPIENT

    def test_empty_input(self):
        decoded = decode_transfer_input("0x")
        assert decoded.method_id is None
        assert decoded.to is None
        assert decoded.value is None
        assert not decoded.is_transfer


class TestERC20Contract:
    """Read-only token calls against the fake node."""

    @pytest.fixture
    def token(self):
        transport = FakeTransport()
        results = {
            "name": abi_encode(["string"], ["Tether USD"]),
            "symbol": abi_encode(["string"], ["USDT"]),
            "decimals": abi_encode(["uint8"], [6]),
            "totalSupply": abi_encode(["uint256"], [10**15]),
        }
        for name, encoded in results.items():
            transport.contract_results[(TOKEN.lower(), encode_call(name))] = encoded
        return ERC20Contract(transport, TOKEN), transport

    def test_fields(self, token):
        contract, _ = token
        assert contract.name() == "Tether USD"
        assert contract.symbol() == "USDT"
        assert contract.decimals() == 6
        assert contract.total_supply() == 10**15

    def test_metadata(self, token):
        contract, transport = token
        meta = contract.metadata()
        assert (meta.name, meta.symbol, meta.decimals, meta.total_supply) == (
            "Tether USD", "USDT", 6, 10**15,
        )
        assert transport.requests.count("call") == 4

    def test_no_caching(self, token):
        contract, transport = token
        contract.symbol()
        contract.symbol()
        assert transport.requests.count("call") == 2

    def test_empty_result_is_none(self):
        contract = ERC20Contract(FakeTransport(), TOKEN)
        assert contract.name() is None
        assert contract.metadata().total_supply is None

    def test_undecodable_result_is_none(self):
        transport = FakeTransport()
        transport.contract_results[(TOKEN.lower(), encode_call("decimals"))] = abi_encode(["uint256"], [300])
        transport.contract_results[(TOKEN.lower(), encode_call("name"))] = b"\x01\x02"
        contract = ERC20Contract(transport, TOKEN)
        assert contract.decimals() is None
        assert contract.name() is None
