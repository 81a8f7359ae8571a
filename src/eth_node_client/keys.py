"""Deterministic BIP-32/39/44 key derivation using eth-account.

Deposit and collection keys are never persisted: the same mnemonic,
passphrase and index always reproduce the same key, so an address can be
recovered from its index alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from eth_account import Account
from eth_utils.exceptions import ValidationError as EthValidationError

from eth_node_client.errors import DerivationError, RpcError
from eth_node_client.models import DerivedAddress

if TYPE_CHECKING:
    from eth_node_client.transport import EthereumTransport

logger = logging.getLogger("eth_node_client.keys")

Account.enable_unaudited_hdwallet_features()

DERIVATION_PATH = "m/44'/60'/0'/0/{index}"

# Non-hardened child indexes stop at 2**31 - 1.
MAX_INDEX = 2**31 - 1


@dataclass(frozen=True)
class DerivedKey:
    """A derived keypair. ``private_key_hex`` carries no ``0x`` prefix."""

    address: str
    derivation_path: str
    derivation_index: int
    private_key_hex: str = field(repr=False)

    def public(self) -> DerivedAddress:
        return DerivedAddress(
            address=self.address,
            derivation_path=self.derivation_path,
            derivation_index=self.derivation_index,
        )


def derivation_path(index: int) -> str:
    """Return ``m/44'/60'/0'/0/{index}`` for a non-negative index."""
    if isinstance(index, bool) or not isinstance(index, int):
        raise DerivationError(f"Derivation index must be an integer, got {index!r}")
    if index < 0 or index > MAX_INDEX:
        raise DerivationError(
            f"Derivation index must be between 0 and {MAX_INDEX}, got {index}"
        )
    return DERIVATION_PATH.format(index=index)


def derive_key(mnemonic: str, passphrase: str, index: int) -> DerivedKey:
    """Derive the key at ``m/44'/60'/0'/0/{index}``.

    Parameters
    ----------
    mnemonic:
        BIP-39 mnemonic sentence.
    passphrase:
        BIP-39 seed passphrase (may be empty).
    index:
        Address index, ``>= 0``.

    Raises
    ------
    DerivationError
        If the mnemonic is malformed or the index is out of range.
    """
    path = derivation_path(index)
    try:
        acct = Account.from_mnemonic(mnemonic, passphrase=passphrase, account_path=path)
    except (EthValidationError, ValueError) as exc:
        raise DerivationError(f"Cannot derive key at {path}: {exc}") from exc

    return DerivedKey(
        address=acct.address,
        derivation_path=path,
        derivation_index=index,
        private_key_hex=bytes(acct.key).hex(),
    )


class KeyDerivationEngine:
    """Derives keys for one mnemonic/passphrase pair."""

    def __init__(self, mnemonic: str, passphrase: str = "") -> None:
        self._mnemonic = mnemonic
        self._passphrase = passphrase

    def __repr__(self) -> str:
        return f"{type(self).__name__}(<secret>)"

    def derive(self, index: int) -> DerivedKey:
        return derive_key(self._mnemonic, self._passphrase, index)

    def address(self, index: int) -> str:
        return self.derive(index).address


def register_key(transport: EthereumTransport, key: DerivedKey, account_password: str) -> str:
    """Import *key* into the signing node under *account_password*.

    Importing a key the node already holds is treated as success. Returns
    the derived checksummed address, whatever case the node reports.
    """
    try:
        node_address = transport.import_raw_key(key.private_key_hex, account_password)
    except RpcError as exc:
        if "already exists" in exc.message.lower():
            logger.info(f"Key for {key.address} already registered with the node")
            return key.address
        logger.error(exc.message)
        raise

    if node_address.lower() != key.address.lower():
        raise DerivationError(
            f"Node registered {node_address} but derivation produced {key.address}"
        )
    return key.address
