"""Exception hierarchy for the Ethereum node client.

Every failure raised by the package derives from :class:`EthereumClientError`.
The kind of failure is carried by the class, so callers can branch with
``except`` clauses instead of inspecting message text.
"""

from __future__ import annotations


class EthereumClientError(Exception):
    """Base class for all errors raised by ``eth_node_client``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EthereumClientError):
    """Raised for bad local input (address, amount, sweep balance).

    Always detected before the request reaches the node.
    """


class RpcError(EthereumClientError):
    """The node answered with a JSON-RPC error object.

    ``message`` is passed through unmodified from the upstream response.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransportError(EthereumClientError):
    """The node could not be reached (socket, HTTP or timeout failure)."""


class NotFoundError(EthereumClientError):
    """The node answered but the transaction, receipt or block is absent."""


class DecodeError(EthereumClientError):
    """A single ABI field could not be decoded."""


class DerivationError(EthereumClientError):
    """Malformed mnemonic, index or derivation path."""
