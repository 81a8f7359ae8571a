"""Historical-then-live replay of blocks and ERC-20 ``Transfer`` logs.

Both streams are pull-driven iterators: the node is only polled when the
consumer asks for the next item, so a slow consumer applies backpressure
instead of letting items pile up. A stream starts at
``head - replay_block_count`` and keeps following new blocks until
:meth:`close` is called, which may happen from another thread and interrupts
a pending poll wait.

Transport failures are raised from ``next()`` and end the stream. Nothing is
retried here; a supervisor can resume a new stream at ``next_height``.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from eth_node_client.erc20 import TRANSFER_EVENT_TOPIC
from eth_node_client.errors import ValidationError
from eth_node_client.models import BlockTransaction, ERC20TransferEvent
from eth_node_client.units import to_ether

if TYPE_CHECKING:
    from eth_node_client.transport import EthereumTransport

logger = logging.getLogger("eth_node_client.replay")

DEFAULT_POLL_INTERVAL = 2.0


class ReplayState(str, Enum):
    COMPUTING_START = "computing_start"
    HISTORICAL = "historical"
    LIVE = "live"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# Decoding helpers shared with the client facade
# ---------------------------------------------------------------------------


def to_hex(value: Any) -> str | None:
    """Normalise a hash or data field (``HexBytes`` or ``str``) to a ``0x`` string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def confirmations(current_height: int, block_number: int | None) -> int | None:
    """Blocks mined on top of *block_number*; ``None`` for pending transactions."""
    if block_number is None:
        return None
    return max(current_height - block_number, 0)


def block_timestamp(block: Mapping[str, Any]) -> datetime:
    return datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc)


def decode_transaction(
    tx: Mapping[str, Any],
    current_height: int,
    timestamp: datetime | None,
) -> BlockTransaction:
    block_number = tx.get("blockNumber")
    return BlockTransaction(
        hash=to_hex(tx["hash"]),
        from_address=tx.get("from"),
        to_address=tx.get("to"),
        amount=to_ether(int(tx.get("value", 0))),
        confirmations=confirmations(current_height, block_number),
        input=to_hex(tx.get("input")),
        timestamp=timestamp,
        block_number=block_number,
    )


def start_height_for(head: int, replay_block_count: int) -> int:
    if replay_block_count < 0:
        raise ValidationError(f"Replay block count must be >= 0, got {replay_block_count}")
    return max(head - replay_block_count, 0)


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class _ReplayStream:
    """Common lifecycle for the replay iterators."""

    def __init__(self, transport: EthereumTransport, poll_interval: float) -> None:
        self._transport = transport
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self.state = ReplayState.COMPUTING_START

    def __iter__(self) -> Iterator[Any]:
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.state is ReplayState.CLOSED

    def close(self) -> None:
        """Stop the stream; any pending or later ``next()`` ends iteration."""
        self._stop.set()
        self.state = ReplayState.CLOSED

    def _wait(self) -> bool:
        """Sleep one poll interval. Returns False if closed meanwhile."""
        return not self._stop.wait(self._poll_interval)

    def _fail(self, exc: Exception) -> None:
        logger.error(f"{type(self).__name__} failed: {exc}")
        self.close()


class BlockReplayStream(_ReplayStream):
    """Yields the decoded transactions of every block from the start height on.

    Each item is the list of :class:`BlockTransaction` of one block, in
    strictly ascending height order with no gap or repeat, across the
    switch from historical backfill to newly mined blocks. Confirmations are
    computed against the chain head read when the block is decoded.

    Parameters
    ----------
    transport:
        Node transport.
    replay_block_count:
        How many blocks below the current head to start from.
    poll_interval:
        Seconds to wait for a new block once caught up with the head.
    start_height:
        Explicit first height, e.g. ``next_height`` of a failed stream.
        Overrides *replay_block_count*.
    """

    def __init__(
        self,
        transport: EthereumTransport,
        replay_block_count: int = 0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        start_height: int | None = None,
    ) -> None:
        super().__init__(transport, poll_interval)
        if start_height is None:
            start_height = start_height_for(transport.get_block_number(), replay_block_count)
        elif start_height < 0:
            raise ValidationError(f"Start height must be >= 0, got {start_height}")
        self.start_height = start_height
        self.next_height = start_height
        self.state = ReplayState.HISTORICAL
        logger.info(f"Replaying blocks from height {start_height}")

    def __next__(self) -> list[BlockTransaction]:
        while not self.closed:
            try:
                head = self._transport.get_block_number()
                if self.next_height <= head:
                    return self._emit(self.next_height)
            except Exception as exc:
                self._fail(exc)
                raise

            if self.state is ReplayState.HISTORICAL:
                logger.info(f"Block replay caught up at height {head}, following new blocks")
                self.state = ReplayState.LIVE
            if not self._wait():
                break
        raise StopIteration

    def _emit(self, height: int) -> list[BlockTransaction]:
        block = self._transport.get_block(height, full_transactions=True)
        current = self._transport.get_block_number()
        timestamp = block_timestamp(block)
        transactions = [
            decode_transaction(tx, current, timestamp)
            for tx in block.get("transactions", [])
        ]
        self.next_height = height + 1
        logger.debug(f"Block {height}: {len(transactions)} transactions")
        return transactions


class LogReplayStream(_ReplayStream):
    """Yields an :class:`ERC20TransferEvent` for every ERC-20 ``Transfer`` log.

    A node-side log filter matching the ``Transfer`` topic of any contract is
    installed at construction. Past logs are read once, then the filter is
    polled for changes. Events come out in the order the node returns them;
    a log at or before the last delivered ``(blockNumber, logIndex)`` is
    skipped unless it is a removal.
    :meth:`close` uninstalls the filter.
    """

    def __init__(
        self,
        transport: EthereumTransport,
        replay_block_count: int = 0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        start_height: int | None = None,
    ) -> None:
        super().__init__(transport, poll_interval)
        if start_height is None:
            start_height = start_height_for(transport.get_block_number(), replay_block_count)
        elif start_height < 0:
            raise ValidationError(f"Start height must be >= 0, got {start_height}")
        self.start_height = start_height
        self.next_height = start_height
        self._pending: deque[ERC20TransferEvent] = deque()
        self._last_position: tuple[int, int] | None = None
        self._filter_id: str | None = transport.new_log_filter(self.filter_params(start_height))
        self.state = ReplayState.HISTORICAL
        logger.info(f"Replaying ERC-20 transfer logs from height {start_height}")

    @staticmethod
    def filter_params(start_height: int) -> dict[str, Any]:
        return {
            "fromBlock": hex(start_height),
            "toBlock": "latest",
            "topics": [TRANSFER_EVENT_TOPIC],
        }

    def __next__(self) -> ERC20TransferEvent:
        while not self.closed:
            if self._pending:
                return self._take()
            try:
                if self.state is ReplayState.HISTORICAL:
                    logs = self._transport.get_filter_logs(self._filter_id)
                    self.state = ReplayState.LIVE
                else:
                    logs = self._transport.get_filter_changes(self._filter_id)
            except Exception as exc:
                self._fail(exc)
                raise

            self._enqueue(logs)
            if not self._pending and not self._wait():
                break
        raise StopIteration

    def _enqueue(self, logs: list[Mapping[str, Any]]) -> None:
        """Queue decoded logs, skipping any at or before the last queued position.

        Filter changes include logs mined between installing the filter and
        the first historical read, which that read already returned.
        """
        for log in logs:
            event = self._decode(log)
            if event.block_number is None or event.log_index is None:
                self._pending.append(event)
                continue
            position = (event.block_number, event.log_index)
            if event.removed:
                # Logs re-mined at or after a removed position must be delivered again.
                if self._last_position is not None:
                    self._last_position = min(self._last_position, (position[0], position[1] - 1))
                self._pending.append(event)
                continue
            if self._last_position is not None and position <= self._last_position:
                logger.debug(f"Skipping already delivered log {event.transaction_hash} at {position}")
                continue
            self._last_position = position
            self._pending.append(event)

    def _take(self) -> ERC20TransferEvent:
        # Resuming at next_height may repeat events of that block.
        event = self._pending.popleft()
        if event.block_number is not None:
            self.next_height = max(self.next_height, event.block_number)
        return event

    @staticmethod
    def _decode(log: Mapping[str, Any]) -> ERC20TransferEvent:
        return ERC20TransferEvent(
            transaction_hash=to_hex(log["transactionHash"]),
            contract_address=log["address"],
            block_number=log.get("blockNumber"),
            log_index=log.get("logIndex"),
            removed=bool(log.get("removed", False)),
        )

    def close(self) -> None:
        super().close()
        self._pending.clear()
        filter_id, self._filter_id = self._filter_id, None
        if filter_id is None:
            return
        try:
            self._transport.uninstall_filter(filter_id)
        except Exception as exc:
            logger.warning(f"Failed to uninstall log filter {filter_id}: {exc}")
