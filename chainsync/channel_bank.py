"""Buffers that hand out queued items in ascending block order."""

from __future__ import annotations

import heapq
import itertools
import threading
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, TypeVar

from chainsync.records import TransactionType

T = TypeVar("T")


@dataclass
class TransactionChannel:
    """A transaction found in a block that concerns one business."""

    business_id: str
    block_number: int
    block_hash: str = ""
    tx_hash: str = ""
    from_address: str = ""
    to_address: str = ""
    token_address: str = ""
    amount: str = ""
    tx_fee: str = ""
    tx_status: int = 0
    tx_type: TransactionType = TransactionType.UNKNOWN
    contract_address: str = ""


@dataclass
class BlockHeader:
    """Summary of a block header."""

    number: int
    hash: str = ""
    parent_hash: str = ""
    timestamp: int = 0


class _SortedBank(Generic[T]):
    """Thread-safe buffer that yields the lowest-keyed pending item first."""

    def __init__(self, buffer_size: int, key: Callable[[T], int]) -> None:
        self._capacity = buffer_size if buffer_size > 0 else None
        self._key = key
        self._heap: list[tuple[int, int, T]] = []
        self._counter = itertools.count()
        self._cond = threading.Condition()
        self._closed = False

    def _push(self, item: T) -> None:
        with self._cond:
            while True:
                if self._closed:
                    raise RuntimeError("push on a closed bank")
                if self._capacity is None or len(self._heap) < self._capacity:
                    break
                self._cond.wait()
            heapq.heappush(self._heap, (self._key(item), next(self._counter), item))
            self._cond.notify_all()

    def _close(self) -> None:
        with self._cond:
            if self._closed:
                raise RuntimeError("bank already closed")
            self._closed = True
            self._cond.notify_all()

    def _drain(self) -> Iterator[T]:
        while True:
            with self._cond:
                while not self._heap and not self._closed:
                    self._cond.wait()
                if not self._heap:
                    return
                _, _, item = heapq.heappop(self._heap)
                self._cond.notify_all()
            yield item


class ChannelBank(_SortedBank[TransactionChannel]):
    """Orders found transactions by block number.

    Iterating blocks until an item is available and ends once the bank
    is closed and empty. ``buffer_size`` bounds the pending items; a value
    of zero or less leaves it unbounded.
    """

    def __init__(self, buffer_size: int) -> None:
        super().__init__(buffer_size, key=lambda tx: tx.block_number)

    def push(self, item: TransactionChannel) -> None:
        """Queue a transaction, waiting while the bank is full."""
        self._push(item)

    def close(self) -> None:
        """Stop accepting items; pending ones are still handed out."""
        self._close()

    def __iter__(self) -> Iterator[TransactionChannel]:
        return self._drain()


class BlockHeaderBank(_SortedBank[BlockHeader]):
    """Orders block headers by number; behaves like ChannelBank."""

    def __init__(self, buffer_size: int) -> None:
        super().__init__(buffer_size, key=lambda header: header.number)

    def push(self, item: BlockHeader) -> None:
        """Queue a header, waiting while the bank is full."""
        self._push(item)

    def close(self) -> None:
        """Stop accepting items; pending ones are still handed out."""
        self._close()

    def __iter__(self) -> Iterator[BlockHeader]:
        return self._drain()