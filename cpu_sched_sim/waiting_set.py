"""
Waiting-set containers that always yield the next process to dispatch.

Keys may depend on mutable process state (aged priority), so the sorted set
orders through a key function and is re-sorted explicitly after such a
mutation. The heap captures its key on push and is only used for keys that
never change while an item is queued.
"""

from __future__ import annotations

import heapq
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Generic, Iterator, List, TypeVar

T = TypeVar("T")

KeyFunc = Callable[[T], Any]


class SortedWaitingSet(Generic[T]):
    """
    Resortable list. Sorting is stable, so items with equal keys keep their
    insertion order.
    """

    def __init__(self, key: KeyFunc) -> None:
        self._key = key
        self._items: List[T] = []

    def insert(self, item: T) -> None:
        assert item not in self._items, f"{item!r} is already waiting"
        self._items.append(item)
        self.resort()

    def resort(self) -> None:
        self._items.sort(key=self._key)

    def pop(self) -> T:
        return self._items.pop(0)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))


@dataclass(order=True)
class _HeapItem(Generic[T]):
    key: Any
    seq: int
    item: T = field(compare=False)


class KeyedHeap(Generic[T]):
    """
    Binary min-heap ordered by `key(item)`; pass a negating key for max-heap
    behaviour. Equal keys pop in push order.
    """

    def __init__(self, key: KeyFunc) -> None:
        self._key = key
        self._heap: List[_HeapItem[T]] = []
        self._seq = 0

    def push(self, item: T) -> None:
        heapq.heappush(self._heap, _HeapItem(self._key(item), self._seq, item))
        self._seq += 1

    def pop(self) -> T:
        return heapq.heappop(self._heap).item

    def __len__(self) -> int:
        return len(self._heap)


class RequeueRing(Generic[T]):
    """FIFO queue that refuses duplicates; requeued items go to the tail."""

    def __init__(self) -> None:
        self._queue: Deque[T] = deque()

    def push(self, item: T) -> None:
        assert item not in self._queue, f"{item!r} is already queued"
        self._queue.append(item)

    def pop(self) -> T:
        return self._queue.popleft()

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._queue))
