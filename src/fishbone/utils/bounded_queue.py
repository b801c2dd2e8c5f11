# src/fishbone/utils/bounded_queue.py

"""
Thread-safe, size-limited priority collector.

Elements are ranked by ``key`` (smaller is better). Once the queue is full,
a new element is rejected unless it is strictly better than the current
worst, which it then evicts.

Examples
--------
>>> from fishbone.utils.bounded_queue import BoundedPriorityQueue
>>> q = BoundedPriorityQueue(2, key=lambda x: -x)
>>> [q.offer(x) for x in (1, 5, 3, 3, 0)]
[True, True, True, False, False]
>>> q.sorted()
[5, 3]
"""

from __future__ import annotations
import heapq
import itertools
import threading
from typing import Any, Callable, Generic, Iterator, List, TypeVar

__all__ = [
    "BoundedPriorityQueue",
]

T = TypeVar("T")


class _Worst:
    """Heap entry inverting the ranking so the heap top is the worst element."""
    __slots__ = ("key", "seq", "item")

    def __init__(self, key: Any, seq: int, item: Any):
        self.key = key
        self.seq = seq
        self.item = item

    def __lt__(self, other: "_Worst") -> bool:
        if self.key != other.key:
            return self.key > other.key
        return self.seq > other.seq


class BoundedPriorityQueue(Generic[T]):
    """
    Parameters
    ----------
    limit : int
        Maximal number of retained elements.
    key : Callable[[T], Any]
        Ranking key; smaller keys are better.
    """

    def __init__(self, limit: int, key: Callable[[T], Any]):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.key = key
        self._heap: List[_Worst] = []
        self._seq = itertools.count()
        self._lock = threading.RLock()

    def offer(self, item: T) -> bool:
        """Insert `item` unless the queue is full and it does not beat the worst."""
        with self._lock:
            k = self.key(item)
            if len(self._heap) >= self.limit and not k < self._heap[0].key:
                return False
            self._push(item, k)
            return True

    def _push(self, item: T, k: Any) -> None:
        if len(self._heap) >= self.limit:
            heapq.heapreplace(self._heap, _Worst(k, next(self._seq), item))
        else:
            heapq.heappush(self._heap, _Worst(k, next(self._seq), item))

    def _remove(self, item: T) -> None:
        self._heap = [e for e in self._heap if e.item is not item]
        heapq.heapify(self._heap)

    def peek_worst(self) -> T:
        return self._heap[0].item

    def sorted(self) -> List[T]:
        """Elements from best to worst; ties keep insertion order."""
        with self._lock:
            return [e.item for e in sorted(self._heap, key=lambda e: (e.key, e.seq))]

    def __len__(self) -> int:
        return len(self._heap)

    def __iter__(self) -> Iterator[T]:
        return iter(self.sorted())
