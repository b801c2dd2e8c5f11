# src/fishbone/utils/tasks.py

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

__all__ = [
    "run_tasks",
]

T = TypeVar("T")
R = TypeVar("R")


def run_tasks(fn: Callable[[T], R], items: Iterable[T], workers: int = 1) -> List[R]:
    """
    Apply ``fn`` to every item, in order, optionally on a thread pool.

    Results come back in input order. Numpy releases the GIL for the bitwise
    and counting kernels that dominate candidate scoring.
    """
    items = list(items)
    if workers <= 1 or len(items) <= 1:
        return [fn(x) for x in items]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(fn, items))
