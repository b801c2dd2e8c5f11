# src/fishbone/forms/cache.py

"""
Process-wide cache of predicate bit masks.

Rule construction, significance tables and distributions all test the same
sub-formulas against the same database many times over, so masks are
memoized by predicate name.

Notes
-----
- The cache is bound to one database at a time, compared by identity
  (``is``) and size (``shape`` for frames and arrays, ``len`` otherwise).
  Seeing a different database, or the same one grown or shrunk, clears it.
- Editing values of the bound database in place is not detected; call
  :meth:`MaskCache.clear` afterwards.
- The cache keeps a strong reference to the bound database, so a recycled
  ``id`` can never alias a stale entry.
- Stored masks are read-only; callers combine them into fresh arrays.
"""

from __future__ import annotations
from collections import OrderedDict
from dataclasses import dataclass, field
import threading
from typing import Any, Callable, Optional

import numpy as np

__all__ = [
    "MaskCache",
    "MASK_CACHE",
    "DEFAULT_CACHE_SIZE",
]

DEFAULT_CACHE_SIZE = 1000


def _extent(database: Any) -> Any:
    shape = getattr(database, "shape", None)
    return tuple(shape) if shape is not None else len(database)


@dataclass
class MaskCache:
    """
    Small LRU of boolean masks for the current database.

    Parameters
    ----------
    maxsize : int, default 1000
        Number of masks retained before the least recently used one is dropped.

    Examples
    --------
    >>> import numpy as np
    >>> cache = MaskCache(maxsize=2)
    >>> db = [1, 2, 3]
    >>> m = cache.get_or_compute(db, "odd", lambda: np.array([True, False, True]))
    >>> m.tolist()
    [True, False, True]
    >>> len(cache)
    1
    """
    maxsize: int = DEFAULT_CACHE_SIZE
    _database: Any = field(default=None, init=False, repr=False)
    _size: Any = field(default=None, init=False, repr=False)
    _masks: "OrderedDict[str, np.ndarray]" = field(default_factory=OrderedDict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _ensure_database(self, database: Any) -> None:
        size = _extent(database)
        if self._database is not database or self._size != size:
            self._masks.clear()
            self._database = database
            self._size = size

    def get(self, database: Any, key: str) -> Optional[np.ndarray]:
        with self._lock:
            self._ensure_database(database)
            m = self._masks.get(key)
            if m is not None:
                self._masks.move_to_end(key)
            return m

    def put(self, database: Any, key: str, mask: np.ndarray) -> np.ndarray:
        mask = np.asarray(mask, dtype=bool)
        mask.flags.writeable = False
        with self._lock:
            self._ensure_database(database)
            self._masks[key] = mask
            self._masks.move_to_end(key)
            while len(self._masks) > self.maxsize:
                self._masks.popitem(last=False)
        return mask

    def get_or_compute(self, database: Any, key: str, compute: Callable[[], np.ndarray]) -> np.ndarray:
        # Compute outside the lock; a concurrent duplicate computation is harmless.
        m = self.get(database, key)
        if m is not None:
            return m
        return self.put(database, key, compute())

    def clear(self) -> None:
        with self._lock:
            self._masks.clear()
            self._database = None
            self._size = None

    def __len__(self) -> int:
        return len(self._masks)


MASK_CACHE = MaskCache()
