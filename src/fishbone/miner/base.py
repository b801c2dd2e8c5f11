# src/fishbone/miner/base.py

"""
Pluggable rule miners selected by label.

Every miner maps ``(database, sources, targets)`` to one ranked list of
:class:`~fishbone.miner.node.Node` per target, so strategies are
interchangeable. ``"fishbone"`` ships with this package; ``"tree"``,
``"fp-growth"`` and ``"ripper"`` are reserved labels for adapters around
third-party learners and must be registered before use.

Examples
--------
>>> from fishbone.miner import get_miner
>>> type(get_miner("fishbone")).__name__
'FishboneMiner'
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from ..errors import UnsupportedTest
from ..forms.predicates import Predicate

__all__ = [
    "Miner",
    "MINERS",
    "register_miner",
    "get_miner",
]


class Miner(ABC):
    label: str = ""

    @abstractmethod
    def mine(self, database: Any, sources: Sequence[Predicate],
             targets: Optional[Sequence[Predicate]] = None, **kwargs) -> List[List[Any]]:
        """Ranked nodes per target."""


MINERS: Dict[str, Optional[Type[Miner]]] = {
    "fishbone": None,
    "tree": None,
    "fp-growth": None,
    "ripper": None,
}


def register_miner(label: str) -> Callable[[Type[Miner]], Type[Miner]]:
    """Class decorator binding a :class:`Miner` subclass to `label`."""
    def decorate(cls: Type[Miner]) -> Type[Miner]:
        cls.label = label
        MINERS[label] = cls
        return cls
    return decorate


def get_miner(label: str, *args, **kwargs) -> Miner:
    """
    Instantiate the miner registered under `label`.

    Raises
    ------
    UnsupportedTest
        For unknown labels, or reserved labels with no registered adapter.
    """
    if label not in MINERS:
        raise UnsupportedTest(f"Unknown miner {label!r}; expected one of {sorted(MINERS)}.")
    cls = MINERS[label]
    if cls is None:
        raise UnsupportedTest(f"No implementation registered for miner {label!r}.")
    return cls(*args, **kwargs)
