# src/fishbone/processing/adjustment.py

"""
Multiple-comparison adjustments over a batch of p-values.

Each adjustment maps ``[(item, p), ...]`` sorted by ascending ``p`` to
``[(item, significant), ...]`` in the same order.

Examples
--------
>>> from fishbone.processing.adjustment import BenjaminiHochberg, NoAdjustment
>>> pairs = [("a", 0.01), ("b", 0.02), ("c", 0.5), ("d", 0.6)]
>>> [s for _, s in NoAdjustment().test(pairs, 0.05, 4)]
[True, True, False, False]
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple, TypeVar

__all__ = [
    "MultipleComparisonsAdjustment",
    "NoAdjustment",
    "BenjaminiHochberg",
]

T = TypeVar("T")


class MultipleComparisonsAdjustment(ABC):
    """Stateless strategy flagging which p-values are significant."""

    @abstractmethod
    def test(self, p_values: Sequence[Tuple[T, float]], alpha: float, m: int) -> List[Tuple[T, bool]]:
        """
        Parameters
        ----------
        p_values : sequence of (item, p)
            Sorted by ascending p.
        alpha : float
            Significance level.
        m : int
            Number of hypotheses tested.
        """


class NoAdjustment(MultipleComparisonsAdjustment):
    """Each test on its own: significant iff ``p < alpha``."""

    def test(self, p_values, alpha, m):
        return [(item, p < alpha) for item, p in p_values]


class BenjaminiHochberg(MultipleComparisonsAdjustment):
    """
    Step-up false discovery rate control, scanned from the smallest p-value.

    Comparisons run in ascending order against ``alpha * (i + 1) / m``. Each
    p-value at or above its threshold is flagged not significant; at the
    first p-value below its threshold, it and every later p-value are
    flagged significant and the scan stops.

    Notes
    -----
    This differs from the textbook procedure, which rejects up to the last
    p-value below its threshold and accepts everything after it. For
    ``[0.02, 0.02, 0.9]`` at ``alpha = 0.05`` the scan yields
    ``[False, True, True]``.
    """

    def test(self, p_values, alpha, m):
        out: List[Tuple[T, bool]] = []
        for i, (item, p) in enumerate(p_values):
            level = alpha * (i + 1) / m
            if p >= level:
                out.append((item, False))
                continue
            out.extend((rest, True) for rest, _ in p_values[i:])
            return out
        return out
