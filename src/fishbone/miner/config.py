# src/fishbone/miner/config.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..forms.rule import OBJECTIVES

"""
Configuration for the Fishbone search.

Treat a :class:`MinerConfig` as an immutable snapshot passed into the miner;
avoid mutating it mid-run.

Examples
--------
>>> from fishbone.miner.config import MinerConfig
>>> cfg = MinerConfig(max_complexity=2, objective="loe")
>>> cfg.top_per_complexity
100
"""

__all__ = [
    'MinerConfig',
    'TOP_PER_COMPLEXITY',
    'FUNCTION_DELTA',
    'KL_DELTA',
]

TOP_PER_COMPLEXITY = 100
FUNCTION_DELTA = 1e-3
KL_DELTA = 1e-3


@dataclass
class MinerConfig:
    """
    Knobs of the level-wise rule search.

    Parameters
    ----------
    max_complexity : int, default=3
        Deepest level explored, i.e. the largest number of atomic predicates
        in a condition.
    top_per_complexity : int, default=100
        Beam width: nodes retained per level.
    function_delta : float, default=1e-3
        Minimal objective improvement of a child over its parent.
    kl_delta : float, default=1e-3
        Minimal relative KL improvement of a child over its parent, as a
        fraction of the divergence of the independent model. ``0`` disables
        the information filter.
    allow_and, allow_or : bool, default=True
        Combinators used when expanding a condition.
    negate : bool, default=True
        Also try the negation of each source predicate.
    objective : {"conviction", "loe", "correlation"}, default="conviction"
        Rule quality function used for ranking and gains.
    workers : int, default=1
        Threads scoring candidates within a level.
    time_budget : float, optional
        Wall-clock seconds; checked between levels.
    max_candidates : int, optional
        Total candidates scored across levels; checked between levels.
    build_heatmap_and_upset : bool, default=False
        Attach the pairwise correlation and subset intersection payloads to
        the final ``TRUE => target`` node.
    progress : bool, default=False
        Show a rich progress bar per level.
    """
    max_complexity: int = 3
    top_per_complexity: int = TOP_PER_COMPLEXITY
    function_delta: float = FUNCTION_DELTA
    kl_delta: float = KL_DELTA
    allow_and: bool = True
    allow_or: bool = True
    negate: bool = True
    objective: str = "conviction"
    workers: int = 1
    time_budget: Optional[float] = None
    max_candidates: Optional[int] = None
    build_heatmap_and_upset: bool = False
    progress: bool = False

    def __post_init__(self):
        if self.max_complexity < 1:
            raise ValueError("max_complexity must be >= 1")
        if self.top_per_complexity < 1:
            raise ValueError("top_per_complexity must be >= 1")
        if self.kl_delta > 1:
            raise ValueError("kl_delta must be <= 1")
        if self.objective not in OBJECTIVES:
            raise ValueError(f"objective must be one of {sorted(OBJECTIVES)}")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.time_budget is not None and self.time_budget <= 0:
            raise ValueError("time_budget must be positive")
        if self.max_candidates is not None and self.max_candidates < 1:
            raise ValueError("max_candidates must be >= 1")
