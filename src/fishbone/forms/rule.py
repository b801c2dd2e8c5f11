# src/fishbone/forms/rule.py

"""
Association rules ``condition => target`` and their quality metrics.

A :class:`Rule` is an immutable snapshot of four counts over a database:
``N`` (items), ``n_c`` (condition holds), ``n_t`` (target holds) and
``n_ct`` (both hold). Every metric is a pure function of those counts.

Examples
--------
>>> from fishbone.forms.predicates import RowWhere
>>> from fishbone.forms.rule import Rule
>>> c, t = RowWhere(bool, "c"), RowWhere(bool, "t")
>>> r = Rule(c, t, database_count=10, condition_count=8, target_count=9, intersection_count=7)
>>> r.name
'c => t'
>>> round(r.lift, 6), r.support, r.confidence
(0.972222, 0.8, 0.875)
"""

from __future__ import annotations
from dataclasses import dataclass
from functools import cached_property
import math
from typing import Any, Callable, Dict

import numpy as np

from ..errors import InvalidRule, UnsupportedTest
from .predicates import Predicate

__all__ = [
    "Rule",
    "LOE_EXPONENT",
    "LAPLACE_CORRECTION",
    "OBJECTIVES",
    "objective",
]

# Exponent on n_ct in LOE; separates nested implications of growing specificity.
LOE_EXPONENT = 1.1
# Added to the conviction denominator when the rule has no counter-examples.
LAPLACE_CORRECTION = 1.0

_CORRELATION_TOL = 1e-12


def _ratio(num: float, den: float) -> float:
    return num / den if den != 0 else math.nan


@dataclass(frozen=True, eq=False)
class Rule:
    """
    Directional rule with its frequency counts.

    Parameters
    ----------
    condition_predicate, target_predicate : Predicate
        Antecedent and consequent.
    database_count : int
        ``N``, number of items.
    condition_count : int
        ``n_c``, items satisfying the condition.
    target_count : int
        ``n_t``, items satisfying the target.
    intersection_count : int
        ``n_ct``, items satisfying both.

    Raises
    ------
    InvalidRule
        Unless ``0 <= n_ct <= min(n_c, n_t)`` and ``n_c, n_t <= N``.

    Notes
    -----
    Equality and hashing use ``(condition, target)`` only, never the counts.
    """
    condition_predicate: Predicate
    target_predicate: Predicate
    database_count: int
    condition_count: int
    target_count: int
    intersection_count: int

    def __post_init__(self):
        n, c, t, i = self.database_count, self.condition_count, self.target_count, self.intersection_count
        if min(n, c, t, i) < 0:
            raise InvalidRule(f"Negative count in rule {self.name}: N={n}, c={c}, t={t}, i={i}.")
        if c > n or t > n:
            raise InvalidRule(f"Condition/target count exceeds database size in {self.name}: N={n}, c={c}, t={t}.")
        if i > c or i > t:
            raise InvalidRule(f"Intersection exceeds marginals in {self.name}: c={c}, t={t}, i={i}.")

    @classmethod
    def of(cls, condition: Predicate, target: Predicate, database: Any) -> "Rule":
        """Count condition, target and their intersection over `database`."""
        cm = condition.test(database)
        tm = target.test(database)
        return cls(
            condition, target,
            database_count=len(database),
            condition_count=int(np.count_nonzero(cm)),
            target_count=int(np.count_nonzero(tm)),
            intersection_count=int(np.count_nonzero(cm & tm)),
        )

    @property
    def name(self) -> str:
        return f"{self.condition_predicate.name} => {self.target_predicate.name}"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Rule)
            and self.condition_predicate == other.condition_predicate
            and self.target_predicate == other.target_predicate
        )

    def __hash__(self) -> int:
        return hash((self.condition_predicate, self.target_predicate))

    def __repr__(self) -> str:
        return (f"Rule({self.name}: N={self.database_count}, c={self.condition_count}, "
                f"t={self.target_count}, i={self.intersection_count})")

    # ---- metrics ----

    @property
    def error_type1(self) -> int:
        """Counter-examples: condition holds, target does not."""
        return self.condition_count - self.intersection_count

    @property
    def error_type2(self) -> int:
        """Misses: target holds, condition does not."""
        return self.target_count - self.intersection_count

    @property
    def support(self) -> float:
        return _ratio(self.condition_count, self.database_count)

    @property
    def confidence(self) -> float:
        return _ratio(self.intersection_count, self.condition_count)

    @cached_property
    def lift(self) -> float:
        if self.condition_count == 0 or self.target_count == 0:
            return 0.0
        return self.database_count * self.intersection_count / (self.condition_count * self.target_count)

    @cached_property
    def conviction(self) -> float:
        n = self.database_count
        e1 = self.error_type1
        denominator = e1 if e1 > 0 else e1 + LAPLACE_CORRECTION
        return _ratio(self.condition_count, n) * (n - self.target_count) / denominator

    @cached_property
    def loe(self) -> float:
        n, c, t, i = self.database_count, self.condition_count, self.target_count, self.intersection_count
        return (n * i ** LOE_EXPONENT / (c + 1) - t) / (n - t + 1)

    @cached_property
    def correlation(self) -> float:
        """Phi coefficient of the 2x2 table; NaN if a marginal has zero variance."""
        n = self.database_count
        n11 = self.intersection_count
        n10 = self.error_type1
        n01 = self.error_type2
        n00 = n - self.condition_count - self.target_count + self.intersection_count
        denominator = math.sqrt(
            float(self.condition_count) * (n - self.condition_count)
            * self.target_count * (n - self.target_count)
        )
        if denominator == 0:
            return math.nan
        phi = (float(n11) * n00 - float(n10) * n01) / denominator
        if not -1 - _CORRELATION_TOL <= phi <= 1 + _CORRELATION_TOL:
            raise InvalidRule(f"Correlation {phi} out of [-1, 1] for {self.name}.")
        return min(1.0, max(-1.0, phi))


# =========================
# Objective functions
# =========================

OBJECTIVES: Dict[str, Callable[[Rule], float]] = {
    "conviction": lambda r: r.conviction,
    "loe": lambda r: r.loe,
    "correlation": lambda r: r.correlation,
}


def objective(name: str) -> Callable[[Rule], float]:
    """
    Resolve a rule-quality function by name.

    Raises
    ------
    UnsupportedTest
        If `name` is not one of ``OBJECTIVES``.
    """
    try:
        return OBJECTIVES[name]
    except KeyError:
        raise UnsupportedTest(f"Unknown objective function {name!r}; expected one of {sorted(OBJECTIVES)}.") from None
