# src/fishbone/relations/distribution.py

"""
Joint probability models over a fixed list of predicates.

A distribution over ``k`` predicates assigns a probability to each of the
``2**k`` truth assignments, encoded as an integer whose bit ``i`` is set when
predicate ``i`` holds.

- :class:`Distribution` starts as the maximum-entropy (independent) model,
  the product of the empirical marginals, and is refined by :meth:`learn`.
- :class:`EmpiricalDistribution` holds the exact joint frequencies.
- :func:`kullback_leibler` measures how far a model is from the data.

Entropy and divergence are both measured in bits.

Examples
--------
>>> import numpy as np
>>> from fishbone.forms import Where
>>> from fishbone.relations.distribution import Distribution, EmpiricalDistribution
>>> db = list(range(10))
>>> low = Where(lambda d: np.asarray(d) < 5, "low")
>>> even = Where(lambda d: np.asarray(d) % 2 == 0, "even")
>>> emp = EmpiricalDistribution(db, [low, even])
>>> round(emp.probability(0b11), 3)
0.3
>>> round(Distribution(db, [low, even]).probability(0b11), 3)
0.25
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..errors import FishboneError
from ..forms.predicates import (
    Predicate,
    NotPredicate,
    AndPredicate,
    OrPredicate,
    ParenthesesPredicate,
    TruePredicate,
    FalsePredicate,
)
from ..forms.rule import Rule

__all__ = [
    "Distribution",
    "EmpiricalDistribution",
    "kullback_leibler",
    "MAX_PREDICATES",
]

logger = logging.getLogger(__name__)

MAX_PREDICATES = 30
_SUM_TOL = 1e-10
_CONTINUITY_TOL = 1e-6


def _xlog2x(p: np.ndarray) -> np.ndarray:
    out = np.zeros_like(p)
    nz = p > 0
    out[nz] = p[nz] * np.log2(p[nz])
    return out


class Distribution:
    """
    Probability model over the joint truth assignments of `predicates`.

    Parameters
    ----------
    database : Sequence
        Items the marginals are estimated from.
    predicates : Sequence[Predicate]
        Ordered predicates; position ``i`` is bit ``i`` of an encoding.
    probabilities : np.ndarray, optional
        Explicit mass function of length ``2**k``. Defaults to the product
        of the empirical marginals.

    Raises
    ------
    ValueError
        With more than ``MAX_PREDICATES`` predicates or a mass function of
        the wrong length.
    """

    def __init__(self, database: Any, predicates: Sequence[Predicate],
                 probabilities: Optional[np.ndarray] = None):
        self.database = database
        self.predicates: List[Predicate] = list(predicates)
        k = len(self.predicates)
        if k > MAX_PREDICATES:
            raise ValueError(f"Too many predicates for a joint distribution: {k} > {MAX_PREDICATES}.")
        # Later duplicates shadow earlier ones by name.
        self._indices: Dict[str, int] = {p.name: i for i, p in enumerate(self.predicates)}
        self._encodings = np.arange(1 << k, dtype=np.int64)

        if probabilities is None:
            probabilities = self._independent()
        probabilities = np.asarray(probabilities, dtype=float)
        if probabilities.shape != (1 << k,):
            raise ValueError(f"Expected {1 << k} probabilities, got shape {probabilities.shape}.")
        probabilities.flags.writeable = False
        self._probabilities = probabilities

    def _independent(self) -> np.ndarray:
        n = len(self.database)
        probs = np.ones(len(self._encodings))
        for i, p in enumerate(self.predicates):
            marginal = p.count(self.database) / n if n else 0.0
            bit = ((self._encodings >> i) & 1).astype(bool)
            probs *= np.where(bit, marginal, 1.0 - marginal)
        return probs

    @property
    def probabilities(self) -> np.ndarray:
        """Read-only mass function indexed by encoding."""
        return self._probabilities

    def probability(self, encoding: int) -> float:
        return float(self._probabilities[encoding])

    def H(self) -> float:
        """Shannon entropy in bits, with ``0 log 0 = 0``."""
        return float(-_xlog2x(self._probabilities).sum())

    # ---- structural evaluation over encodings ----

    def bit(self, i: int) -> np.ndarray:
        """Truth value of predicate `i` for every encoding."""
        return ((self._encodings >> i) & 1).astype(bool)

    def evaluate(self, predicate: Predicate) -> np.ndarray:
        """
        Truth value of `predicate` for every encoding.

        Predicates in the model are looked up by name first; compound
        predicates are evaluated structurally from their operands.

        Raises
        ------
        KeyError
            If an atom of `predicate` is not among the model's predicates.
        """
        i = self._indices.get(predicate.name)
        if i is not None:
            return self.bit(i)
        if isinstance(predicate, NotPredicate):
            return ~self.evaluate(predicate.operand)
        if isinstance(predicate, ParenthesesPredicate):
            return self.evaluate(predicate.operand)
        if isinstance(predicate, AndPredicate):
            return np.logical_and.reduce([self.evaluate(op) for op in predicate.operands])
        if isinstance(predicate, OrPredicate):
            return np.logical_or.reduce([self.evaluate(op) for op in predicate.operands])
        if isinstance(predicate, TruePredicate):
            return np.ones(len(self._encodings), dtype=bool)
        if isinstance(predicate, FalsePredicate):
            return np.zeros(len(self._encodings), dtype=bool)
        raise KeyError(f"Missing predicate {predicate.name!r} in distribution over {self.predicates}.")

    # ---- update ----

    def learn(self, rule: Rule) -> "Distribution":
        """
        Minimum-divergence update matching the rule's joint frequencies.

        The four cells (condition, target) x (holds, fails) are rescaled so
        their mass equals the rule's observed proportions; within each cell
        the relative weights of all other assignments are kept. Applying the
        same rule twice is a fixed point.

        Raises
        ------
        FishboneError
            If the current mass function does not sum to 1.
        """
        cond = self.evaluate(rule.condition_predicate)
        target = self.evaluate(rule.target_predicate)
        cells = [cond & target, cond & ~target, ~cond & target, ~cond & ~target]

        p = self._probabilities
        prior = [float(p[c].sum()) for c in cells]
        if abs(sum(prior) - 1.0) > _SUM_TOL:
            raise FishboneError(f"Distribution mass sums to {sum(prior)}, expected 1.")

        n = rule.database_count
        tp = rule.intersection_count / n
        fp = rule.error_type1 / n
        fn = rule.error_type2 / n
        observed = [tp, fp, fn, 1.0 - tp - fp - fn]

        updated = np.zeros_like(p)
        for cell, s, r in zip(cells, prior, observed):
            if s != 0:
                updated[cell] = p[cell] * (r / s)
        return Distribution(self.database, self.predicates, updated)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({[p.name for p in self.predicates]})"


class EmpiricalDistribution(Distribution):
    """Exact joint frequencies of `predicates` over `database`."""

    def __init__(self, database: Any, predicates: Sequence[Predicate]):
        predicates = list(predicates)
        n = len(database)
        k = len(predicates)
        if k > MAX_PREDICATES:
            raise ValueError(f"Too many predicates for a joint distribution: {k} > {MAX_PREDICATES}.")
        codes = np.zeros(n, dtype=np.int64)
        for i, p in enumerate(predicates):
            codes |= p.test(database).astype(np.int64) << i
        counts = np.bincount(codes, minlength=1 << k).astype(float)
        probs = counts / n if n else counts
        super().__init__(database, predicates, probs)


def kullback_leibler(p: Distribution, q: Distribution) -> float:
    """
    Relative entropy ``KL(p || q)`` in bits, clamped at 0.

    Raises
    ------
    ValueError
        If the distributions are over different predicates or databases, or
        if ``q`` assigns zero mass where ``p`` has more than 1e-6.
    """
    if p.predicates != q.predicates:
        raise ValueError(f"KL over different predicates: {p.predicates} vs {q.predicates}.")
    if p.database is not q.database:
        raise ValueError("KL over different databases.")

    pv, qv = p.probabilities, q.probabilities
    nz = pv > 0
    zero_q = nz & (qv == 0)
    if np.any(pv[zero_q] > _CONTINUITY_TOL):
        raise ValueError("KL undefined: q has zero mass where p does not.")
    terms = nz & ~zero_q
    kl = float(np.sum(pv[terms] * np.log2(pv[terms] / qv[terms])))
    return max(0.0, kl)
