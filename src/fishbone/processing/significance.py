# src/fishbone/processing/significance.py

"""
Statistical significance of rules.

A rule is tested factor by factor: its condition is decomposed into
sources (the operands of a conjunction; a disjunction becomes the single
source ``NOT (NOT p0 AND NOT p1 ...)``), and each source is tested by a
leave-one-out 2x2 table against the target. The rule's p-value aggregates
the per-source p-values (``max`` by default: a rule is only as significant
as its weakest necessary factor).

Tests
-----
- ``"fisher"``: Fisher's exact test from log-factorials, used for small
  databases (``<= SMALL_DATABASE_SIZE_THRESHOLD`` items).
- ``"chi"``: the chi-squared statistic over proportions, used otherwise.
"""

from __future__ import annotations
import logging
import math
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats
from scipy.special import gammaln

from ..errors import UnsupportedTest
from ..forms.predicates import Predicate, AndPredicate, OrPredicate, TruePredicate, and_
from ..forms.rule import Rule
from .adjustment import BenjaminiHochberg, MultipleComparisonsAdjustment, NoAdjustment

__all__ = [
    "SMALL_DATABASE_SIZE_THRESHOLD",
    "TESTS",
    "build_sources",
    "frequency_table",
    "chi_squared_test",
    "fisher_exact_test",
    "significance_test",
    "default_test",
    "test_rule_productivity",
    "productive_rules",
    "is_technical",
    "productive_nodes",
]

logger = logging.getLogger(__name__)

SMALL_DATABASE_SIZE_THRESHOLD = 100
TESTS = ("chi", "fisher")

# Frozen once per process.
_CHI2 = stats.chi2(df=1)
# Relative tolerance when collecting tables as extreme as the observed one.
_FISHER_RELATIVE_TOL = 1 + 1e-7


# =========================
# Tables
# =========================

def build_sources(rule: Rule) -> List[Predicate]:
    """
    Decompose the rule's condition into the factors tested one by one.

    Examples
    --------
    >>> from fishbone.forms import RowWhere, Rule, or_
    >>> a, b, t = RowWhere(bool, "a"), RowWhere(bool, "b"), RowWhere(bool, "t")
    >>> [p.name for p in build_sources(Rule(or_(a, b), t, 4, 2, 2, 1))]
    ['NOT (NOT a AND NOT b)']
    """
    condition = rule.condition_predicate
    if isinstance(condition, AndPredicate):
        return list(condition.operands)
    if isinstance(condition, OrPredicate):
        return [and_(*(op.negate() for op in condition.operands)).negate()]
    return [condition]


def _count(predicates: Sequence[Predicate], database: Any) -> int:
    mask = np.logical_and.reduce([p.test(database) for p in predicates])
    return int(np.count_nonzero(mask))


def frequency_table(sources: Sequence[Predicate], x: Predicate, target: Predicate,
                    database: Any) -> Tuple[int, int, int, int]:
    """
    Leave-one-out 2x2 table for source `x`.

    Returns
    -------
    (a, b, c, d) : tuple of int
        ``a`` = #(sources AND target), ``b`` = #(sources AND NOT target),
        ``c`` = #(others AND NOT x AND target), ``d`` = #(others AND NOT x AND NOT target).
    """
    not_target = target.negate()
    others = [s for s in sources if s != x]
    not_x = x.negate()
    a = _count([*sources, target], database)
    b = _count([*sources, not_target], database)
    c = _count([*others, not_x, target], database)
    d = _count([*others, not_x, not_target], database)
    return a, b, c, d


# =========================
# Tests
# =========================

def chi_squared_test(a: float, b: float, c: float, d: float) -> float:
    """
    P-value of ``(ad - bc)(a + b + c + d) / ((a+b)(c+d)(a+c)(b+d))`` under chi2(1).

    Zero marginal sums are replaced by 1.0; a non-finite statistic counts
    as fully significant (p = 0).
    """
    t1 = (a + b) or 1.0
    t2 = (c + d) or 1.0
    t3 = (a + c) or 1.0
    t4 = (b + d) or 1.0
    with np.errstate(divide="ignore", invalid="ignore"):
        statistic = np.float64(a * d - b * c) * (a + b + c + d) / (t1 * t2 * t3 * t4)
    if not math.isfinite(statistic):
        return 0.0
    return float(_CHI2.sf(statistic))


def _log_hypergeometric(x: np.ndarray, row1: int, row2: int, col1: int, n: int) -> np.ndarray:
    return (gammaln(row1 + 1) + gammaln(row2 + 1) + gammaln(col1 + 1) + gammaln(n - col1 + 1)
            - gammaln(n + 1) - gammaln(x + 1) - gammaln(row1 - x + 1)
            - gammaln(col1 - x + 1) - gammaln(row2 - col1 + x + 1))


def fisher_exact_test(a: int, b: int, c: int, d: int, alternative: str = "two-sided") -> float:
    """
    Fisher's exact test on the table ``[[a, b], [c, d]]``.

    Parameters
    ----------
    alternative : {"two-sided", "greater"}
        ``"two-sided"`` sums the probabilities of every table with the same
        margins that is at most as likely as the observed one.
        ``"greater"`` sums the tables ``(a+i, b-i, c-i, d+i)`` for
        ``i in [0, min(b, c)]``.

    Notes
    -----
    Probabilities come from log-factorials so large tables do not overflow.

    Examples
    --------
    >>> round(fisher_exact_test(71, 54, 1, 24) * 1e7, 3)
    3.322
    """
    a, b, c, d = int(a), int(b), int(c), int(d)
    row1, row2, col1 = a + b, c + d, a + c
    n = row1 + row2
    if n == 0:
        return 1.0

    if alternative == "greater":
        x = a + np.arange(0, min(b, c) + 1)
        p = np.exp(_log_hypergeometric(x, row1, row2, col1, n)).sum()
    elif alternative == "two-sided":
        x = np.arange(max(0, col1 - row2), min(row1, col1) + 1)
        log_p = _log_hypergeometric(x, row1, row2, col1, n)
        observed = _log_hypergeometric(np.array([a]), row1, row2, col1, n)[0]
        probs = np.exp(log_p)
        p = probs[probs <= math.exp(observed) * _FISHER_RELATIVE_TOL].sum()
    else:
        raise UnsupportedTest(f"Unknown Fisher alternative {alternative!r}.")
    return float(min(1.0, p))


def default_test(database: Any) -> str:
    """Fisher for small databases, chi-squared otherwise."""
    return "fisher" if len(database) <= SMALL_DATABASE_SIZE_THRESHOLD else "chi"


def significance_test(a: int, b: int, c: int, d: int, n: int, test: str) -> float:
    """
    Dispatch a 2x2 table to the named test; `n` normalizes chi-squared counts.

    Raises
    ------
    UnsupportedTest
        If `test` is not one of ``TESTS``.
    """
    if test == "chi":
        scale = float(n) if n else 1.0
        return chi_squared_test(a / scale, b / scale, c / scale, d / scale)
    if test == "fisher":
        return fisher_exact_test(a, b, c, d)
    raise UnsupportedTest(f"Unsupported significance test {test!r}; expected one of {TESTS}.")


# =========================
# Rules
# =========================

def test_rule_productivity(rule: Rule, database: Any, test: Optional[str] = None,
                           aggregate: Callable[[Iterable[float]], float] = max) -> float:
    """
    P-value of a rule: `aggregate` of the leave-one-out p-values of its sources.

    Parameters
    ----------
    rule : Rule
    database : Sequence
    test : {"chi", "fisher"}, optional
        Defaults to :func:`default_test` of the database.
    aggregate : callable, default max
        Combines per-source p-values.
    """
    test = test or default_test(database)
    target = rule.target_predicate
    sources = build_sources(rule)
    n = len(database)
    p_values = []
    for x in sources:
        a, b, c, d = frequency_table(sources, x, target, database)
        p_values.append(significance_test(a, b, c, d, n, test))
    return float(aggregate(p_values))


def productive_rules(nodes: Sequence[Any], alpha: float, database: Any, adjust: bool = True,
                     test: Optional[str] = None,
                     adjustment: Optional[MultipleComparisonsAdjustment] = None) -> List[Any]:
    """
    Keep the nodes whose rules pass the significance filter.

    Parameters
    ----------
    nodes : sequence
        Objects with a ``rule`` attribute (search-tree nodes).
    alpha : float
        Significance level.
    database : Sequence
    adjust : bool, default True
        Apply Benjamini-Hochberg; otherwise compare each p-value with `alpha`.
    test : str, optional
        Significance test; see :func:`test_rule_productivity`.
    adjustment : MultipleComparisonsAdjustment, optional
        Overrides the strategy chosen by `adjust`.

    Returns
    -------
    list
        Significant nodes, by ascending p-value.
    """
    if adjustment is None:
        adjustment = BenjaminiHochberg() if adjust else NoAdjustment()
    p_values = sorted(
        ((node, test_rule_productivity(node.rule, database, test)) for node in nodes),
        key=lambda pair: pair[1],
    )
    flagged = adjustment.test(p_values, alpha, len(p_values))
    productive = [node for node, significant in flagged if significant]
    logger.info("Productive rules: %d of %d (alpha=%g, %s)", len(productive), len(p_values), alpha,
                type(adjustment).__name__)
    return productive


def is_technical(node: Any) -> bool:
    """True for the ``TRUE => target`` node a miner appends to its results."""
    return isinstance(node.rule.condition_predicate, TruePredicate)


def productive_nodes(nodes: Sequence[Any], alpha: float, database: Any, adjust: bool = True,
                     test: Optional[str] = None,
                     adjustment: Optional[MultipleComparisonsAdjustment] = None) -> List[Any]:
    """
    Filter mined nodes to the productive ones, keeping technical nodes.

    ``TRUE => target`` nodes have a degenerate table, so they are left out of
    testing (and out of the comparison count) and appended after the
    significant nodes, which keep their input order.
    """
    technical = [node for node in nodes if is_technical(node)]
    tested = [node for node in nodes if not is_technical(node)]
    keep = {id(node) for node in productive_rules(tested, alpha, database, adjust, test, adjustment)}
    return [node for node in tested if id(node) in keep] + technical
