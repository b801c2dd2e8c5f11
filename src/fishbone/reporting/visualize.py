# src/fishbone/reporting/visualize.py

"""
Data payloads behind rule visualizations (no rendering).

- :class:`Combinations`: item counts for every joint truth assignment of a
  few predicates (Venn-style diagrams attached to each rule node through
  :class:`RuleAux`).
- :class:`Heatmap`: pairwise phi correlation between a target and sources.
- :class:`Upset`: sizes of the largest subset intersections.
- :func:`target_aux`: heatmap and upset over the single-predicate rules of a
  target, attached to its ``TRUE => target`` node.

Every payload serializes with :meth:`to_dict` for the JSON rules log.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from itertools import combinations as subsets
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..forms.predicates import NotPredicate, Predicate, TruePredicate, and_
from ..forms.rule import Rule
from ..relations.distribution import EmpiricalDistribution
from ..utils.bounded_queue import BoundedPriorityQueue
from ..utils.tasks import run_tasks

__all__ = [
    "Combinations",
    "Heatmap",
    "Upset",
    "RuleAux",
    "TargetAux",
    "target_aux",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Combinations:
    """
    Item counts per joint truth assignment.

    ``combinations[e]`` is the number of items whose truth values encode to ``e``
    (bit ``i`` set when ``names[i]`` holds).

    Examples
    --------
    >>> import numpy as np
    >>> from fishbone.forms import Where
    >>> db = list(range(10))
    >>> c = Combinations.of(db, [Where(lambda d: np.asarray(d) < 5, "low")])
    >>> c.names, c.combinations
    (['low'], [5, 5])
    """
    names: List[str]
    combinations: List[int]

    @classmethod
    def of(cls, database: Any, predicates: Sequence[Predicate]) -> "Combinations":
        empirical = EmpiricalDistribution(database, predicates)
        n = len(database)
        counts = [int(math.floor(n * p + 0.5)) for p in empirical.probabilities]
        return cls([p.name for p in predicates], counts)

    @classmethod
    def of_node(cls, database: Any, node: Any) -> "Combinations":
        """Joint counts of a node's element, its parent's condition (if any) and its target."""
        shown = [node.element]
        if node.parent is not None:
            shown.append(node.parent.condition)
        shown.append(node.target)
        return cls.of(database, shown)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Heatmap:
    """Pairwise phi coefficients, rows and columns in input order."""
    names: List[str]
    table: List[List[float]]

    @classmethod
    def of(cls, database: Any, predicates: Sequence[Predicate]) -> "Heatmap":
        table = [
            [_phi(a, b, database) for b in predicates]
            for a in predicates
        ]
        return cls([p.name for p in predicates], table)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.table, index=self.names, columns=self.names)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _phi(a: Predicate, b: Predicate, database: Any) -> float:
    r = Rule.of(a, b, database).correlation
    return 0.0 if math.isnan(r) else r


@dataclass(frozen=True)
class Upset:
    """
    Largest subset intersections of a target and sources.

    ``names[0]`` is the target; each record is ``(ids, count)`` with ``ids``
    indexing into ``names``.
    """
    names: List[str]
    records: List[Tuple[Tuple[int, ...], int]]

    @staticmethod
    def _rank(record: Tuple[Tuple[int, ...], int]):
        ids, n = record
        return (0 not in ids, -n, ids)

    @classmethod
    def of(cls, database: Any, target: Predicate, predicates: Sequence[Predicate],
           limit: int = 100, max_combinations: int = 100_000, workers: int = 1) -> "Upset":
        """
        Enumerate non-empty subsets of ``[target, *predicates]`` by size.

        Subset sizes keep growing while the running number of enumerated
        subsets stays within `max_combinations`; a size whose subsets would
        push the total past it is never generated (size 1 always is). Only
        intersections with at least one item are kept; the best `limit` by (contains target,
        count descending, ids) are returned.
        """
        items = [target, *predicates]
        queue: BoundedPriorityQueue = BoundedPriorityQueue(limit, key=cls._rank)
        enumerated = 0
        for k in range(1, len(items) + 1):
            size = math.comb(len(items), k)
            if enumerated and enumerated + size > max_combinations:
                logger.info("Upset enumeration stopped at size %d (%d subsets).", k, enumerated)
                break
            enumerated += size
            ids_k = list(subsets(range(len(items)), k))

            def count(ids: Tuple[int, ...]) -> int:
                return and_(*(items[i] for i in ids)).count(database)

            for ids, n in zip(ids_k, run_tasks(count, ids_k, workers)):
                if n > 0:
                    queue.offer((ids, n))
        return cls([p.name for p in items], queue.sorted())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "names": self.names,
            "records": [{"ids": list(ids), "n": n} for ids, n in self.records],
        }


@dataclass(frozen=True)
class TargetAux:
    """Per-target payload attached to the final ``TRUE => target`` node."""
    heatmap: Heatmap
    upset: Upset

    def to_dict(self) -> Dict[str, Any]:
        return {"heatmap": self.heatmap.to_dict(), "upset": self.upset.to_dict()}


@dataclass(frozen=True)
class RuleAux:
    """Per-rule payload: joint counts of the element, parent condition and target."""
    rule: Combinations

    def to_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule.to_dict()}


def target_aux(database: Any, target: Predicate, nodes: Sequence[Any],
               workers: int = 1) -> Optional[TargetAux]:
    """
    Heatmap and upset of `target` against the single-predicate rules in `nodes`.

    Only root nodes whose condition is one atomic predicate contribute their
    element, once per rule and in the given order; negations are left out.
    Returns None when no node qualifies.
    """
    elements: List[Predicate] = []
    seen = set()
    for node in nodes:
        condition = node.condition
        if node.parent is not None or isinstance(condition, TruePredicate):
            continue
        if len(condition.collect_atomics()) != 1 or node.rule.name in seen:
            continue
        seen.add(node.rule.name)
        if not isinstance(node.element, NotPredicate):
            elements.append(node.element)
    if not elements:
        return None
    return TargetAux(
        Heatmap.of(database, [target, *elements]),
        Upset.of(database, target, elements, workers=workers),
    )
