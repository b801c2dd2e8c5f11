# src/fishbone/miner/queue.py

"""
Per-level beam of the Fishbone search.

:class:`RulesQueue` keeps the best ``limit`` nodes of one complexity level
ranked by objective (descending), then complexity (ascending). Nodes with a
parent must first pass the hierarchy check:

1. the added element alone must not outscore the parent,
2. the child must improve the parent's objective by ``function_delta``,
3. with ``kl_delta > 0``, learning the child's rule must bring the
   independent model closer to the data than learning the parent's rule,
   by at least ``kl_delta`` of the independent model's divergence.

Nodes sharing a condition keep only the one with the better parent.
"""

from __future__ import annotations
import logging
import math
from typing import Any, Callable, Dict, Tuple

from ..errors import FishboneError
from ..forms.predicates import Predicate
from ..forms.rule import Rule
from ..relations.distribution import Distribution, EmpiricalDistribution, kullback_leibler
from ..utils.bounded_queue import BoundedPriorityQueue
from .node import Node

__all__ = [
    "RulesQueue",
    "rank",
]

logger = logging.getLogger(__name__)

_KL_TOL = 1e-10


def rank(node: Node, function: Callable[[Rule], float]) -> Tuple[float, int]:
    """Sort key: best objective first, then simplest condition. NaN ranks last."""
    f = function(node.rule)
    if math.isnan(f):
        f = -math.inf
    return -f, node.complexity()


class RulesQueue(BoundedPriorityQueue[Node]):
    def __init__(self, limit: int, target: Predicate, database: Any,
                 function: Callable[[Rule], float],
                 function_delta: float, kl_delta: float):
        super().__init__(limit, key=lambda node: rank(node, function))
        self.target = target
        self.database = database
        self.function = function
        self.function_delta = function_delta
        self.kl_delta = kl_delta
        self._by_condition: Dict[str, Node] = {}

    def check_hierarchy(self, node: Node) -> bool:
        """
        True if `node` is a worthwhile refinement of its parent.

        Raises
        ------
        FishboneError
            If learning the rule moves the model away from the data, which
            indicates inconsistent counts.
        """
        parent = node.parent
        f = self.function
        parent_f = f(parent.rule)
        element_f = f(Rule.of(node.element, self.target, self.database))
        if element_f > parent_f:
            return False
        node_f = f(node.rule)
        if not node_f >= parent_f + self.function_delta:
            return False

        if self.kl_delta > 0:
            atomics = []
            for p in (*parent.condition.collect_atomics(), *node.element.collect_atomics(), self.target):
                if p not in atomics:
                    atomics.append(p)
            empirical = EmpiricalDistribution(self.database, atomics)
            independent = Distribution(self.database, atomics)
            kl_parent = kullback_leibler(empirical, independent.learn(parent.rule))
            kl_independent = kullback_leibler(empirical, independent)
            kl_rule = kullback_leibler(empirical, independent.learn(node.rule))
            if not kl_rule < kl_independent + _KL_TOL:
                raise FishboneError(
                    f"KL after learning {node.rule.name} ({kl_rule}) exceeds KL of "
                    f"the independent model ({kl_independent})."
                )
            if kl_rule >= kl_parent - self.kl_delta * kl_independent:
                return False
        return True

    def offer(self, node: Node) -> bool:
        if node.parent is not None and not self.check_hierarchy(node):
            return False
        with self._lock:
            k = self.key(node)
            if len(self._heap) >= self.limit and not k < self._heap[0].key:
                return False
            condition = node.condition
            if condition.complexity() > 1:
                same = self._by_condition.get(condition.name)
                if same is not None:
                    if self.key(node.parent) < self.key(same.parent):
                        self._remove(same)
                        self._insert(node, k)
                        return True
                    return False
            self._insert(node, k)
            return True

    def _insert(self, node: Node, k: Any) -> None:
        if len(self._heap) >= self.limit:
            evicted = self.peek_worst()
            if self._by_condition.get(evicted.condition.name) is evicted:
                del self._by_condition[evicted.condition.name]
        self._push(node, k)
        self._by_condition[node.condition.name] = node
