# src/fishbone/miner/node.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from ..forms.predicates import Predicate
from ..forms.rule import Rule

__all__ = [
    "Node",
]


@dataclass(frozen=True, eq=False)
class Node:
    """
    Search-tree node.

    Parameters
    ----------
    rule : Rule
        Rule scored at this node.
    element : Predicate
        Predicate added at this step (the whole condition at level 1).
    parent : Node, optional
        Node this one was expanded from; ``None`` at level 1.
    aux : Any, optional
        Visualization payload (see :mod:`fishbone.reporting.visualize`).
    """
    rule: Rule
    element: Predicate
    parent: Optional["Node"] = None
    aux: Any = None

    @property
    def condition(self) -> Predicate:
        return self.rule.condition_predicate

    @property
    def target(self) -> Predicate:
        return self.rule.target_predicate

    def complexity(self) -> int:
        return self.condition.complexity()

    def ancestors(self) -> Iterator["Node"]:
        """This node, then its parent, up to the root."""
        node: Optional[Node] = self
        while node is not None:
            yield node
            node = node.parent

    def __repr__(self) -> str:
        return f"Node({self.rule.name})"
