# src/fishbone/reporting/logger.py

"""
Collects mined rule trees as flat records and writes them to CSV / JSON.

The CSV holds one :class:`~fishbone.reporting.records.RuleRecord` per row.
The JSON adds the tree structure for rule browsers::

    {"records": [...], "palette": {atomic: "#rrggbb"}, "criterion": "..."}

where every record also carries ``node`` (the element added at that step),
``parent_node``, ``parent_condition``, ``operator`` and the ``aux``
visualization payload. Roots have null parents.

Examples
--------
>>> from fishbone.reporting.logger import RulesLogger
>>> rl = RulesLogger()
>>> rl.to_frame().empty
True
"""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

import pandas as pd

from ..forms.predicates import AndPredicate, OrPredicate, Predicate
from .records import RECORD_FIELDS, RuleRecord

__all__ = [
    "RulesLogger",
    "GRAPH_FIELDS",
    "DEFAULT_COLOR",
]

logger = logging.getLogger(__name__)

GRAPH_FIELDS = ["node", "parent_node", "parent_condition", "operator"]
DEFAULT_COLOR = "#ffffff"


def _operator(condition: Predicate) -> str:
    if isinstance(condition, AndPredicate):
        return "and"
    if isinstance(condition, OrPredicate):
        return "or"
    return "none"


class RulesLogger:
    """
    Accumulates one record per distinct condition reachable from logged nodes.

    A node is logged together with its ancestors; walking up stops at the
    first condition already recorded under the same id.
    """

    def __init__(self):
        self.records: List[Dict[str, Any]] = []
        self.atomics: Set[str] = set()
        self._visited: Dict[str, set] = {}

    def log(self, id: str, nodes: Iterable[Any]) -> None:
        visited = self._visited.setdefault(id, set())
        for node in nodes:
            for n in node.ancestors():
                key = n.condition.name
                if key in visited:
                    break
                visited.add(key)
                # negated sample sets are named "NOT x"; color them as x
                self.atomics.update(a.name.replace("NOT ", "") for a in n.condition.collect_atomics())
                self.atomics.update(a.name for a in n.target.collect_atomics())
                self.records.append(self._record(id, n))

    @staticmethod
    def _record(id: str, node: Any) -> Dict[str, Any]:
        record = RuleRecord.of(id, node.rule).to_dict()
        parent = node.parent
        record["node"] = node.element.name
        record["parent_node"] = parent.element.name if parent is not None else None
        record["parent_condition"] = parent.condition.name if parent is not None else None
        record["operator"] = _operator(node.condition)
        aux = node.aux
        record["aux"] = aux.to_dict() if aux is not None else None
        return record

    def to_frame(self) -> pd.DataFrame:
        """Records without visualization payloads, one row per rule."""
        return pd.DataFrame(self.records, columns=RECORD_FIELDS + GRAPH_FIELDS + ["aux"]).drop(columns="aux")

    def palette(self, color: Optional[Callable[[str], str]] = None) -> Dict[str, str]:
        """Color per atomic predicate name, sorted by name."""
        color = color or (lambda name: DEFAULT_COLOR)
        return {name: color(name) for name in sorted(self.atomics)}

    def save(self, prefix: Union[str, Path], criterion: str = "conviction",
             color: Optional[Callable[[str], str]] = None) -> None:
        """
        Write ``<prefix>.csv`` (rule records) and ``<prefix>.json`` (records, palette, criterion).

        NaN is written as ``NaN`` in both files.
        """
        prefix = Path(prefix)
        prefix.parent.mkdir(parents=True, exist_ok=True)
        csv_path = prefix.with_name(prefix.name + ".csv")
        json_path = prefix.with_name(prefix.name + ".json")
        self.to_frame()[RECORD_FIELDS].to_csv(csv_path, index=False, na_rep="NaN")
        payload = {"records": self.records, "palette": self.palette(color), "criterion": criterion}
        with open(json_path, "w") as fh:
            json.dump(payload, fh, indent=2)
        logger.info("Saved %d rule records to %s and %s", len(self.records), csv_path, json_path)
