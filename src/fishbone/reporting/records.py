# src/fishbone/reporting/records.py

from __future__ import annotations
from dataclasses import asdict, dataclass
import math
from typing import Any, Dict

from ..forms.rule import Rule

__all__ = [
    "RuleRecord",
    "RECORD_FIELDS",
]

RECORD_FIELDS = [
    "id", "condition", "target",
    "database_count", "condition_count", "target_count", "intersection_count",
    "support", "confidence", "correlation", "lift", "conviction", "loe",
    "complexity",
]


def _nan_to_zero(x: float) -> float:
    return 0.0 if math.isnan(x) else x


@dataclass(frozen=True)
class RuleRecord:
    """
    Flat, serializable summary of a rule.

    ``correlation``, ``lift``, ``conviction`` and ``loe`` are stored with
    NaN replaced by ``0.0``; ``support`` and ``confidence`` keep NaN for
    empty denominators.

    Examples
    --------
    >>> from fishbone.forms import RowWhere, Rule
    >>> r = Rule(RowWhere(bool, "c"), RowWhere(bool, "t"), 10, 0, 0, 0)
    >>> rec = RuleRecord.of("run", r)
    >>> rec.correlation, rec.lift, rec.complexity
    (0.0, 0.0, 1)
    """
    id: str
    condition: str
    target: str
    database_count: int
    condition_count: int
    target_count: int
    intersection_count: int
    support: float
    confidence: float
    correlation: float
    lift: float
    conviction: float
    loe: float
    complexity: int

    @classmethod
    def of(cls, id: str, rule: Rule) -> "RuleRecord":
        return cls(
            id=id,
            condition=rule.condition_predicate.name,
            target=rule.target_predicate.name,
            database_count=rule.database_count,
            condition_count=rule.condition_count,
            target_count=rule.target_count,
            intersection_count=rule.intersection_count,
            support=rule.support,
            confidence=rule.confidence,
            correlation=_nan_to_zero(rule.correlation),
            lift=_nan_to_zero(rule.lift),
            conviction=_nan_to_zero(rule.conviction),
            loe=_nan_to_zero(rule.loe),
            complexity=rule.condition_predicate.complexity(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
