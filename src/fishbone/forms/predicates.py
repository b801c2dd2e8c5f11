# src/fishbone/forms/predicates.py

"""
Database-agnostic predicates P(database) -> boolean bit masks.

- Composable boolean logic: AND (&), OR (|), NOT (~) with canonical naming
- Atomic predicates from vectorized functions, item-wise functions, sample
  lists, or DataFrame columns
- Constants TRUE / FALSE and the indeterminate UNDEFINED
- Masks are cached per database (see :mod:`fishbone.forms.cache`)

A predicate's ``name`` is its identity: two predicates with equal names are
equal, hash alike, and share a cached mask. The canonical constructors
:func:`and_` and :func:`or_` sort and flatten operands so that logically
identical conjunctions and disjunctions get identical names.

Examples
--------
>>> import numpy as np
>>> from fishbone.forms.predicates import Where, and_
>>> db = list(range(6))
>>> even = Where(lambda d: np.asarray(d) % 2 == 0, "even")
>>> small = Where(lambda d: np.asarray(d) < 3, "small")
>>> (small & even).name
'even AND small'
>>> (even | ~small).test(db).tolist()
[True, False, True, True, True, True]
"""

from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Collection, Iterable, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..errors import IndeterminatePredicate, InvalidFormula
from .cache import MASK_CACHE

__all__ = [
    "Predicate",
    "Where",
    "RowWhere",
    "InSamples",
    "NotPredicate",
    "AndPredicate",
    "OrPredicate",
    "ParenthesesPredicate",
    "TruePredicate",
    "FalsePredicate",
    "UndefinedPredicate",
    "TRUE",
    "FALSE",
    "UNDEFINED",
    "and_",
    "or_",
]


# =========================
# Internal helpers
# =========================

def _items(database: Any) -> Iterator[Any]:
    """Iterate items of a database; DataFrame rows are yielded as Series."""
    if isinstance(database, pd.DataFrame):
        return (row for _, row in database.iterrows())
    return iter(database)


def _as_mask(arr: Any, size: int) -> np.ndarray:
    """
    Normalize any array-like to a boolean ndarray of length `size`.

    Raises
    ------
    ValueError
        If the result does not have one entry per database item.
    """
    if isinstance(arr, pd.Series):
        arr = arr.to_numpy()
    m = np.asarray(arr, dtype=bool)
    if m.shape != (size,):
        raise ValueError(f"Predicate mask has shape {m.shape}, expected ({size},).")
    return m


def _distinct(preds: Iterable["Predicate"]) -> List["Predicate"]:
    seen = set()
    out = []
    for p in preds:
        if p not in seen:
            seen.add(p)
            out.append(p)
    return out


# =========================
# Base predicate
# =========================

class Predicate:
    """
    Base class for predicates producing boolean masks over a database.

    A database is any ordered, index-stable sized sequence (list, ndarray,
    DataFrame). Bit ``i`` of ``test(database)`` tells whether the predicate
    holds for item ``i``.

    Predicates are composable with bitwise operators:
    - `&` (AND) yields the canonical :func:`and_`
    - `|` (OR) yields the canonical :func:`or_`
    - `~` (NOT) yields :meth:`negate`

    Subclasses implement :attr:`name` and at least one of :meth:`holds`
    (item-wise) or :meth:`_evaluate` (vectorized).
    """

    @property
    def name(self) -> str:
        raise NotImplementedError

    def holds(self, item: Any) -> bool:
        """Return True if the predicate holds for a single item."""
        raise NotImplementedError

    def defined(self) -> bool:
        return True

    def can_negate(self) -> bool:
        return True

    def negate(self) -> "Predicate":
        """Logical negation; yields ``UNDEFINED`` if the predicate cannot be negated."""
        return NotPredicate.of(self)

    def _evaluate(self, database: Any) -> np.ndarray:
        n = len(database)
        return np.fromiter((bool(self.holds(x)) for x in _items(database)), dtype=bool, count=n)

    def test(self, database: Any) -> np.ndarray:
        """
        Return the (read-only) boolean mask of items satisfying the predicate.

        Raises
        ------
        IndeterminatePredicate
            If the predicate is undefined.
        """
        if not self.defined():
            raise IndeterminatePredicate(f"Cannot test undefined predicate {self.name!r}.")
        return MASK_CACHE.get_or_compute(
            database, self.name, lambda: _as_mask(self._evaluate(database), len(database))
        )

    def count(self, database: Any) -> int:
        """Number of items satisfying the predicate."""
        return int(np.count_nonzero(self.test(database)))

    def collect_atomics(self) -> List["Predicate"]:
        """Distinct atomic sub-predicates, in order of first appearance."""
        return [self]

    def complexity(self) -> int:
        return len(self.collect_atomics())

    def and_(self, *others: "Predicate") -> "Predicate":
        return and_(self, *others)

    def or_(self, *others: "Predicate") -> "Predicate":
        return or_(self, *others)

    def __and__(self, other: "Predicate") -> "Predicate":
        """Canonical conjunction of two predicates."""
        return and_(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        """Canonical disjunction of two predicates."""
        return or_(self, other)

    def __invert__(self) -> "Predicate":
        """Logical NOT of the predicate."""
        return self.negate()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Predicate) and self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return self.name

    __str__ = __repr__

    @staticmethod
    def from_column(col: str, *, label: Optional[str] = None) -> "Predicate":
        """
        Build a predicate directly from a DataFrame column evaluated as booleans.

        Parameters
        ----------
        col : str
            Column name.
        label : str, optional
            Predicate name; defaults to the column name.

        Examples
        --------
        >>> import pandas as pd
        >>> from fishbone.forms.predicates import Predicate
        >>> df = pd.DataFrame({"flag": [1, 0, 3]})
        >>> Predicate.from_column("flag").test(df).tolist()
        [True, False, True]
        """
        def _fn(df: pd.DataFrame) -> np.ndarray:
            return df[col].fillna(False).to_numpy(dtype=bool)
        return Where(_fn, label if label is not None else str(col))


# =========================
# Atomic predicates
# =========================

@dataclass(eq=False, repr=False)
class Where(Predicate):
    """
    Vectorized atomic predicate from a function `fn(database) -> bool array`.

    Parameters
    ----------
    fn : Callable[[Any], array-like]
        Returns one boolean per database item (ndarray, list or Series).
    label : str
        Predicate name.

    Examples
    --------
    >>> import numpy as np
    >>> from fishbone.forms.predicates import Where
    >>> P = Where(lambda d: np.asarray(d) > 1, "gt1")
    >>> P.test([0, 1, 2, 3]).tolist()
    [False, False, True, True]
    >>> P.holds(5)
    True
    """
    fn: Callable[[Any], Any]
    label: str = "Where"

    @property
    def name(self) -> str:
        return self.label

    def _evaluate(self, database: Any) -> np.ndarray:
        return _as_mask(self.fn(database), len(database))

    def holds(self, item: Any) -> bool:
        # DataFrame rows arrive as Series; evaluate them as a one-row frame
        batch = item.to_frame().T if isinstance(item, pd.Series) else [item]
        return bool(_as_mask(self.fn(batch), 1)[0])


@dataclass(eq=False, repr=False)
class RowWhere(Predicate):
    """
    Item-wise atomic predicate from `fn(item) -> bool`.

    Slower than :class:`Where` but universal when vectorization is awkward.
    """
    fn: Callable[[Any], bool]
    label: str = "RowWhere"

    @property
    def name(self) -> str:
        return self.label

    def holds(self, item: Any) -> bool:
        return bool(self.fn(item))


@dataclass(eq=False, repr=False)
class InSamples(Predicate):
    """
    Atomic predicate given by explicit membership lists.

    Parameters
    ----------
    label : str
        Predicate name.
    samples : Collection
        Items for which the predicate holds.
    not_samples : Collection, optional
        Items for which the negation holds. When given, negation swaps the
        two lists and prefixes the label with ``"NOT "``, keeping the result
        atomic; otherwise negation is a plain :class:`NotPredicate`.

    Examples
    --------
    >>> from fishbone.forms.predicates import InSamples
    >>> male = InSamples("male", [1, 2], [3])
    >>> (~male).name, (~male).holds(3)
    ('NOT male', True)
    >>> (~~male).name
    'male'
    """
    label: str
    samples: Collection[Any]
    not_samples: Optional[Collection[Any]] = None
    _members: frozenset = field(init=False, repr=False)

    def __post_init__(self):
        self._members = frozenset(self.samples)

    @property
    def name(self) -> str:
        return self.label

    def holds(self, item: Any) -> bool:
        return item in self._members

    def negate(self) -> Predicate:
        if self.not_samples is None:
            return super().negate()
        label = self.label[4:] if self.label.startswith("NOT ") else "NOT " + self.label
        return InSamples(label, self.not_samples, self.samples)


# =========================
# Constants
# =========================

class TruePredicate(Predicate):
    @property
    def name(self) -> str:
        return "TRUE"

    def holds(self, item: Any) -> bool:
        return True

    def _evaluate(self, database: Any) -> np.ndarray:
        return np.ones(len(database), dtype=bool)

    def negate(self) -> Predicate:
        return FALSE


class FalsePredicate(Predicate):
    @property
    def name(self) -> str:
        return "FALSE"

    def holds(self, item: Any) -> bool:
        return False

    def _evaluate(self, database: Any) -> np.ndarray:
        return np.zeros(len(database), dtype=bool)

    def negate(self) -> Predicate:
        return TRUE


class UndefinedPredicate(Predicate):
    """Logically indeterminate predicate: never testable, negates to itself."""

    @property
    def name(self) -> str:
        return "undefined"

    def defined(self) -> bool:
        return False

    def can_negate(self) -> bool:
        return False

    def negate(self) -> Predicate:
        return self

    def holds(self, item: Any) -> bool:
        raise IndeterminatePredicate("Cannot test undefined predicate.")


TRUE = TruePredicate()
FALSE = FalsePredicate()
UNDEFINED = UndefinedPredicate()


# =========================
# Composite predicates
# =========================

@dataclass(eq=False, repr=False)
class NotPredicate(Predicate):
    """
    Logical negation of a predicate, named ``"NOT " + operand.name``.

    Prefer :meth:`NotPredicate.of` (or ``~p``), which cancels double negation.
    """
    operand: Predicate

    @staticmethod
    def of(operand: Predicate) -> Predicate:
        if not operand.defined() or not operand.can_negate():
            return UNDEFINED
        if isinstance(operand, NotPredicate):
            return operand.negate()
        return NotPredicate(operand)

    @cached_property
    def name(self) -> str:
        return "NOT " + self.operand.name

    def holds(self, item: Any) -> bool:
        return not self.operand.holds(item)

    def _evaluate(self, database: Any) -> np.ndarray:
        return ~self.operand.test(database)

    def negate(self) -> Predicate:
        if isinstance(self.operand, ParenthesesPredicate):
            return self.operand.operand
        return self.operand

    def collect_atomics(self) -> List[Predicate]:
        return self.operand.collect_atomics()


@dataclass(eq=False, repr=False)
class ParenthesesPredicate(Predicate):
    """
    Grouping of an And/Or operand, named ``"(" + operand.name + ")"``.

    Only :meth:`of` should be used by callers; it wraps And/Or operands only.
    """
    operand: Predicate

    @staticmethod
    def of(operand: Predicate) -> Predicate:
        if not operand.defined():
            return UNDEFINED
        if isinstance(operand, (AndPredicate, OrPredicate)):
            return ParenthesesPredicate(operand)
        return operand

    @cached_property
    def name(self) -> str:
        return "(" + self.operand.name + ")"

    def holds(self, item: Any) -> bool:
        return self.operand.holds(item)

    def _evaluate(self, database: Any) -> np.ndarray:
        return self.operand.test(database)

    def can_negate(self) -> bool:
        return self.operand.can_negate()

    def negate(self) -> Predicate:
        return ParenthesesPredicate.of(self.operand.negate())

    def collect_atomics(self) -> List[Predicate]:
        return self.operand.collect_atomics()


@dataclass(eq=False, repr=False)
class _Junction(Predicate):
    operands: Tuple[Predicate, ...]

    _SEPARATOR = ""

    def __post_init__(self):
        self.operands = tuple(self.operands)
        if len(self.operands) < 2:
            raise InvalidFormula(
                f"{type(self).__name__} requires at least 2 operands, got {len(self.operands)}."
            )

    @cached_property
    def name(self) -> str:
        return self._SEPARATOR.join(op.name for op in self.operands)

    def can_negate(self) -> bool:
        return all(op.can_negate() for op in self.operands)

    def negate(self) -> Predicate:
        return NotPredicate.of(ParenthesesPredicate.of(self))

    def collect_atomics(self) -> List[Predicate]:
        return _distinct(a for op in self.operands for a in op.collect_atomics())

    def without(self, i: int) -> Tuple[Predicate, ...]:
        return self.operands[:i] + self.operands[i + 1:]


@dataclass(eq=False, repr=False)
class AndPredicate(_Junction):
    """
    Conjunction of two or more operands, named ``"a AND b AND ..."``.

    The constructor keeps operands as given; :func:`and_` builds the
    canonical (flattened, sorted) form.

    Raises
    ------
    InvalidFormula
        If fewer than 2 operands are supplied.
    """
    _SEPARATOR = " AND "

    def holds(self, item: Any) -> bool:
        return all(op.holds(item) for op in self.operands)

    def _evaluate(self, database: Any) -> np.ndarray:
        return np.logical_and.reduce([op.test(database) for op in self.operands])

    def remove(self, i: int) -> Predicate:
        """Canonical conjunction of all operands but the `i`-th."""
        return and_(*self.without(i))


@dataclass(eq=False, repr=False)
class OrPredicate(_Junction):
    """
    Disjunction of two or more operands, named ``"a OR b OR ..."``.

    Raises
    ------
    InvalidFormula
        If fewer than 2 operands are supplied.
    """
    _SEPARATOR = " OR "

    def holds(self, item: Any) -> bool:
        return any(op.holds(item) for op in self.operands)

    def _evaluate(self, database: Any) -> np.ndarray:
        return np.logical_or.reduce([op.test(database) for op in self.operands])

    def remove(self, i: int) -> Predicate:
        """Canonical disjunction of all operands but the `i`-th."""
        return or_(*self.without(i))


# =========================
# Canonical constructors
# =========================

def _by_name(preds: Iterable[Predicate]) -> List[Predicate]:
    return sorted(preds, key=lambda p: p.name)


def and_(*operands: Predicate) -> Predicate:
    """
    Canonical conjunction.

    Or operands are parenthesized, parentheses around anything else are
    dropped, nested conjunctions are flattened, TRUE is dropped and the
    operands are sorted by name. Any FALSE operand gives FALSE and any
    undefined operand gives UNDEFINED.

    Examples
    --------
    >>> from fishbone.forms.predicates import RowWhere, and_, or_
    >>> a, b, c = (RowWhere(bool, s) for s in "abc")
    >>> and_(c, or_(b, a)).name
    '(a OR b) AND c'
    >>> and_(c, and_(b, a)).name
    'a AND b AND c'
    """
    if not operands:
        raise InvalidFormula("and_() requires at least one operand.")
    if any(not p.defined() for p in operands):
        return UNDEFINED

    flat: List[Predicate] = []
    for p in operands:
        if isinstance(p, ParenthesesPredicate) and not isinstance(p.operand, OrPredicate):
            p = p.operand
        if isinstance(p, OrPredicate):
            flat.append(ParenthesesPredicate(p))
        elif isinstance(p, AndPredicate):
            flat.extend(p.operands)
        else:
            flat.append(p)

    if any(p == FALSE for p in flat):
        return FALSE
    flat = _by_name(_distinct(p for p in flat if p != TRUE))
    if not flat:
        return TRUE
    if len(flat) == 1:
        return flat[0]
    return AndPredicate(tuple(flat))


def or_(*operands: Predicate) -> Predicate:
    """
    Canonical disjunction.

    Parentheses are dropped, nested disjunctions are flattened, FALSE is
    dropped and the operands are sorted by name. Any TRUE operand gives TRUE
    and any undefined operand gives UNDEFINED.

    Examples
    --------
    >>> from fishbone.forms.predicates import RowWhere, and_, or_
    >>> a, b, c = (RowWhere(bool, s) for s in "abc")
    >>> or_(c, and_(b, a)).name
    'a AND b OR c'
    """
    if not operands:
        raise InvalidFormula("or_() requires at least one operand.")
    if any(not p.defined() for p in operands):
        return UNDEFINED

    flat: List[Predicate] = []
    for p in operands:
        if isinstance(p, ParenthesesPredicate):
            p = p.operand
        if isinstance(p, OrPredicate):
            flat.extend(p.operands)
        else:
            flat.append(p)

    if any(p == TRUE for p in flat):
        return TRUE
    flat = _by_name(_distinct(p for p in flat if p != FALSE))
    if not flat:
        return FALSE
    if len(flat) == 1:
        return flat[0]
    return OrPredicate(tuple(flat))
