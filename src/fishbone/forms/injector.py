# src/fishbone/forms/injector.py

"""
Structural expansion of a formula with one new predicate.

Given a formula and an atom, :func:`inject` returns every distinct formula
obtained by AND/OR-combining the atom with the whole formula, and, inside
conjunctions, disjunctions and parentheses, with each operand in place.
Negations are treated as opaque: the atom is combined with the negated
formula as a whole, never pushed inside.

Examples
--------
>>> from fishbone.forms.predicates import RowWhere
>>> from fishbone.forms.parser import parse, names_factory
>>> from fishbone.forms.injector import inject
>>> p = [RowWhere(bool, str(i)) for i in range(3)]
>>> sorted(f.name for f in inject(parse("0 AND 1", names_factory(p)), p[2]))
['(0 OR 2) AND 1', '(1 OR 2) AND 0', '0 AND 1 AND 2', '0 AND 1 OR 2']
"""

from __future__ import annotations
from typing import Callable, Set

from .predicates import (
    Predicate,
    AndPredicate,
    OrPredicate,
    ParenthesesPredicate,
    and_,
    or_,
)

__all__ = [
    "inject",
]

Emit = Callable[[Predicate], None]


def _combine(formula: Predicate, atom: Predicate, emit: Emit, allow_and: bool, allow_or: bool) -> None:
    if allow_or:
        emit(or_(formula, atom))
    if allow_and:
        emit(and_(formula, atom))


def _visit(formula: Predicate, atom: Predicate, emit: Emit, allow_and: bool, allow_or: bool) -> None:
    _combine(formula, atom, emit, allow_and, allow_or)

    if isinstance(formula, (AndPredicate, OrPredicate)):
        join = and_ if isinstance(formula, AndPredicate) else or_
        for i, operand in enumerate(formula.operands):
            rest = formula.remove(i)
            _visit(operand, atom, lambda p, rest=rest: emit(join(rest, p)), allow_and, allow_or)
    elif isinstance(formula, ParenthesesPredicate):
        _visit(formula.operand, atom, emit, allow_and, allow_or)
    # NotPredicate and atoms: only the whole-formula combinations.


def inject(formula: Predicate, atom: Predicate, allow_and: bool = True, allow_or: bool = True) -> Set[Predicate]:
    """
    All distinct formulas obtained by inserting `atom` into `formula`.

    Parameters
    ----------
    formula : Predicate
        Existing formula; may be a raw (parsed) or canonical tree.
    atom : Predicate
        Predicate to insert.
    allow_and, allow_or : bool, default True
        Enable the AND / OR insertion families.

    Returns
    -------
    set of Predicate
        Results deduplicated by canonical name. Callers needing a
        deterministic order should sort by ``name``.
    """
    out: Set[Predicate] = set()
    _visit(formula, atom, out.add, allow_and, allow_or)
    return out
