# src/fishbone/forms/parser.py

"""
Infix parser for predicate formulas.

Grammar (lowest to highest precedence)::

    or    := and ("OR" and)*
    and   := term ("AND" term)*
    term  := "NOT" term | "(" or ")" | "TRUE" | "FALSE" | atom

Atoms are resolved through a factory ``name -> Predicate | None``. Atom names
may contain spaces and brackets; the shortest prefix the factory recognizes
wins. The parser builds the tree exactly as written (no sorting, no
flattening) so that callers see the formula's original structure.

Examples
--------
>>> from fishbone.forms.predicates import RowWhere
>>> from fishbone.forms.parser import parse, names_factory
>>> preds = [RowWhere(bool, s) for s in ("0", "1", "2")]
>>> parse("NOT (0 OR 1) AND 2", names_factory(preds)).name
'NOT (0 OR 1) AND 2'
"""

from __future__ import annotations
from typing import Callable, Iterable, List, Optional

from ..errors import InvalidFormula
from .predicates import (
    Predicate,
    AndPredicate,
    OrPredicate,
    NotPredicate,
    ParenthesesPredicate,
    TRUE,
    FALSE,
)

__all__ = [
    "parse",
    "names_factory",
]

Factory = Callable[[str], Optional[Predicate]]

_KEYWORDS = ("NOT", "AND", "OR", "TRUE", "FALSE")
_DELIMITERS = " \t\r\n()"


def names_factory(predicates: Iterable[Predicate]) -> Factory:
    """Factory resolving atoms by exact predicate name."""
    by_name = {p.name: p for p in predicates}
    return by_name.get


class _Parser:
    def __init__(self, text: str, factory: Factory):
        self.text = text
        self.factory = factory
        self.pos = 0

    # ---- lexing helpers ----

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _at_end(self) -> bool:
        self._skip_ws()
        return self.pos >= len(self.text)

    def _peek_char(self, ch: str) -> bool:
        self._skip_ws()
        return self.text.startswith(ch, self.pos)

    def _peek_keyword(self, kw: str) -> bool:
        self._skip_ws()
        end = self.pos + len(kw)
        if not self.text.startswith(kw, self.pos):
            return False
        return end == len(self.text) or self.text[end] in _DELIMITERS

    def _consume(self, token: str) -> None:
        self._skip_ws()
        self.pos += len(token)

    def _error(self, msg: str) -> InvalidFormula:
        return InvalidFormula(f"{msg} at position {self.pos} in {self.text!r}")

    # ---- grammar ----

    def parse(self) -> Predicate:
        p = self._or()
        if not self._at_end():
            raise self._error("Unexpected trailing input")
        return p

    def _or(self) -> Predicate:
        operands = [self._and()]
        while self._peek_keyword("OR"):
            self._consume("OR")
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else OrPredicate(tuple(operands))

    def _and(self) -> Predicate:
        operands = [self._term()]
        while self._peek_keyword("AND"):
            self._consume("AND")
            operands.append(self._term())
        return operands[0] if len(operands) == 1 else AndPredicate(tuple(operands))

    def _term(self) -> Predicate:
        if self._at_end():
            raise self._error("Unexpected end of formula")
        if self._peek_keyword("NOT"):
            self._consume("NOT")
            return NotPredicate(self._term())
        if self._peek_char("("):
            start = self.pos
            atom = self._atom(required=False)
            if atom is not None:
                return atom
            self.pos = start
            self._consume("(")
            inner = self._or()
            if not self._peek_char(")"):
                raise self._error("Expected ')'")
            self._consume(")")
            return ParenthesesPredicate(inner)
        if self._peek_keyword("TRUE"):
            self._consume("TRUE")
            return TRUE
        if self._peek_keyword("FALSE"):
            self._consume("FALSE")
            return FALSE
        return self._atom(required=True)

    def _atom(self, required: bool) -> Optional[Predicate]:
        self._skip_ws()
        start = self.pos
        for end in self._boundaries(start):
            candidate = self.text[start:end].strip()
            if not candidate or candidate in _KEYWORDS:
                continue
            p = self.factory(candidate)
            if p is not None:
                self.pos = end
                return p
        if required:
            raise self._error("Unknown predicate")
        return None

    def _boundaries(self, start: int) -> List[int]:
        n = len(self.text)
        return [
            i for i in range(start + 1, n + 1)
            if i == n or self.text[i] in _DELIMITERS or self.text[i - 1] in "()"
        ]


def parse(text: str, factory: Factory) -> Predicate:
    """
    Parse an infix formula into a predicate tree.

    Parameters
    ----------
    text : str
        Formula such as ``"0 AND (1 OR NOT 2)"``.
    factory : Callable[[str], Predicate | None]
        Resolves atom names; see :func:`names_factory`.

    Raises
    ------
    InvalidFormula
        On unknown atoms, unbalanced parentheses or trailing input.
    """
    return _Parser(text, factory).parse()
