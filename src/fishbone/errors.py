# src/fishbone/errors.py

"""
Error taxonomy for fishbone.

Structural errors (:class:`InvalidFormula`, :class:`InvalidRule`) abort the
construction that triggered them and propagate to the caller. The miner
isolates them per candidate, so a single bad formula never aborts a run.
"""

__all__ = [
    "FishboneError",
    "InvalidFormula",
    "IndeterminatePredicate",
    "InvalidRule",
    "UnsupportedTest",
]


class FishboneError(Exception):
    """Base class for all fishbone errors."""


class InvalidFormula(FishboneError, ValueError):
    """Malformed formula: And/Or with fewer than 2 operands, or unparsable text."""


class IndeterminatePredicate(FishboneError, RuntimeError):
    """Raised when an undefined predicate is tested."""


class InvalidRule(FishboneError, ValueError):
    """Rule counts violate ``0 <= n_ct <= min(n_c, n_t) <= N``."""


class UnsupportedTest(FishboneError, ValueError):
    """Unknown significance test, objective function or miner label."""
