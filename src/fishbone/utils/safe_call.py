# src/fishbone/utils/safe_call.py

"""
Decorator for isolating failures of a single unit of work.

Prevents one degenerate candidate from halting a larger mining run.
"""

from functools import wraps
import logging

__all__ = [
    "safe_call",
]

logger = logging.getLogger(__name__)


def safe_call(fn=None, *, default=None):
    """
    Wrap ``fn`` so that any ``Exception`` is logged and ``default`` returned.

    Usable bare (``@safe_call``) or with arguments (``@safe_call(default=False)``).
    """
    def decorate(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except Exception as e:
                logger.warning("Skipping %s due to error: %s", f.__name__, e, exc_info=True)
                return default
        return wrapper

    if fn is not None:
        return decorate(fn)
    return decorate
