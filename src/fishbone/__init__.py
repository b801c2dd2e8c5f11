# src/fishbone/__init__.py

"""
fishbone: association rule mining over boolean predicates.

Conditions are grown level by level from atomic predicates, ranked by a
rule-quality objective, and pruned by a relative-entropy filter; surviving
rules can be filtered for statistical significance with false discovery
rate control.
"""

from .errors import *
from .forms import *
from .relations import *
from .processing import *
from .miner import *
from .reporting import *

__version__ = "0.1.0"
