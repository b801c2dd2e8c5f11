# src/fishbone/processing/holdout.py

"""
Holdout evaluation of mined rules.

Mining and testing on the same items overstates significance. The holdout
scheme (Webb, "Discovering significant patterns", Machine Learning 2007)
separates the two:

1. Split the database at random into an *exploratory* and a disjoint
   *holdout* part, optionally rebalancing each on the target.
2. Mine the exploratory part, keep rules significant there at ``alpha``
   (no adjustment) and retain the best ``top_rules`` by objective.
3. Test the retained rules on the holdout part at ``alpha_holdout`` with
   Benjamini-Hochberg.
4. Repeat 1-3 ``n_sampling`` times and pool the survivors, one node per rule.
5. Test the pool on the full database at ``alpha_full`` and recompute every
   rule, with its payloads, on the full database.

The technical ``TRUE => target`` node never takes part in testing and is
returned last.

Examples
--------
>>> import numpy as np
>>> from fishbone.forms import Where
>>> from fishbone.processing.holdout import split_dataset
>>> db = list(range(10))
>>> t = Where(lambda d: np.asarray(d) < 5, "t")
>>> exploratory, holdout = split_dataset(db, t, 0.3, rng=np.random.default_rng(0))
>>> len(exploratory), len(holdout), sorted(exploratory + holdout) == db
(3, 7, True)
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..forms.predicates import Predicate, TRUE
from ..forms.rule import Rule, objective as objective_function
from ..miner.node import Node
from ..miner.queue import rank
from ..reporting.visualize import Combinations, RuleAux, target_aux
from .significance import is_technical, productive_nodes

__all__ = [
    "SAMPLING_STRATEGIES",
    "HoldoutConfig",
    "take",
    "sample",
    "split_dataset",
    "update_statistics",
    "HoldoutExperiment",
]

logger = logging.getLogger(__name__)

SAMPLING_STRATEGIES = ("none", "downsampling", "upsampling")


@dataclass
class HoldoutConfig:
    """
    Parameters
    ----------
    top_rules : int, default=10
        Rules retained per sampling after the exploratory test.
    exploratory_fraction : float, default=0.5
        Share of items drawn into the exploratory part.
    n_sampling : int, default=200
        Number of random splits.
    sampling : {"none", "downsampling", "upsampling"}, default="none"
        Rebalancing of each part on the target.
    alpha_holdout, alpha_full : float, default=0.2
        Significance levels on the holdout part and on the full database.
    seed : int, optional
        Seed for ``numpy.random.default_rng``.
    """
    top_rules: int = 10
    exploratory_fraction: float = 0.5
    n_sampling: int = 200
    sampling: str = "none"
    alpha_holdout: float = 0.2
    alpha_full: float = 0.2
    seed: Optional[int] = None

    def __post_init__(self):
        if self.top_rules < 1:
            raise ValueError("top_rules must be >= 1")
        if not 0 < self.exploratory_fraction < 1:
            raise ValueError("exploratory_fraction must be in (0, 1)")
        if self.n_sampling < 1:
            raise ValueError("n_sampling must be >= 1")
        if self.sampling not in SAMPLING_STRATEGIES:
            raise ValueError(f"sampling must be one of {SAMPLING_STRATEGIES}")
        for name in ("alpha_holdout", "alpha_full"):
            if not 0 < getattr(self, name) <= 1:
                raise ValueError(f"{name} must be in (0, 1]")


# =========================
# Splitting and sampling
# =========================

def take(database: Any, indices: Sequence[int]) -> Any:
    """Items at `indices` (repeats allowed), as a list or a freshly indexed DataFrame."""
    if isinstance(database, pd.DataFrame):
        return database.iloc[list(indices)].reset_index(drop=True)
    return [database[i] for i in indices]


def sample(database: Any, target: Predicate, strategy: str,
           rng: Optional[np.random.Generator] = None) -> Any:
    """
    Rebalance `database` so the target and its complement are equally frequent.

    ``"downsampling"`` keeps the minority class and draws as many majority
    items without replacement; ``"upsampling"`` keeps the majority class and
    draws as many minority items with replacement. When either class is
    empty the database is returned unchanged.
    """
    if strategy == "none":
        return database
    if strategy not in SAMPLING_STRATEGIES:
        raise ValueError(f"Unsupported sampling strategy {strategy!r}.")
    rng = rng if rng is not None else np.random.default_rng()
    mask = target.test(database)
    if len(mask) == 0:
        return database
    major = mask if mask.mean() >= 0.5 else ~mask
    majority, minority = np.flatnonzero(major), np.flatnonzero(~major)
    if len(minority) == 0:
        logger.warning("Cannot rebalance on %s: every item falls in one class.", target.name)
        return database

    if strategy == "downsampling":
        picked = rng.choice(majority, size=len(minority), replace=False)
        indices = np.concatenate([minority, picked])
    else:
        picked = rng.choice(minority, size=len(majority), replace=True)
        indices = np.concatenate([majority, picked])
    return take(database, indices.tolist())


def split_dataset(database: Any, target: Predicate, exploratory_fraction: float,
                  strategy: str = "none",
                  rng: Optional[np.random.Generator] = None) -> Tuple[Any, Any]:
    """
    Random disjoint ``(exploratory, holdout)`` parts of `database`.

    The exploratory part holds ``int(exploratory_fraction * len(database))``
    items and the holdout part the rest, both in database order; each part
    is then rebalanced with :func:`sample`.
    """
    rng = rng if rng is not None else np.random.default_rng()
    n = len(database)
    order = rng.permutation(n)
    cut = int(exploratory_fraction * n)
    exploratory = take(database, np.sort(order[:cut]).tolist())
    holdout = take(database, np.sort(order[cut:]).tolist())
    return sample(exploratory, target, strategy, rng), sample(holdout, target, strategy, rng)


# =========================
# Statistics on the full database
# =========================

def update_statistics(nodes: Sequence[Node], target: Predicate, database: Any,
                      workers: int = 1) -> List[Node]:
    """
    Recount every rule of `nodes` (ancestors included) on `database`.

    Each rebuilt node gets fresh combination payloads; technical nodes get
    the heatmap and upset of the single-predicate rules reached on the way
    (or no payload when there are none).
    """
    rebuilt: Dict[int, Node] = {}

    def renew(node: Node) -> Node:
        done = rebuilt.get(id(node))
        if done is not None:
            return done
        parent = renew(node.parent) if node.parent is not None else None
        rule = Rule.of(node.condition, node.target, database)
        fresh = Node(rule, node.element, parent, RuleAux(Combinations.of_node(database, node)))
        rebuilt[id(node)] = fresh
        return fresh

    renewed = [renew(node) for node in nodes]
    aux = target_aux(database, target, list(rebuilt.values()), workers=workers)
    return [
        Node(node.rule, node.element, None, aux) if is_technical(node) else node
        for node in renewed
    ]


# =========================
# Experiment
# =========================

class HoldoutExperiment:
    """
    Repeated exploratory / holdout mining of one target at a time.

    Parameters
    ----------
    miner : Miner
        Any miner returning one node list per target.
    config : HoldoutConfig, optional
    objective : str, default "conviction"
        Name of the objective ranking rules between stages.
    test : {"chi", "fisher"}, optional
        Significance test; chosen by database size when omitted.
    workers : int, default 1
        Threads for the target payloads.
    """

    def __init__(self, miner: Any, config: Optional[HoldoutConfig] = None,
                 objective: str = "conviction", test: Optional[str] = None, workers: int = 1):
        self.miner = miner
        self.config = config or HoldoutConfig()
        self.function = objective_function(objective)
        self.test = test
        self.workers = workers

    def _ranked(self, nodes: Sequence[Node]) -> List[Node]:
        return sorted(nodes, key=lambda node: rank(node, self.function))

    def explore(self, database: Any, sources: Sequence[Predicate], target: Predicate,
                alpha: float) -> List[Node]:
        """Mine `database`, keep rules significant at `alpha` and the best ``top_rules`` of them."""
        nodes = self.miner.mine(database, sources, [target])[0]
        nodes = productive_nodes(nodes, alpha, database, adjust=False, test=self.test)
        best = self._ranked(n for n in nodes if not is_technical(n))[:self.config.top_rules]
        return best + [n for n in nodes if is_technical(n)]

    def run(self, database: Any, sources: Sequence[Predicate], target: Predicate,
            alpha: float) -> List[Node]:
        """
        Rules for `target` that pass all three stages, best first, followed
        by ``TRUE => target``; statistics are those of the full database.
        """
        cfg = self.config
        rng = np.random.default_rng(cfg.seed)
        pooled: Dict[str, Node] = {}
        for i in range(cfg.n_sampling):
            logger.info("Sampling %d out of %d for %s", i + 1, cfg.n_sampling, target.name)
            exploratory, holdout = split_dataset(database, target, cfg.exploratory_fraction, cfg.sampling, rng)
            explored = self.explore(exploratory, sources, target, alpha)
            for node in productive_nodes(explored, cfg.alpha_holdout, holdout, test=self.test):
                if not is_technical(node):
                    pooled.setdefault(node.rule.name, node)

        technical = Node(Rule.of(TRUE, target, database), TRUE)
        ranked = self._ranked(pooled.values()) + [technical]
        significant = productive_nodes(ranked, cfg.alpha_full, database, test=self.test)
        logger.info("Holdout kept %d of %d pooled rules for %s", len(significant) - 1, len(pooled), target.name)
        updated = update_statistics(significant, target, database, workers=self.workers)
        return self._ranked(n for n in updated if not is_technical(n)) + [n for n in updated if is_technical(n)]
