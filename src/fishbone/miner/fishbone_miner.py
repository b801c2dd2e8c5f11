# src/fishbone/miner/fishbone_miner.py

"""
Fishbone: level-wise beam search for association rules.

Level 1 scores every source predicate (and its negation) as a condition
for a fixed target. Level ``k + 1`` injects each source not yet used into
each retained level-``k`` condition, keeps candidates that pass the
:class:`~fishbone.miner.queue.RulesQueue` hierarchy check, and retains the
best ``top_per_complexity`` of them. The search stops at ``max_complexity``,
when a level retains nothing, or when a budget runs out.

Examples
--------
>>> from fishbone.forms import InSamples
>>> from fishbone.miner import FishboneMiner, MinerConfig
>>> db = list(range(1, 11))
>>> a = InSamples("a", range(1, 6), range(6, 11))
>>> t = InSamples("t", range(1, 5), range(5, 11))
>>> nodes = FishboneMiner(MinerConfig(max_complexity=1)).mine_target(db, t, [a])
>>> [n.rule.name for n in nodes]
['a => t', 'NOT a => t', 'TRUE => t']
"""

from __future__ import annotations
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from rich.progress import Progress

from ..forms.injector import inject
from ..forms.predicates import Predicate, TRUE
from ..forms.rule import Rule, objective
from ..reporting.visualize import Combinations, RuleAux, target_aux
from ..utils.safe_call import safe_call
from ..utils.tasks import run_tasks
from .base import Miner, register_miner
from .config import MinerConfig
from .node import Node
from .queue import RulesQueue, rank

__all__ = [
    "FishboneMiner",
]

logger = logging.getLogger(__name__)

Candidate = Tuple[Optional[Node], Predicate, Predicate]
LogFunction = Callable[[str, List[Node]], None]


@register_miner("fishbone")
class FishboneMiner(Miner):
    """
    Parameters
    ----------
    config : MinerConfig, optional
        Search parameters; defaults to ``MinerConfig()``.
    """

    def __init__(self, config: Optional[MinerConfig] = None):
        self.config = config or MinerConfig()
        self.function = objective(self.config.objective)

    # ---- public API ----

    def mine(self, database: Any, sources: Sequence[Predicate],
             targets: Optional[Sequence[Predicate]] = None,
             log_function: Optional[LogFunction] = None) -> List[List[Node]]:
        """
        Mine every target against the sources, excluding a source named like the target.

        Parameters
        ----------
        database : Sequence
        sources : sequence of Predicate
        targets : sequence of Predicate, optional
            Defaults to `sources`.
        log_function : callable, optional
            Called as ``log_function(target.name, nodes)`` after each target.

        Returns
        -------
        list of list of Node
            One ranked node list per target.
        """
        results = []
        for target in (targets if targets is not None else sources):
            target_sources = [p for p in sources if p.name != target.name]
            nodes = self.mine_target(database, target, target_sources)
            if log_function is not None:
                log_function(target.name, nodes)
            results.append(nodes)
        return results

    def mine_target(self, database: Any, target: Predicate, sources: Sequence[Predicate]) -> List[Node]:
        """
        Rules for one target, best first, followed by ``TRUE => target``.
        """
        cfg = self.config
        sources = list(sources)
        levels: Dict[int, RulesQueue] = {}
        started = time.perf_counter()
        scored = 0
        logger.info("Mining %s with %d sources over %d items", target.name, len(sources), len(database))

        for k in range(1, min(cfg.max_complexity, len(sources)) + 1):
            if cfg.time_budget is not None and time.perf_counter() - started > cfg.time_budget:
                logger.info("Time budget of %gs exhausted before level %d", cfg.time_budget, k)
                break
            if cfg.max_candidates is not None and scored >= cfg.max_candidates:
                logger.info("Candidate budget of %d exhausted before level %d", cfg.max_candidates, k)
                break

            candidates = list(self._candidates(k, sources, target, levels.get(k - 1)))
            queue = RulesQueue(cfg.top_per_complexity, target, database, self.function,
                               cfg.function_delta, cfg.kl_delta)
            self._score_level(k, queue, candidates, target, database)
            scored += len(candidates)
            levels[k] = queue
            logger.info("Level %d for %s: %d candidates, %d retained", k, target.name, len(candidates), len(queue))
            if len(queue) == 0:
                break

        retained = [node for queue in levels.values() for node in queue.sorted()]
        nodes = self._materialize(retained, database)
        nodes.sort(key=lambda node: rank(node, self.function))
        nodes.append(self._target_node(target, nodes, database))
        return nodes

    # ---- candidates ----

    def _with_negations(self, p: Predicate) -> Iterator[Predicate]:
        yield p
        if self.config.negate and p.can_negate():
            yield p.negate()

    def _candidates(self, k: int, sources: List[Predicate], target: Predicate,
                    previous: Optional[RulesQueue]) -> Iterator[Candidate]:
        if k == 1:
            for p in sources:
                for element in self._with_negations(p):
                    yield None, element, element
            return

        cfg = self.config
        for parent in previous.sorted():
            present = set(parent.condition.collect_atomics())
            present.add(target)
            seen = set()
            for p in sources:
                if p in present or p.negate() in present:
                    continue
                for element in self._with_negations(p):
                    injected = inject(parent.condition, element, cfg.allow_and, cfg.allow_or)
                    for condition in sorted(injected, key=lambda c: c.name):
                        if condition.defined() and condition.name not in seen:
                            seen.add(condition.name)
                            yield parent, element, condition

    # ---- scoring ----

    def _score_level(self, k: int, queue: RulesQueue, candidates: List[Candidate],
                     target: Predicate, database: Any) -> None:
        def score(candidate: Candidate) -> bool:
            parent, element, condition = candidate
            return self._offer(queue, parent, element, condition, target, database)

        if not self.config.progress:
            run_tasks(score, candidates, self.config.workers)
            return

        with Progress(transient=True) as progress:
            task = progress.add_task(f"[cyan]{target.name}: level {k}", total=len(candidates))

            def tracked(candidate: Candidate) -> bool:
                try:
                    return score(candidate)
                finally:
                    progress.advance(task)

            run_tasks(tracked, candidates, self.config.workers)

    @safe_call(default=False)
    def _offer(self, queue: RulesQueue, parent: Optional[Node], element: Predicate,
               condition: Predicate, target: Predicate, database: Any) -> bool:
        rule = Rule.of(condition, target, database)
        return queue.offer(Node(rule, element, parent))

    # ---- results ----

    def _materialize(self, retained: List[Node], database: Any) -> List[Node]:
        """Attach combination payloads; parents are rebuilt before their children."""
        rebuilt: Dict[int, Node] = {}
        for node in sorted(retained, key=Node.complexity):
            parent = rebuilt.get(id(node.parent), node.parent) if node.parent is not None else None
            aux = RuleAux(Combinations.of_node(database, node))
            rebuilt[id(node)] = Node(node.rule, node.element, parent, aux)
        return [rebuilt[id(node)] for node in retained]

    def _target_node(self, target: Predicate, nodes: List[Node], database: Any) -> Node:
        aux = None
        if self.config.build_heatmap_and_upset:
            aux = target_aux(database, target, nodes, workers=self.config.workers)
        return Node(Rule.of(TRUE, target, database), TRUE, None, aux)
