# src/fishbone/runner.py
from __future__ import annotations

"""
Command-line runner: mine rules from a CSV of boolean columns.

Each column becomes a source predicate (``Predicate.from_column``); the
rows are the database. Results are printed as a rich table per target and
optionally saved through :class:`~fishbone.reporting.logger.RulesLogger`.

Example
-------
    fishbone data.csv --target disease --max-complexity 2 --alpha 0.05 --out results/run
    fishbone data.csv --target disease --alpha 0.05 --holdout --n-sampling 50 --seed 1
"""

import argparse
from typing import List

import pandas as pd
from rich.console import Console
from rich.table import Table

from fishbone.errors import UnsupportedTest
from fishbone.forms.predicates import Predicate
from fishbone.forms.rule import OBJECTIVES
from fishbone.miner import MinerConfig, MINERS, get_miner
from fishbone.processing.holdout import SAMPLING_STRATEGIES, HoldoutConfig, HoldoutExperiment
from fishbone.processing.significance import TESTS, productive_nodes
from fishbone.reporting.logger import RulesLogger
from fishbone.utils.log import setup_logging

console = Console()


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Mine association rules over boolean columns of a CSV file.")
    p.add_argument("csv", help="CSV file; every used column is read as booleans.")
    p.add_argument("-t", "--target", action="append",
                   help="Target column (can repeat). If omitted, every source is a target.")
    p.add_argument("-s", "--source", action="append",
                   help="Source column (can repeat). If omitted, all columns are sources.")
    p.add_argument("--miner", default="fishbone", choices=sorted(MINERS),
                   help="Mining strategy (default: fishbone).")
    p.add_argument("--max-complexity", type=int, default=3,
                   help="Max number of atoms in a condition (default: 3).")
    p.add_argument("--top", type=int, default=100,
                   help="Rules retained per complexity level (default: 100).")
    p.add_argument("--objective", default="conviction", choices=sorted(OBJECTIVES),
                   help="Rule quality function (default: conviction).")
    p.add_argument("--function-delta", type=float, default=1e-3)
    p.add_argument("--kl-delta", type=float, default=1e-3)
    p.add_argument("--no-and", action="store_true", help="Never combine with AND.")
    p.add_argument("--no-or", action="store_true", help="Never combine with OR.")
    p.add_argument("--no-negate", action="store_true", help="Do not try negated sources.")
    p.add_argument("--workers", type=int, default=1)
    p.add_argument("--time-budget", type=float, default=None, help="Seconds per target.")
    p.add_argument("--alpha", type=float, default=None,
                   help="Keep only rules significant at this level.")
    p.add_argument("--no-adjust", action="store_true",
                   help="Skip Benjamini-Hochberg when filtering by --alpha.")
    p.add_argument("--test", choices=TESTS, default=None,
                   help="Significance test (default: fisher for <= 100 rows, chi otherwise).")
    h = p.add_argument_group("holdout", "Mine on random exploratory splits, confirm on the rest (needs --alpha).")
    h.add_argument("--holdout", action="store_true", help="Enable the holdout evaluation.")
    h.add_argument("--top-rules", type=int, default=10, help="Rules kept per split (default: 10).")
    h.add_argument("--exploratory-fraction", type=float, default=0.5)
    h.add_argument("--n-sampling", type=int, default=200, help="Number of random splits (default: 200).")
    h.add_argument("--sampling", choices=SAMPLING_STRATEGIES, default="none",
                   help="Rebalance each split on the target (default: none).")
    h.add_argument("--alpha-holdout", type=float, default=0.2)
    h.add_argument("--alpha-full", type=float, default=0.2)
    h.add_argument("--seed", type=int, default=None)
    p.add_argument("--out", default=None, help="Save records to <out>.csv and <out>.json.")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)
    if args.holdout and args.alpha is None:
        p.error("--holdout requires --alpha")
    return args


def _print_rules(target: str, nodes: List) -> None:
    table = Table(title=f"Rules for {target}")
    table.add_column("condition")
    table.add_column("support", justify="right")
    table.add_column("confidence", justify="right")
    table.add_column("lift", justify="right")
    table.add_column("conviction", justify="right")
    table.add_column("complexity", justify="right")
    for node in nodes:
        r = node.rule
        table.add_row(r.condition_predicate.name, f"{r.support:.3f}", f"{r.confidence:.3f}",
                      f"{r.lift:.3f}", f"{r.conviction:.3f}", str(node.complexity()))
    console.print(table)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level, console=console)

    df = pd.read_csv(args.csv)
    source_cols = args.source or list(df.columns)
    target_cols = args.target or source_cols
    sources = [Predicate.from_column(c) for c in source_cols]
    targets = [Predicate.from_column(c) for c in target_cols]

    config = MinerConfig(
        max_complexity=args.max_complexity,
        top_per_complexity=args.top,
        function_delta=args.function_delta,
        kl_delta=args.kl_delta,
        allow_and=not args.no_and,
        allow_or=not args.no_or,
        negate=not args.no_negate,
        objective=args.objective,
        workers=args.workers,
        time_budget=args.time_budget,
        progress=True,
    )
    try:
        miner = get_miner(args.miner, config)
    except UnsupportedTest as e:
        console.print(f"[red]{e}")
        return 2
    rules_logger = RulesLogger()

    def report(target_name: str, nodes: List) -> None:
        rules_logger.log(target_name, nodes)
        _print_rules(target_name, nodes)

    def log_target(target_name: str, nodes: List) -> None:
        if args.alpha is not None:
            nodes = productive_nodes(nodes, args.alpha, df, adjust=not args.no_adjust, test=args.test)
        report(target_name, nodes)

    if args.holdout:
        holdout = HoldoutConfig(
            top_rules=args.top_rules,
            exploratory_fraction=args.exploratory_fraction,
            n_sampling=args.n_sampling,
            sampling=args.sampling,
            alpha_holdout=args.alpha_holdout,
            alpha_full=args.alpha_full,
            seed=args.seed,
        )
        experiment = HoldoutExperiment(miner, holdout, objective=args.objective, test=args.test,
                                       workers=args.workers)
        for target in targets:
            report(target.name, experiment.run(df, sources, target, args.alpha))
    else:
        miner.mine(df, sources, targets, log_function=log_target)
    if args.out:
        rules_logger.save(args.out, criterion=args.objective)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
