import numpy as np
import pandas as pd
import pytest

from fishbone.forms import TRUE, Rule, Where, and_
from fishbone.miner import FishboneMiner, Node
from fishbone.processing import holdout
from fishbone.processing.holdout import (
    HoldoutConfig,
    HoldoutExperiment,
    sample,
    split_dataset,
    update_statistics,
)
from fishbone.reporting import RuleAux, TargetAux

# -----------------------
# Fixtures
# -----------------------

@pytest.fixture
def nested():
    """db = 0..99 with a = [0, 60), b = [30, 100), t = [30, 60)."""
    db = list(range(100))
    a = Where(lambda d: np.asarray(d) < 60, "a")
    b = Where(lambda d: np.asarray(d) >= 30, "b")
    t = Where(lambda d: (np.asarray(d) >= 30) & (np.asarray(d) < 60), "t")
    return db, a, b, t


@pytest.fixture
def below_30():
    """db = 0..99 with t holding on the 30 items below 30."""
    return list(range(100)), Where(lambda d: np.asarray(d) < 30, "t")


# -----------------------
# Configuration
# -----------------------

@pytest.mark.parametrize("kwargs", [
    {"top_rules": 0},
    {"exploratory_fraction": 0.0},
    {"exploratory_fraction": 1.0},
    {"n_sampling": 0},
    {"sampling": "smote"},
    {"alpha_holdout": 0.0},
    {"alpha_full": 1.5},
])
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        HoldoutConfig(**kwargs)


def test_config_defaults():
    cfg = HoldoutConfig()
    assert (cfg.top_rules, cfg.exploratory_fraction, cfg.n_sampling) == (10, 0.5, 200)
    assert (cfg.sampling, cfg.alpha_holdout, cfg.alpha_full) == ("none", 0.2, 0.2)


# -----------------------
# Splitting and sampling
# -----------------------

def test_split_sizes_and_disjointness(below_30):
    db, t = below_30
    exploratory, rest = split_dataset(db, t, 0.3, rng=np.random.default_rng(1))
    assert (len(exploratory), len(rest)) == (30, 70)
    assert not set(exploratory) & set(rest)
    assert sorted(exploratory + rest) == db
    assert exploratory == sorted(exploratory)


def test_split_is_reproducible_with_seed(below_30):
    db, t = below_30
    first = split_dataset(db, t, 0.5, rng=np.random.default_rng(7))
    second = split_dataset(db, t, 0.5, rng=np.random.default_rng(7))
    assert first == second


def test_split_dataframe_is_reindexed():
    df = pd.DataFrame({"x": range(10), "t": [x < 5 for x in range(10)]})
    t = Where(lambda d: d["t"].to_numpy(dtype=bool), "t")
    exploratory, rest = split_dataset(df, t, 0.4, rng=np.random.default_rng(0))
    assert list(exploratory.index) == [0, 1, 2, 3]
    assert list(rest.index) == list(range(6))
    assert sorted(exploratory["x"].tolist() + rest["x"].tolist()) == list(range(10))


def test_downsampling_balances_classes(below_30):
    db, t = below_30
    out = sample(db, t, "downsampling", np.random.default_rng(0))
    assert len(out) == 60
    assert int(t.test(out).sum()) == 30
    assert len(set(out)) == 60


def test_upsampling_balances_classes(below_30):
    db, t = below_30
    out = sample(db, t, "upsampling", np.random.default_rng(0))
    assert len(out) == 140
    assert int(t.test(out).sum()) == 70
    assert set(x for x in out if x >= 30) == set(range(30, 100))


def test_sampling_single_class_is_unchanged():
    db = list(range(10))
    everywhere = Where(lambda d: np.ones(len(d), dtype=bool), "everywhere")
    assert sample(db, everywhere, "downsampling", np.random.default_rng(0)) is db
    assert sample(db, everywhere, "upsampling", np.random.default_rng(0)) is db


def test_sampling_none_and_unknown(below_30):
    db, t = below_30
    assert sample(db, t, "none") is db
    with pytest.raises(ValueError):
        sample(db, t, "oversampling")


# -----------------------
# Statistics on the full database
# -----------------------

def test_update_statistics_recounts_on_full_database(nested):
    db, a, b, t = nested
    part = db[:50]
    root = Node(Rule.of(a, t, part), a)
    child = Node(Rule.of(and_(a, b), t, part), b, root)
    technical = Node(Rule.of(TRUE, t, part), TRUE)

    updated = update_statistics([child, technical], t, db)
    new_child, new_technical = updated
    assert new_child.rule.database_count == 100
    assert new_child.rule.intersection_count == 30
    assert new_child.parent.rule.database_count == 100
    assert isinstance(new_child.aux, RuleAux)
    assert new_child.aux.rule.names == ["b", "a", "t"]
    assert isinstance(new_technical.aux, TargetAux)
    assert new_technical.aux.heatmap.names == ["t", "a"]
    assert new_technical.rule.database_count == 100


# -----------------------
# Experiment
# -----------------------

def test_three_stage_filtering(nested, monkeypatch):
    db, a, b, t = nested
    calls = []
    real = holdout.productive_nodes

    def recording(nodes, alpha, database, adjust=True, **kwargs):
        calls.append((alpha, len(database), adjust))
        return real(nodes, alpha, database, adjust, **kwargs)

    monkeypatch.setattr(holdout, "productive_nodes", recording)
    cfg = HoldoutConfig(n_sampling=2, alpha_holdout=0.3, alpha_full=0.4, seed=0)
    HoldoutExperiment(FishboneMiner(), cfg).run(db, [a, b], t, alpha=0.05)
    assert calls == [
        (0.05, 50, False), (0.3, 50, True),
        (0.05, 50, False), (0.3, 50, True),
        (0.4, 100, True),
    ]


def test_explore_keeps_top_rules_and_technical_node(nested):
    db, a, b, t = nested
    experiment = HoldoutExperiment(FishboneMiner(), HoldoutConfig(top_rules=1))
    nodes = experiment.explore(db, [a, b], t, alpha=1.0)
    assert len(nodes) == 2
    assert nodes[-1].rule.name == "TRUE => t"


def test_run_reports_full_database_statistics(nested):
    db, a, b, t = nested
    cfg = HoldoutConfig(n_sampling=3, seed=0)
    nodes = HoldoutExperiment(FishboneMiner(), cfg).run(db, [a, b], t, alpha=0.05)
    assert nodes[-1].rule.name == "TRUE => t"
    assert "a AND b => t" in [n.rule.name for n in nodes]
    assert all(n.rule.database_count == 100 for n in nodes)
    assert all(isinstance(n.aux, RuleAux) for n in nodes[:-1])
