import numpy as np
import pytest

from fishbone.forms import Rule, Where
from fishbone.miner import Node
from fishbone.reporting import Combinations, Heatmap, RuleAux, TargetAux, Upset, target_aux
from fishbone.reporting import visualize


@pytest.fixture
def abc():
    db = list(range(12))
    a = Where(lambda d: np.asarray(d) < 6, "a")
    b = Where(lambda d: np.asarray(d) % 2 == 0, "b")
    c = Where(lambda d: np.asarray(d) < 6, "c")   # same items as a
    return db, a, b, c


def test_combinations_counts(abc):
    db, a, b, _ = abc
    comb = Combinations.of(db, [a, b])
    assert comb.names == ["a", "b"]
    # encodings: none, a only, b only, both
    assert comb.combinations == [3, 3, 3, 3]
    assert comb.to_dict() == {"names": ["a", "b"], "combinations": [3, 3, 3, 3]}


def test_heatmap(abc):
    db, a, b, c = abc
    hm = Heatmap.of(db, [a, b, c])
    frame = hm.to_frame()
    assert frame.loc["a", "c"] == pytest.approx(1.0)
    assert frame.loc["a", "b"] == pytest.approx(0.0)
    assert frame.loc["b", "b"] == pytest.approx(1.0)


def test_upset_ranks_target_subsets_first(abc):
    db, a, b, c = abc
    up = Upset.of(db, a, [b, c], limit=3)
    assert up.names == ["a", "b", "c"]
    assert [ids for ids, _ in up.records] == [(0,), (0, 2), (0, 1)]
    assert dict(up.records)[(0, 2)] == 6
    assert dict(up.records)[(0, 1)] == 3


def test_upset_respects_combination_budget(abc):
    db, a, b, c = abc
    up = Upset.of(db, a, [b, c], max_combinations=2)
    # sizes 1 (3 subsets) only: budget exceeded before pairs
    assert all(len(ids) == 1 for ids, _ in up.records)


def test_upset_to_dict(abc):
    db, a, b, c = abc
    d = Upset.of(db, a, [b], limit=1).to_dict()
    assert d == {"names": ["a", "b"], "records": [{"ids": [0], "n": 6}]}


def test_upset_budget_checked_before_generating(abc, monkeypatch):
    db, a, b, c = abc
    sizes = []
    real = visualize.subsets

    def spy(ids, k):
        sizes.append(k)
        return real(ids, k)

    monkeypatch.setattr(visualize, "subsets", spy)
    # 3 singletons fit; the 3 pairs would bring the total to 6
    Upset.of(db, a, [b, c], max_combinations=5)
    assert sizes == [1]


def test_upset_budget_allows_levels_that_fit(abc):
    db, a, b, c = abc
    up = Upset.of(db, a, [b, c], max_combinations=6)
    assert max(len(ids) for ids, _ in up.records) == 2


def test_rule_aux_to_dict(abc):
    db, a, b, _ = abc
    aux = RuleAux(Combinations.of(db, [a, b]))
    assert aux.to_dict() == {"rule": {"names": ["a", "b"], "combinations": [3, 3, 3, 3]}}


def test_combinations_of_node(abc):
    db, a, b, c = abc
    root = Node(Rule.of(a, c, db), a)
    child = Node(Rule.of(a & b, c, db), b, root)
    assert Combinations.of_node(db, root).names == ["a", "c"]
    assert Combinations.of_node(db, child).names == ["b", "a", "c"]


def test_target_aux_uses_single_predicate_roots(abc):
    db, a, b, c = abc
    root = Node(Rule.of(a, c, db), a)
    negated = Node(Rule.of(~b, c, db), ~b)
    child = Node(Rule.of(a & b, c, db), b, root)
    aux = target_aux(db, c, [child, negated, root, root])
    assert isinstance(aux, TargetAux)
    assert aux.heatmap.names == ["c", "a"]
    assert aux.upset.names == ["c", "a"]


def test_target_aux_none_without_roots(abc):
    db, a, b, c = abc
    negated = Node(Rule.of(~a, c, db), ~a)
    assert target_aux(db, c, [negated]) is None
