import math

import pytest

from fishbone.errors import InvalidRule, UnsupportedTest
from fishbone.forms import RowWhere, Rule, TRUE, objective

C = RowWhere(bool, "c")
T = RowWhere(bool, "t")


def rule(n, c, t, i):
    return Rule(C, T, database_count=n, condition_count=c, target_count=t, intersection_count=i)


# -----------------------
# Invariants
# -----------------------

@pytest.mark.parametrize("counts", [
    (10, 11, 5, 5),   # condition exceeds database
    (10, 5, 11, 5),   # target exceeds database
    (10, 3, 5, 4),    # intersection exceeds condition
    (10, 5, 3, 4),    # intersection exceeds target
    (10, 5, 5, -1),
])
def test_invalid_counts(counts):
    with pytest.raises(InvalidRule):
        rule(*counts)


def test_all_valid_small_rules_have_bounded_correlation():
    n = 6
    for c in range(n + 1):
        for t in range(n + 1):
            for i in range(max(0, c + t - n), min(c, t) + 1):
                r = rule(n, c, t, i)
                assert r.error_type1 == c - i
                assert r.error_type2 == t - i
                assert math.isnan(r.correlation) or -1.0 <= r.correlation <= 1.0


# -----------------------
# Metrics
# -----------------------

def test_metrics_reference_values():
    r = rule(10, 8, 9, 7)
    assert r.support == pytest.approx(0.8)
    assert r.confidence == pytest.approx(0.875)
    assert r.lift == pytest.approx(0.9722222222222222)
    assert r.loe == pytest.approx(0.22427683792970576)
    assert r.correlation == pytest.approx(-0.16666666666666666)


def test_conviction_divides_by_counter_examples():
    # male => high creatinine over 150 patients
    assert rule(150, 125, 72, 71).conviction == pytest.approx(1.2037, abs=1e-3)
    # NOT male => low creatinine
    assert rule(150, 25, 78, 24).conviction == pytest.approx(12.0, abs=1e-3)


def test_conviction_of_exact_implication_is_finite():
    r = rule(10, 4, 6, 4)
    assert r.error_type1 == 0
    assert r.conviction == pytest.approx(0.4 * 4 / 1)


def test_lift_is_zero_for_empty_marginals():
    assert rule(10, 0, 5, 0).lift == 0.0
    assert rule(10, 5, 0, 0).lift == 0.0


def test_correlation_nan_on_zero_variance():
    assert math.isnan(rule(10, 10, 5, 5).correlation)
    assert math.isnan(rule(10, 4, 0, 0).correlation)


def test_perfect_correlation():
    assert rule(10, 4, 4, 4).correlation == pytest.approx(1.0)
    assert rule(10, 4, 6, 0).correlation == pytest.approx(-1.0)


def test_loe_separates_nested_implications():
    # A < B < C: A => C and B => C are both exact, but not scored alike
    assert rule(100, 10, 50, 10).loe != pytest.approx(rule(100, 20, 50, 20).loe)


# -----------------------
# Identity
# -----------------------

def test_equality_ignores_counts():
    assert rule(10, 8, 9, 7) == rule(20, 1, 1, 1)
    assert hash(rule(10, 8, 9, 7)) == hash(rule(20, 1, 1, 1))
    assert rule(10, 8, 9, 7) != Rule(T, C, 10, 9, 8, 7)


def test_of_counts_database(creatinine):
    database, male, high, _ = creatinine
    r = Rule.of(male, high, database)
    assert (r.database_count, r.condition_count, r.target_count, r.intersection_count) == (150, 125, 72, 71)
    assert r.name == "is_male => high_creatinine"
    assert Rule.of(TRUE, high, database).condition_count == 150


def test_objectives():
    r = rule(10, 8, 9, 7)
    assert objective("loe")(r) == r.loe
    assert objective("conviction")(r) == r.conviction
    with pytest.raises(UnsupportedTest):
        objective("gini")
