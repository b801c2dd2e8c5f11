import numpy as np
import pytest

from fishbone.errors import FishboneError
from fishbone.forms import Rule, Where, RowWhere, and_
from fishbone.relations import Distribution, EmpiricalDistribution, kullback_leibler

# -----------------------
# Fixtures
# -----------------------

@pytest.fixture
def small(range_predicate):
    db = list(range(10))
    a = range_predicate(0, 5)
    b = range_predicate(3, 8)
    even = Where(lambda d: np.asarray(d) % 2 == 0, "even")
    return db, [a, b, even]


@pytest.fixture
def large(range_predicate):
    size = 1000
    db = list(range(size))
    cond = range_predicate(0, 500)
    target = range_predicate(250, 600)
    rng = np.random.default_rng(42)
    chosen = rng.random(size) < 0.3
    noise = Where(lambda d: chosen[np.asarray(d)], "noise")
    div3 = Where(lambda d: np.asarray(d) % 3 == 0, "div3")
    return db, cond, target, noise, div3


def encode(*bits):
    return sum(1 << i for i in bits)


# -----------------------
# Construction
# -----------------------

def test_empirical_counts_joint_frequencies(small):
    db, preds = small
    emp = EmpiricalDistribution(db, preds)
    assert emp.probability(encode(0, 1, 2)) == pytest.approx(0.1)   # {4}
    assert emp.probability(encode()) == pytest.approx(0.1)          # {9}
    assert emp.probabilities.sum() == pytest.approx(1.0)


def test_independent_is_product_of_marginals(small):
    db, preds = small
    ind = Distribution(db, preds)
    assert ind.probability(encode(0, 1, 2)) == pytest.approx(0.5 ** 3)
    assert ind.probability(encode(0, 1)) == pytest.approx(0.5 ** 3)
    assert ind.probabilities.sum() == pytest.approx(1.0)


def test_entropy_in_bits(small):
    db, preds = small
    assert Distribution(db, preds).H() == pytest.approx(3.0)
    assert EmpiricalDistribution(db, preds[:1]).H() == pytest.approx(1.0)


def test_entropy_of_degenerate_distribution():
    db = list(range(4))
    always = RowWhere(lambda x: True, "always")
    assert Distribution(db, [always]).H() == 0.0


def test_probabilities_are_read_only(small):
    db, preds = small
    with pytest.raises(ValueError):
        Distribution(db, preds).probabilities[0] = 1.0


def test_too_many_predicates():
    db = [0]
    preds = [RowWhere(bool, str(i)) for i in range(31)]
    with pytest.raises(ValueError):
        Distribution(db, preds)


# -----------------------
# Evaluation over encodings
# -----------------------

def test_evaluate_compound(small):
    db, (a, b, even) = small
    dist = Distribution(db, [a, b, even])
    got = dist.evaluate(and_(a, ~b) | even)
    want = [((e & 1) and not (e & 2)) or bool(e & 4) for e in range(8)]
    assert got.tolist() == [bool(w) for w in want]


def test_evaluate_unknown_atom(small):
    db, preds = small
    with pytest.raises(KeyError):
        Distribution(db, preds).evaluate(RowWhere(bool, "elsewhere"))


# -----------------------
# KL
# -----------------------

def test_kl_of_identical_is_zero(small):
    db, preds = small
    emp = EmpiricalDistribution(db, preds)
    assert kullback_leibler(emp, emp) == 0.0
    assert kullback_leibler(emp, Distribution(db, preds)) > 0.0


def test_kl_requires_same_predicates_and_database(small):
    db, preds = small
    with pytest.raises(ValueError):
        kullback_leibler(Distribution(db, preds), Distribution(db, preds[:2]))
    with pytest.raises(ValueError):
        kullback_leibler(Distribution(db, preds), Distribution(list(db), preds))


def test_kl_requires_absolute_continuity(small):
    db, preds = small
    p = Distribution(db, preds[:1], np.array([0.5, 0.5]))
    q = Distribution(db, preds[:1], np.array([1.0, 0.0]))
    with pytest.raises(ValueError):
        kullback_leibler(p, q)


# -----------------------
# Learning a rule
# -----------------------

def test_learn_matches_rule_cells(large):
    db, cond, target, noise, _ = large
    rule = Rule.of(cond, target, db)
    learned = Distribution(db, [cond, target, noise]).learn(rule)
    emp = EmpiricalDistribution(db, [cond, target, noise])
    for c in (cond, ~cond):
        for t in (target, ~target):
            cell = learned.evaluate(c) & learned.evaluate(t)
            assert learned.probabilities[cell].sum() == pytest.approx(emp.probabilities[cell].sum(), abs=1e-12)
    # uninvolved marginal is unchanged
    noise_bit = learned.bit(2)
    assert learned.probabilities[noise_bit].sum() == pytest.approx(noise.count(db) / len(db), abs=1e-12)


@pytest.mark.parametrize("extras", [
    [],
    ["noise"],
    ["noise", "div3"],
    ["noise", "div3", "cond"],   # duplicated predicate
])
def test_entropy_gain_equals_kl_gain(large, extras):
    db, cond, target, noise, div3 = large
    by_name = {"noise": noise, "div3": div3, "cond": cond}
    preds = [cond, target, *(by_name[e] for e in extras)]
    emp = EmpiricalDistribution(db, preds)
    ind = Distribution(db, preds)
    learned = ind.learn(Rule.of(cond, target, db))
    d_h = learned.H() - ind.H()
    d_kl = kullback_leibler(emp, learned) - kullback_leibler(emp, ind)
    assert abs(d_h - d_kl) < 1e-10
    assert d_h < 0


def test_learn_is_idempotent(large):
    db, cond, target, noise, div3 = large
    preds = [noise, cond, div3, target]
    rule = Rule.of(cond, target, db)
    once = Distribution(db, preds).learn(rule)
    twice = once.learn(rule)
    assert twice.H() == pytest.approx(once.H(), abs=1e-10)
    assert kullback_leibler(twice, once) == pytest.approx(0.0, abs=1e-10)


def test_learn_rejects_unnormalized_mass(small):
    db, preds = small
    broken = Distribution(db, preds[:2], np.array([0.5, 0.5, 0.5, 0.5]))
    with pytest.raises(FishboneError):
        broken.learn(Rule.of(preds[0], preds[1], db))


def test_kl_gain_ignores_uninvolved_predicates(large):
    db, cond, target, noise, div3 = large
    rule = Rule.of(cond, target, db)
    gains = []
    for extras in ([], [noise], [noise, div3]):
        preds = [cond, target, *extras]
        emp = EmpiricalDistribution(db, preds)
        ind = Distribution(db, preds)
        gains.append(kullback_leibler(emp, ind) - kullback_leibler(emp, ind.learn(rule)))
    assert gains[0] > 0
    assert gains[1] == pytest.approx(gains[0], abs=1e-10)
    assert gains[2] == pytest.approx(gains[0], abs=1e-10)
