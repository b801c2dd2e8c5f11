import pytest

from fishbone.forms import inject, parse, names_factory


@pytest.fixture
def preds(named_range_predicates):
    return named_range_predicates(3, 9)


@pytest.fixture
def names(preds):
    factory = names_factory(preds)

    def run(text, atom=2, **flags):
        return sorted(f.name for f in inject(parse(text, factory), preds[atom], **flags))
    return run


def test_negated_disjunction_is_opaque(names):
    assert names("NOT (0 OR 1)") == ["2 AND NOT (0 OR 1)", "2 OR NOT (0 OR 1)"]


def test_disjunction_with_negated_literal(names):
    assert names("0 OR NOT 1") == [
        "(0 OR NOT 1) AND 2",
        "0 AND 2 OR NOT 1",
        "0 OR 2 AND NOT 1",
        "0 OR 2 OR NOT 1",
    ]


def test_conjunction(names):
    assert names("0 AND 1") == [
        "(0 OR 2) AND 1",
        "(1 OR 2) AND 0",
        "0 AND 1 AND 2",
        "0 AND 1 OR 2",
    ]


def test_single_literals(names):
    assert names("0", atom=1) == ["0 AND 1", "0 OR 1"]
    assert names("NOT 0", atom=1) == ["1 AND NOT 0", "1 OR NOT 0"]
    assert names("(0)", atom=1) == ["0 AND 1", "0 OR 1"]


def test_combinator_flags(names):
    assert names("0", atom=1, allow_or=False) == ["0 AND 1"]
    assert names("0", atom=1, allow_and=False) == ["0 OR 1"]
    assert names("0", atom=1, allow_and=False, allow_or=False) == []


def test_results_are_semantically_sound(preds):
    db = list(range(9))
    f = parse("0 AND 1", names_factory(preds))
    for g in inject(f, preds[2]):
        assert g.test(db).tolist() == [g.holds(x) for x in db]
