import numpy as np
import pytest

from fishbone.forms import MASK_CACHE, InSamples, Where


@pytest.fixture(autouse=True)
def _fresh_mask_cache():
    # Tests reuse short predicate names such as "0" with different meanings.
    MASK_CACHE.clear()
    yield
    MASK_CACHE.clear()


def _range_predicate(lo, hi):
    return Where(lambda d, lo=lo, hi=hi: (np.asarray(d) >= lo) & (np.asarray(d) < hi), f"[{lo};{hi})")


@pytest.fixture
def range_predicate():
    """Factory: predicate holding for lo <= item < hi, named "[lo;hi)"."""
    return _range_predicate


@pytest.fixture
def named_range_predicates():
    """Factory: n predicates splitting range(size) into equal slices, named "0".."n-1"."""
    def make(n, size):
        return [
            Where(lambda d, i=i: (np.asarray(d) >= size * i // n) & (np.asarray(d) < size * (i + 1) // n), str(i))
            for i in range(n)
        ]
    return make


# -----------------------
# 150 patients: sex vs. creatinine level
# -----------------------

CREATININE_GT_1 = [
    4, 5, 6, 8, 9, 13, 14, 17, 18, 21, 23, 24, 25, 26, 27, 30, 32, 33, 34, 36, 39, 44, 46, 48, 49,
    56, 57, 58, 60, 61, 62, 64, 65, 66, 67, 68, 69, 72, 74, 78, 80, 82, 84, 87, 88, 89, 92, 93, 95,
    96, 97, 98, 99, 100, 102, 103, 104, 105, 106, 107, 108, 109, 110, 116, 117, 119, 120, 121, 122,
    124, 125, 149,
]


@pytest.fixture
def creatinine():
    """(database, male, high_creatinine, low_creatinine) over patients 1..150."""
    database = list(range(1, 151))
    male_ids = list(range(1, 126))
    female_ids = list(range(126, 151))
    high_ids = CREATININE_GT_1
    low_ids = [i for i in database if i not in set(high_ids)]
    male = InSamples("is_male", male_ids, female_ids)
    high = InSamples("high_creatinine", high_ids, low_ids)
    low = InSamples("low_creatinine", low_ids, high_ids)
    return database, male, high, low
