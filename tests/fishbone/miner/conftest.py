import numpy as np
import pytest

from fishbone.forms import Where


@pytest.fixture
def nested():
    """
    db = 0..99 with a = [0, 60), b = [30, 100), t = [30, 60).

    Neither a nor b predicts t well on its own; a AND b implies it exactly.
    """
    db = list(range(100))
    a = Where(lambda d: np.asarray(d) < 60, "a")
    b = Where(lambda d: np.asarray(d) >= 30, "b")
    t = Where(lambda d: (np.asarray(d) >= 30) & (np.asarray(d) < 60), "t")
    return db, a, b, t
