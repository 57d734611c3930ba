import numpy as np
import pytest

from MenuModel.registry import default_registry
from RateFitting.sample import Sample


def uniform_grid(n: int, lo: float, hi: float) -> np.ndarray:
    """n evenly spaced bin centres: the pass fraction of ``x >= t`` is exactly linear in t."""
    return lo + (np.arange(n) + 0.5) * (hi - lo) / n


def make_grid_sample(n: int = 400_000, event_rate: float = 400.0, seed: int = 7) -> Sample:
    """HT uniform in [0, 800), anomaly score uniform in [0, 100), shuffled against each other."""
    ht = uniform_grid(n, 0.0, 800.0)
    score = np.random.default_rng(seed).permutation(uniform_grid(n, 0.0, 100.0))
    return Sample({"ht": ht, "score": score}, event_rate=event_rate)


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture(scope="session")
def grid_sample() -> Sample:
    return make_grid_sample()


@pytest.fixture
def small_sample() -> Sample:
    return Sample(
        {"ht": np.array([10.0, 20.0, 30.0, 40.0]), "score": np.array([40.0, 30.0, 20.0, 10.0])},
        event_rate=4.0,
    )
