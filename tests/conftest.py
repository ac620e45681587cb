"""Shared pytest fixtures for the pipeline tests."""
import numpy as np
import pandas as pd
import pytest


def make_matrix(values, probe_prefix="p", sample_prefix="s"):
    """Wrap a 2-D array as an ExpressionMatrix with readable IDs."""
    values = np.asarray(values, dtype=float)
    return pd.DataFrame(
        values,
        index=[f"{probe_prefix}{i}" for i in range(values.shape[0])],
        columns=[f"{sample_prefix}{j}" for j in range(values.shape[1])],
    )


@pytest.fixture
def random_matrix():
    """200 probes x 12 samples with probe-specific mean and spread."""
    rng = np.random.default_rng(0)
    means = rng.uniform(4.0, 12.0, size=(200, 1))
    spreads = rng.uniform(0.1, 2.0, size=(200, 1))
    return make_matrix(means + spreads * rng.standard_normal((200, 12)))


@pytest.fixture
def two_group_matrix():
    """
    Noiseless matrix whose samples form two groups.

    Samples s0..s4 sit at 0 on every probe, s5..s9 at a large offset; each
    probe is shifted by its own constant so probes differ.
    """
    base = np.arange(30, dtype=float).reshape(-1, 1)
    offsets = np.array([0.0] * 5 + [50.0] * 5)
    return make_matrix(base + offsets)


@pytest.fixture
def three_group_matrix():
    """Three well-separated sample groups with a little noise, 40 probes x 15 samples."""
    rng = np.random.default_rng(1)
    centers = np.repeat([0.0, 20.0, 40.0], 5)
    pattern = rng.normal(0.0, 1.0, size=(40, 1))
    return make_matrix(pattern + centers + rng.normal(0.0, 0.3, size=(40, 15)))


@pytest.fixture
def separated_clinical():
    """Cluster 1 all early events, cluster 2 all late and censored."""
    assignment = pd.Series([1] * 10 + [2] * 10,
                           index=[f"s{i}" for i in range(20)], name="cluster")
    clinical = pd.DataFrame({
        "sample_id": assignment.index,
        "OS_time": [float(t) for t in range(1, 11)] + [float(t) for t in range(100, 110)],
        "OS_event": [True] * 10 + [False] * 10,
    })
    return assignment, clinical
