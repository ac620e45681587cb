"""
Cluster count selection.

    FixedClusters(k) - use k directly
    GapStatistic()   - Tibshirani, Walther & Hastie (2001) gap statistic

Gap statistic variant:
    - observations are samples (matrix columns), features are probes
    - W_k is the pooled within-cluster sum of squares of a k-means fit
      (k-means++ seeding, fixed seed), i.e. sum_r D_r / (2 n_r)
    - reference data are drawn uniformly over each probe's observed range
    - Gap(k) = mean_b log W*_kb - log W_k
    - s_k = sd_b(log W*_kb) * sqrt(1 + 1/B), sd taken with 1/B
    - choose the smallest k with Gap(k) >= Gap(k+1) - s_{k+1}; K_max if none

Cost is O(B x K_max x k-means fit). Reference draws can run on a thread
pool; the cancellation token is checked before every draw and results are
identical for any ``n_jobs`` because each draw gets its own child seed.
"""

import numbers
from dataclasses import dataclass
from typing import Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.cluster import KMeans
from tqdm import tqdm

from ..exceptions import InvalidDataError, InvalidParameterError
from ..preprocessing.validation import as_expression_frame
from ..utils.cancellation import check_cancelled

MIN_DISPERSION = 1e-12


@dataclass(frozen=True)
class FixedClusters:
    k: int


@dataclass(frozen=True)
class GapStatistic:
    k_max: int = 10
    n_references: int = 20
    seed: int = 42
    n_jobs: int = 1


ClusterCountMode = Union[FixedClusters, GapStatistic]


@dataclass
class GapResult:
    """Gap statistic curve and the chosen cluster count."""

    k_values: np.ndarray
    log_wk: np.ndarray
    ref_log_wk: np.ndarray
    gap: np.ndarray
    s_k: np.ndarray
    optimal_k: int

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "k": self.k_values,
            "log_wk": self.log_wk,
            "expected_log_wk": self.ref_log_wk.mean(axis=0),
            "gap": self.gap,
            "s_k": self.s_k,
        })


def within_cluster_dispersion(observations, k, seed):
    """Pooled within-cluster sum of squares of a seeded k-means fit."""
    if k == 1:
        centered = observations - observations.mean(axis=0)
        return float((centered ** 2).sum())
    model = KMeans(n_clusters=k, init="k-means++", n_init=10, random_state=seed)
    model.fit(observations)
    return float(model.inertia_)


def _log_dispersions(observations, k_values, seed):
    return np.array([
        np.log(max(within_cluster_dispersion(observations, k, seed), MIN_DISPERSION))
        for k in k_values
    ])


def _reference_log_dispersions(observations, k_values, seed, ref_seed, cancel_token):
    check_cancelled(cancel_token, "gap statistic")
    rng = np.random.default_rng(ref_seed)
    lower = observations.min(axis=0)
    upper = observations.max(axis=0)
    reference = rng.uniform(lower, upper, size=observations.shape)
    return _log_dispersions(reference, k_values, seed)


def choose_k_one_se(k_values, gap, s_k):
    """Smallest k with Gap(k) >= Gap(k+1) - s_{k+1}; the largest k if none qualifies."""
    for i in range(len(k_values) - 1):
        if gap[i] >= gap[i + 1] - s_k[i + 1]:
            return int(k_values[i])
    return int(k_values[-1])


def compute_gap_statistic(matrix, k_max=10, n_references=20, seed=42, n_jobs=1,
                          cancel_token=None, verbose=True) -> GapResult:
    """
    Compute the gap statistic for k = 1..min(k_max, n_samples - 1).

    Args:
        matrix: ExpressionMatrix or RankedMatrix (probes x samples)
        k_max: Largest candidate cluster count
        n_references: Number of uniform reference datasets (B)
        seed: Seed for k-means and for the reference draws
        n_jobs: Threads used for reference draws
        cancel_token: Optional CancellationToken checked before each draw
        verbose: Print the gap curve

    Returns:
        GapResult
    """
    frame = as_expression_frame(matrix)
    for name, value in (("k_max", k_max), ("n_references", n_references), ("n_jobs", n_jobs)):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidParameterError(f"{name} must be an integer, got {value!r}", parameter=name)
    if k_max < 1:
        raise InvalidParameterError(f"k_max must be >= 1, got {k_max}", parameter="k_max")
    if n_references < 1:
        raise InvalidParameterError(f"n_references must be >= 1, got {n_references}",
                                    parameter="n_references")

    observations = frame.to_numpy(dtype=np.float64).T
    n_samples = observations.shape[0]
    if n_samples < 2:
        raise InvalidDataError(f"Gap statistic needs at least 2 samples, got {n_samples}")

    k_values = np.arange(1, min(k_max, n_samples - 1) + 1)

    if verbose:
        print(f"\n[Gap Statistic] {n_samples} samples, k=1..{k_values[-1]}, "
              f"B={n_references} uniform references")

    check_cancelled(cancel_token, "gap statistic")
    log_wk = _log_dispersions(observations, k_values, seed)

    child_seeds = np.random.SeedSequence(seed).spawn(n_references)
    draws = tqdm(child_seeds, desc="Gap references", disable=not verbose)
    ref_log_wk = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_reference_log_dispersions)(observations, k_values, seed, child, cancel_token)
        for child in draws
    )
    ref_log_wk = np.vstack(ref_log_wk)

    gap = ref_log_wk.mean(axis=0) - log_wk
    s_k = ref_log_wk.std(axis=0, ddof=0) * np.sqrt(1.0 + 1.0 / n_references)
    optimal_k = choose_k_one_se(k_values, gap, s_k)

    if verbose:
        for k, g, s in zip(k_values, gap, s_k):
            marker = "  <-" if k == optimal_k else ""
            print(f"    k={k}: gap={g:.4f} s_k={s:.4f}{marker}")
        print(f"    Selected k (1-SE rule): {optimal_k}")

    return GapResult(
        k_values=k_values,
        log_wk=log_wk,
        ref_log_wk=ref_log_wk,
        gap=gap,
        s_k=s_k,
        optimal_k=optimal_k,
    )


def select_cluster_count(matrix, mode, cancel_token=None, verbose=True) -> int:
    """
    Decide how many sample clusters to form.

    Args:
        matrix: RankedMatrix or ExpressionMatrix (probes x samples)
        mode: FixedClusters or GapStatistic
        cancel_token: Optional CancellationToken (gap statistic only)
        verbose: Print the decision

    Returns:
        int: ClusterCount, 1 <= k <= n_samples

    Raises:
        InvalidParameterError: k out of range or unknown mode
    """
    frame = as_expression_frame(matrix)
    n_samples = frame.shape[1]

    if isinstance(mode, FixedClusters):
        k = mode.k
        if isinstance(k, bool) or not isinstance(k, numbers.Integral) or not (1 <= k <= n_samples):
            raise InvalidParameterError(
                f"Fixed cluster count must be an integer in [1, {n_samples}], got {k!r}",
                parameter="k",
            )
        k = int(k)
    elif isinstance(mode, GapStatistic):
        result = compute_gap_statistic(
            frame,
            k_max=mode.k_max,
            n_references=mode.n_references,
            seed=mode.seed,
            n_jobs=mode.n_jobs,
            cancel_token=cancel_token,
            verbose=verbose,
        )
        k = result.optimal_k
    else:
        raise InvalidParameterError(f"Unknown cluster count mode: {mode!r}", parameter="mode")

    if verbose:
        print(f"[Cluster Count] {type(mode).__name__}: {k} clusters")

    return k
