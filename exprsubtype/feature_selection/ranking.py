"""
Probe ranking.

Scores every probe and keeps the most informative ones:

    SD_Rank   - standard deviation across samples
    CV_Rank   - |SD / mean|
    CV_Guided - distance of the CV from the dataset median CV, weighted by the
                probe's range relative to the median range
    Poly      - residual above the fitted mean-SD curves (self-selecting)

Sorting is stable and descending; NaN scores sort last and ties keep the
original row order, so ranking the same matrix twice gives identical output.
"""

import numbers
from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..exceptions import InvalidDataError, InvalidParameterError
from ..preprocessing.validation import validate_expression_matrix
from .curve_fit import fit_variability_curves, probe_mean_sd

RANKING_METHODS = ("SD_Rank", "CV_Rank", "CV_Guided", "Poly")


@dataclass
class RankedMatrix:
    """Row subset of an ExpressionMatrix in descending score order."""

    data: pd.DataFrame
    scores: pd.Series
    method: str

    @property
    def probes(self):
        return list(self.data.index)

    @property
    def n_probes(self) -> int:
        return int(self.data.shape[0])


def _coefficient_of_variation(means, sds):
    with np.errstate(divide="ignore", invalid="ignore"):
        cv = np.abs(sds / means)
    # Zero-mean probes have no defined CV.
    return cv.where(means != 0, np.nan)


def _guided_scores(matrix, means, sds):
    cv = _coefficient_of_variation(means, sds)
    finite_cv = cv[np.isfinite(cv)]
    median_cv = float(np.median(finite_cv)) if len(finite_cv) else 0.0

    values = matrix.to_numpy(dtype=np.float64)
    ranges = pd.Series(values.max(axis=1) - values.min(axis=1), index=matrix.index)
    median_range = float(np.median(ranges))
    weight = ranges / median_range if median_range > 0 else pd.Series(1.0, index=matrix.index)

    return (cv - median_cv).abs() * weight


def compute_probe_scores(matrix, method, verbose=False):
    """
    Score every probe of ``matrix`` with ``method``.

    Returns:
        pd.Series: Scores indexed by probe ID, in original row order
    """
    if method not in RANKING_METHODS:
        raise InvalidParameterError(
            f"Unknown ranking method: {method!r}. Supported: {', '.join(RANKING_METHODS)}",
            parameter="method",
        )

    if method == "Poly":
        fit = fit_variability_curves(matrix, verbose=verbose)
        scores = fit.scores.where(fit.selected, np.nan)
    else:
        means, sds = probe_mean_sd(matrix)
        if method == "SD_Rank":
            scores = sds
        elif method == "CV_Rank":
            scores = _coefficient_of_variation(means, sds)
        else:
            scores = _guided_scores(matrix, means, sds)

    return scores.rename("score")


def _descending_order(scores):
    # NaN -> -inf so it sorts last; mergesort keeps ties in row order.
    keyed = np.where(np.isnan(scores.to_numpy()), -np.inf, scores.to_numpy())
    return np.argsort(-keyed, kind="stable")


def rank_probes(matrix, count, method, verbose=True) -> RankedMatrix:
    """
    Rank probes and return the top ``count`` as a RankedMatrix.

    Args:
        matrix: ExpressionMatrix (probes x samples)
        count: Number of probes to keep; ignored (may be None) for ``Poly``
        method: One of SD_Rank, CV_Rank, CV_Guided, Poly
        verbose: Print ranking summary

    Returns:
        RankedMatrix

    Raises:
        InvalidParameterError: Unknown method or count out of range
        InvalidDataError: Matrix fails validation, or Poly selects nothing
    """
    matrix = validate_expression_matrix(matrix)
    total = matrix.shape[0]

    if method not in RANKING_METHODS:
        raise InvalidParameterError(
            f"Unknown ranking method: {method!r}. Supported: {', '.join(RANKING_METHODS)}",
            parameter="method",
        )

    if method != "Poly":
        if (count is None or isinstance(count, bool)
                or not isinstance(count, numbers.Integral) or not (1 <= count <= total)):
            raise InvalidParameterError(
                f"{method} needs a probe count in [1, {total}], got {count!r}",
                parameter="count",
            )

    scores = compute_probe_scores(matrix, method, verbose=verbose)
    order = _descending_order(scores)

    if method == "Poly":
        keep = int(scores.notna().sum())
        if keep == 0:
            raise InvalidDataError("No probe lies above any fitted mean-SD curve")
    else:
        keep = int(count)

    selected = order[:keep]
    ranked = RankedMatrix(
        data=matrix.iloc[selected],
        scores=scores.iloc[selected],
        method=method,
    )

    if verbose:
        top = ranked.scores.iloc[0]
        print(f"[Ranking] {method}: selected {keep:,}/{total:,} probes "
              f"(top score={top:.4f})")

    return ranked
