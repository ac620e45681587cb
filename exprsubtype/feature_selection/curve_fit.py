"""
Mean-SD curve fitting for expression-adjusted variability.

Three independent second-degree polynomials model standard deviation as a
function of mean expression:

    all   - every probe
    upper - probes whose mean is above the median mean
    lower - probes whose mean is at or below the median mean

A probe is informative when its actual SD lies above the curve that applies
to it. The ``all`` curve applies to every probe; each half-curve applies only
to the probes it was fitted on.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd

from ..exceptions import InvalidDataError

POLY_DEGREE = 2
MIN_POINTS = POLY_DEGREE + 1


@dataclass
class CurveFit:
    """Fitted mean-SD curves and the per-probe residuals they imply."""

    means: pd.Series
    sds: pd.Series
    coefficients: Dict[str, Optional[np.ndarray]]
    residuals: pd.DataFrame
    median_mean: float
    subset_sizes: Dict[str, int] = field(default_factory=dict)

    @property
    def scores(self) -> pd.Series:
        """Largest applicable residual per probe (NaN where no curve applies)."""
        return self.residuals.max(axis=1, skipna=True)

    @property
    def selected(self) -> pd.Series:
        """Boolean mask of probes above at least one applicable curve."""
        return (self.residuals > 0).any(axis=1)

    @property
    def n_selected(self) -> int:
        return int(self.selected.sum())


def probe_mean_sd(matrix):
    """Per-probe mean and sample standard deviation (ddof=1) across samples."""
    values = matrix.to_numpy(dtype=np.float64)
    means = values.mean(axis=1)
    if values.shape[1] > 1:
        sds = values.std(axis=1, ddof=1)
    else:
        sds = np.zeros(values.shape[0])
    return (pd.Series(means, index=matrix.index, name="mean"),
            pd.Series(sds, index=matrix.index, name="sd"))


def _fit(means, sds):
    if len(means) < MIN_POINTS:
        return None
    # Degenerate x (all means equal) leaves the fit rank deficient; polyfit
    # still returns a least-squares answer, flat at the mean SD.
    with np.errstate(all="ignore"):
        return np.polyfit(means, sds, POLY_DEGREE)


def fit_variability_curves(matrix, verbose=True) -> CurveFit:
    """
    Fit the three mean-SD curves for ``matrix``.

    Args:
        matrix: Validated ExpressionMatrix (probes x samples)
        verbose: Print fit summary

    Returns:
        CurveFit

    Raises:
        InvalidDataError: If fewer than 3 probes are available for the global fit
    """
    if matrix.shape[0] < MIN_POINTS:
        raise InvalidDataError(
            f"Polynomial curve fitting needs at least {MIN_POINTS} probes, got {matrix.shape[0]}"
        )

    means, sds = probe_mean_sd(matrix)
    mean_values = means.to_numpy()
    sd_values = sds.to_numpy()
    median_mean = float(np.median(mean_values))

    masks = {
        "all": np.ones(len(mean_values), dtype=bool),
        "upper": mean_values > median_mean,
        "lower": mean_values <= median_mean,
    }

    coefficients = {}
    residuals = {}
    subset_sizes = {}
    for name, mask in masks.items():
        subset_sizes[name] = int(mask.sum())
        coef = _fit(mean_values[mask], sd_values[mask])
        coefficients[name] = coef
        column = np.full(len(mean_values), np.nan)
        if coef is not None:
            column[mask] = sd_values[mask] - np.polyval(coef, mean_values[mask])
        residuals[name] = column

    residual_df = pd.DataFrame(residuals, index=matrix.index)
    fit = CurveFit(
        means=means,
        sds=sds,
        coefficients=coefficients,
        residuals=residual_df,
        median_mean=median_mean,
        subset_sizes=subset_sizes,
    )

    if verbose:
        print(f"[Curve Fit] median mean expression: {median_mean:.4f}")
        for name in ("all", "upper", "lower"):
            if coefficients[name] is None:
                print(f"    {name:>5}: skipped ({subset_sizes[name]} probes)")
            else:
                above = int((residual_df[name] > 0).sum())
                print(f"    {name:>5}: {subset_sizes[name]:,} probes, {above:,} above curve")
        print(f"    Selected (any curve): {fit.n_selected:,}/{len(means):,}")

    return fit
