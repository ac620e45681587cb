"""
Adaptive probe count via a univariate Gaussian mixture.

The per-probe standard deviation is modelled as a mixture of 1..K Gaussian
components. The component count is chosen by minimum BIC and the probes
assigned to the component with the largest mean SD form the selection.

Cost grows as O(probes x EM iterations x components tried x n_init). There
is no timeout; pass a CancellationToken to stop between EM fits.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.mixture import GaussianMixture

from ..exceptions import InvalidParameterError
from ..utils.cancellation import check_cancelled
from .curve_fit import probe_mean_sd


@dataclass
class MixtureReport:
    """Diagnostics of the selected mixture model."""

    n_components: int
    bic: Dict[int, float]
    means: np.ndarray
    variances: np.ndarray
    weights: np.ndarray
    assignments: pd.Series
    high_component: int
    n_selected: int
    converged: Dict[int, bool] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        """Component table ordered by ascending mean SD."""
        return pd.DataFrame({
            "component": np.arange(self.n_components),
            "mean": self.means,
            "variance": self.variances,
            "weight": self.weights,
            "n_probes": [int((self.assignments == c).sum()) for c in range(self.n_components)],
        })


def _fit_best_of(values, k, n_init, max_iter, seed, cancel_token):
    """Fit ``n_init`` single-start mixtures and keep the highest lower bound."""
    best = None
    for i in range(n_init):
        check_cancelled(cancel_token, "mixture model fitting")
        gmm = GaussianMixture(
            n_components=k,
            covariance_type="full",
            max_iter=max_iter,
            n_init=1,
            random_state=seed + i,
        )
        gmm.fit(values)
        if best is None or gmm.lower_bound_ > best.lower_bound_:
            best = gmm
    return best


def fit_variability_mixture(matrix, max_components=5, n_init=3, max_iter=200,
                            seed=42, cancel_token=None, verbose=True) -> MixtureReport:
    """
    Select the high-variability probes with a BIC-chosen Gaussian mixture.

    Args:
        matrix: Validated ExpressionMatrix (probes x samples)
        max_components: Largest component count to try
        n_init: Independent EM starts per component count
        max_iter: EM iteration cap per start
        seed: Base random seed; start i uses ``seed + i``
        cancel_token: Optional CancellationToken checked between EM fits
        verbose: Print BIC per candidate

    Returns:
        MixtureReport
    """
    if max_components < 1:
        raise InvalidParameterError(f"max_components must be >= 1, got {max_components}",
                                    parameter="max_components")
    if n_init < 1:
        raise InvalidParameterError(f"n_init must be >= 1, got {n_init}", parameter="n_init")
    if max_iter < 1:
        raise InvalidParameterError(f"max_iter must be >= 1, got {max_iter}", parameter="max_iter")

    _, sds = probe_mean_sd(matrix)
    values = sds.to_numpy().reshape(-1, 1)
    n_probes = values.shape[0]
    k_upper = min(max_components, n_probes)

    if verbose:
        print(f"\n[Mixture Model] Fitting 1..{k_upper} components on {n_probes:,} probe SDs "
              f"(n_init={n_init}, max_iter={max_iter})")

    bic = {}
    converged = {}
    models = {}
    for k in range(1, k_upper + 1):
        gmm = _fit_best_of(values, k, n_init, max_iter, seed, cancel_token)
        models[k] = gmm
        bic[k] = float(gmm.bic(values))
        converged[k] = bool(gmm.converged_)
        if verbose:
            flag = "" if gmm.converged_ else " (not converged)"
            print(f"    k={k}: BIC={bic[k]:.2f}{flag}")

    best_k = min(bic, key=lambda k: (bic[k], k))
    best = models[best_k]

    # Relabel components by ascending mean so component ids are stable.
    raw_means = best.means_.ravel()
    order = np.argsort(raw_means, kind="stable")
    relabel = np.empty_like(order)
    relabel[order] = np.arange(len(order))

    labels = relabel[best.predict(values)]
    assignments = pd.Series(labels, index=matrix.index, name="component")
    # Highest-mean component that actually received probes.
    high_component = int(labels.max())
    n_selected = int((labels == high_component).sum())

    report = MixtureReport(
        n_components=best_k,
        bic=bic,
        means=raw_means[order],
        variances=best.covariances_.reshape(best_k, -1)[:, 0][order],
        weights=best.weights_[order],
        assignments=assignments,
        high_component=high_component,
        n_selected=n_selected,
        converged=converged,
    )

    if verbose:
        print(f"    Best component count (BIC): {best_k}")
        print(f"    Highest-variability component mean SD: {report.means[-1]:.4f}")
        print(f"    Probes in that component: {n_selected:,}")

    return report
