"""
Feature selection package.

Decides how many probes to keep (fixed, percent, polynomial curve or
mixture model) and ranks probes by SD, CV, guided CV or curve residual.
"""

from .curve_fit import CurveFit, fit_variability_curves, probe_mean_sd
from .mixture import MixtureReport, fit_variability_mixture
from .probe_count import (
    AdaptiveCount,
    FixedCount,
    PercentCount,
    PolyCount,
    SelectionMode,
    fit_adaptive_mixture,
    select_probe_count,
    selection_mode_from_options,
)
from .ranking import RANKING_METHODS, RankedMatrix, compute_probe_scores, rank_probes

__all__ = [
    'CurveFit',
    'fit_variability_curves',
    'probe_mean_sd',
    'MixtureReport',
    'fit_variability_mixture',
    'AdaptiveCount',
    'FixedCount',
    'PercentCount',
    'PolyCount',
    'SelectionMode',
    'fit_adaptive_mixture',
    'select_probe_count',
    'selection_mode_from_options',
    'RANKING_METHODS',
    'RankedMatrix',
    'compute_probe_scores',
    'rank_probes',
]
