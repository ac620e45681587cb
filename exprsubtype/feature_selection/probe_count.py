"""
Probe count selection.

Decides how many probes the ranking stage keeps. The mode is a tagged
variant, so only one selection rule can be active per call:

    FixedCount(n)     - exactly n probes
    PercentCount(p)   - round(p / 100 * total probes)
    PolyCount()       - probes above any fitted mean-SD curve
    AdaptiveCount()   - size of the highest-variability mixture component
"""

import numbers
from dataclasses import dataclass
from typing import Union

from ..exceptions import ConflictingParametersError, InvalidDataError, InvalidParameterError
from ..preprocessing.validation import validate_expression_matrix
from .curve_fit import fit_variability_curves
from .mixture import fit_variability_mixture


@dataclass(frozen=True)
class FixedCount:
    n: int


@dataclass(frozen=True)
class PercentCount:
    percent: float


@dataclass(frozen=True)
class PolyCount:
    pass


@dataclass(frozen=True)
class AdaptiveCount:
    max_components: int = 5
    n_init: int = 3
    max_iter: int = 200
    seed: int = 42


SelectionMode = Union[FixedCount, PercentCount, PolyCount, AdaptiveCount]


def selection_mode_from_options(fixed=None, percent=None, poly=False, adaptive=False,
                                adaptive_options=None) -> SelectionMode:
    """
    Build a SelectionMode from the older style of nullable options.

    Exactly one of ``fixed``, ``percent``, ``poly`` and ``adaptive`` must be set.

    Raises:
        ConflictingParametersError: If more than one option is set
        InvalidParameterError: If none is set
    """
    supplied = []
    if fixed is not None:
        supplied.append("fixed")
    if percent is not None:
        supplied.append("percent")
    if poly:
        supplied.append("poly")
    if adaptive:
        supplied.append("adaptive")

    if len(supplied) > 1:
        raise ConflictingParametersError(
            f"Only one probe selection mode may be set, got: {', '.join(supplied)}",
            parameters=supplied,
        )
    if not supplied:
        raise InvalidParameterError(
            "No probe selection mode set (expected one of fixed, percent, poly, adaptive)"
        )

    mode = supplied[0]
    if mode == "fixed":
        return FixedCount(fixed)
    if mode == "percent":
        try:
            return PercentCount(float(percent))
        except (TypeError, ValueError):
            raise InvalidParameterError(f"Percent must be a number, got {percent!r}",
                                        parameter="percent") from None
    if mode == "poly":
        return PolyCount()
    try:
        return AdaptiveCount(**(adaptive_options or {}))
    except TypeError as e:
        raise InvalidParameterError(f"adaptive_options: {e}", parameter="adaptive_options") from None


def fit_adaptive_mixture(matrix, mode: AdaptiveCount, cancel_token=None, verbose=True):
    """Fit the variability mixture described by ``mode`` and return its MixtureReport."""
    return fit_variability_mixture(
        matrix,
        max_components=mode.max_components,
        n_init=mode.n_init,
        max_iter=mode.max_iter,
        seed=mode.seed,
        cancel_token=cancel_token,
        verbose=verbose,
    )


def select_probe_count(matrix, mode: SelectionMode, cancel_token=None, verbose=True) -> int:
    """
    Decide how many probes to retain.

    Args:
        matrix: ExpressionMatrix (probes x samples)
        mode: One of FixedCount, PercentCount, PolyCount, AdaptiveCount
        cancel_token: Optional CancellationToken (adaptive mode only)
        verbose: Print the decision

    Returns:
        int: ProbeCount, 1 <= count <= total probes

    Raises:
        InvalidParameterError: Count or percentage out of range, unknown mode
        InvalidDataError: Matrix fails validation
    """
    matrix = validate_expression_matrix(matrix)
    total = matrix.shape[0]

    if isinstance(mode, FixedCount):
        n = mode.n
        if isinstance(n, bool) or not isinstance(n, numbers.Integral) or n <= 0 or n > total:
            raise InvalidParameterError(
                f"Fixed probe count must be an integer in [1, {total}], got {n!r}",
                parameter="fixed",
            )
        count = int(n)

    elif isinstance(mode, PercentCount):
        p = mode.percent
        if isinstance(p, bool) or not isinstance(p, numbers.Real) or not (0 < p <= 100):
            raise InvalidParameterError(
                f"Percent must be in (0, 100], got {p!r}", parameter="percent"
            )
        count = int(round(p / 100.0 * total))
        if count < 1:
            raise InvalidParameterError(
                f"Percent {p} of {total} probes selects no probes", parameter="percent"
            )

    elif isinstance(mode, PolyCount):
        fit = fit_variability_curves(matrix, verbose=verbose)
        count = fit.n_selected
        if count == 0:
            raise InvalidDataError("No probe lies above any fitted mean-SD curve")

    elif isinstance(mode, AdaptiveCount):
        count = fit_adaptive_mixture(matrix, mode, cancel_token=cancel_token,
                                     verbose=verbose).n_selected

    else:
        raise InvalidParameterError(f"Unknown probe selection mode: {mode!r}", parameter="mode")

    if verbose:
        print(f"[Probe Count] {type(mode).__name__}: keeping {count:,}/{total:,} probes")

    return count
