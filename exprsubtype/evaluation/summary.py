"""Per-cluster average expression."""

import numpy as np
import pandas as pd

from ..exceptions import EmptyClusterError, InvalidDataError
from ..preprocessing.validation import as_expression_frame


def as_assignment_series(assignment):
    # Accept a ClusterResult as well as a bare Series.
    series = getattr(assignment, "assignment", assignment)
    if not isinstance(series, pd.Series):
        raise InvalidDataError(f"Cluster assignment must be a pandas Series, got {type(series).__name__}")
    if series.index.has_duplicates:
        raise InvalidDataError("Cluster assignment lists a sample more than once")
    values = pd.to_numeric(series, errors="coerce").astype(float)
    integral = np.isfinite(values) & (values == np.round(values))
    if not integral.all():
        bad = series[~integral].tolist()[:5]
        raise InvalidDataError(f"Cluster labels must be integers, got {bad}")
    return values.astype(int)


def check_cluster_labels(assignment):
    """
    Confirm labels are exactly 1..k with every label used.

    Returns:
        int: k

    Raises:
        EmptyClusterError: If any label in 1..max(label) has no sample
    """
    series = as_assignment_series(assignment)
    if series.empty:
        raise EmptyClusterError("Cluster assignment is empty")
    if series.min() < 1:
        raise InvalidDataError(f"Cluster labels must start at 1, got {int(series.min())}")
    k = int(series.max())
    missing = sorted(set(range(1, k + 1)) - set(series.unique().tolist()))
    if missing:
        raise EmptyClusterError(f"Clusters with no samples: {missing}", labels=missing)
    return k


def cluster_sizes(assignment):
    """Number of samples per cluster label, ordered by label."""
    series = as_assignment_series(assignment)
    counts = series.value_counts().sort_index()
    return {int(label): int(n) for label, n in counts.items()}


def average_expression(ranked_matrix, assignment, verbose=True) -> pd.DataFrame:
    """
    Mean expression of every probe within every cluster.

    Args:
        ranked_matrix: RankedMatrix or DataFrame (probes x samples)
        assignment: Series sample ID -> cluster label (or a ClusterResult)
        verbose: Print the table shape

    Returns:
        pd.DataFrame: probes x cluster labels 1..k

    Raises:
        EmptyClusterError: A label in 1..k has no samples
        InvalidDataError: An assigned sample is absent from the matrix
    """
    frame = as_expression_frame(ranked_matrix)
    series = as_assignment_series(assignment)
    k = check_cluster_labels(series)

    absent = [s for s in series.index if s not in frame.columns]
    if absent:
        raise InvalidDataError(f"Assigned samples missing from the matrix: {absent[:5]}")

    values = frame[series.index]
    averages = values.T.groupby(series.to_numpy()).mean().T
    averages = averages.reindex(columns=np.arange(1, k + 1))
    averages.columns.name = "cluster"

    if verbose:
        print(f"[Average Expression] {averages.shape[0]:,} probes x {k} clusters")

    return averages
