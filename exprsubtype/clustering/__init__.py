"""Clustering module: cluster count selection and sample clustering."""

from .cluster_count import (
    ClusterCountMode,
    FixedClusters,
    GapResult,
    GapStatistic,
    compute_gap_statistic,
    select_cluster_count,
)
from .clustering import (
    CLUSTER_ALGORITHMS,
    LINKAGES,
    PROBE_DISTANCES,
    SAMPLE_DISTANCES,
    ClusterResult,
    HClustParams,
    KMeansParams,
    cluster_samples,
)

__all__ = [
    'ClusterCountMode',
    'FixedClusters',
    'GapResult',
    'GapStatistic',
    'compute_gap_statistic',
    'select_cluster_count',
    'CLUSTER_ALGORITHMS',
    'LINKAGES',
    'PROBE_DISTANCES',
    'SAMPLE_DISTANCES',
    'ClusterResult',
    'HClustParams',
    'KMeansParams',
    'cluster_samples',
]
