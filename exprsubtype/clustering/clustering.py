"""
Sample clustering.

Partitions samples (matrix columns) into a requested number of groups:

    Kmeans - scikit-learn KMeans, k-means++ seeding with an explicit seed
    HClust - scipy agglomerative clustering, cut by merge order into exactly
             k groups (tied merge heights still give k groups);
             a second, independent clustering of probes gives a probe
             ordering for heatmaps and never affects the sample labels

Labels are 1..k. A partition that leaves any label unused raises
DegenerateClusteringError.
"""

import numbers
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import cut_tree, leaves_list, linkage
from scipy.spatial.distance import pdist, squareform
from sklearn.cluster import KMeans

from ..exceptions import DegenerateClusteringError, InvalidParameterError
from ..preprocessing.validation import as_expression_frame

CLUSTER_ALGORITHMS = ("Kmeans", "HClust")

# Sample distance names -> scipy pdist metric
SAMPLE_DISTANCES = {
    "euclidean": "euclidean",
    "manhattan": "cityblock",
    "maximum": "chebyshev",
    "canberra": "canberra",
    "binary": "jaccard",
    "minkowski": "minkowski",
}

# Linkage names -> scipy linkage method
LINKAGES = {
    "ward": "ward",
    "average": "average",
    "complete": "complete",
    "median": "median",
    "centroid": "centroid",
    "single": "single",
    "mcquitty": "weighted",
}

PROBE_DISTANCES = ("euclidean", "pearson", "abspearson", "spearman", "kendall")


@dataclass(frozen=True)
class KMeansParams:
    seed: int = 42
    n_init: int = 10
    max_iter: int = 300


@dataclass(frozen=True)
class HClustParams:
    distance: str = "euclidean"
    linkage: str = "average"
    minkowski_p: float = 2.0
    probe_distance: str = "pearson"
    probe_linkage: str = "average"


@dataclass
class ClusterResult:
    """Cluster assignment plus optional hierarchical side outputs."""

    assignment: pd.Series
    n_clusters: int
    algorithm: str
    probe_order: Optional[List] = None
    sample_linkage: Optional[np.ndarray] = None
    probe_linkage: Optional[np.ndarray] = None
    inertia: Optional[float] = None
    params: dict = field(default_factory=dict)

    def cluster_sizes(self) -> dict:
        counts = self.assignment.value_counts().sort_index()
        return {int(k): int(v) for k, v in counts.items()}

    def to_frame(self) -> pd.DataFrame:
        """Two-column table [sample_id, cluster] in sample order."""
        return pd.DataFrame({
            "sample_id": self.assignment.index.astype(str),
            "cluster": self.assignment.to_numpy(),
        })


def _check_labels(labels, n_clusters, algorithm):
    used = np.unique(labels)
    if len(used) != n_clusters:
        raise DegenerateClusteringError(
            f"{algorithm} produced {len(used)} non-empty clusters, {n_clusters} requested",
            requested=n_clusters,
            realized=int(len(used)),
        )


def sample_distances(observations, distance, minkowski_p=2.0):
    """Condensed pairwise distances between samples (rows of ``observations``)."""
    if distance not in SAMPLE_DISTANCES:
        raise InvalidParameterError(
            f"Unsupported distance: {distance!r}. Supported: {', '.join(SAMPLE_DISTANCES)}",
            parameter="distance",
        )
    metric = SAMPLE_DISTANCES[distance]
    if metric == "minkowski":
        if minkowski_p <= 0:
            raise InvalidParameterError(f"minkowski_p must be > 0, got {minkowski_p}",
                                        parameter="minkowski_p")
        return pdist(observations, metric="minkowski", p=minkowski_p)
    if metric == "jaccard":
        # Binary distance: share of non-zero-in-either positions that differ.
        return np.nan_to_num(pdist(observations != 0, metric="jaccard"), nan=0.0)
    with np.errstate(invalid="ignore", divide="ignore"):
        distances = pdist(observations, metric=metric)
    return np.nan_to_num(distances, nan=0.0)


def probe_distances(frame, distance):
    """Condensed pairwise distances between probes (rows of ``frame``)."""
    if distance not in PROBE_DISTANCES:
        raise InvalidParameterError(
            f"Unsupported probe distance: {distance!r}. Supported: {', '.join(PROBE_DISTANCES)}",
            parameter="probe_distance",
        )
    if distance == "euclidean":
        return pdist(frame.to_numpy(dtype=np.float64), metric="euclidean")

    method = "pearson" if distance in ("pearson", "abspearson") else distance
    corr = frame.T.corr(method=method).to_numpy()
    # Constant probes have no defined correlation; treat them as uncorrelated.
    corr = np.nan_to_num(corr, nan=0.0)
    if distance == "abspearson":
        corr = np.abs(corr)
    dist = np.clip(1.0 - corr, 0.0, None)
    np.fill_diagonal(dist, 0.0)
    dist = (dist + dist.T) / 2.0
    return squareform(dist, checks=False)


def _resolve_linkage(name, parameter):
    if name not in LINKAGES:
        raise InvalidParameterError(
            f"Unsupported linkage: {name!r}. Supported: {', '.join(LINKAGES)}",
            parameter=parameter,
        )
    return LINKAGES[name]


def run_kmeans(frame, n_clusters, params: KMeansParams, verbose=True) -> ClusterResult:
    observations = frame.to_numpy(dtype=np.float64).T
    model = KMeans(
        n_clusters=n_clusters,
        init="k-means++",
        n_init=params.n_init,
        max_iter=params.max_iter,
        random_state=params.seed,
    )
    labels = model.fit_predict(observations)
    _check_labels(labels, n_clusters, "Kmeans")

    if verbose:
        print(f"    Inertia: {model.inertia_:.4f}")
        print(f"    Iterations: {model.n_iter_}")

    return ClusterResult(
        assignment=pd.Series(labels + 1, index=frame.columns, name="cluster"),
        n_clusters=n_clusters,
        algorithm="Kmeans",
        inertia=float(model.inertia_),
        params={"seed": params.seed, "n_init": params.n_init, "max_iter": params.max_iter},
    )


def run_hclust(frame, n_clusters, params: HClustParams, verbose=True) -> ClusterResult:
    sample_method = _resolve_linkage(params.linkage, "linkage")
    probe_method = _resolve_linkage(params.probe_linkage, "probe_linkage")
    if params.distance not in SAMPLE_DISTANCES:
        raise InvalidParameterError(f"Unsupported distance: {params.distance!r}",
                                    parameter="distance")
    if params.probe_distance not in PROBE_DISTANCES:
        raise InvalidParameterError(f"Unsupported probe distance: {params.probe_distance!r}",
                                    parameter="probe_distance")

    observations = frame.to_numpy(dtype=np.float64).T
    if observations.shape[0] < 2:
        labels = np.ones(observations.shape[0], dtype=int)
        sample_tree = None
    else:
        distances = sample_distances(observations, params.distance, params.minkowski_p)
        sample_tree = linkage(distances, method=sample_method)
        labels = cut_tree(sample_tree, n_clusters=n_clusters).ravel() + 1
    _check_labels(labels, n_clusters, "HClust")

    if frame.shape[0] < 2:
        probe_tree = None
        probe_order = list(frame.index)
    else:
        probe_tree = linkage(probe_distances(frame, params.probe_distance), method=probe_method)
        probe_order = list(frame.index[leaves_list(probe_tree)])

    if verbose:
        print(f"    Sample tree: {params.distance} distance, {params.linkage} linkage")
        print(f"    Probe ordering: {params.probe_distance} distance, {params.probe_linkage} linkage")

    return ClusterResult(
        assignment=pd.Series(labels.astype(int), index=frame.columns, name="cluster"),
        n_clusters=n_clusters,
        algorithm="HClust",
        probe_order=probe_order,
        sample_linkage=sample_tree,
        probe_linkage=probe_tree,
        params={
            "distance": params.distance,
            "linkage": params.linkage,
            "minkowski_p": params.minkowski_p,
            "probe_distance": params.probe_distance,
            "probe_linkage": params.probe_linkage,
        },
    )


def cluster_samples(ranked_matrix, n_clusters, algorithm="Kmeans", params=None,
                    verbose=True) -> ClusterResult:
    """
    Partition the samples of ``ranked_matrix`` into ``n_clusters`` groups.

    Args:
        ranked_matrix: RankedMatrix or DataFrame (probes x samples)
        n_clusters: Requested number of clusters
        algorithm: "Kmeans" or "HClust"
        params: KMeansParams or HClustParams; defaults per algorithm
        verbose: Print cluster sizes

    Returns:
        ClusterResult

    Raises:
        InvalidParameterError: Unknown algorithm, distance or linkage, k < 1
        DegenerateClusteringError: k > samples, or the partition leaves a label empty
    """
    frame = as_expression_frame(ranked_matrix)
    n_samples = frame.shape[1]

    if algorithm not in CLUSTER_ALGORITHMS:
        raise InvalidParameterError(
            f"Unknown clustering algorithm: {algorithm!r}. Supported: {', '.join(CLUSTER_ALGORITHMS)}",
            parameter="algorithm",
        )
    if isinstance(n_clusters, bool) or not isinstance(n_clusters, numbers.Integral) or n_clusters < 1:
        raise InvalidParameterError(f"Cluster count must be a positive integer, got {n_clusters!r}",
                                    parameter="n_clusters")
    n_clusters = int(n_clusters)
    if n_clusters > n_samples:
        raise DegenerateClusteringError(
            f"Cannot form {n_clusters} clusters from {n_samples} samples",
            requested=n_clusters,
            realized=n_samples,
        )

    if verbose:
        print(f"\n[Clustering] {algorithm}: {n_samples} samples x {frame.shape[0]} probes "
              f"into {n_clusters} clusters")

    if algorithm == "Kmeans":
        if params is None:
            params = KMeansParams()
        elif not isinstance(params, KMeansParams):
            raise InvalidParameterError("Kmeans expects KMeansParams", parameter="params")
        result = run_kmeans(frame, n_clusters, params, verbose=verbose)
    else:
        if params is None:
            params = HClustParams()
        elif not isinstance(params, HClustParams):
            raise InvalidParameterError("HClust expects HClustParams", parameter="params")
        result = run_hclust(frame, n_clusters, params, verbose=verbose)

    if verbose:
        sizes = result.cluster_sizes()
        print(f"    Cluster sizes: {sizes}")

    return result
