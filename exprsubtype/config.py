"""
Configuration loading.

Reads ``config/config.yml`` and turns its stage sections into the typed
parameters the pipeline stages take.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

import yaml

from .clustering import (
    CLUSTER_ALGORITHMS,
    ClusterCountMode,
    FixedClusters,
    GapStatistic,
    HClustParams,
    KMeansParams,
)
from .exceptions import ConflictingParametersError, InvalidParameterError
from .feature_selection import RANKING_METHODS, SelectionMode, selection_mode_from_options


def load_config(config_path='config/config.yml'):
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


@dataclass
class PipelineSettings:
    """Typed parameters for one pipeline run."""

    selection_mode: SelectionMode
    ranking_method: str = "SD_Rank"
    cluster_count_mode: ClusterCountMode = field(default_factory=lambda: FixedClusters(3))
    algorithm: str = "Kmeans"
    cluster_params: Optional[Union[KMeansParams, HClustParams]] = None
    cox_penalizer: float = 0.0


def _build(cls, options, section):
    try:
        return cls(**(options or {}))
    except TypeError as e:
        raise InvalidParameterError(f"{section}: {e}", parameter=section) from None


def _cluster_count_mode(section):
    fixed = section.get('k')
    gap = section.get('gap_statistic', False)
    if fixed is not None and gap:
        raise ConflictingParametersError(
            "cluster_count: set either 'k' or 'gap_statistic', not both",
            parameters=["k", "gap_statistic"],
        )
    if gap:
        return _build(GapStatistic, section.get("gap_options"), "cluster_count.gap_options")
    if fixed is None:
        raise InvalidParameterError("cluster_count: one of 'k' or 'gap_statistic' is required",
                                    parameter="cluster_count")
    return FixedClusters(fixed)


def build_pipeline_settings(config) -> PipelineSettings:
    """
    Convert a loaded configuration dict into PipelineSettings.

    Raises:
        ConflictingParametersError: More than one probe selection or cluster
            count option is set
        InvalidParameterError: Missing or unknown option values
    """
    selection = config.get('probe_selection', {}) or {}
    selection_mode = selection_mode_from_options(
        fixed=selection.get('fixed'),
        percent=selection.get('percent'),
        poly=bool(selection.get('poly', False)),
        adaptive=bool(selection.get('adaptive', False)),
        adaptive_options=selection.get('adaptive_options'),
    )

    ranking_method = (config.get('ranking', {}) or {}).get('method', 'SD_Rank')
    if ranking_method not in RANKING_METHODS:
        raise InvalidParameterError(
            f"Unknown ranking method: {ranking_method!r}. Supported: {', '.join(RANKING_METHODS)}",
            parameter="ranking.method",
        )

    count_mode = _cluster_count_mode(config.get('cluster_count', {}) or {})

    clustering = config.get('clustering', {}) or {}
    algorithm = clustering.get('algorithm', 'Kmeans')
    if algorithm not in CLUSTER_ALGORITHMS:
        raise InvalidParameterError(
            f"Unknown clustering algorithm: {algorithm!r}. Supported: {', '.join(CLUSTER_ALGORITHMS)}",
            parameter="clustering.algorithm",
        )
    if algorithm == "Kmeans":
        params = _build(KMeansParams, clustering.get("kmeans"), "clustering.kmeans")
    else:
        params = _build(HClustParams, clustering.get("hclust"), "clustering.hclust")

    survival = config.get('survival', {}) or {}

    return PipelineSettings(
        selection_mode=selection_mode,
        ranking_method=ranking_method,
        cluster_count_mode=count_mode,
        algorithm=algorithm,
        cluster_params=params,
        cox_penalizer=float(survival.get('cox_penalizer', 0.0)),
    )
