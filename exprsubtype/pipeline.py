"""
Pipeline orchestration.

Runs the five stages in order:
1. Probe count selection
2. Probe ranking
3. Cluster count selection
4. Sample clustering
5. Cluster summary (average expression, survival when clinical data is given)
"""

import os
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import pandas as pd
import psutil

from .clustering import (
    ClusterResult,
    GapResult,
    GapStatistic,
    cluster_samples,
    compute_gap_statistic,
    select_cluster_count,
)
from .config import PipelineSettings
from .evaluation import SurvivalResult, average_expression, survival_analysis
from .exceptions import InsufficientSurvivalDataError, MissingClinicalDataError
from .feature_selection import (
    AdaptiveCount,
    MixtureReport,
    RankedMatrix,
    fit_adaptive_mixture,
    rank_probes,
    select_probe_count,
)
from .preprocessing import validate_expression_matrix
from .utils import check_cancelled


@dataclass
class PipelineResult:
    """Everything one pipeline run produced."""

    probe_count: int
    ranked: RankedMatrix
    n_clusters: int
    cluster_result: ClusterResult
    averages: pd.DataFrame
    gap_result: Optional[GapResult] = None
    mixture_report: Optional[MixtureReport] = None
    survival: Optional[SurvivalResult] = None
    survival_error: Optional[str] = None
    runtime_info: Dict[str, dict] = field(default_factory=dict)


class _StageTimer:
    """Records runtime and RSS delta of one stage into ``runtime_info``."""

    def __init__(self, runtime_info, stage, verbose):
        self.runtime_info = runtime_info
        self.stage = stage
        self.verbose = verbose
        self.process = psutil.Process(os.getpid())

    def __enter__(self):
        self.mem_before = self.process.memory_info().rss / 1024 / 1024  # MB
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc, tb):
        runtime_seconds = time.time() - self.start_time
        mem_after = self.process.memory_info().rss / 1024 / 1024  # MB
        self.runtime_info[self.stage] = {
            'runtime_seconds': runtime_seconds,
            'memory_used_mb': mem_after - self.mem_before,
            'peak_memory_mb': mem_after,
            'completed': exc_type is None,
        }
        if self.verbose and exc_type is None:
            print(f"    [{self.stage}] {runtime_seconds:.2f}s, "
                  f"memory {mem_after - self.mem_before:+.2f} MB")
        return False


def run_pipeline(matrix, settings: PipelineSettings, clinical_df=None, cancel_token=None,
                 verbose=True) -> PipelineResult:
    """
    Run the full pipeline on one expression matrix.

    Args:
        matrix: ExpressionMatrix (probes x samples)
        settings: PipelineSettings
        clinical_df: Optional clinical DataFrame [sample_id, OS_time, OS_event]
        cancel_token: Optional CancellationToken, checked between and inside stages
        verbose: Print stage progress

    Returns:
        PipelineResult. A survival failure caused by the data (no clinical
        match, too few clusters or events) leaves ``survival`` as None and
        sets ``survival_error``; all earlier results are kept.

    Raises:
        InvalidParameterError, InvalidDataError, DegenerateClusteringError,
        EmptyClusterError: from the stage that failed
        OperationCancelled: If the token is cancelled
    """
    matrix = validate_expression_matrix(matrix)
    runtime_info = {}

    if verbose:
        print("\n" + "=" * 80)
        print("EXPRESSION SUBTYPE PIPELINE")
        print("=" * 80)
        print(f"Input: {matrix.shape[0]:,} probes x {matrix.shape[1]:,} samples")

    check_cancelled(cancel_token, "probe_count")
    mixture_report = None
    with _StageTimer(runtime_info, "probe_count", verbose):
        if isinstance(settings.selection_mode, AdaptiveCount):
            mixture_report = fit_adaptive_mixture(matrix, settings.selection_mode,
                                                  cancel_token=cancel_token, verbose=verbose)
            probe_count = mixture_report.n_selected
        else:
            probe_count = select_probe_count(matrix, settings.selection_mode,
                                             cancel_token=cancel_token, verbose=verbose)

    check_cancelled(cancel_token, "ranking")
    with _StageTimer(runtime_info, "ranking", verbose):
        ranked = rank_probes(matrix, probe_count, settings.ranking_method, verbose=verbose)

    check_cancelled(cancel_token, "cluster_count")
    gap_result = None
    with _StageTimer(runtime_info, "cluster_count", verbose):
        mode = settings.cluster_count_mode
        if isinstance(mode, GapStatistic):
            gap_result = compute_gap_statistic(
                ranked.data,
                k_max=mode.k_max,
                n_references=mode.n_references,
                seed=mode.seed,
                n_jobs=mode.n_jobs,
                cancel_token=cancel_token,
                verbose=verbose,
            )
            n_clusters = gap_result.optimal_k
        else:
            n_clusters = select_cluster_count(ranked, mode, cancel_token=cancel_token,
                                              verbose=verbose)

    check_cancelled(cancel_token, "clustering")
    with _StageTimer(runtime_info, "clustering", verbose):
        cluster_result = cluster_samples(ranked, n_clusters, algorithm=settings.algorithm,
                                         params=settings.cluster_params, verbose=verbose)

    check_cancelled(cancel_token, "summary")
    with _StageTimer(runtime_info, "summary", verbose):
        averages = average_expression(ranked, cluster_result, verbose=verbose)

    survival = None
    survival_error = None
    if clinical_df is not None:
        check_cancelled(cancel_token, "survival")
        try:
            with _StageTimer(runtime_info, "survival", verbose):
                survival = survival_analysis(cluster_result, clinical_df,
                                             cox_penalizer=settings.cox_penalizer,
                                             verbose=verbose)
        except (MissingClinicalDataError, InsufficientSurvivalDataError) as e:
            survival_error = f"{type(e).__name__}: {e}"
            print(f"[Warning] Survival analysis skipped: {e}")

    return PipelineResult(
        probe_count=probe_count,
        ranked=ranked,
        n_clusters=n_clusters,
        cluster_result=cluster_result,
        averages=averages,
        gap_result=gap_result,
        mixture_report=mixture_report,
        survival=survival,
        survival_error=survival_error,
        runtime_info=runtime_info,
    )
