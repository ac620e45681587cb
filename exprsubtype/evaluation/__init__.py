"""Evaluation module: per-cluster averages and survival analysis."""

from .summary import average_expression, check_cluster_labels, cluster_sizes
from .survival_evaluator import (
    ClinicalRecord,
    SurvivalResult,
    clinical_frame_from_records,
    fit_kaplan_meier,
    prepare_survival_dataframe,
    run_cox,
    run_logrank,
    survival_analysis,
)

__all__ = [
    'average_expression',
    'check_cluster_labels',
    'cluster_sizes',
    'ClinicalRecord',
    'SurvivalResult',
    'clinical_frame_from_records',
    'fit_kaplan_meier',
    'prepare_survival_dataframe',
    'run_cox',
    'run_logrank',
    'survival_analysis',
]
