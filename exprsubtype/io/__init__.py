"""Output adapters for pipeline results."""

from .writers import (
    save_average_expression,
    save_cluster_assignment,
    save_mixture_report,
    save_ranked_matrix,
    save_runtime_info,
    save_survival_results,
)

__all__ = [
    'save_average_expression',
    'save_cluster_assignment',
    'save_mixture_report',
    'save_ranked_matrix',
    'save_runtime_info',
    'save_survival_results',
]
