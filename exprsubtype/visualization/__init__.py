"""Visualization module for survival curves, heatmaps and gap curves."""

from .plots import plot_cluster_heatmap, plot_gap_statistic, plot_kaplan_meier

__all__ = [
    'plot_cluster_heatmap',
    'plot_gap_statistic',
    'plot_kaplan_meier',
]
