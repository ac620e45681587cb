"""
Main Orchestration Script

Runs the complete expression subtype pipeline:
1. Probe count selection and probe ranking
2. Cluster count selection and sample clustering
3. Per-cluster average expression
4. Survival analysis (when clinical data is configured)
5. Visualization

Each step writes its outputs under --output_dir; a step run on its own
reloads what it needs from the outputs of the earlier steps.
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

from exprsubtype.clustering import ClusterResult, GapStatistic, cluster_samples
from exprsubtype.clustering import compute_gap_statistic, select_cluster_count
from exprsubtype.config import build_pipeline_settings, load_config
from exprsubtype.evaluation import average_expression, survival_analysis
from exprsubtype.exceptions import (
    InsufficientSurvivalDataError,
    MissingClinicalDataError,
    PipelineError,
)
from exprsubtype.feature_selection import (
    AdaptiveCount,
    RankedMatrix,
    fit_adaptive_mixture,
    rank_probes,
    select_probe_count,
)
from exprsubtype.io import (
    save_average_expression,
    save_cluster_assignment,
    save_mixture_report,
    save_ranked_matrix,
    save_runtime_info,
    save_survival_results,
)
from exprsubtype.pipeline import run_pipeline
from exprsubtype.preprocessing import load_clinical_data, load_expression_matrix
from exprsubtype.visualization import plot_cluster_heatmap, plot_gap_statistic, plot_kaplan_meier

ALL_STEPS = ['rank', 'cluster', 'summarize', 'survival', 'visualize']


def _load_ranked(path, method):
    table = pd.read_csv(path, index_col=0)
    table.index = table.index.astype(str)
    scores = table.pop('score')
    return RankedMatrix(data=table, scores=scores, method=method)


def _load_assignment(path):
    table = pd.read_csv(path, dtype={'sample_id': str})
    assignment = pd.Series(table['cluster'].to_numpy(), index=table['sample_id'], name='cluster')
    return ClusterResult(assignment=assignment, n_clusters=int(assignment.nunique()),
                         algorithm='reloaded')


def _load_clinical(input_cfg):
    clinical_path = input_cfg.get('clinical')
    if not clinical_path:
        return None
    if not Path(clinical_path).exists():
        print(f"[Warning] Clinical file not found: {clinical_path}; survival analysis skipped")
        return None
    columns = input_cfg.get('clinical_columns', {}) or {}
    return load_clinical_data(clinical_path, sep=input_cfg.get('sep', '\t'), **columns)


def run_full(matrix, settings, clinical_df, output_dir, dataset_name, make_plots):
    """Run every stage in memory and write all outputs."""
    result = run_pipeline(matrix, settings, clinical_df=clinical_df)

    save_ranked_matrix(result.ranked, output_dir / 'ranked_matrix.csv')
    save_cluster_assignment(result.cluster_result, output_dir / 'cluster_assignment.csv')
    save_average_expression(result.averages, output_dir / 'average_expression.csv',
                            probe_order=result.cluster_result.probe_order)
    save_runtime_info(result.runtime_info, output_dir / f'{dataset_name}_runtime_info.json')
    if result.mixture_report is not None:
        save_mixture_report(result.mixture_report, output_dir / 'mixture')
    if result.survival is not None:
        save_survival_results(result.survival, output_dir / 'survival')

    if make_plots:
        plot_cluster_heatmap(result.ranked, result.cluster_result,
                             output_dir / 'figures' / f'{dataset_name}_heatmap.png')
        if result.gap_result is not None:
            plot_gap_statistic(result.gap_result, output_dir / 'figures' / f'{dataset_name}_gap.png')
        if result.survival is not None:
            plot_kaplan_meier(result.survival, output_dir / 'figures', dataset_name=dataset_name)

    return result


def main():
    parser = argparse.ArgumentParser(
        description='Expression subtype pipeline: probe ranking, clustering and survival'
    )
    parser.add_argument('--config', type=str, default='config/config.yml', help='Config file')
    parser.add_argument('--steps', nargs='+', choices=ALL_STEPS, help='Run specific steps only')
    parser.add_argument('--matrix', type=str, default=None, help='Override input.matrix')
    parser.add_argument('--clinical', type=str, default=None, help='Override input.clinical')
    parser.add_argument('--output_dir', type=str, default=None, help='Override output.output_dir')
    parser.add_argument('--no_plots', action='store_true', help='Skip figure generation')

    args = parser.parse_args()

    # Load configuration
    config = load_config(args.config)
    input_cfg = dict(config.get('input', {}) or {})
    output_cfg = config.get('output', {}) or {}
    if args.matrix:
        input_cfg['matrix'] = args.matrix
    if args.clinical:
        input_cfg['clinical'] = args.clinical

    output_dir = Path(args.output_dir or output_cfg.get('output_dir', 'results'))
    output_dir.mkdir(parents=True, exist_ok=True)
    dataset_name = output_cfg.get('dataset_name', 'expression')
    make_plots = output_cfg.get('plots', True) and not args.no_plots

    print("\n" + "="*80)
    print("EXPRESSION SUBTYPE PIPELINE")
    print("="*80)

    try:
        settings = build_pipeline_settings(config)
    except PipelineError as e:
        print(f"[Error] Invalid configuration: {e}")
        return 2

    sep = input_cfg.get('sep', '\t')
    matrix_path = input_cfg.get('matrix')
    if not matrix_path or not Path(matrix_path).exists():
        print(f"[Error] Expression matrix not found: {matrix_path}")
        return 1

    matrix = load_expression_matrix(matrix_path, sep=sep)
    clinical_df = _load_clinical(input_cfg)

    if not args.steps:
        run_full(matrix, settings, clinical_df, output_dir, dataset_name, make_plots)
        print("\n[Done] All outputs written to", output_dir)
        return 0

    steps_to_run = args.steps
    ranked_file = output_dir / 'ranked_matrix.csv'
    assignment_file = output_dir / 'cluster_assignment.csv'
    ranked = None
    cluster_result = None
    gap_result = None
    survival = None

    # Step 1: Probe selection and ranking
    if 'rank' in steps_to_run:
        print("\n" + "="*80)
        print("STEP 1: PROBE SELECTION AND RANKING")
        print("="*80)
        if isinstance(settings.selection_mode, AdaptiveCount):
            report = fit_adaptive_mixture(matrix, settings.selection_mode)
            save_mixture_report(report, output_dir / 'mixture')
            count = report.n_selected
        else:
            count = select_probe_count(matrix, settings.selection_mode)
        ranked = rank_probes(matrix, count, settings.ranking_method)
        save_ranked_matrix(ranked, ranked_file)

    # Step 2: Cluster count and clustering
    if 'cluster' in steps_to_run:
        print("\n" + "="*80)
        print("STEP 2: SAMPLE CLUSTERING")
        print("="*80)
        if ranked is None:
            ranked = _load_ranked(ranked_file, settings.ranking_method)
        mode = settings.cluster_count_mode
        if isinstance(mode, GapStatistic):
            gap_result = compute_gap_statistic(ranked.data, k_max=mode.k_max,
                                               n_references=mode.n_references,
                                               seed=mode.seed, n_jobs=mode.n_jobs)
            gap_result.to_frame().to_csv(output_dir / 'gap_statistic.csv', index=False)
            n_clusters = gap_result.optimal_k
        else:
            n_clusters = select_cluster_count(ranked, mode)
        cluster_result = cluster_samples(ranked, n_clusters, algorithm=settings.algorithm,
                                         params=settings.cluster_params)
        save_cluster_assignment(cluster_result, assignment_file)

    # Step 3: Average expression per cluster
    if 'summarize' in steps_to_run:
        print("\n" + "="*80)
        print("STEP 3: CLUSTER SUMMARY")
        print("="*80)
        if ranked is None:
            ranked = _load_ranked(ranked_file, settings.ranking_method)
        if cluster_result is None:
            cluster_result = _load_assignment(assignment_file)
        averages = average_expression(ranked, cluster_result)
        save_average_expression(averages, output_dir / 'average_expression.csv',
                                probe_order=cluster_result.probe_order)

    # Step 4: Survival analysis
    if 'survival' in steps_to_run:
        print("\n" + "="*80)
        print("STEP 4: SURVIVAL ANALYSIS")
        print("="*80)
        if clinical_df is None:
            print("[Warning] No clinical data configured; survival step skipped")
        else:
            if cluster_result is None:
                cluster_result = _load_assignment(assignment_file)
            try:
                survival = survival_analysis(cluster_result, clinical_df,
                                             cox_penalizer=settings.cox_penalizer)
                save_survival_results(survival, output_dir / 'survival')
            except (MissingClinicalDataError, InsufficientSurvivalDataError) as e:
                print(f"[Warning] Survival analysis skipped: {e}")

    # Step 5: Visualization
    if 'visualize' in steps_to_run and make_plots:
        print("\n" + "="*80)
        print("STEP 5: VISUALIZATION")
        print("="*80)
        figures_dir = output_dir / 'figures'
        if ranked is None:
            ranked = _load_ranked(ranked_file, settings.ranking_method)
        if cluster_result is None:
            cluster_result = _load_assignment(assignment_file)
        plot_cluster_heatmap(ranked, cluster_result, figures_dir / f'{dataset_name}_heatmap.png')
        if gap_result is not None:
            plot_gap_statistic(gap_result, figures_dir / f'{dataset_name}_gap.png')
        if survival is not None:
            plot_kaplan_meier(survival, figures_dir, dataset_name=dataset_name)

    print("\n[Done] Outputs written to", output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
