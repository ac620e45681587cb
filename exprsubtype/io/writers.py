"""
Output adapters.

Core stages return plain data; these functions persist it. Nothing in the
core calls them.
"""

import json
from pathlib import Path

import numpy as np
import pandas as pd


def _prepare(output_file):
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    return output_file


def save_cluster_assignment(cluster_result, output_file):
    """Write [sample_id, cluster] as CSV."""
    output_file = _prepare(output_file)
    assignment = getattr(cluster_result, "assignment", cluster_result)
    frame = pd.DataFrame({"sample_id": assignment.index.astype(str),
                          "cluster": assignment.to_numpy()})
    frame.to_csv(output_file, index=False)
    print(f"[Saved] Cluster assignment → {output_file}")
    return output_file


def save_ranked_matrix(ranked, output_file):
    """Write the reduced matrix with its score column first."""
    output_file = _prepare(output_file)
    table = ranked.data.copy()
    table.insert(0, "score", ranked.scores)
    table.index.name = "probe_id"
    table.to_csv(output_file)
    print(f"[Saved] Ranked matrix ({ranked.method}) → {output_file}")
    return output_file


def save_average_expression(averages, output_file, probe_order=None):
    """Write probes x clusters averages, optionally in dendrogram probe order."""
    output_file = _prepare(output_file)
    table = averages.loc[probe_order] if probe_order is not None else averages
    table = table.rename(columns=lambda c: f"cluster_{c}")
    table.index.name = "probe_id"
    table.to_csv(output_file)
    print(f"[Saved] Average expression → {output_file}")
    return output_file


def save_mixture_report(report, output_dir):
    """
    Write the adaptive probe-count mixture diagnostics.

    Files:
        mixture_components.csv  - one row per component [component, mean, variance, weight, n_probes, selected]
        mixture_bic.csv         - BIC per component count tried
        mixture_assignments.csv - [probe_id, component]
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    components_path = output_dir / "mixture_components.csv"
    components = report.to_frame()
    components["selected"] = components["component"] == report.high_component
    components.to_csv(components_path, index=False)
    print(f"[Saved] Mixture components → {components_path}")

    bic_path = output_dir / "mixture_bic.csv"
    pd.DataFrame({"n_components": list(report.bic), "bic": list(report.bic.values())}).to_csv(
        bic_path, index=False)
    print(f"[Saved] Mixture BIC → {bic_path}")

    assignments_path = output_dir / "mixture_assignments.csv"
    report.assignments.rename_axis("probe_id").rename("component").to_csv(assignments_path)
    print(f"[Saved] Mixture assignments → {assignments_path}")
    return output_dir


def save_survival_results(survival, output_dir):
    """
    Write the survival tables.

    Files:
        logrank_results.csv  - pairwise log-rank tests
        cox_summary.csv      - Cox model (when it converged)
        km_curves.csv        - long table [cluster, time, survival_probability]
        survival_summary.json
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logrank_path = output_dir / "logrank_results.csv"
    survival.pairwise_logrank.to_csv(logrank_path, index=False)
    print(f"[Saved] Log-rank results → {logrank_path}")

    if survival.cox_summary is not None:
        summary_path = output_dir / "cox_summary.csv"
        survival.cox_summary.to_csv(summary_path)
        print(f"[Saved] Cox model → {summary_path}")

    curves = pd.concat(
        [curve.assign(cluster=label) for label, curve in survival.km_curves.items()],
        ignore_index=True,
    )[["cluster", "time", "survival_probability"]]
    curves_path = output_dir / "km_curves.csv"
    curves.to_csv(curves_path, index=False)
    print(f"[Saved] Kaplan–Meier curves → {curves_path}")

    summary = {
        "p_value": survival.p_value,
        "test_statistic": survival.test_statistic,
        "cox_p_value": survival.cox_p_value,
        "cox_error": survival.cox_error,
        "n_samples": survival.n_samples,
        "n_events": survival.n_events,
        "n_dropped": survival.n_dropped,
        "dropped_samples": survival.dropped_samples,
        # median not reached (curve stays above 0.5) is written as null
        "median_survival": {str(k): float(v) if np.isfinite(v) else None
                            for k, v in survival.median_survival.items()},
        "cluster_counts": {str(k): v for k, v in survival.cluster_counts.items()},
    }
    summary_path = output_dir / "survival_summary.json"
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)
    print(f"[Saved] Survival summary → {summary_path}")
    return output_dir


def save_runtime_info(runtime_info, output_file):
    output_file = _prepare(output_file)
    with open(output_file, 'w') as f:
        json.dump(runtime_info, f, indent=2)
    print(f"[Saved] Runtime info → {output_file}")
    return output_file
