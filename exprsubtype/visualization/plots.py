"""
Plotting adapters: Kaplan–Meier curves, clustered heatmap and gap curve.
"""

from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

sns.set_theme(style="whitegrid", context="paper", palette="Set2")


def plot_kaplan_meier(survival, output_dir="results/survival", dataset_name=None):
    """
    Plot the per-cluster Kaplan–Meier curves of a SurvivalResult.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    plt.figure(figsize=(9, 6))
    for label, curve in sorted(survival.km_curves.items()):
        n = survival.cluster_counts.get(label, {}).get("n")
        name = f"Cluster {label}" + (f" (n={n})" if n is not None else "")
        plt.step(curve["time"], curve["survival_probability"], where="post", label=name)

    title = "Kaplan–Meier Survival by Cluster"
    if dataset_name:
        title += f" - {dataset_name}"
    plt.title(f"{title}\nlog-rank p = {survival.p_value:.3g}")
    plt.xlabel("Time (months)")
    plt.ylabel("Survival probability")
    plt.ylim(0, 1.05)
    plt.grid(True)
    plt.legend()

    filename = f"{dataset_name}_km_survival.png" if dataset_name else "km_survival.png"
    plt.savefig(output_dir / filename, dpi=300, bbox_inches="tight")
    print(f"[Saved] Kaplan–Meier plot → {output_dir / filename}")
    plt.close()
    return output_dir / filename


def plot_cluster_heatmap(ranked_matrix, cluster_result, output_file, max_probes=200):
    """
    Heatmap of the reduced matrix, samples grouped by cluster.

    Probes follow the hierarchical probe ordering when the clustering
    produced one, otherwise the ranking order. Rows are z-scored for display.
    """
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    frame = getattr(ranked_matrix, "data", ranked_matrix)
    assignment = cluster_result.assignment
    probes = cluster_result.probe_order or list(frame.index)
    probes = probes[:max_probes]
    samples = assignment.sort_values(kind="stable").index

    block = frame.loc[probes, samples]
    sd = block.std(axis=1).replace(0, np.nan)
    z = block.sub(block.mean(axis=1), axis=0).div(sd, axis=0).fillna(0.0)

    fig, ax = plt.subplots(figsize=(12, max(4, len(probes) * 0.05 + 3)))
    sns.heatmap(z, cmap="RdBu_r", center=0, vmin=-3, vmax=3, ax=ax,
                xticklabels=len(samples) <= 60, yticklabels=len(probes) <= 60,
                cbar_kws={"label": "z-score"})

    # Cluster boundaries
    sizes = assignment.value_counts().sort_index().to_numpy()
    for edge in np.cumsum(sizes)[:-1]:
        ax.axvline(edge, color="black", linewidth=1.5)

    ax.set_title(f"{cluster_result.algorithm}: {cluster_result.n_clusters} clusters, "
                 f"{len(probes)} probes")
    ax.set_xlabel("Samples (grouped by cluster)")
    ax.set_ylabel("Probes")
    plt.tight_layout()
    plt.savefig(output_file, dpi=300, bbox_inches="tight")
    print(f"[Saved] Heatmap → {output_file}")
    plt.close(fig)
    return output_file


def plot_gap_statistic(gap_result, output_file):
    """Gap(k) with ± s_k band and the selected k marked."""
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    ks = gap_result.k_values
    plt.figure(figsize=(6, 4))
    plt.plot(ks, gap_result.gap, marker="o", label="Gap(k)")
    plt.fill_between(ks, gap_result.gap - gap_result.s_k, gap_result.gap + gap_result.s_k,
                     color="gray", alpha=0.2, label="± s(k)")
    plt.axvline(gap_result.optimal_k, color="red", linestyle="--",
                label=f"k* = {gap_result.optimal_k}")
    plt.xlabel("Number of clusters k")
    plt.ylabel("Gap")
    plt.legend()
    plt.tight_layout()
    plt.savefig(output_file, dpi=200)
    print(f"[Saved] Gap statistic curve → {output_file}")
    plt.close()
    return output_file
