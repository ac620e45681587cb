"""Tests for the file loaders, writers and plots."""
import json

import numpy as np
import pandas as pd
import pytest

from conftest import make_matrix
from exprsubtype.clustering import HClustParams, cluster_samples
from exprsubtype.clustering import compute_gap_statistic
from exprsubtype.evaluation import average_expression, survival_analysis
from exprsubtype.exceptions import InvalidDataError
from exprsubtype.feature_selection import fit_variability_mixture, rank_probes
from exprsubtype.io import (
    save_average_expression,
    save_cluster_assignment,
    save_mixture_report,
    save_ranked_matrix,
    save_runtime_info,
    save_survival_results,
)
from exprsubtype.preprocessing import load_clinical_data, load_expression_matrix
from exprsubtype.visualization import plot_cluster_heatmap, plot_gap_statistic, plot_kaplan_meier


class TestLoadExpressionMatrix:
    """Tests for load_expression_matrix."""

    def test_loads_tab_separated(self, tmp_path):
        path = tmp_path / "matrix.tsv"
        path.write_text("probe\tA\tB\n1007_s_at\t1.5\t2.0\n1053_at\t3.0\t4.25\n")
        matrix = load_expression_matrix(path)
        assert list(matrix.index) == ["1007_s_at", "1053_at"]
        assert list(matrix.columns) == ["A", "B"]
        assert matrix.loc["1053_at", "B"] == 4.25

    def test_non_numeric_value_rejected(self, tmp_path):
        path = tmp_path / "matrix.tsv"
        path.write_text("probe\tA\tB\np1\t1.5\tabc\n")
        with pytest.raises(InvalidDataError):
            load_expression_matrix(path)

    def test_missing_value_rejected(self, tmp_path):
        path = tmp_path / "matrix.tsv"
        path.write_text("probe\tA\tB\np1\t1.5\t\n")
        with pytest.raises(InvalidDataError):
            load_expression_matrix(path)


class TestLoadClinicalData:
    """Tests for load_clinical_data."""

    def test_parses_event_spellings(self, tmp_path):
        path = tmp_path / "clinical.tsv"
        path.write_text(
            "patient\tmonths\tstatus\n"
            "A\t10\tDead\nB\t20\tAlive\nC\t5\t1\nD\t7\tFALSE\nE\t8\t1:DECEASED\n"
        )
        clinical = load_clinical_data(path, id_col="patient", time_col="months",
                                      event_col="status")
        assert list(clinical.columns) == ["sample_id", "OS_time", "OS_event"]
        assert clinical["OS_event"].tolist() == [True, False, True, False, True]

    def test_unknown_event_rejected(self, tmp_path):
        path = tmp_path / "clinical.tsv"
        path.write_text("sample_id\tOS_time\tOS_event\nA\t10\tmaybe\n")
        with pytest.raises(InvalidDataError):
            load_clinical_data(path)

    def test_missing_column_rejected(self, tmp_path):
        path = tmp_path / "clinical.tsv"
        path.write_text("sample_id\tOS_time\nA\t10\n")
        with pytest.raises(InvalidDataError):
            load_clinical_data(path)


class TestWriters:
    """Tests for the CSV/JSON writers."""

    def test_cluster_assignment(self, two_group_matrix, tmp_path):
        result = cluster_samples(two_group_matrix, 2, "Kmeans", verbose=False)
        path = save_cluster_assignment(result, tmp_path / "out" / "clusters.csv")
        table = pd.read_csv(path)
        assert list(table.columns) == ["sample_id", "cluster"]
        assert len(table) == 10

    def test_ranked_matrix(self, random_matrix, tmp_path):
        ranked = rank_probes(random_matrix, 5, "SD_Rank", verbose=False)
        path = save_ranked_matrix(ranked, tmp_path / "ranked.csv")
        table = pd.read_csv(path, index_col=0)
        assert table.columns[0] == "score"
        assert list(table.index) == ranked.probes

    def test_average_expression_in_probe_order(self, three_group_matrix, tmp_path):
        result = cluster_samples(three_group_matrix, 3, "HClust", HClustParams(), verbose=False)
        averages = average_expression(three_group_matrix, result, verbose=False)
        path = save_average_expression(averages, tmp_path / "avg.csv",
                                       probe_order=result.probe_order)
        table = pd.read_csv(path, index_col=0)
        assert list(table.index) == result.probe_order
        assert list(table.columns) == ["cluster_1", "cluster_2", "cluster_3"]

    def test_survival_results(self, separated_clinical, tmp_path):
        assignment, clinical = separated_clinical
        survival = survival_analysis(assignment, clinical, verbose=False)
        save_survival_results(survival, tmp_path / "survival")
        summary = json.loads((tmp_path / "survival" / "survival_summary.json").read_text())
        assert summary["p_value"] == pytest.approx(survival.p_value)
        curves = pd.read_csv(tmp_path / "survival" / "km_curves.csv")
        assert set(curves["cluster"]) == {1, 2}
        assert (tmp_path / "survival" / "logrank_results.csv").exists()

    def test_unreached_median_written_as_null(self, separated_clinical, tmp_path):
        assignment, clinical = separated_clinical
        survival = survival_analysis(assignment, clinical, verbose=False)
        save_survival_results(survival, tmp_path)
        text = (tmp_path / "survival_summary.json").read_text()
        assert "Infinity" not in text
        summary = json.loads(text)
        assert summary["median_survival"]["2"] is None
        assert summary["median_survival"]["1"] == pytest.approx(survival.median_survival[1])

    def test_mixture_report(self, tmp_path):
        rng = np.random.default_rng(7)
        matrix = make_matrix(np.vstack([rng.normal(8.0, 0.1, size=(150, 20)),
                                        rng.normal(8.0, 3.0, size=(50, 20))]))
        report = fit_variability_mixture(matrix, max_components=3, verbose=False)
        save_mixture_report(report, tmp_path / "mixture")
        components = pd.read_csv(tmp_path / "mixture" / "mixture_components.csv")
        assert len(components) == report.n_components
        assert components["selected"].sum() == 1
        assert components.loc[components["selected"], "n_probes"].item() == report.n_selected
        bic = pd.read_csv(tmp_path / "mixture" / "mixture_bic.csv")
        assert bic["n_components"].tolist() == [1, 2, 3]
        assignments = pd.read_csv(tmp_path / "mixture" / "mixture_assignments.csv")
        assert list(assignments.columns) == ["probe_id", "component"]
        assert assignments["probe_id"].tolist() == list(matrix.index)

    def test_runtime_info(self, tmp_path):
        path = save_runtime_info({"ranking": {"runtime_seconds": 0.5}}, tmp_path / "rt.json")
        assert json.loads(path.read_text())["ranking"]["runtime_seconds"] == 0.5


class TestPlots:
    """Smoke tests: every plot writes a PNG."""

    def test_heatmap(self, three_group_matrix, tmp_path):
        result = cluster_samples(three_group_matrix, 3, "HClust", verbose=False)
        path = plot_cluster_heatmap(three_group_matrix, result, tmp_path / "heatmap.png")
        assert path.exists()

    def test_gap_curve(self, three_group_matrix, tmp_path):
        gap = compute_gap_statistic(three_group_matrix, k_max=4, n_references=3, verbose=False)
        assert plot_gap_statistic(gap, tmp_path / "gap.png").exists()

    def test_kaplan_meier(self, separated_clinical, tmp_path):
        assignment, clinical = separated_clinical
        survival = survival_analysis(assignment, clinical, verbose=False)
        path = plot_kaplan_meier(survival, tmp_path, dataset_name="toy")
        assert path.name == "toy_km_survival.png"
        assert path.exists()
