"""Tests for cluster count selection and sample clustering."""
import numpy as np
import pandas as pd
import pytest

from conftest import make_matrix
from exprsubtype.clustering import (
    LINKAGES,
    SAMPLE_DISTANCES,
    ClusterResult,
    FixedClusters,
    GapStatistic,
    HClustParams,
    KMeansParams,
    cluster_samples,
    compute_gap_statistic,
    select_cluster_count,
)
from exprsubtype.clustering.cluster_count import choose_k_one_se
from exprsubtype.exceptions import (
    DegenerateClusteringError,
    InvalidDataError,
    InvalidParameterError,
    OperationCancelled,
)
from exprsubtype.feature_selection import rank_probes
from exprsubtype.utils import CancellationToken


def same_partition(labels, expected):
    """True when two labelings describe the same partition up to relabeling."""
    table = pd.crosstab(np.asarray(labels), np.asarray(expected))
    return ((table > 0).sum(axis=0) == 1).all() and ((table > 0).sum(axis=1) == 1).all()


class TestFixedClusters:
    """Tests for FixedClusters mode."""

    def test_returns_k(self, two_group_matrix):
        assert select_cluster_count(two_group_matrix, FixedClusters(3), verbose=False) == 3

    @pytest.mark.parametrize("k", [0, -2, 11])
    def test_out_of_range(self, two_group_matrix, k):
        with pytest.raises(InvalidParameterError):
            select_cluster_count(two_group_matrix, FixedClusters(k), verbose=False)

    def test_unknown_mode(self, two_group_matrix):
        with pytest.raises(InvalidParameterError):
            select_cluster_count(two_group_matrix, "gap", verbose=False)


class TestGapStatistic:
    """Tests for the gap statistic."""

    def test_finds_three_groups(self, three_group_matrix):
        result = compute_gap_statistic(three_group_matrix, k_max=6, n_references=10,
                                       verbose=False)
        assert result.optimal_k == 3
        assert list(result.k_values) == [1, 2, 3, 4, 5, 6]
        assert result.ref_log_wk.shape == (10, 6)

    def test_k_max_capped_by_samples(self):
        matrix = make_matrix(np.random.default_rng(2).normal(size=(8, 4)))
        result = compute_gap_statistic(matrix, k_max=10, n_references=5, verbose=False)
        assert list(result.k_values) == [1, 2, 3]

    def test_same_result_for_any_n_jobs(self, three_group_matrix):
        a = compute_gap_statistic(three_group_matrix, k_max=4, n_references=6, n_jobs=1,
                                  verbose=False)
        b = compute_gap_statistic(three_group_matrix, k_max=4, n_references=6, n_jobs=2,
                                  verbose=False)
        np.testing.assert_array_equal(a.gap, b.gap)
        np.testing.assert_array_equal(a.s_k, b.s_k)

    def test_one_se_rule(self):
        k_values = np.array([1, 2, 3, 4])
        gap = np.array([0.1, 0.5, 0.55, 0.56])
        s_k = np.array([0.02, 0.02, 0.1, 0.1])
        # Gap(2) >= Gap(3) - s_3
        assert choose_k_one_se(k_values, gap, s_k) == 2

    def test_one_se_rule_falls_back_to_largest_k(self):
        k_values = np.array([1, 2, 3])
        gap = np.array([0.1, 0.5, 0.9])
        s_k = np.zeros(3)
        assert choose_k_one_se(k_values, gap, s_k) == 3

    def test_select_cluster_count_uses_gap(self, three_group_matrix):
        k = select_cluster_count(three_group_matrix, GapStatistic(k_max=5, n_references=8),
                                 verbose=False)
        assert k == 3

    @pytest.mark.parametrize("kwargs", [{"k_max": 0}, {"n_references": 0}])
    def test_invalid_parameters(self, three_group_matrix, kwargs):
        with pytest.raises(InvalidParameterError):
            compute_gap_statistic(three_group_matrix, verbose=False, **kwargs)

    def test_single_sample_is_data_error(self):
        with pytest.raises(InvalidDataError):
            compute_gap_statistic(make_matrix([[1.0], [2.0]]), verbose=False)

    def test_cancelled(self, three_group_matrix):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled) as exc_info:
            compute_gap_statistic(three_group_matrix, cancel_token=token, verbose=False)
        assert exc_info.value.stage == "gap statistic"

    def test_to_frame(self, three_group_matrix):
        result = compute_gap_statistic(three_group_matrix, k_max=3, n_references=4,
                                       verbose=False)
        frame = result.to_frame()
        assert list(frame.columns) == ["k", "log_wk", "expected_log_wk", "gap", "s_k"]
        assert len(frame) == 3


class TestKmeans:
    """Tests for Kmeans clustering."""

    def test_recovers_offset_groups(self, two_group_matrix):
        result = cluster_samples(two_group_matrix, 2, "Kmeans", verbose=False)
        assert isinstance(result, ClusterResult)
        assert same_partition(result.assignment, [0] * 5 + [1] * 5)
        assert set(result.assignment) == {1, 2}
        assert result.assignment.name == "cluster"

    def test_accepts_ranked_matrix(self, three_group_matrix):
        ranked = rank_probes(three_group_matrix, 20, "SD_Rank", verbose=False)
        result = cluster_samples(ranked, 3, "Kmeans", verbose=False)
        assert same_partition(result.assignment, np.repeat([0, 1, 2], 5))
        assert list(result.assignment.index) == list(three_group_matrix.columns)

    def test_seed_reproducible(self, three_group_matrix):
        params = KMeansParams(seed=11)
        a = cluster_samples(three_group_matrix, 4, "Kmeans", params, verbose=False)
        b = cluster_samples(three_group_matrix, 4, "Kmeans", params, verbose=False)
        pd.testing.assert_series_equal(a.assignment, b.assignment)

    def test_more_clusters_than_samples(self):
        matrix = make_matrix(np.random.default_rng(3).normal(size=(6, 5)))
        with pytest.raises(DegenerateClusteringError) as exc_info:
            cluster_samples(matrix, 10, "Kmeans", verbose=False)
        assert exc_info.value.requested == 10

    def test_duplicate_samples_cannot_fill_k(self):
        matrix = make_matrix([[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]])
        with pytest.raises(DegenerateClusteringError):
            cluster_samples(matrix, 2, "Kmeans", verbose=False)

    def test_wrong_params_type(self, two_group_matrix):
        with pytest.raises(InvalidParameterError):
            cluster_samples(two_group_matrix, 2, "Kmeans", HClustParams(), verbose=False)


class TestHClust:
    """Tests for hierarchical clustering."""

    def test_single_cluster(self, three_group_matrix):
        result = cluster_samples(three_group_matrix, 1, "HClust", verbose=False)
        assert (result.assignment == 1).all()

    def test_one_cluster_per_sample(self, three_group_matrix):
        n = three_group_matrix.shape[1]
        result = cluster_samples(three_group_matrix, n, "HClust", verbose=False)
        assert sorted(result.assignment) == list(range(1, n + 1))

    @pytest.mark.parametrize("distance", sorted(SAMPLE_DISTANCES))
    def test_every_distance_recovers_groups(self, two_group_matrix, distance):
        # binary distance sees only zero / non-zero, so shift away from zero
        matrix = two_group_matrix + 1.0 if distance != "binary" else two_group_matrix
        params = HClustParams(distance=distance, linkage="average")
        result = cluster_samples(matrix, 2, "HClust", params, verbose=False)
        if distance != "binary":
            assert same_partition(result.assignment, [0] * 5 + [1] * 5)
        assert result.n_clusters == 2

    @pytest.mark.parametrize("linkage_name", sorted(LINKAGES))
    def test_every_linkage(self, three_group_matrix, linkage_name):
        params = HClustParams(linkage=linkage_name)
        result = cluster_samples(three_group_matrix, 3, "HClust", params, verbose=False)
        assert same_partition(result.assignment, np.repeat([0, 1, 2], 5))
        assert result.sample_linkage.shape == (14, 4)

    @pytest.mark.parametrize("probe_distance", ["euclidean", "pearson", "abspearson",
                                                "spearman", "kendall"])
    def test_probe_order_is_permutation(self, three_group_matrix, probe_distance):
        params = HClustParams(probe_distance=probe_distance)
        result = cluster_samples(three_group_matrix, 3, "HClust", params, verbose=False)
        assert sorted(result.probe_order) == sorted(three_group_matrix.index)

    def test_probe_ordering_does_not_change_labels(self, three_group_matrix):
        a = cluster_samples(three_group_matrix, 3, "HClust",
                            HClustParams(probe_distance="pearson"), verbose=False)
        b = cluster_samples(three_group_matrix, 3, "HClust",
                            HClustParams(probe_distance="kendall"), verbose=False)
        pd.testing.assert_series_equal(a.assignment, b.assignment)

    @pytest.mark.parametrize("params", [
        HClustParams(distance="cosine"),
        HClustParams(linkage="upgma"),
        HClustParams(probe_distance="mutual_information"),
        HClustParams(distance="minkowski", minkowski_p=0),
    ])
    def test_invalid_names_rejected(self, three_group_matrix, params):
        with pytest.raises(InvalidParameterError):
            cluster_samples(three_group_matrix, 2, "HClust", params, verbose=False)

    def test_more_clusters_than_samples(self):
        matrix = make_matrix(np.random.default_rng(4).normal(size=(6, 5)))
        with pytest.raises(DegenerateClusteringError):
            cluster_samples(matrix, 10, "HClust", verbose=False)

    @pytest.mark.parametrize("linkage_name", ["single", "average"])
    @pytest.mark.parametrize("k", [2, 3])
    def test_tied_merge_heights_still_give_k_clusters(self, linkage_name, k):
        # equally spaced samples: every single-linkage merge happens at height 1
        matrix = make_matrix([[0.0, 1.0, 2.0, 3.0], [0.0, 1.0, 2.0, 3.0]])
        params = HClustParams(linkage=linkage_name)
        result = cluster_samples(matrix, k, "HClust", params, verbose=False)
        assert sorted(set(result.assignment)) == list(range(1, k + 1))
        assert result.n_clusters == k


class TestClusterSamplesArguments:
    """Argument checks shared by both algorithms."""

    def test_unknown_algorithm(self, two_group_matrix):
        with pytest.raises(InvalidParameterError):
            cluster_samples(two_group_matrix, 2, "DBSCAN", verbose=False)

    @pytest.mark.parametrize("k", [0, -1, 1.5])
    def test_invalid_k(self, two_group_matrix, k):
        with pytest.raises(InvalidParameterError):
            cluster_samples(two_group_matrix, k, "Kmeans", verbose=False)

    def test_to_frame(self, two_group_matrix):
        result = cluster_samples(two_group_matrix, 2, "Kmeans", verbose=False)
        frame = result.to_frame()
        assert list(frame.columns) == ["sample_id", "cluster"]
        assert result.cluster_sizes() == {1: 5, 2: 5}
