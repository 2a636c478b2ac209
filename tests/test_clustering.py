"""Tests for hierarchical clustering of genes."""

import numpy as np
import pandas as pd
import pytest

from rnaseq_explorer.clustering import (
    ClusteringError,
    GeneClustering,
    assign_clusters,
    cluster_genes,
    compare_linkage_methods,
    scale_genes
)
from rnaseq_explorer.config import AnalysisDefaults, Config, set_config


class TestScaleGenes:
    """Tests for per-gene scaling of the matrix."""

    def test_rows_are_standardised(self, grouped_matrix):
        scaled = scale_genes(grouped_matrix)

        np.testing.assert_allclose(scaled.mean(axis=1), 0, atol=1e-12)
        np.testing.assert_allclose(scaled.std(axis=1), 1)

    def test_constant_genes_dropped(self, grouped_matrix):
        matrix = grouped_matrix.copy()
        matrix.iloc[0, :] = 3.0

        scaled = scale_genes(matrix)

        assert matrix.index[0] not in scaled.index
        assert len(scaled) == len(matrix) - 1


class TestClusterGenes:
    """Tests for cluster_genes."""

    @pytest.mark.parametrize("k", [1, 2, 3, 5, 8])
    def test_number_of_clusters_matches_k(self, grouped_matrix, k):
        clustering = cluster_genes(grouped_matrix, n_clusters=k)

        assert clustering.n_clusters == k
        assert sorted(clustering.labels.unique()) == list(range(1, k + 1))

    def test_recovers_patterns(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix, n_clusters=3)

        groups = clustering.labels.groupby(clustering.labels.index.str[:6]).nunique()
        assert (groups == 1).all()
        assert clustering.labels.nunique() == 3

    def test_labels_numbered_by_first_appearance(self, grouped_matrix):
        shuffled = grouped_matrix.sample(frac=1, random_state=1)

        clustering = cluster_genes(shuffled, n_clusters=3)

        first_seen = clustering.labels.drop_duplicates().tolist()
        assert first_seen == [1, 2, 3]
        assert clustering.labels.index.tolist() == shuffled.index.tolist()

    def test_cut_by_height(self, grouped_matrix):
        by_k = cluster_genes(grouped_matrix, n_clusters=3)

        by_height = cluster_genes(grouped_matrix, height=by_k.cut_height())

        assert by_height.n_clusters == 3
        pd.testing.assert_series_equal(by_height.labels, by_k.labels)

    def test_cut_height_separates_merges(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix, n_clusters=3)
        heights = np.sort(clustering.linkage_matrix[:, 2])

        h = clustering.cut_height()

        assert heights[-3] < h < heights[-2]

    def test_result_contents(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix, n_clusters=3)

        n = len(grouped_matrix)
        assert isinstance(clustering, GeneClustering)
        assert clustering.distances.shape == (n * (n - 1) // 2,)
        assert clustering.linkage_matrix.shape == (n - 1, 4)
        assert sorted(clustering.leaf_order) == list(range(n))
        assert clustering.cluster_sizes().sum() == n
        assert list(clustering.as_frame().columns) == ['gene', 'cluster']
        assert clustering.ordered_matrix().shape == grouped_matrix.shape

    def test_without_scaling(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix, n_clusters=2, scale=False)

        np.testing.assert_allclose(clustering.matrix.to_numpy(), grouped_matrix.to_numpy())

    @pytest.mark.parametrize("method", ["single", "average", "ward"])
    def test_other_linkage_methods(self, grouped_matrix, method):
        clustering = cluster_genes(grouped_matrix, n_clusters=3, method=method)

        assert clustering.method == method
        assert clustering.n_clusters == 3

    def test_correlation_metric(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix, n_clusters=3, metric="correlation")

        assert clustering.metric == "correlation"
        assert clustering.n_clusters == 3

    def test_default_cut_from_config(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix)

        assert clustering.n_clusters == 5
        assert clustering.height is None

    def test_default_cut_follows_set_config(self, grouped_matrix):
        set_config(Config(analysis=AnalysisDefaults(n_clusters=3)))

        assert cluster_genes(grouped_matrix).n_clusters == 3

    def test_default_cut_height_from_environment(self, grouped_matrix, monkeypatch):
        height = cluster_genes(grouped_matrix, n_clusters=3).cut_height()
        monkeypatch.setenv("RNASEQ_ANALYSIS__CUT_HEIGHT", str(height))

        clustering = cluster_genes(grouped_matrix)

        assert clustering.height == pytest.approx(height)
        assert clustering.n_clusters == 3

    @pytest.mark.parametrize("method", ["centroid", "median"])
    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_inversion_prone_methods_never_return_fewer_clusters(self, method, seed):
        rng = np.random.default_rng(seed)
        matrix = pd.DataFrame(rng.normal(size=(25, 6)), index=[f"g{i}" for i in range(25)])

        for k in (3, 5, 8):
            try:
                clustering = cluster_genes(matrix, n_clusters=k, method=method)
            except ClusteringError as e:
                assert "inversions" in str(e)
            else:
                assert clustering.n_clusters == k


class TestClusterGenesErrors:
    """Tests for invalid clustering input."""

    def test_unknown_method(self, grouped_matrix):
        with pytest.raises(ClusteringError, match="Unknown linkage method"):
            cluster_genes(grouped_matrix, n_clusters=3, method="fastest")

    def test_ward_requires_euclidean(self, grouped_matrix):
        with pytest.raises(ClusteringError, match="euclidean"):
            cluster_genes(grouped_matrix, n_clusters=3, method="ward", metric="cityblock")

    def test_too_many_clusters(self, grouped_matrix):
        with pytest.raises(ClusteringError, match="between 1 and 30"):
            cluster_genes(grouped_matrix, n_clusters=31)

    def test_both_cut_criteria(self, grouped_matrix):
        with pytest.raises(ClusteringError, match="either"):
            cluster_genes(grouped_matrix, n_clusters=3, height=2.0)

    @pytest.mark.parametrize("method", ["centroid", "median"])
    def test_inverted_tree_cannot_be_cut_by_count(self, method):
        # Merging a and b puts their centre closer to c than a is to b
        matrix = pd.DataFrame(
            [[0.0, 0.0], [1.0, 0.0], [0.5, 0.9]],
            index=['a', 'b', 'c'],
            columns=['s1', 's2']
        )

        with pytest.raises(ClusteringError, match="inversions"):
            cluster_genes(matrix, n_clusters=2, method=method, scale=False)

    def test_missing_values(self, grouped_matrix):
        matrix = grouped_matrix.copy()
        matrix.iloc[0, 0] = np.nan

        with pytest.raises(ClusteringError, match="missing"):
            cluster_genes(matrix, n_clusters=3)

    def test_single_gene(self, grouped_matrix):
        with pytest.raises(ClusteringError, match="At least 2 genes"):
            cluster_genes(grouped_matrix.iloc[:1], n_clusters=1)

    def test_unknown_metric(self, grouped_matrix):
        with pytest.raises(ClusteringError, match="failed"):
            cluster_genes(grouped_matrix, n_clusters=3, metric="no-such-metric")


class TestClusterAssignment:
    """Tests for joining clusters onto trends and comparing methods."""

    def test_assign_clusters_inner_join(self, grouped_matrix):
        clustering = cluster_genes(grouped_matrix.iloc[:20], n_clusters=2)
        trends = pd.DataFrame({
            'gene': list(grouped_matrix.index) * 2,
            'strain': ['wt'] * 30 + ['mut'] * 30,
            'minute': 0,
            'mean_cts_scaled': 0.0,
            'nrep': 3
        })

        clustered = assign_clusters(trends, clustering)

        assert len(clustered) == 40
        assert set(clustered['gene']) == set(grouped_matrix.index[:20])
        assert clustered['cluster'].isin([1, 2]).all()

    def test_compare_linkage_methods(self, grouped_matrix):
        comparison = compare_linkage_methods(grouped_matrix, methods=["complete", "average"], n_clusters=3)

        assert comparison.index.tolist() == ["complete", "average"]
        assert comparison.columns.tolist() == ["cluster 1", "cluster 2", "cluster 3"]
        assert (comparison.sum(axis=1) == len(grouped_matrix)).all()


class TestLessonDataset:
    """Clustering the candidate genes of the synthetic lesson dataset."""

    def test_cluster_candidate_genes(self, dataset):
        from rnaseq_explorer.tidy import candidate_genes, expression_matrix

        genes = candidate_genes(dataset.test_results, padj_threshold=0.01)
        matrix = expression_matrix(dataset.transformed_counts, genes)

        clustering = cluster_genes(matrix, n_clusters=min(5, len(genes)))

        assert clustering.n_clusters == min(5, len(genes))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
