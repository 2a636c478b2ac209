"""Tests for principal component analysis."""

import numpy as np
import pandas as pd
import pytest

from rnaseq_explorer.pca import run_pca, top_loading_genes
from rnaseq_explorer.validation import ValidationError


class TestRunPCA:
    """Tests for run_pca."""

    def test_variance_explained_sums_to_100(self, dataset):
        result = run_pca(dataset.transformed_counts)

        assert result.eigenvalues['pct'].sum() == pytest.approx(100.0)
        assert result.eigenvalues['pct_cum'].iloc[-1] == pytest.approx(100.0)
        assert result.eigenvalues['variance'].is_monotonic_decreasing

    def test_scores_joined_with_sample_info(self, dataset):
        result = run_pca(dataset.transformed_counts, sample_info=dataset.sample_info)

        assert len(result.scores) == dataset.transformed_counts.shape[1]
        assert {'sample', 'PC1', 'PC2', 'strain', 'minute'} <= set(result.scores.columns)
        assert result.scores['sample'].tolist() == dataset.samples

    def test_n_components(self, dataset):
        result = run_pca(dataset.transformed_counts, n_components=3)

        assert result.pcs == ['PC1', 'PC2', 'PC3']
        assert result.loadings.shape[1] == 3
        assert result.eigenvalues['pct'].sum() < 100.0

    def test_zero_variance_genes_dropped(self, dataset):
        counts = dataset.transformed_counts.copy()
        counts.iloc[0, :] = 1.0

        result = run_pca(counts)

        assert counts.index[0] not in result.loadings.index
        assert len(result.loadings) == int((counts.var(axis=1) > 0).sum())

    def test_matches_centred_svd(self):
        rng = np.random.default_rng(3)
        counts = pd.DataFrame(rng.normal(size=(20, 5)), columns=[f"s{i}" for i in range(5)])

        result = run_pca(counts)

        centred = counts.T - counts.T.mean()
        singular_values = np.linalg.svd(centred.to_numpy(), compute_uv=False)
        expected = singular_values ** 2 / (centred.shape[0] - 1)
        np.testing.assert_allclose(result.eigenvalues['variance'], expected[:len(result.pcs)], atol=1e-10)

    def test_pct_explained(self, dataset):
        result = run_pca(dataset.transformed_counts)

        assert result.pct_explained('PC1') == pytest.approx(result.eigenvalues['pct'].iloc[0])

    def test_too_few_samples(self, dataset):
        with pytest.raises(ValidationError, match="at least 2 samples"):
            run_pca(dataset.transformed_counts.iloc[:, :1])


class TestTopLoadingGenes:
    """Tests for top_loading_genes."""

    def test_top_genes_per_component(self, dataset):
        result = run_pca(dataset.transformed_counts)

        top = top_loading_genes(result, pcs=('PC1', 'PC2'), n=5)

        assert list(top.columns) == ['gene', 'PC', 'loading']
        assert set(top['PC']) == {'PC1', 'PC2'}
        n_genes = top['gene'].nunique()
        assert 5 <= n_genes <= 10
        assert len(top) == 2 * n_genes

        expected_pc1 = result.loadings['PC1'].abs().nlargest(5).index
        assert set(expected_pc1) <= set(top['gene'])

    def test_unknown_component(self, dataset):
        result = run_pca(dataset.transformed_counts, n_components=2)

        with pytest.raises(ValidationError, match="PC3"):
            top_loading_genes(result, pcs=('PC1', 'PC3'))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
