"""Principal component analysis of samples."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA

from rnaseq_explorer.validation import ValidationError


logger = logging.getLogger(__name__)


@dataclass
class PCAResult:
    """Sample scores, variance explained and gene loadings of a PCA."""
    scores: pd.DataFrame
    eigenvalues: pd.DataFrame
    loadings: pd.DataFrame

    @property
    def pcs(self):
        return self.eigenvalues['PC'].tolist()

    def pct_explained(self, pc: str) -> float:
        row = self.eigenvalues.loc[self.eigenvalues['PC'] == pc, 'pct']
        return float(row.iloc[0])


def run_pca(
    counts: pd.DataFrame,
    sample_info: Optional[pd.DataFrame] = None,
    n_components: Optional[int] = None
) -> PCAResult:
    """
    Run PCA on samples using (transformed) expression values.

    Values are centred per gene but not scaled.

    Args:
        counts: Genes x samples expression matrix
        sample_info: Sample information to join onto the scores
        n_components: Number of components (all if None)

    Returns:
        PCAResult
    """
    # Samples as rows
    data = counts.T.astype(float)

    # Remove genes with zero variance
    data = data.loc[:, data.var() > 0]

    n_samples, n_genes = data.shape
    if n_samples < 2 or n_genes < 1:
        raise ValidationError(
            f"PCA needs at least 2 samples and 1 variable gene (got {n_samples} x {n_genes})"
        )

    max_components = min(n_samples, n_genes)
    if n_components is None:
        n_components = max_components
    n_components = min(n_components, max_components)

    pca = PCA(n_components=n_components)
    coords = pca.fit_transform(data.to_numpy())

    pc_names = [f"PC{i + 1}" for i in range(n_components)]

    scores = pd.DataFrame(coords, index=data.index, columns=pc_names)
    scores.index.name = 'sample'
    scores = scores.reset_index()

    if sample_info is not None:
        n_before = len(scores)
        scores = scores.merge(sample_info, on='sample', how='left')
        if len(scores) != n_before:
            raise ValidationError("Joining sample information changed the number of PCA scores")

    variance = pca.explained_variance_
    # Percentages are relative to the total variance, not just the kept components
    total_variance = data.var().sum()
    pct = variance / total_variance * 100

    eigenvalues = pd.DataFrame({
        'PC': pc_names,
        'variance': variance,
        'pct': pct,
        'pct_cum': np.cumsum(pct)
    })

    loadings = pd.DataFrame(pca.components_.T, index=data.columns, columns=pc_names)
    loadings.index.name = 'gene'

    logger.info(
        f"PCA on {n_samples} samples x {n_genes} genes: "
        f"PC1 {pct[0]:.1f}%" + (f", PC2 {pct[1]:.1f}%" if n_components > 1 else "")
    )

    return PCAResult(scores=scores, eigenvalues=eigenvalues, loadings=loadings)


def top_loading_genes(
    result: PCAResult,
    pcs: Sequence[str] = ("PC1", "PC2"),
    n: int = 10
) -> pd.DataFrame:
    """
    Genes with the largest absolute loadings on the given components.

    Returns:
        Long DataFrame with columns gene, PC, loading for every selected gene
        (the union across components) on each requested component
    """
    missing = [pc for pc in pcs if pc not in result.loadings.columns]
    if missing:
        raise ValidationError(f"Unknown principal components: {', '.join(missing)}")

    selected = []
    for pc in pcs:
        top = result.loadings[pc].abs().sort_values(ascending=False).head(n).index
        selected.extend(g for g in top if g not in selected)

    top_loadings = (
        result.loadings.loc[selected, list(pcs)]
        .reset_index()
        .melt(id_vars='gene', var_name='PC', value_name='loading')
    )
    return top_loadings
