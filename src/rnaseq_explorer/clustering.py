"""Hierarchical clustering of genes by expression pattern."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import cut_tree, dendrogram, is_monotonic, linkage
from scipy.spatial.distance import pdist

from rnaseq_explorer.config import get_config


logger = logging.getLogger(__name__)

LINKAGE_METHODS = ['single', 'complete', 'average', 'weighted', 'centroid', 'median', 'ward']
# Methods whose merge heights are only meaningful for euclidean distances
EUCLIDEAN_ONLY = {'centroid', 'median', 'ward'}


class ClusteringError(Exception):
    """Exception for invalid clustering input or parameters."""
    pass


@dataclass
class GeneClustering:
    """Result of clustering genes into groups."""
    matrix: pd.DataFrame
    distances: np.ndarray
    linkage_matrix: np.ndarray
    labels: pd.Series
    leaf_order: list
    method: str
    metric: str
    height: Optional[float] = None

    @property
    def n_clusters(self) -> int:
        return int(self.labels.nunique())

    def cut_height(self) -> float:
        """Tree height separating the current clusters (for drawing the cut)."""
        if self.height is not None:
            return self.height
        heights = np.sort(self.linkage_matrix[:, 2])
        n_merges = len(heights) - (self.n_clusters - 1)
        if n_merges >= len(heights):
            return float(heights[-1] * 1.05)
        if n_merges == 0:
            return float(heights[0] / 2)
        return float((heights[n_merges - 1] + heights[n_merges]) / 2)

    def cluster_sizes(self) -> pd.Series:
        """Number of genes per cluster, indexed by cluster label."""
        return self.labels.value_counts().sort_index().rename('n_genes')

    def as_frame(self) -> pd.DataFrame:
        """Two-column table of gene and cluster."""
        return self.labels.rename('cluster').rename_axis('gene').reset_index()

    def ordered_matrix(self) -> pd.DataFrame:
        """Clustered matrix with genes in dendrogram leaf order."""
        return self.matrix.iloc[self.leaf_order]


def scale_genes(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Z-score each gene (row) across samples.

    Genes with zero variance cannot be scaled and are dropped.
    """
    mean = matrix.mean(axis=1)
    sd = matrix.std(axis=1)

    constant = sd == 0
    if constant.any():
        logger.warning(f"Dropping {int(constant.sum())} genes with constant expression before clustering")

    keep = ~constant
    scaled = matrix.loc[keep].sub(mean[keep], axis=0).div(sd[keep], axis=0)
    return scaled


def _renumber(labels: np.ndarray) -> np.ndarray:
    # Number clusters 1..k by order of first appearance
    codes, _ = pd.factorize(labels)
    return codes + 1


def cluster_genes(
    matrix: pd.DataFrame,
    n_clusters: Optional[int] = None,
    height: Optional[float] = None,
    method: str = "complete",
    metric: str = "euclidean",
    scale: bool = True
) -> GeneClustering:
    """
    Cluster genes hierarchically and cut the tree into groups.

    Args:
        matrix: Genes x samples expression matrix
        n_clusters: Number of groups to cut the tree into
        height: Cut the tree at this height instead of by group count.
            When neither is given, the configured cut_height or n_clusters is used.
        method: Linkage method passed to scipy
        metric: Distance metric passed to pdist
        scale: Z-score each gene before computing distances

    Returns:
        GeneClustering
    """
    if method not in LINKAGE_METHODS:
        raise ClusteringError(
            f"Unknown linkage method '{method}'. Choose one of: {', '.join(LINKAGE_METHODS)}"
        )
    if method in EUCLIDEAN_ONLY and metric != "euclidean":
        raise ClusteringError(f"Linkage method '{method}' requires the euclidean metric")
    if n_clusters is not None and height is not None:
        raise ClusteringError("Specify either n_clusters or height, not both")
    if n_clusters is None and height is None:
        analysis = get_config().analysis
        if analysis.cut_height is not None:
            height = analysis.cut_height
        else:
            n_clusters = analysis.n_clusters

    data = matrix.astype(float)
    if not np.isfinite(data.to_numpy()).all():
        raise ClusteringError("Expression matrix contains missing or infinite values")

    if scale:
        data = scale_genes(data)

    n_genes = data.shape[0]
    if n_genes < 2:
        raise ClusteringError(f"At least 2 genes are needed for clustering (got {n_genes})")
    if n_clusters is not None and not 1 <= n_clusters <= n_genes:
        raise ClusteringError(f"n_clusters must be between 1 and {n_genes} (got {n_clusters})")

    logger.info(f"Clustering {n_genes} genes ({metric} distance, {method} linkage)")

    try:
        distances = pdist(data.to_numpy(), metric=metric)
        linkage_matrix = linkage(distances, method=method)
    except ValueError as e:
        raise ClusteringError(f"Hierarchical clustering failed: {e}") from e

    if n_clusters is not None:
        # cut_tree can return fewer than n_clusters groups when the tree has inversions
        if not is_monotonic(linkage_matrix):
            raise ClusteringError(
                f"The {method} linkage tree has inversions and cannot be cut into "
                f"{n_clusters} clusters; cut by height or use another linkage method"
            )
        raw_labels = cut_tree(linkage_matrix, n_clusters=n_clusters)[:, 0]
    else:
        raw_labels = cut_tree(linkage_matrix, height=height)[:, 0]

    labels = pd.Series(_renumber(raw_labels), index=data.index, name='cluster')
    labels.index.name = 'gene'

    leaf_order = dendrogram(linkage_matrix, no_plot=True)['leaves']

    result = GeneClustering(
        matrix=data,
        distances=distances,
        linkage_matrix=linkage_matrix,
        labels=labels,
        leaf_order=leaf_order,
        method=method,
        metric=metric,
        height=height
    )

    sizes = ', '.join(f"{k}: {v}" for k, v in result.cluster_sizes().items())
    logger.info(f"Cut tree into {result.n_clusters} clusters ({sizes})")

    return result


def assign_clusters(trends: pd.DataFrame, clustering: GeneClustering) -> pd.DataFrame:
    """
    Add cluster labels to a per-gene table, keeping only clustered genes.
    """
    return trends.merge(clustering.as_frame(), on='gene', how='inner')


def compare_linkage_methods(
    matrix: pd.DataFrame,
    methods: Sequence[str] = ("complete", "average", "ward"),
    n_clusters: int = 5,
    metric: str = "euclidean"
) -> pd.DataFrame:
    """
    Cluster sizes obtained with each linkage method.

    Returns:
        DataFrame with one row per method and one column per cluster label
    """
    rows = {}
    for method in methods:
        clustering = cluster_genes(matrix, n_clusters=n_clusters, method=method, metric=metric)
        rows[method] = clustering.cluster_sizes()

    comparison = pd.DataFrame(rows).T.fillna(0).astype(int)
    comparison.index.name = 'method'
    comparison.columns = [f"cluster {c}" for c in comparison.columns]
    return comparison
