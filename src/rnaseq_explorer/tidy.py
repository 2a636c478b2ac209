"""Reshaping, joining and filtering of expression tables."""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from rnaseq_explorer.validation import ValidationError


logger = logging.getLogger(__name__)


def to_long(counts: pd.DataFrame, value_name: str = 'cts') -> pd.DataFrame:
    """
    Convert a wide genes x samples table to long format.

    Args:
        counts: Count matrix indexed by gene
        value_name: Name of the value column

    Returns:
        DataFrame with columns gene, sample and value_name, one row per gene and sample
    """
    long = counts.rename_axis(index='gene', columns='sample').reset_index()
    long = long.melt(id_vars='gene', var_name='sample', value_name=value_name)
    long['sample'] = long['sample'].astype(str)
    return long


def annotate_samples(long: pd.DataFrame, sample_info: pd.DataFrame) -> pd.DataFrame:
    """
    Join sample information onto a long-format table.

    The join must neither drop nor duplicate rows and every sample must be
    described in the sample information.

    Raises:
        ValidationError: If the join is misaligned
    """
    if sample_info['sample'].duplicated().any():
        raise ValidationError("Sample information contains duplicate sample IDs")

    annotated = long.merge(sample_info, on='sample', how='left', validate='many_to_one', indicator=True)

    if len(annotated) != len(long):
        raise ValidationError(
            f"Joining sample information changed the row count ({len(long)} -> {len(annotated)})"
        )

    unmatched = annotated.loc[annotated['_merge'] == 'left_only', 'sample'].unique()
    if len(unmatched) > 0:
        raise ValidationError(
            f"Samples without sample information: {', '.join(sorted(unmatched))}"
        )

    return annotated.drop(columns='_merge')


def scale_by_gene(
    long: pd.DataFrame,
    value: str = 'cts',
    scaled_name: Optional[str] = None
) -> pd.DataFrame:
    """
    Add a per-gene z-score of ``value``.

    Uses the sample standard deviation; genes with constant expression get 0.
    """
    scaled_name = scaled_name or f"{value}_scaled"
    grouped = long.groupby('gene')[value]
    mean = grouped.transform('mean')
    sd = grouped.transform('std')

    scaled = long.copy()
    scaled[scaled_name] = ((scaled[value] - mean) / sd.replace(0, np.nan)).fillna(0.0)
    return scaled


def summarise_trends(
    annotated: pd.DataFrame,
    genes: Optional[Sequence[str]] = None,
    value: str = 'cts'
) -> pd.DataFrame:
    """
    Average scaled expression per gene, strain and time point.

    Args:
        annotated: Long table joined with sample information
        genes: Restrict to these genes (all genes if None)
        value: Expression column to summarise

    Returns:
        DataFrame with columns gene, strain, minute, mean_cts_scaled, nrep
    """
    data = annotated
    if genes is not None:
        data = data[data['gene'].isin(set(genes))]

    scaled = scale_by_gene(data, value=value, scaled_name='cts_scaled')

    trends = (
        scaled
        .groupby(['gene', 'strain', 'minute'], as_index=False)
        .agg(mean_cts_scaled=('cts_scaled', 'mean'), nrep=('cts_scaled', 'size'))
        .sort_values(['gene', 'strain', 'minute'])
        .reset_index(drop=True)
    )

    logger.info(f"Summarised trends for {trends['gene'].nunique()} genes")
    return trends


def gene_mean_variance(counts: pd.DataFrame) -> pd.DataFrame:
    """
    Per-gene mean and variance across samples.

    Returns:
        DataFrame with columns gene, mean, variance
    """
    return pd.DataFrame({
        'gene': counts.index.astype(str),
        'mean': counts.mean(axis=1).to_numpy(),
        'variance': counts.var(axis=1).to_numpy()
    })


def candidate_genes(
    test_results: pd.DataFrame,
    padj_threshold: float = 0.01,
    lfc_threshold: float = 0.0
) -> List[str]:
    """
    Genes significant in at least one comparison.

    Args:
        test_results: Differential expression test results
        padj_threshold: Adjusted p-value cutoff (strict)
        lfc_threshold: Minimum absolute log2 fold change

    Returns:
        Unique gene IDs in order of first appearance
    """
    mask = (test_results['padj'] < padj_threshold) & (
        test_results['log2FoldChange'].abs() >= lfc_threshold
    )
    genes = test_results.loc[mask, 'gene'].drop_duplicates().tolist()

    logger.info(
        f"Found {len(genes)} candidate genes (padj < {padj_threshold}, |log2FC| >= {lfc_threshold})"
    )
    return genes


def expression_matrix(
    counts: pd.DataFrame,
    genes: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Numeric genes x samples matrix, optionally restricted to ``genes``.

    Raises:
        ValidationError: If requested genes are absent from the counts
    """
    if genes is None:
        return counts.astype(float)

    genes = list(genes)
    missing = [g for g in genes if g not in counts.index]
    if missing:
        shown = ', '.join(missing[:10])
        raise ValidationError(f"{len(missing)} genes not found in count matrix: {shown}")

    return counts.loc[genes].astype(float)
