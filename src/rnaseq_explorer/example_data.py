"""Synthetic RNA-seq time-course data shaped like the lesson dataset."""

import logging
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from rnaseq_explorer.data_loader import ExpressionDataset


logger = logging.getLogger(__name__)

STRAINS = ("wt", "mut")
MINUTES = (0, 15, 30, 60, 120, 180)

# log2 expression changes over MINUTES for each trend pattern
TREND_PATTERNS = {
    "induced": np.array([0.0, 1.0, 2.0, 3.0, 3.5, 3.5]),
    "repressed": np.array([0.0, -1.0, -2.0, -3.0, -3.5, -3.5]),
    "transient": np.array([0.0, 2.5, 3.5, 2.0, 0.5, 0.0]),
    "late": np.array([0.0, 0.0, 0.5, 1.5, 3.0, 4.0]),
}


def generate_example_data(
    n_genes: int = 500,
    n_trend_genes: int = 80,
    n_replicates: int = 3,
    strains: Sequence[str] = STRAINS,
    minutes: Sequence[int] = MINUTES,
    dispersion: Tuple[float, float] = (0.02, 0.08),
    seed: int = 42
) -> ExpressionDataset:
    """
    Generate a synthetic time course with raw counts, transformed counts,
    sample information and per-time-point test results.

    Args:
        n_genes: Total number of genes
        n_trend_genes: Genes whose expression changes over time
        n_replicates: Replicates per strain and time point
        strains: Strain names; the first is the reference strain used for testing
        minutes: Time points; the first is the baseline
        dispersion: (min, max) negative binomial dispersion
        seed: Random seed for reproducibility

    Returns:
        ExpressionDataset
    """
    if len(minutes) != len(next(iter(TREND_PATTERNS.values()))):
        raise ValueError(f"Trend patterns are defined for {len(MINUTES)} time points")

    rng = np.random.default_rng(seed)

    genes = [f"SPAC{i:05d}" for i in range(n_genes)]

    sample_info = pd.DataFrame(
        [
            {
                'sample': f"{strain}_{minute}_r{rep}",
                'strain': strain,
                'minute': minute,
                'replicate': f"r{rep}"
            }
            for strain in strains
            for minute in minutes
            for rep in range(1, n_replicates + 1)
        ]
    )
    samples = sample_info['sample'].tolist()

    base_expression = rng.lognormal(mean=6, sigma=1.5, size=n_genes)
    gene_dispersion = rng.uniform(dispersion[0], dispersion[1], n_genes)

    # Assign trend patterns; the second strain gets a damped response
    pattern_names = list(TREND_PATTERNS)
    trend_indices = rng.choice(n_genes, n_trend_genes, replace=False)
    log2_effects = np.zeros((n_genes, len(strains), len(minutes)))
    for k, gene_idx in enumerate(trend_indices):
        pattern = TREND_PATTERNS[pattern_names[k % len(pattern_names)]]
        for s in range(len(strains)):
            damping = 1.0 if s == 0 else 0.5
            log2_effects[gene_idx, s, :] = pattern * damping

    size_factors = rng.uniform(0.7, 1.3, len(samples))

    counts = np.zeros((n_genes, len(samples)), dtype=int)
    for j, row in sample_info.iterrows():
        s = list(strains).index(row['strain'])
        m = list(minutes).index(row['minute'])
        mu = base_expression * np.power(2.0, log2_effects[:, s, m]) * size_factors[j]
        size = 1 / gene_dispersion
        counts[:, j] = rng.negative_binomial(n=size, p=size / (size + mu))

    raw_counts = pd.DataFrame(counts, index=genes, columns=samples)
    raw_counts.index.name = 'gene'
    raw_counts.columns.name = 'sample'

    normalized = raw_counts / size_factors
    transformed_counts = np.log2(normalized + 1)

    test_results = _time_point_tests(transformed_counts, normalized, sample_info, strains[0], minutes)

    logger.info(
        f"Generated {n_genes} genes x {len(samples)} samples "
        f"({n_trend_genes} with time trends)"
    )

    return ExpressionDataset(
        raw_counts=raw_counts,
        transformed_counts=transformed_counts,
        sample_info=sample_info,
        test_results=test_results
    )


def _time_point_tests(
    transformed: pd.DataFrame,
    normalized: pd.DataFrame,
    sample_info: pd.DataFrame,
    strain: str,
    minutes: Sequence[int]
) -> pd.DataFrame:
    """Welch t-tests of each time point against the baseline within one strain."""
    baseline = minutes[0]
    ref_samples = sample_info.loc[
        (sample_info['strain'] == strain) & (sample_info['minute'] == baseline), 'sample'
    ]

    tables = []
    for minute in minutes[1:]:
        test_samples = sample_info.loc[
            (sample_info['strain'] == strain) & (sample_info['minute'] == minute), 'sample'
        ]
        ref = transformed[ref_samples]
        test = transformed[test_samples]

        lfc = test.mean(axis=1) - ref.mean(axis=1)
        stat, pvalue = stats.ttest_ind(test, ref, axis=1, equal_var=False)
        stat = np.nan_to_num(stat, nan=0.0)
        pvalue = np.nan_to_num(pvalue, nan=1.0)

        base_mean = normalized[list(ref_samples) + list(test_samples)].mean(axis=1)

        # Independent filtering: no adjusted p-value for barely expressed genes
        tested = (base_mean >= 1).to_numpy()
        padj = np.full(len(pvalue), np.nan)
        if tested.any():
            padj[tested] = stats.false_discovery_control(pvalue[tested], method='bh')

        with np.errstate(divide='ignore', invalid='ignore'):
            lfc_se = np.where(stat != 0, np.abs(lfc.to_numpy() / stat), np.nan)

        tables.append(pd.DataFrame({
            'gene': transformed.index,
            'baseMean': base_mean.to_numpy(),
            'log2FoldChange': lfc.to_numpy(),
            'lfcSE': lfc_se,
            'stat': stat,
            'pvalue': pvalue,
            'padj': padj,
            'comparison': minute
        }))

    return pd.concat(tables, ignore_index=True)


def write_example_data(dataset: ExpressionDataset, output_dir: Union[str, Path]) -> Path:
    """
    Write the four lesson tables as CSV files.

    Returns:
        The output directory
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    dataset.raw_counts.reset_index().to_csv(output_path / "counts_raw.csv", index=False)
    dataset.transformed_counts.reset_index().to_csv(output_path / "counts_transformed.csv", index=False)
    dataset.sample_info.to_csv(output_path / "sample_info.csv", index=False)
    dataset.test_results.to_csv(output_path / "test_result.csv", index=False)

    logger.info(f"Example data written to {output_path}")
    return output_path
