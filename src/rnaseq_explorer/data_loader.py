"""Reading the count tables, sample information and test results."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from rnaseq_explorer.config import PathConfig
from rnaseq_explorer.validation import ensure_valid, validate_dataset


logger = logging.getLogger(__name__)


@dataclass
class ExpressionDataset:
    """The four tables used throughout the analysis."""
    raw_counts: pd.DataFrame
    transformed_counts: pd.DataFrame
    sample_info: pd.DataFrame
    test_results: pd.DataFrame

    @property
    def samples(self):
        return self.raw_counts.columns.tolist()

    @property
    def genes(self):
        return self.raw_counts.index.tolist()


def _detect_delimiter(filepath: Path) -> Optional[str]:
    with open(filepath, 'r') as f:
        first_line = f.readline()
    if '\t' in first_line:
        return '\t'
    elif ',' in first_line:
        return ','
    return None  # pandas will try to detect


def read_table(
    filepath: Union[str, Path],
    delimiter: Optional[str] = None
) -> pd.DataFrame:
    """
    Read a delimited or Excel table.

    Args:
        filepath: Path to the file
        delimiter: Column delimiter (auto-detected if None)

    Returns:
        DataFrame with stripped column names
    """
    filepath = Path(filepath)

    if filepath.suffix.lower() in ['.xlsx', '.xls']:
        df = pd.read_excel(filepath)
    else:
        if delimiter is None:
            delimiter = _detect_delimiter(filepath)
        engine = None if delimiter is not None else 'python'
        df = pd.read_csv(filepath, sep=delimiter, engine=engine)

    df.columns = df.columns.astype(str).str.strip()
    return df


def read_counts(
    filepath: Union[str, Path],
    gene_col: str = 'gene',
    delimiter: Optional[str] = None
) -> pd.DataFrame:
    """
    Read a wide count table.

    Args:
        filepath: Path to the count table, one row per gene
        gene_col: Name of the column holding gene IDs
        delimiter: Column delimiter (auto-detected if None)

    Returns:
        DataFrame with genes as rows (index named 'gene') and samples as columns
    """
    df = read_table(filepath, delimiter=delimiter)

    if gene_col not in df.columns:
        # Fall back to the first column, as written by DataFrame.to_csv
        gene_col = df.columns[0]

    df[gene_col] = df[gene_col].astype(str).str.strip()
    df = df.set_index(gene_col)
    df.index.name = 'gene'
    df.columns.name = 'sample'

    logger.info(f"Read {df.shape[0]} genes x {df.shape[1]} samples from {filepath}")
    return df


def read_sample_info(
    filepath: Union[str, Path],
    delimiter: Optional[str] = None
) -> pd.DataFrame:
    """
    Read the sample information table.

    Returns:
        DataFrame with columns sample, strain, minute, replicate (and any extras)
    """
    df = read_table(filepath, delimiter=delimiter)

    for col in ['sample', 'strain', 'replicate']:
        if col in df.columns:
            # Missing values stay missing for validation
            df[col] = df[col].where(df[col].isna(), df[col].astype(str).str.strip())
    if 'minute' in df.columns:
        minute = pd.to_numeric(df['minute'], errors='coerce')
        df['minute'] = minute.astype('Int64') if minute.isna().any() else minute.astype(int)

    logger.info(f"Read information for {len(df)} samples from {filepath}")
    return df


def read_test_results(
    filepath: Union[str, Path],
    delimiter: Optional[str] = None
) -> pd.DataFrame:
    """
    Read differential expression test results.

    Returns:
        DataFrame with one row per gene and comparison
    """
    df = read_table(filepath, delimiter=delimiter)

    if 'gene' in df.columns:
        df['gene'] = df['gene'].astype(str).str.strip()
    for col in ['baseMean', 'log2FoldChange', 'lfcSE', 'stat', 'pvalue', 'padj']:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors='coerce')

    logger.info(f"Read {len(df)} test results from {filepath}")
    return df


def load_dataset(paths: PathConfig, validate: bool = True) -> ExpressionDataset:
    """
    Load and validate all four input tables.

    Args:
        paths: Path configuration pointing at the input files
        validate: Run input validation (raises ValidationError on failure)

    Returns:
        ExpressionDataset
    """
    logger.info(f"Loading dataset from {paths.data_dir}")

    dataset = ExpressionDataset(
        raw_counts=read_counts(paths.raw_counts),
        transformed_counts=read_counts(paths.transformed_counts),
        sample_info=read_sample_info(paths.sample_info),
        test_results=read_test_results(paths.test_results)
    )

    if validate:
        ensure_valid(validate_dataset(dataset))

    return dataset
