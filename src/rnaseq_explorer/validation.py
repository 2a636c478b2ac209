"""Data validation for count tables, sample information and test results."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

SAMPLE_INFO_COLUMNS = ['sample', 'strain', 'minute', 'replicate']
TEST_RESULT_COLUMNS = [
    'gene', 'baseMean', 'log2FoldChange', 'lfcSE', 'stat', 'pvalue', 'padj', 'comparison'
]


class ValidationError(Exception):
    """Custom exception for validation errors."""
    pass


class ValidationWarning(BaseModel):
    """Warning message from validation."""
    message: str
    severity: str = Field(default="warning")  # warning, info


class ValidationResult(BaseModel):
    """Result of data validation."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)


class CountMatrixSchema(BaseModel):
    """Schema for count matrix validation."""
    n_genes: int
    n_samples: int
    sample_ids: List[str]
    has_negative: bool
    has_non_integer: bool
    has_missing: bool
    library_sizes: Dict[str, float]


class SampleInfoSchema(BaseModel):
    """Schema for sample information validation."""
    n_samples: int
    sample_ids: List[str]
    strains: List[str]
    minutes: List[int]
    replicates_per_group: Dict[str, int]


class DEResultSchema(BaseModel):
    """Schema for differential expression test results."""
    n_rows: int
    n_genes: int
    comparisons: List[str]
    n_missing_padj: int


def validate_count_matrix(
    counts: pd.DataFrame,
    raw: bool = True
) -> Tuple[ValidationResult, Optional[CountMatrixSchema]]:
    """
    Validate a genes x samples count matrix.

    Args:
        counts: Count matrix DataFrame indexed by gene
        raw: Whether these are raw read counts (integer, non-negative)
            rather than transformed values

    Returns:
        Tuple of (ValidationResult, CountMatrixSchema)
    """
    errors = []
    warnings = []

    if counts.empty:
        errors.append("Count matrix is empty")
        return ValidationResult(valid=False, errors=errors), None

    n_genes, n_samples = counts.shape

    non_numeric = [col for col in counts.columns if not pd.api.types.is_numeric_dtype(counts[col])]
    if non_numeric:
        errors.append(f"Count matrix has non-numeric sample columns: {', '.join(map(str, non_numeric))}")
        return ValidationResult(valid=False, errors=errors), None

    values = counts.to_numpy(dtype=float)

    has_missing = bool(np.isnan(values).any())
    if has_missing:
        n_missing = int(np.isnan(values).sum())
        errors.append(f"Count matrix contains {n_missing} missing values")

    has_negative = bool((values < 0).any())
    if has_negative and raw:
        errors.append("Count matrix contains negative values")

    has_non_integer = not np.allclose(values, np.round(values), equal_nan=True)
    if has_non_integer and raw:
        warnings.append(ValidationWarning(
            message="Raw count matrix contains non-integer values.",
            severity="warning"
        ))

    if counts.index.duplicated().any():
        n_duplicates = counts.index.duplicated().sum()
        errors.append(f"Count matrix contains {n_duplicates} duplicate gene IDs")

    if counts.columns.duplicated().any():
        n_duplicates = counts.columns.duplicated().sum()
        errors.append(f"Count matrix contains {n_duplicates} duplicate sample IDs")

    library_sizes = {str(k): float(v) for k, v in counts.sum(axis=0).items()}

    schema = CountMatrixSchema(
        n_genes=n_genes,
        n_samples=n_samples,
        sample_ids=[str(s) for s in counts.columns],
        has_negative=has_negative,
        has_non_integer=has_non_integer,
        has_missing=has_missing,
        library_sizes=library_sizes
    )

    summary = {
        "n_genes": n_genes,
        "n_samples": n_samples,
    }
    if raw:
        summary["mean_library_size"] = float(np.mean(list(library_sizes.values())))

    result = ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )

    return result, schema


def validate_sample_info(
    sample_info: pd.DataFrame,
    count_samples: Optional[List[str]] = None
) -> Tuple[ValidationResult, Optional[SampleInfoSchema]]:
    """
    Validate the sample information table.

    Args:
        sample_info: Table with one row per sample
        count_samples: Sample IDs from the count matrix (for matching check)

    Returns:
        Tuple of (ValidationResult, SampleInfoSchema)
    """
    errors = []
    warnings = []

    if sample_info.empty:
        errors.append("Sample information is empty")
        return ValidationResult(valid=False, errors=errors), None

    missing_cols = [col for col in SAMPLE_INFO_COLUMNS if col not in sample_info.columns]
    if missing_cols:
        errors.append(f"Sample information is missing required columns: {', '.join(missing_cols)}")
        return ValidationResult(valid=False, errors=errors), None

    sample_ids = sample_info['sample'].astype(str).tolist()

    if sample_info['sample'].duplicated().any():
        n_duplicates = sample_info['sample'].duplicated().sum()
        errors.append(f"Sample information contains {n_duplicates} duplicate sample IDs")

    for col in SAMPLE_INFO_COLUMNS:
        if sample_info[col].isna().any():
            errors.append(f"Column '{col}' contains missing values")

    # Replicates per strain x minute group
    group_sizes = sample_info.groupby(['strain', 'minute']).size()
    replicates_per_group = {
        f"{strain}_{minute}": int(n) for (strain, minute), n in group_sizes.items()
    }
    for group, n in replicates_per_group.items():
        if n < 2:
            warnings.append(ValidationWarning(
                message=f"Group '{group}' has only {n} replicate(s).",
                severity="warning"
            ))

    if count_samples is not None:
        count_set = set(map(str, count_samples))
        info_set = set(sample_ids)

        missing_in_info = count_set - info_set
        missing_in_counts = info_set - count_set

        if missing_in_info:
            errors.append(
                f"Samples in count matrix but not in sample information: {', '.join(sorted(missing_in_info))}"
            )

        if missing_in_counts:
            warnings.append(ValidationWarning(
                message=f"Samples in sample information but not in count matrix: {', '.join(sorted(missing_in_counts))}",
                severity="info"
            ))

    strains = sorted(sample_info['strain'].dropna().astype(str).unique().tolist())
    try:
        minutes = sorted(int(m) for m in sample_info['minute'].dropna().unique())
    except (TypeError, ValueError):
        errors.append("Column 'minute' must contain whole numbers")
        minutes = []

    schema = SampleInfoSchema(
        n_samples=len(sample_info),
        sample_ids=sample_ids,
        strains=strains,
        minutes=minutes,
        replicates_per_group=replicates_per_group
    )

    summary = {
        "n_samples": len(sample_info),
        "strains": strains,
        "minutes": minutes
    }

    result = ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )

    return result, schema


def validate_test_results(
    results: pd.DataFrame
) -> Tuple[ValidationResult, Optional[DEResultSchema]]:
    """
    Validate differential expression test results.

    Args:
        results: Test results with one row per gene and comparison

    Returns:
        Tuple of (ValidationResult, DEResultSchema)
    """
    errors = []
    warnings = []

    if results.empty:
        errors.append("Test results are empty")
        return ValidationResult(valid=False, errors=errors), None

    missing_cols = [col for col in TEST_RESULT_COLUMNS if col not in results.columns]
    if missing_cols:
        errors.append(f"Test results are missing required columns: {', '.join(missing_cols)}")
        return ValidationResult(valid=False, errors=errors), None

    for col in ['pvalue', 'padj']:
        values = pd.to_numeric(results[col], errors='coerce').dropna()
        if ((values < 0) | (values > 1)).any():
            errors.append(f"Column '{col}' contains values outside [0, 1]")

    # NA padj is expected for genes removed by independent filtering
    n_missing_padj = int(results['padj'].isna().sum())
    if n_missing_padj:
        warnings.append(ValidationWarning(
            message=f"{n_missing_padj} rows have no adjusted p-value and will be treated as not significant.",
            severity="info"
        ))

    if results.duplicated(subset=['gene', 'comparison']).any():
        n_duplicates = results.duplicated(subset=['gene', 'comparison']).sum()
        errors.append(f"Test results contain {n_duplicates} duplicate gene/comparison rows")

    comparisons = [str(c) for c in results['comparison'].drop_duplicates()]

    schema = DEResultSchema(
        n_rows=len(results),
        n_genes=results['gene'].nunique(),
        comparisons=comparisons,
        n_missing_padj=n_missing_padj
    )

    summary = {
        "n_rows": len(results),
        "n_genes": schema.n_genes,
        "comparisons": comparisons
    }

    result = ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )

    return result, schema


def validate_dataset(dataset) -> ValidationResult:
    """
    Validate all four input tables together.

    Args:
        dataset: ExpressionDataset with raw and transformed counts,
            sample information and test results

    Returns:
        ValidationResult with combined validation from every table
    """
    all_errors = []
    all_warnings = []
    summary = {}

    for name, counts, raw in [
        ("raw_counts", dataset.raw_counts, True),
        ("transformed_counts", dataset.transformed_counts, False),
    ]:
        result, _ = validate_count_matrix(counts, raw=raw)
        all_errors.extend(f"{name}: {err}" for err in result.errors)
        all_warnings.extend(result.warnings)
        summary[name] = result.summary

    raw_samples = set(map(str, dataset.raw_counts.columns))
    trans_samples = set(map(str, dataset.transformed_counts.columns))
    if raw_samples != trans_samples:
        differing = sorted(raw_samples ^ trans_samples)
        all_errors.append(
            f"Raw and transformed counts have different samples: {', '.join(differing)}"
        )

    info_result, _ = validate_sample_info(
        dataset.sample_info,
        count_samples=dataset.raw_counts.columns.tolist()
    )
    all_errors.extend(info_result.errors)
    all_warnings.extend(info_result.warnings)
    summary["sample_info"] = info_result.summary

    test_result, _ = validate_test_results(dataset.test_results)
    all_errors.extend(test_result.errors)
    all_warnings.extend(test_result.warnings)
    summary["test_results"] = test_result.summary

    return ValidationResult(
        valid=len(all_errors) == 0,
        errors=all_errors,
        warnings=all_warnings,
        summary=summary
    )


def ensure_valid(result: ValidationResult) -> ValidationResult:
    """Log validation warnings and raise ValidationError if the result is invalid."""
    for warning in result.warnings:
        if warning.severity == "info":
            logger.info(warning.message)
        else:
            logger.warning(warning.message)

    if not result.valid:
        raise ValidationError(
            "Input validation failed:\n" + "\n".join(f"  - {err}" for err in result.errors)
        )
    return result
