"""Tests for reading the input tables."""

import pandas as pd
import pytest

from rnaseq_explorer.data_loader import (
    ExpressionDataset,
    load_dataset,
    read_counts,
    read_sample_info,
    read_table,
    read_test_results
)
from rnaseq_explorer.validation import ValidationError, validate_sample_info


class TestFileReading:
    """Tests for file reading functions."""

    def test_read_counts_csv(self, data_dir, dataset):
        """Test reading a wide CSV count table."""
        df = read_counts(data_dir / "counts_raw.csv")

        assert df.shape == dataset.raw_counts.shape
        assert df.index.name == 'gene'
        assert list(df.columns) == list(dataset.raw_counts.columns)
        assert df.index[0] == dataset.raw_counts.index[0]

    def test_read_counts_tsv(self, tmp_path, dataset):
        """Test reading a TSV count table."""
        filepath = tmp_path / "counts.tsv"
        dataset.raw_counts.reset_index().to_csv(filepath, sep='\t', index=False)

        df = read_counts(filepath)

        assert df.shape == dataset.raw_counts.shape

    def test_read_counts_excel(self, tmp_path, dataset):
        """Test reading an Excel count table."""
        filepath = tmp_path / "counts.xlsx"
        dataset.raw_counts.reset_index().to_excel(filepath, index=False)

        df = read_counts(filepath)

        assert df.shape == dataset.raw_counts.shape

    def test_read_counts_unnamed_gene_column(self, tmp_path, dataset):
        """The first column is used when there is no 'gene' column."""
        filepath = tmp_path / "counts.csv"
        dataset.raw_counts.rename_axis(index=None).to_csv(filepath)

        df = read_counts(filepath)

        assert df.shape == dataset.raw_counts.shape
        assert df.index.name == 'gene'

    def test_read_table_strips_column_names(self, tmp_path):
        filepath = tmp_path / "table.csv"
        filepath.write_text("gene , wt_0_r1\nSPAC1,3\n")

        df = read_table(filepath)

        assert list(df.columns) == ['gene', 'wt_0_r1']

    def test_read_sample_info_types(self, data_dir):
        info = read_sample_info(data_dir / "sample_info.csv")

        assert list(info.columns[:4]) == ['sample', 'strain', 'minute', 'replicate']
        assert pd.api.types.is_integer_dtype(info['minute'])
        assert info['replicate'].iloc[0] == 'r1'

    def test_read_sample_info_keeps_missing_values(self, tmp_path):
        filepath = tmp_path / "sample_info.csv"
        filepath.write_text(
            "sample,strain,minute,replicate\n"
            "wt_0_r1, wt ,0,r1\n"
            "wt_0_r2,,0,r2\n"
        )

        info = read_sample_info(filepath)

        assert info['strain'].iloc[0] == 'wt'
        assert info['strain'].isna().iloc[1]
        result, _ = validate_sample_info(info)
        assert "Column 'strain' contains missing values" in result.errors

    def test_read_test_results(self, data_dir, dataset):
        results = read_test_results(data_dir / "test_result.csv")

        assert len(results) == len(dataset.test_results)
        assert pd.api.types.is_float_dtype(results['padj'])


class TestLoadDataset:
    """Tests for loading the whole dataset."""

    def test_load_dataset(self, config, dataset):
        loaded = load_dataset(config.paths)

        assert isinstance(loaded, ExpressionDataset)
        assert loaded.raw_counts.shape == dataset.raw_counts.shape
        assert loaded.transformed_counts.shape == dataset.transformed_counts.shape
        assert loaded.samples == dataset.samples
        assert len(loaded.genes) == 200

    def test_load_invalid_dataset_raises(self, config, dataset):
        info = dataset.sample_info.iloc[2:]
        info.to_csv(config.paths.sample_info, index=False)

        with pytest.raises(ValidationError, match="not in sample information"):
            load_dataset(config.paths)

    def test_load_without_validation(self, config, dataset):
        info = dataset.sample_info.iloc[2:]
        info.to_csv(config.paths.sample_info, index=False)

        loaded = load_dataset(config.paths, validate=False)

        assert len(loaded.sample_info) == len(dataset.sample_info) - 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
