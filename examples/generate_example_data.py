"""Generate example datasets for trying out the RNA-seq exploration workflow."""

import logging
from pathlib import Path

from rnaseq_explorer.config import Config, PathConfig
from rnaseq_explorer.example_data import generate_example_data, write_example_data
from rnaseq_explorer.report import run_analysis


def generate_standard_dataset(output_dir: str = "examples/data"):
    """Lesson-sized dataset: 2 strains x 6 time points x 3 replicates."""
    dataset = generate_example_data(n_genes=2000, n_trend_genes=200, seed=42)
    write_example_data(dataset, output_dir)
    return dataset


def generate_minimal_dataset(output_dir: str = "examples/minimal"):
    """A minimal dataset for quick testing."""
    dataset = generate_example_data(n_genes=100, n_trend_genes=20, n_replicates=2, seed=42)
    write_example_data(dataset, output_dir)
    return dataset


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    print("Generating standard example dataset...")
    dataset = generate_standard_dataset()
    print(f"  - Genes: {dataset.raw_counts.shape[0]}")
    print(f"  - Samples: {dataset.raw_counts.shape[1]}")
    print(f"  - Comparisons: {dataset.test_results['comparison'].nunique()}")

    print("\nGenerating minimal dataset...")
    generate_minimal_dataset()

    print("\nRendering report for the standard dataset...")
    config = Config(paths=PathConfig(data_dir=Path("examples/data"), output_dir=Path("examples/output")))
    report = run_analysis(config)
    print(f"\n✓ Report written to {report}")
