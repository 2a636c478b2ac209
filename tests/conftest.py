"""Shared fixtures for the test suite."""

import numpy as np
import pandas as pd
import pytest

from rnaseq_explorer.config import Config, PathConfig, set_config
from rnaseq_explorer.example_data import generate_example_data, write_example_data


@pytest.fixture
def dataset():
    """Small synthetic time course (2 strains x 6 time points x 3 replicates)."""
    return generate_example_data(n_genes=200, n_trend_genes=40, seed=7)


@pytest.fixture
def data_dir(tmp_path, dataset):
    """Directory holding the four lesson CSV files."""
    return write_example_data(dataset, tmp_path / "data")


@pytest.fixture
def config(tmp_path, data_dir):
    """Configuration pointing at the example data."""
    return Config(paths=PathConfig(data_dir=data_dir, output_dir=tmp_path / "output"))


@pytest.fixture
def grouped_matrix():
    """Expression matrix with three well separated gene patterns."""
    rng = np.random.default_rng(0)
    patterns = [
        np.array([0, 1, 2, 3, 4, 5], dtype=float),
        np.array([5, 4, 3, 2, 1, 0], dtype=float),
        np.array([0, 5, 0, 5, 0, 5], dtype=float),
    ]
    rows = []
    genes = []
    for p, pattern in enumerate(patterns):
        for i in range(10):
            rows.append(pattern * rng.uniform(1, 2) + rng.normal(0, 0.05, 6) + 10)
            genes.append(f"gene_{p}_{i}")
    return pd.DataFrame(rows, index=genes, columns=[f"s{j}" for j in range(6)])


@pytest.fixture(autouse=True)
def reset_config():
    """Keep the global configuration isolated between tests."""
    set_config(None)
    yield
    set_config(None)
