"""RNA-seq Explorer - exploratory analysis of RNA-seq time courses."""

__version__ = "0.1.0"

from .config import get_config, Config
from .data_loader import ExpressionDataset, load_dataset
from .validation import ValidationError, validate_dataset
from .pca import run_pca, top_loading_genes
from .clustering import ClusteringError, cluster_genes
from .report import build_report, run_analysis

__all__ = [
    'get_config',
    'Config',
    'ExpressionDataset',
    'load_dataset',
    'ValidationError',
    'validate_dataset',
    'run_pca',
    'top_loading_genes',
    'ClusteringError',
    'cluster_genes',
    'build_report',
    'run_analysis'
]
