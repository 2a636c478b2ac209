"""Configuration management for the RNA-seq exploration workflow."""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml


DEFAULT_CONFIG_FILE = Path("rnaseq_explorer.yaml")


class AnalysisDefaults(BaseModel):
    """Default analysis parameters."""

    padj_threshold: float = Field(default=0.01, gt=0.0, le=1.0)
    lfc_threshold: float = Field(default=0.0, ge=0.0)
    n_clusters: int = Field(default=5, ge=1)
    cut_height: Optional[float] = Field(default=None, gt=0.0)  # overrides n_clusters
    linkage_method: str = Field(default="complete")
    distance_metric: str = Field(default="euclidean")
    n_components: Optional[int] = Field(default=None, ge=1)
    top_n_loadings: int = Field(default=10, ge=1)
    compare_methods: List[str] = ["complete", "average", "ward"]


class PathConfig(BaseModel):
    """Input and output locations."""

    data_dir: Path = Path("data")
    output_dir: Path = Path("output")
    raw_counts_file: str = "counts_raw.csv"
    transformed_counts_file: str = "counts_transformed.csv"
    sample_info_file: str = "sample_info.csv"
    test_results_file: str = "test_result.csv"
    report_name: str = "rnaseq_exploration.html"

    @property
    def raw_counts(self) -> Path:
        return self.data_dir / self.raw_counts_file

    @property
    def transformed_counts(self) -> Path:
        return self.data_dir / self.transformed_counts_file

    @property
    def sample_info(self) -> Path:
        return self.data_dir / self.sample_info_file

    @property
    def test_results(self) -> Path:
        return self.data_dir / self.test_results_file

    @property
    def report(self) -> Path:
        return self.output_dir / self.report_name


class PlotConfig(BaseModel):
    """Plot appearance settings."""

    template: str = "plotly_white"
    width: int = Field(default=900, ge=200)
    height: int = Field(default=600, ge=200)
    strain_colors: Dict[str, str] = {
        "wt": "#3498DB",
        "mut": "#E74C3C",
    }
    significant_color: str = "#E74C3C"
    not_significant_color: str = "#95A5A6"


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="RNASEQ_",
        env_nested_delimiter="__",
    )

    analysis: AnalysisDefaults = Field(default_factory=AnalysisDefaults)
    paths: PathConfig = Field(default_factory=PathConfig)
    plots: PlotConfig = Field(default_factory=PlotConfig)

    report_title: str = "Exploratory analysis of an RNA-seq time course"

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        """Save configuration to YAML file."""
        data = self.model_dump()
        # Convert Path objects to strings
        def convert_paths(obj):
            if isinstance(obj, dict):
                return {k: convert_paths(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_paths(item) for item in obj]
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        data = convert_paths(data)

        with open(path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        if DEFAULT_CONFIG_FILE.exists():
            _config = Config.from_yaml(DEFAULT_CONFIG_FILE)
        else:
            _config = Config()
    return _config


def set_config(config: Optional[Config]):
    """Set the global configuration instance (None resets it)."""
    global _config
    _config = config


# Example rnaseq_explorer.yaml template
CONFIG_TEMPLATE = """
# RNA-seq exploration configuration

analysis:
  padj_threshold: 0.01       # Adjusted p-value cutoff for candidate genes
  lfc_threshold: 0.0         # Minimum |log2 fold change| for candidate genes
  n_clusters: 5              # Number of gene clusters to cut the tree into
  cut_height: null           # Cut the tree at this height instead (overrides n_clusters)
  linkage_method: complete   # complete, average, single, ward, ...
  distance_metric: euclidean
  n_components: null         # PCA components (null = all)
  top_n_loadings: 10         # Genes with the largest loadings shown per PC
  compare_methods:
    - complete
    - average
    - ward

paths:
  data_dir: data
  output_dir: output
  raw_counts_file: counts_raw.csv
  transformed_counts_file: counts_transformed.csv
  sample_info_file: sample_info.csv
  test_results_file: test_result.csv
  report_name: rnaseq_exploration.html

plots:
  template: plotly_white
  width: 900
  height: 600

report_title: Exploratory analysis of an RNA-seq time course
"""


if __name__ == "__main__":
    config = get_config()
    print(f"Data directory: {config.paths.data_dir}")
    print(f"padj threshold: {config.analysis.padj_threshold}")
    print(f"Clusters: {config.analysis.n_clusters} ({config.analysis.linkage_method} linkage)")
