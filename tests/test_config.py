"""Tests for configuration handling."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from rnaseq_explorer import config as config_module
from rnaseq_explorer.config import CONFIG_TEMPLATE, Config, get_config, set_config


class TestConfig:
    """Tests for the Config model."""

    def test_defaults(self):
        config = Config()

        assert config.analysis.padj_threshold == 0.01
        assert config.analysis.n_clusters == 5
        assert config.analysis.linkage_method == "complete"
        assert config.paths.raw_counts == Path("data") / "counts_raw.csv"
        assert config.paths.report == Path("output") / "rnaseq_exploration.html"

    def test_yaml_round_trip(self, tmp_path):
        config = Config()
        config.analysis.n_clusters = 4
        path = tmp_path / "config.yaml"

        config.to_yaml(path)
        loaded = Config.from_yaml(path)

        assert loaded.analysis.n_clusters == 4
        assert loaded.paths.data_dir == config.paths.data_dir
        assert isinstance(yaml.safe_load(path.read_text())['paths']['data_dir'], str)

    def test_template_is_valid(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_TEMPLATE)

        loaded = Config.from_yaml(path)

        assert loaded.analysis.compare_methods == ["complete", "average", "ward"]
        assert loaded.analysis.cut_height is None

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RNASEQ_ANALYSIS__N_CLUSTERS", "7")
        monkeypatch.setenv("RNASEQ_REPORT_TITLE", "Stress time course")

        config = Config()

        assert config.analysis.n_clusters == 7
        assert config.report_title == "Stress time course"

    def test_invalid_threshold(self):
        with pytest.raises(ValidationError):
            Config(analysis={'padj_threshold': 1.5})


class TestGlobalConfig:
    """Tests for the module-level configuration instance."""

    def test_get_config_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_config().analysis.n_clusters == 5
        assert get_config() is get_config()

    def test_get_config_reads_default_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        Path(config_module.DEFAULT_CONFIG_FILE).write_text("analysis:\n  n_clusters: 3\n")

        assert get_config().analysis.n_clusters == 3

    def test_set_config(self):
        custom = Config(report_title="Custom")

        set_config(custom)

        assert get_config() is custom
