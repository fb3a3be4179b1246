"""Tests for config loading."""

from pathlib import Path

import pytest
import yaml

from paper_eval.config_loader import CONFIG_ENV_VAR, load_config, load_evaluation_config
from paper_eval.config_schema import ConfigError

REPO_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "evaluation.yaml"


# Raw loading

def test_load_config_reads_yaml(tmp_path):
    """Test load_config reads and parses YAML file."""
    config_file = tmp_path / "evaluation.yaml"
    config_data = {"domains": {"metadata": {"accuracy_weight": 0.7, "quality_weight": 0.3}}}
    config_file.write_text(yaml.dump(config_data))

    assert load_config(config_file) == config_data


def test_load_config_empty_file(tmp_path):
    """Test an empty YAML file loads as an empty dict."""
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")

    assert load_config(config_file) == {}


def test_load_config_from_env(tmp_path, monkeypatch):
    """Test the config path falls back to the environment variable."""
    config_file = tmp_path / "from_env.yaml"
    config_file.write_text("persistence:\n  debounce_seconds: 1.5\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))

    assert load_config() == {"persistence": {"debounce_seconds": 1.5}}


def test_load_config_missing_file(tmp_path):
    """Test load_config raises with a helpful message for missing files."""
    with pytest.raises(FileNotFoundError, match="not found"):
        load_config(tmp_path / "nope.yaml")


def test_relative_path_resolves_against_project_root(tmp_path, monkeypatch):
    """Test relative paths are tried against the project root."""
    monkeypatch.chdir(tmp_path)

    assert "domains" in load_config("configs/evaluation.yaml")


# Built configuration

def test_load_repository_config():
    """Test the shipped configuration is valid and applied."""
    config = load_evaluation_config(REPO_CONFIG)

    assert config.domain("metadata").accuracy_weight == 0.6
    assert config.domain("metadata").field_type("authors") == "list"
    assert config.domain("metadata").field_weight("venue") == 0.5
    assert config.similarity_weights["doi"]["edit_distance"] == 0.7
    assert config.validity_rules["date"]["min_year"] == 1900
    assert config.aggregation.moving_average_window == 3
    assert config.archive.endpoint is None
    assert config.debounce_seconds == 0.3


def test_load_invalid_config_raises(tmp_path):
    """Test invalid files raise ConfigError listing every problem."""
    config_file = tmp_path / "bad.yaml"
    config_file.write_text(
        yaml.dump(
            {
                "scoring": {"similarity_weights": {"default": {"edit_distance": 0.9, "token": 0.3}}},
                "domains": {"appendix": {}},
            }
        )
    )

    with pytest.raises(ConfigError) as exc_info:
        load_evaluation_config(config_file)
    assert len(exc_info.value.errors) == 2
