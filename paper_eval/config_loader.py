"""Configuration loader for paper_eval."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .config_schema import EvaluationConfig, build_evaluation_config

CONFIG_ENV_VAR = "PAPER_EVAL_CONFIG"
DEFAULT_CONFIG_PATH = "configs/evaluation.yaml"


def _find_project_root(start: Path) -> Path:
    current = start
    while current != current.parent:
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    return start


def _resolve_config_path(config_path: Union[str, Path]) -> Path:
    path = Path(config_path)
    if path.exists():
        return path
    if path.is_absolute():
        return path
    return _find_project_root(Path(__file__).resolve()) / path


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load the raw evaluation configuration from YAML.

    Args:
        config_path: Path to the YAML file. Defaults to ``$PAPER_EVAL_CONFIG``
            or ``configs/evaluation.yaml``; relative paths are also tried
            against the project root.

    Raises:
        FileNotFoundError: If the file does not exist (lists available configs)
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)

    config_path = _resolve_config_path(config_path)

    if not config_path.exists():
        available_configs = []
        configs_dir = _resolve_config_path("configs")
        if configs_dir.exists():
            available_configs = sorted(str(path) for path in configs_dir.glob("*.yaml"))

        error_msg = f"Configuration file '{config_path}' not found."
        if available_configs:
            error_msg += "\n\nAvailable configurations:\n" + "\n".join(
                f"  - {cfg}" for cfg in available_configs[:5]
            )
            if len(available_configs) > 5:
                error_msg += f"\n  ... and {len(available_configs) - 5} more in configs/"
        error_msg += f"\n\nTry: paper-eval validate-config --config <path-to-config.yaml> or set {CONFIG_ENV_VAR}"

        raise FileNotFoundError(error_msg)

    with config_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_evaluation_config(config_path: Optional[Union[str, Path]] = None) -> EvaluationConfig:
    """Load, validate and build the evaluation configuration.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the configuration is invalid
    """
    return build_evaluation_config(load_config(config_path))
