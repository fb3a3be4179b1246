"""Evaluation configuration schema, validation and defaults.

Raw configuration is a plain dict (usually loaded from YAML). It is checked
with ``validate_evaluation_config`` and turned into frozen dataclasses by
``build_evaluation_config``, which fills in defaults for anything omitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .metrics.models import (
    DEFAULT_QUALITY_WEIGHTS,
    DEFAULT_SIMILARITY_WEIGHTS,
    FIELD_TYPES,
    normalize_field_type,
)

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE = 0.01

DOMAINS = ("metadata", "research_field", "research_problem", "template", "content")

DEFAULT_DOMAIN_FIELDS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "metadata": {
        "title": {"type": "text"},
        "authors": {"type": "list"},
        "doi": {"type": "doi"},
        "publication_year": {"type": "date"},
        "venue": {"type": "text"},
    },
    "research_field": {
        "primary_field": {"type": "resource"},
    },
    "research_problem": {
        "title": {"type": "text"},
        "description": {"type": "text"},
    },
    "template": {
        "name": {"type": "text"},
        "description": {"type": "text"},
        "properties": {"type": "list"},
    },
    "content": {},
}


class ConfigError(ValueError):
    """Raised when an evaluation configuration fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid evaluation configuration:\n" + "\n".join(f"  - {e}" for e in self.errors))


@dataclass(frozen=True)
class FieldConfig:
    name: str
    field_type: str = "text"
    weight: float = 1.0


@dataclass(frozen=True)
class DomainConfig:
    name: str
    accuracy_weight: float = 0.5
    quality_weight: float = 0.5
    fields: Dict[str, FieldConfig] = field(default_factory=dict)

    def field_type(self, field_name: str) -> str:
        config = self.fields.get(field_name)
        return config.field_type if config else "text"

    def field_weight(self, field_name: str) -> float:
        config = self.fields.get(field_name)
        return config.weight if config else 1.0


@dataclass(frozen=True)
class AggregationConfig:
    high_threshold: float = 0.8
    partial_threshold: float = 0.5
    moving_average_window: int = 3
    minimal_effect_tolerance: float = 1e-4
    disagreement_threshold: float = 0.15


@dataclass(frozen=True)
class ArchiveConfig:
    endpoint: Optional[str] = None
    event_type: str = "update-evaluation"
    path_template: str = "src/data/evaluations/{token}.json"
    timeout: float = 30.0
    max_attempts: int = 3
    token_env: str = "GITHUB_TOKEN"


@dataclass(frozen=True)
class EvaluationConfig:
    similarity_weights: Dict[str, Dict[str, float]]
    quality_weights: Dict[str, Dict[str, float]]
    validity_rules: Dict[str, Dict[str, Any]]
    domains: Dict[str, DomainConfig]
    aggregation: AggregationConfig = AggregationConfig()
    archive: ArchiveConfig = ArchiveConfig()
    debounce_seconds: float = 0.3
    log_level: str = "INFO"

    def domain(self, name: str) -> DomainConfig:
        return self.domains.get(name) or DomainConfig(name=name)

    @classmethod
    def default(cls) -> "EvaluationConfig":
        return build_evaluation_config({})


def _check_weight_set(label: str, weights: Any, allowed: Mapping[str, float], errors: List[str]) -> None:
    if not isinstance(weights, dict):
        errors.append(f"{label} must be a mapping of component to weight")
        return
    unknown = sorted(set(weights) - set(allowed))
    if unknown:
        errors.append(f"{label} has unknown components: {', '.join(unknown)}")
    values = []
    for key, value in weights.items():
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{label}.{key} must be a number")
            continue
        if value < 0:
            errors.append(f"{label}.{key} must not be negative")
        values.append(float(value))
    if values and abs(sum(values) - 1.0) > WEIGHT_SUM_TOLERANCE:
        errors.append(f"{label} weights sum to {sum(values):.3f}, expected 1.0")


def validate_evaluation_config(config: Dict[str, Any]) -> List[str]:
    """Validate a raw evaluation configuration.

    Args:
        config: Raw configuration dict

    Returns:
        List of validation error messages (empty if valid)
    """
    errors: List[str] = []
    if not isinstance(config, dict):
        return ["Configuration must be a mapping"]

    scoring = config.get("scoring", {}) or {}
    for section, defaults in (
        ("similarity_weights", DEFAULT_SIMILARITY_WEIGHTS),
        ("quality_weights", DEFAULT_QUALITY_WEIGHTS),
    ):
        by_type = scoring.get(section, {}) or {}
        if not isinstance(by_type, dict):
            errors.append(f"scoring.{section} must be a mapping")
            continue
        for field_type, weights in by_type.items():
            if field_type != "default" and field_type not in FIELD_TYPES:
                errors.append(f"scoring.{section} has unknown field type '{field_type}'")
            _check_weight_set(f"scoring.{section}.{field_type}", weights, defaults, errors)

    domains = config.get("domains", {}) or {}
    if not isinstance(domains, dict):
        errors.append("domains must be a mapping")
        domains = {}
    for name, domain in domains.items():
        if name not in DOMAINS:
            errors.append(f"Unknown domain '{name}'. Must be one of: {', '.join(DOMAINS)}")
            continue
        domain = domain or {}
        if "accuracy_weight" in domain or "quality_weight" in domain:
            _check_weight_set(
                f"domains.{name}",
                {
                    "accuracy": domain.get("accuracy_weight", 0.5),
                    "quality": domain.get("quality_weight", 0.5),
                },
                {"accuracy": 0.5, "quality": 0.5},
                errors,
            )
        for field_name, field_config in (domain.get("fields") or {}).items():
            field_config = field_config or {}
            declared = field_config.get("type", "text")
            if normalize_field_type(declared) == "text" and str(declared).lower() not in ("text", "string"):
                errors.append(f"domains.{name}.fields.{field_name} has unknown type '{declared}'")
            weight = field_config.get("weight", 1.0)
            if not isinstance(weight, (int, float)) or weight <= 0:
                errors.append(f"domains.{name}.fields.{field_name}.weight must be a positive number")

    aggregation = config.get("aggregation", {}) or {}
    high = aggregation.get("high_threshold", AggregationConfig.high_threshold)
    partial = aggregation.get("partial_threshold", AggregationConfig.partial_threshold)
    if not (0 <= partial < high <= 1):
        errors.append("aggregation thresholds must satisfy 0 <= partial_threshold < high_threshold <= 1")
    window = aggregation.get("moving_average_window", AggregationConfig.moving_average_window)
    if not isinstance(window, int) or window < 1:
        errors.append("aggregation.moving_average_window must be a positive integer")

    archive = config.get("archive", {}) or {}
    attempts = archive.get("max_attempts", ArchiveConfig.max_attempts)
    if not isinstance(attempts, int) or attempts < 1:
        errors.append("archive.max_attempts must be a positive integer")

    return errors


def _build_domain(name: str, raw: Mapping[str, Any]) -> DomainConfig:
    raw_fields = raw.get("fields")
    if raw_fields is None:
        raw_fields = DEFAULT_DOMAIN_FIELDS.get(name, {})
    fields = {
        field_name: FieldConfig(
            name=field_name,
            field_type=normalize_field_type((field_spec or {}).get("type", "text")),
            weight=float((field_spec or {}).get("weight", 1.0)),
        )
        for field_name, field_spec in raw_fields.items()
    }
    return DomainConfig(
        name=name,
        accuracy_weight=float(raw.get("accuracy_weight", 0.5)),
        quality_weight=float(raw.get("quality_weight", 0.5)),
        fields=fields,
    )


def build_evaluation_config(config: Optional[Dict[str, Any]]) -> EvaluationConfig:
    """Validate a raw config and build an ``EvaluationConfig`` with defaults applied.

    Raises:
        ConfigError: If validation fails
    """
    config = config or {}
    errors = validate_evaluation_config(config)
    if errors:
        raise ConfigError(errors)

    scoring = config.get("scoring", {}) or {}
    similarity = {"default": dict(DEFAULT_SIMILARITY_WEIGHTS)}
    similarity.update({k: dict(v) for k, v in (scoring.get("similarity_weights") or {}).items()})
    quality = {"default": dict(DEFAULT_QUALITY_WEIGHTS)}
    quality.update({k: dict(v) for k, v in (scoring.get("quality_weights") or {}).items()})

    raw_domains = config.get("domains", {}) or {}
    domains = {name: _build_domain(name, raw_domains.get(name) or {}) for name in DOMAINS}

    aggregation_raw = config.get("aggregation", {}) or {}
    archive_raw = config.get("archive", {}) or {}
    persistence = config.get("persistence", {}) or {}

    return EvaluationConfig(
        similarity_weights=similarity,
        quality_weights=quality,
        validity_rules={k: dict(v or {}) for k, v in (scoring.get("validity") or {}).items()},
        domains=domains,
        aggregation=AggregationConfig(
            **{k: v for k, v in aggregation_raw.items() if k in AggregationConfig.__dataclass_fields__}
        ),
        archive=ArchiveConfig(**{k: v for k, v in archive_raw.items() if k in ArchiveConfig.__dataclass_fields__}),
        debounce_seconds=float(persistence.get("debounce_seconds", 0.3)),
        log_level=str((config.get("logging") or {}).get("level", "INFO")),
    )
