"""Key-value store for per-field evaluation metrics.

Records live in a three-level mapping::

    metric_type (accuracy | quality | overall) -> domain -> field -> value

A path is a tuple of one to three keys, starting at the metric type.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence, Union

logger = logging.getLogger(__name__)

METRIC_TYPES = ("accuracy", "quality", "overall")

MetricPath = Sequence[str]


def check_path(path: MetricPath) -> tuple:
    """Validate a metric path and return it as a tuple.

    Raises:
        ValueError: If the path is empty, too deep or names an unknown metric type
    """
    parts = tuple(path)
    if not 1 <= len(parts) <= 3:
        raise ValueError(f"Metric path must have 1 to 3 parts, got {len(parts)}: {parts!r}")
    if parts[0] not in METRIC_TYPES:
        raise ValueError(f"Unknown metric type '{parts[0]}'. Must be one of: {', '.join(METRIC_TYPES)}")
    for part in parts:
        if not isinstance(part, str) or not part:
            raise ValueError(f"Metric path parts must be non-empty strings: {parts!r}")
    return parts


def _empty_snapshot() -> Dict[str, Any]:
    return {metric_type: {} for metric_type in METRIC_TYPES}


def _sanitize(data: Any) -> Dict[str, Any]:
    """Keep only well-formed metric-type/domain levels of a loaded store."""
    snapshot = _empty_snapshot()
    if not isinstance(data, dict):
        return snapshot
    for metric_type in METRIC_TYPES:
        domains = data.get(metric_type)
        if not isinstance(domains, dict):
            continue
        for domain, fields in domains.items():
            if isinstance(fields, dict):
                snapshot[metric_type][domain] = fields
            else:
                logger.warning(f"Dropping malformed metrics entry {metric_type}/{domain}")
    return snapshot


class MetricsStore(Protocol):
    """Contract for metric stores."""

    def get(self, path: MetricPath) -> Any:
        ...

    def set(self, path: MetricPath, value: Any) -> None:
        ...

    def merge(self, path: MetricPath, value: Dict[str, Any]) -> None:
        ...

    def snapshot(self) -> Dict[str, Any]:
        ...


class InMemoryMetricsStore:
    """Dict-backed metrics store."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data = _sanitize(copy.deepcopy(initial)) if initial else _empty_snapshot()

    def get(self, path: MetricPath) -> Any:
        node: Any = self._data
        for part in check_path(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def set(self, path: MetricPath, value: Any) -> None:
        parts = check_path(path)
        if len(parts) < 3 and not isinstance(value, dict):
            raise ValueError(f"Value stored at {'/'.join(parts)} must be a mapping")
        node = self._data
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = copy.deepcopy(value)
        self._changed()

    def merge(self, path: MetricPath, value: Dict[str, Any]) -> None:
        """Shallow-merge ``value`` into the mapping stored at ``path``."""
        current = self.get(path)
        merged = dict(current) if isinstance(current, dict) else {}
        merged.update(value)
        self.set(path, merged)

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def _changed(self) -> None:
        """Hook for subclasses that persist on change."""


class JsonFileMetricsStore(InMemoryMetricsStore):
    """Metrics store persisted to a JSON file on every change.

    A missing or unreadable file starts an empty store.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.info(f"No metrics store at {self.path}, starting empty")
            return _empty_snapshot()
        try:
            with open(self.path, encoding="utf-8") as f:
                return _sanitize(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read metrics store {self.path}: {e}. Starting empty")
            return _empty_snapshot()

    def _changed(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
