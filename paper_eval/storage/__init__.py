"""Persistence of evaluation metrics.

- Metrics store: three-level ``metric_type -> domain -> field`` mapping
- DebouncedWriter: coalesces rapid edits before they hit the store
- Archival: payload building, at-most-once sessions and the HTTP client
"""

from .archive import (
    ARCHIVAL_PAYLOAD_SCHEMA,
    ArchivalSession,
    ArchiveWriteError,
    HttpArchiveClient,
    build_archival_payload,
)
from .debounce import DEFAULT_DEBOUNCE_SECONDS, DebouncedWriter
from .metrics_store import (
    METRIC_TYPES,
    InMemoryMetricsStore,
    JsonFileMetricsStore,
    MetricsStore,
    check_path,
)

__all__ = [
    # Store
    "METRIC_TYPES",
    "MetricsStore",
    "InMemoryMetricsStore",
    "JsonFileMetricsStore",
    "check_path",
    # Debounce
    "DebouncedWriter",
    "DEFAULT_DEBOUNCE_SECONDS",
    # Archive
    "ARCHIVAL_PAYLOAD_SCHEMA",
    "ArchivalSession",
    "ArchiveWriteError",
    "HttpArchiveClient",
    "build_archival_payload",
]
