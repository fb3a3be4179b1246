"""Debounced writes in front of a metrics store.

Rapid edits (an evaluator dragging a rating slider, typing a comment) are
collected in a pending snapshot and written once the edits go quiet.
"""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Callable, Dict, Optional

from .metrics_store import MetricPath, MetricsStore, check_path

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


def _descend(value: Any, parts: tuple) -> Any:
    for part in parts:
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return copy.deepcopy(value)


class DebouncedWriter:
    """Coalesces writes to ``store`` until ``delay`` seconds pass without edits.

    The writer has no thread of its own: callers ``poll()`` periodically (or
    ``flush()`` on shutdown). Reads see pending values before they are
    written. When the same path is written twice before a flush, the last
    value wins.

    Args:
        store: Backing metrics store
        delay: Idle window in seconds before pending writes are flushed
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        store: MetricsStore,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.delay = delay
        self.clock = clock
        self._pending: Dict[tuple, Any] = {}
        self._deadline: Optional[float] = None
        self.flush_count = 0

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def get(self, path: MetricPath) -> Any:
        parts = check_path(path)
        value = self.store.get(parts)
        # replay pending writes in the order they were set, the last one wins
        for pending_path, pending_value in self._pending.items():
            depth = len(pending_path)
            if depth <= len(parts) and parts[:depth] == pending_path:
                value = _descend(pending_value, parts[depth:])
            elif depth > len(parts) and pending_path[: len(parts)] == parts:
                if not isinstance(value, dict):
                    value = {}
                node = value
                for part in pending_path[len(parts):-1]:
                    if not isinstance(node.get(part), dict):
                        node[part] = {}
                    node = node[part]
                node[pending_path[-1]] = copy.deepcopy(pending_value)
        return value

    def set(self, path: MetricPath, value: Any) -> None:
        parts = check_path(path)
        self._pending.pop(parts, None)
        self._pending[parts] = copy.deepcopy(value)
        self.schedule()

    def merge(self, path: MetricPath, value: Dict[str, Any]) -> None:
        current = self.get(path)
        merged = dict(current) if isinstance(current, dict) else {}
        merged.update(value)
        self.set(path, merged)

    def snapshot(self) -> Dict[str, Any]:
        data = self.store.snapshot()
        for parts, value in self._pending.items():
            node = data
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = copy.deepcopy(value)
        return data

    def schedule(self) -> None:
        """Push the flush deadline ``delay`` seconds past now."""
        self._deadline = self.clock() + self.delay

    def poll(self) -> bool:
        """Flush if the idle window has elapsed. Returns True when a flush happened."""
        if self._deadline is None or not self._pending:
            return False
        if self.clock() < self._deadline:
            return False
        self.flush()
        return True

    def flush(self) -> None:
        """Write every pending value now, in the order it was last set."""
        if not self._pending:
            self._deadline = None
            return
        pending, self._pending = self._pending, {}
        self._deadline = None
        for parts, value in pending.items():
            self.store.set(parts, value)
        self.flush_count += 1
        logger.debug(f"Flushed {len(pending)} pending metric write(s)")
