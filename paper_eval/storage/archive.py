"""Archival of a finished evaluation session.

A session is archived once: the metrics store is bundled with the evaluator
info into a JSON payload, validated, and handed to an archive client.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from jsonschema import ValidationError, validate

from ..engine.retry import run_with_retries
from .metrics_store import METRIC_TYPES, MetricsStore

logger = logging.getLogger(__name__)

ARCHIVAL_PAYLOAD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["timestamp", "token", "userInfo", "evaluationMetrics"],
    "properties": {
        "timestamp": {"type": "string", "minLength": 1},
        "token": {"type": "string", "minLength": 1},
        "userInfo": {"type": "object"},
        "evaluationMetrics": {
            "type": "object",
            "required": list(METRIC_TYPES),
            "properties": {
                metric_type: {
                    "type": "object",
                    "additionalProperties": {"type": "object"},
                }
                for metric_type in METRIC_TYPES
            },
        },
    },
}


class ArchiveWriteError(Exception):
    """An archival write failed.

    Attributes:
        retryable: Whether trying again later may succeed
        error_type: Short classification of the failure
    """

    def __init__(self, message: str, retryable: bool = False, error_type: str = "archive_error"):
        super().__init__(message)
        self.retryable = retryable
        self.error_type = error_type


def build_archival_payload(
    token: str,
    user_info: Dict[str, Any],
    store: MetricsStore,
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    """Bundle the store snapshot with session info.

    Raises:
        ArchiveWriteError: If the payload does not match the archival schema
    """
    payload = {
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        "token": token,
        "userInfo": dict(user_info or {}),
        "evaluationMetrics": store.snapshot(),
    }
    try:
        validate(instance=payload, schema=ARCHIVAL_PAYLOAD_SCHEMA)
    except ValidationError as e:
        raise ArchiveWriteError(
            f"Archival payload invalid: {e.message} (path: {list(e.absolute_path)})",
            retryable=False,
            error_type="invalid_payload",
        ) from e
    return payload


class ArchiveClient(Protocol):
    def write(self, token: str, payload: Dict[str, Any]) -> None:
        ...


class HttpArchiveClient:
    """Posts archival payloads as a repository dispatch event.

    The remote side commits ``payload`` as JSON under ``path_template``.
    The bearer token is read from the ``token_env`` environment variable.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        event_type: str = "update-evaluation",
        path_template: str = "src/data/evaluations/{token}.json",
        timeout: float = 30.0,
        max_attempts: int = 3,
        token_env: str = "GITHUB_TOKEN",
        client: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        if not endpoint:
            raise ValueError("Archive endpoint is required")
        self.endpoint = endpoint
        self.event_type = event_type
        self.path_template = path_template
        self.max_attempts = max_attempts
        self.api_token = os.getenv(token_env)
        if not self.api_token:
            raise ValueError(
                f"Archive token not found. Set {token_env} environment variable.\n"
                f"  - Add to .env file: {token_env}=your-token-here"
            )
        self.client = client or httpx.Client(timeout=timeout)
        self._sleep = sleep

    @classmethod
    def from_config(cls, archive_config, **kwargs) -> "HttpArchiveClient":
        return cls(
            archive_config.endpoint,
            event_type=archive_config.event_type,
            path_template=archive_config.path_template,
            timeout=archive_config.timeout,
            max_attempts=archive_config.max_attempts,
            token_env=archive_config.token_env,
            **kwargs,
        )

    def build_request_body(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "client_payload": {
                "token": token,
                "data": json.dumps(payload),
                "filename": self.path_template.format(token=token),
            },
        }

    def write(self, token: str, payload: Dict[str, Any]) -> None:
        body = self.build_request_body(token, payload)
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": "application/vnd.github.v3+json",
        }

        def _attempt(attempt: int) -> int:
            response = self.client.post(self.endpoint, json=body, headers=headers)
            response.raise_for_status()
            return response.status_code

        retry_kwargs = {"sleep": self._sleep} if self._sleep else {}
        status, error, error_type, retryable = run_with_retries(
            _attempt, max_attempts=self.max_attempts, **retry_kwargs
        )
        if error is not None:
            raise ArchiveWriteError(
                f"Archive write for {token} failed: {error}",
                retryable=retryable,
                error_type=error_type or "archive_error",
            )
        logger.info(f"Archived evaluation {token} (status {status})")


class ArchivalSession:
    """One evaluation session, archived at most once.

    ``saved`` flips to True only after the client accepted the payload. A
    saved session ignores further ``save()`` calls; a failed save leaves the
    session unsaved so it can be retried.
    """

    def __init__(self, token: str, user_info: Dict[str, Any], store: MetricsStore, client: ArchiveClient):
        self.token = token
        self.user_info = user_info
        self.store = store
        self.client = client
        self.saved = False
        self.last_payload: Optional[Dict[str, Any]] = None

    def save(self, timestamp: Optional[str] = None) -> bool:
        """Archive the session.

        Returns:
            True if this call wrote the payload, False if it was already saved

        Raises:
            ArchiveWriteError: If the payload is invalid or the write failed
        """
        if self.saved:
            logger.info(f"Evaluation {self.token} already archived, skipping")
            return False

        flush = getattr(self.store, "flush", None)
        if callable(flush):
            flush()

        payload = build_archival_payload(self.token, self.user_info, self.store, timestamp)
        try:
            self.client.write(self.token, payload)
        except ArchiveWriteError:
            raise
        except Exception as e:
            raise ArchiveWriteError(
                f"Archive write for {self.token} failed: {e}", retryable=True, error_type="client_error"
            ) from e

        self.saved = True
        self.last_payload = payload
        return True
