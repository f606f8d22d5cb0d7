"""
TodoHub Error Hierarchy — Structured exceptions shared by the store,
the aggregation engine, the exporter and the HTTP surface.

Every error serializes to JSON so it can be written to the event log and
returned in the ``{success, message, error}`` response envelope.

Hierarchy:
    TodoHubError
    ├── ValidationError     — Input failed validation (HTTP 422)
    ├── BadRequestError     — Request is well-formed but not supported (HTTP 400)
    ├── NotFoundError       — No record for the given id / id set (HTTP 404)
    ├── PersistenceError    — Lower-layer storage failure (HTTP 500)
    └── ConfigError         — Invalid todohub.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TodoHubError(Exception):
    """
    Base error for all TodoHub failures.

    ``message`` is the human-readable summary, ``error`` an optional
    diagnostic detail (typically the wrapped exception text).
    """

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error: Optional[str] = context.get("error")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "error": self.error,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items() if k != "error"
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.error:
            parts.append(f"error={self.error}")
        return " | ".join(parts)


class ValidationError(TodoHubError):
    """
    Input validation failed.
    Includes field-level error details as ``[{"field": ..., "error": ...}]``.
    """

    status_code = 422

    def __init__(self, message: str, **context: Any):
        self.validation_errors: List[Dict[str, Any]] = context.get("validation_errors") or []
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        d["context"].pop("validation_errors", None)
        return d


class BadRequestError(TodoHubError):
    """Request parameter outside the supported set (e.g. unknown chart type)."""

    status_code = 400


class NotFoundError(TodoHubError):
    """No record for the given id, or zero records matched a delete-by-id-set."""

    status_code = 404

    def __init__(self, message: str, **context: Any):
        self.record_id: Optional[int] = context.get("record_id")
        super().__init__(message, **context)


class PersistenceError(TodoHubError):
    """Storage operation failed (create, update, delete, query)."""

    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.operation: Optional[str] = context.get("operation")
        super().__init__(message, **context)


class ConfigError(TodoHubError):
    """Configuration error — invalid todohub.yaml."""
    pass
