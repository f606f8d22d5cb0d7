"""Response envelope: ``{success, message, data?, error?}``."""

from __future__ import annotations

from typing import Any, Dict

from todohub.engine.errors import TodoHubError, ValidationError

_MISSING = object()


def ok(message: str, data: Any = _MISSING, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not _MISSING:
        body["data"] = data
    body.update(extra)
    return body


def failure(message: str, error: Any = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return body


def error_envelope(exc: TodoHubError) -> Dict[str, Any]:
    if isinstance(exc, ValidationError):
        return failure(exc.message, exc.error, errors=exc.validation_errors)
    return failure(exc.message, exc.error)
