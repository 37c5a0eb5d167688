"""Error taxonomy shared by every component that talks to the core service.

Everything that goes wrong across the command boundary ends up as a
``CommandError`` carrying one normalized ``AppError`` record, so callers
branch on ``err.code`` and never on how the transport delivered the failure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional

# Transport / shape
TRANSPORT_TIMEOUT = "TRANSPORT_TIMEOUT"
TRANSPORT_NO_HANDLER = "TRANSPORT_NO_HANDLER"
TRANSPORT_INVALID_RESPONSE = "TRANSPORT_INVALID_RESPONSE"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
CLIENT_SCHEMA_VIOLATION = "CLIENT_SCHEMA_VIOLATION"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

# Domain codes the client branches on
WORKSPACE_DB_NOT_FOUND = "WORKSPACE_DB_NOT_FOUND"
WORKSPACE_DB_LOCKED = "WORKSPACE_DB_LOCKED"
AI_OLLAMA_UNHEALTHY = "AI_OLLAMA_UNHEALTHY"

# Client-side preconditions
PRECONDITION_NO_WORKSPACE = "CLIENT_NO_ACTIVE_WORKSPACE"
DESTRUCTIVE_NO_SOURCE = "DESTRUCTIVE_NO_SOURCE"
DESTRUCTIVE_NOT_INSPECTED = "DESTRUCTIVE_NOT_INSPECTED"
DESTRUCTIVE_STALE_SOURCE = "DESTRUCTIVE_STALE_SOURCE"
DESTRUCTIVE_COMMIT_IN_FLIGHT = "DESTRUCTIVE_COMMIT_IN_FLIGHT"
RESTORE_CONFIRMATION_REQUIRED = "RESTORE_CONFIRMATION_REQUIRED"

_TRANSPORT_REPLIES = {
    "timeout": (TRANSPORT_TIMEOUT, "Core service did not answer in time.", True),
    "no_handler": (TRANSPORT_NO_HANDLER, "Core service does not handle this command.", False),
    "invalid_response": (TRANSPORT_INVALID_RESPONSE, "Core service sent an invalid response.", False),
}


@dataclass(frozen=True)
class AppError:
    code: str
    message: str
    details: Optional[str] = None
    retryable: bool = False

    def describe(self) -> str:
        details = f"\n\nDetails:\n{self.details}" if self.details else ""
        return f"{self.code}: {self.message}{details}"


class CommandError(Exception):
    """A failed command, or a client-side rejection of one."""

    category = "domain"

    def __init__(self, error: AppError, *, command: Optional[str] = None):
        super().__init__(error.describe())
        self.error = error
        self.command = command

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def retryable(self) -> bool:
        return self.error.retryable


class TransportError(CommandError):
    category = "transport"


class SchemaViolation(TransportError):
    """The core service answered, but not with the shape the client expects."""


class PreconditionError(CommandError):
    """Rejected client-side; nothing was sent to the core service."""

    category = "precondition"

    def __init__(self, code: str, message: str, *, command: Optional[str] = None):
        super().__init__(AppError(code=code, message=message), command=command)


def is_error_reply(value: Any) -> bool:
    """True for the wrapper shape ``{"error": ...}`` that is not a success."""
    return isinstance(value, Mapping) and "error" in value and value.get("ok") is not True


def normalize_error(value: Any, *, command: Optional[str] = None) -> CommandError:
    """Turn whatever the transport produced into a ``CommandError``."""
    if isinstance(value, CommandError):
        return value
    record = _extract_record(value, depth=0)
    if record is not None:
        return CommandError(record, command=command)
    transport = _transport_reply(value)
    if transport is not None:
        return TransportError(transport, command=command)
    return TransportError(
        AppError(code=UNKNOWN_ERROR, message=_best_effort_message(value)),
        command=command,
    )


def _extract_record(value: Any, *, depth: int) -> Optional[AppError]:
    if depth > 4 or value is None:
        return None
    if isinstance(value, AppError):
        return value
    if isinstance(value, (str, bytes)):
        try:
            decoded = json.loads(value)
        except (TypeError, ValueError):
            return None
        return _extract_record(decoded, depth=depth + 1)
    if isinstance(value, BaseException):
        for attr in ("error", "payload"):
            found = _extract_record(getattr(value, attr, None), depth=depth + 1)
            if found is not None:
                return found
        for arg in value.args:
            found = _extract_record(arg, depth=depth + 1)
            if found is not None:
                return found
        return None
    if isinstance(value, Mapping):
        code = value.get("code")
        message = value.get("message")
        if isinstance(code, str) and code and isinstance(message, str):
            return AppError(
                code=code,
                message=message,
                details=_details_text(value.get("details")),
                retryable=bool(value.get("retryable", False)),
            )
        if "error" in value:
            return _extract_record(value.get("error"), depth=depth + 1)
    return None


def _transport_reply(value: Any) -> Optional[AppError]:
    if not is_error_reply(value):
        return None
    reason = value.get("error")
    if isinstance(reason, str) and reason in _TRANSPORT_REPLIES:
        code, message, retryable = _TRANSPORT_REPLIES[reason]
        return AppError(code=code, message=message, retryable=retryable)
    return AppError(code=TRANSPORT_ERROR, message=_best_effort_message(reason))


def _details_text(details: Any) -> Optional[str]:
    if details is None or isinstance(details, str):
        return details
    try:
        return json.dumps(details, sort_keys=True)
    except (TypeError, ValueError):
        return str(details)


def _best_effort_message(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseException):
        text = str(value)
        return text or type(value).__name__
    try:
        return json.dumps(value, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(value)
