from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from diagnostics import tracing
from runtime_bus import RuntimeBus

from .errors import (
    CLIENT_SCHEMA_VIOLATION,
    AppError,
    CommandError,
    SchemaViolation,
    is_error_reply,
    normalize_error,
)
from .schemas import COMMAND_SCHEMAS, validate_response

logger = logging.getLogger(__name__)

_DEFAULT_SCHEMA = object()


class CommandGateway:
    """Typed request/response wrapper around the runtime bus.

    Every call returns the validated response or raises a ``CommandError``.
    The gateway never retries and never applies its own timeout; the bus
    owns the deadline.
    """

    def __init__(self, bus: RuntimeBus, *, source: str = "app_ui", timeout_ms: Optional[int] = None):
        self._bus = bus
        self._source = source
        self._timeout_ms = timeout_ms

    @property
    def bus(self) -> RuntimeBus:
        return self._bus

    async def call(
        self,
        command: str,
        request: Optional[Mapping[str, Any]] = None,
        *,
        schema: Any = _DEFAULT_SCHEMA,
    ) -> Any:
        if schema is _DEFAULT_SCHEMA:
            schema = COMMAND_SCHEMAS.get(command)
        payload: Dict[str, Any] = dict(request or {})
        with tracing.span(f"command.{command}", command=command) as sp:
            try:
                reply = await self._bus.request(command, payload, source=self._source, timeout_ms=self._timeout_ms)
            except CommandError as exc:
                sp.set(code=exc.code)
                logger.info("command failed command=%s code=%s", command, exc.code)
                raise
            except Exception as exc:
                err = normalize_error(exc, command=command)
                sp.set(code=err.code)
                logger.info("command failed command=%s code=%s", command, err.code)
                raise err from exc

            if is_error_reply(reply):
                err = normalize_error(reply, command=command)
                sp.set(code=err.code)
                logger.info("command failed command=%s code=%s", command, err.code)
                raise err

            try:
                result = validate_response(schema, reply)
            except ValidationError as exc:
                sp.set(code=CLIENT_SCHEMA_VIOLATION)
                logger.warning("schema violation command=%s errors=%s", command, exc.error_count())
                raise SchemaViolation(
                    AppError(
                        code=CLIENT_SCHEMA_VIOLATION,
                        message=f"Unexpected response shape from {command}.",
                        details=str(exc),
                    ),
                    command=command,
                ) from exc
            sp.set(code="OK")
            logger.debug("command ok command=%s", command)
            return result
