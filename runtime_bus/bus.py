from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .messages import MessageEnvelope, MessageKind

logger = logging.getLogger(__name__)

RequestHandler = Callable[[MessageEnvelope], Any]


def _iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RuntimeBus:
    """In-process pub/sub and request-reply bus between the client and the core service."""

    def __init__(self, *, default_timeout_ms: Optional[int] = None):
        self._default_timeout_ms = default_timeout_ms
        self._lock = threading.RLock()
        self._subscribers: Dict[str, tuple[str, Callable[[MessageEnvelope], None]]] = {}
        self._topic_index: Dict[str, set[str]] = {}
        self._request_handlers: Dict[str, RequestHandler] = {}

    def subscribe(self, topic: str, handler: Callable[[MessageEnvelope], None]) -> str:
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers[sub_id] = (topic, handler)
            self._topic_index.setdefault(topic, set()).add(sub_id)
        return sub_id

    def unsubscribe(self, sub_id: str) -> None:
        with self._lock:
            topic, _ = self._subscribers.pop(sub_id, (None, None))
            if topic and topic in self._topic_index:
                self._topic_index[topic].discard(sub_id)
                if not self._topic_index[topic]:
                    self._topic_index.pop(topic, None)

    def register_handler(self, topic: str, handler: RequestHandler) -> None:
        with self._lock:
            self._request_handlers[topic] = handler

    def has_handler(self, topic: str) -> bool:
        return topic in self._request_handlers

    def publish(
        self,
        topic: str,
        payload: Optional[Dict[str, object]],
        source: str,
        trace_id: Optional[str] = None,
    ) -> MessageEnvelope:
        envelope = self._build_envelope(topic, payload, source, trace_id, kind="event")
        for handler in self._copy_handlers(topic):
            try:
                handler(envelope)
            except Exception as exc:  # pragma: no cover - subscriber bug
                logger.error("runtime_bus publish handler error on %s: %s", topic, exc)
        return envelope

    async def request(
        self,
        topic: str,
        payload: Optional[Dict[str, object]],
        source: str,
        timeout_ms: Optional[int] = None,
        trace_id: Optional[str] = None,
    ) -> Any:
        """Send a request to the handler registered for ``topic``.

        Plain handlers run on a worker thread, coroutine handlers are awaited.
        Transport-level failures come back as ``{"ok": False, "error": ...}``
        replies; exceptions raised by the handler propagate to the caller
        unchanged so the caller can normalize whatever the core service raised.
        """
        with self._lock:
            handler = self._request_handlers.get(topic)
        if handler is None:
            return {"ok": False, "error": "no_handler"}

        envelope = self._build_envelope(topic, payload, source, trace_id, kind="request")
        logger.debug("runtime_bus %s", envelope.describe())
        if inspect.iscoroutinefunction(handler):
            pending = handler(envelope)
        else:
            pending = asyncio.to_thread(handler, envelope)

        timeout = timeout_ms if timeout_ms is not None else self._default_timeout_ms
        if timeout is None:
            return await pending
        try:
            return await asyncio.wait_for(pending, timeout / 1000)
        except asyncio.TimeoutError:
            logger.warning("runtime_bus request timed out on %s after %sms", topic, timeout)
            return {"ok": False, "error": "timeout"}

    def _build_envelope(
        self,
        topic: str,
        payload: Optional[Dict[str, object]],
        source: str,
        trace_id: Optional[str],
        *,
        kind: MessageKind,
    ) -> MessageEnvelope:
        trace = trace_id or str(uuid.uuid4())
        body = payload if isinstance(payload, dict) else {}
        return MessageEnvelope(
            msg_id=str(uuid.uuid4()),
            command=topic,
            kind=kind,
            timestamp=_iso_timestamp(),
            source=source,
            payload=dict(body),
            trace_id=trace,
        )

    def _copy_handlers(self, topic: str) -> list[Callable[[MessageEnvelope], None]]:
        with self._lock:
            sub_ids = list(self._topic_index.get(topic, ()))
            return [self._subscribers[sid][1] for sid in sub_ids if sid in self._subscribers]
