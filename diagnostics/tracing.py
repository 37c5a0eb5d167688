from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

_SPAN_LIMIT = 256
_SPAN_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=_SPAN_LIMIT)


@dataclass
class Span:
    name: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=time.monotonic)
    end_time: Optional[float] = None
    status: str = "ok"

    def set(self, **attrs: Any) -> None:
        self.attrs.update(attrs)

    def __enter__(self) -> "Span":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end_time = time.monotonic()
        if exc_type is not None and self.status == "ok":
            self.status = "error"
            self.attrs.setdefault("error_type", exc_type.__name__)
        record_span(self)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000.0


def span(name: str, **attrs: Any) -> Span:
    return Span(name=name, attrs=attrs)


def record_span(span_obj: Span) -> None:
    _SPAN_BUFFER.append(
        {
            "name": span_obj.name,
            "attrs": dict(span_obj.attrs or {}),
            "status": span_obj.status,
            "duration_ms": span_obj.duration_ms,
        }
    )


def get_recent_spans() -> List[Dict[str, Any]]:
    return list(_SPAN_BUFFER)


def clear_spans() -> None:
    _SPAN_BUFFER.clear()
