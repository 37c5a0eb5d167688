from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal

MessageKind = Literal["request", "event"]


@dataclass(frozen=True, slots=True)
class MessageEnvelope:
    """What a core-service handler or a subscriber receives."""

    msg_id: str
    command: str
    kind: MessageKind
    timestamp: str
    source: str
    payload: Dict[str, object] = field(default_factory=dict)
    trace_id: str = ""

    def describe(self) -> str:
        keys = ",".join(sorted(self.payload))
        return f"{self.kind}:{self.command} trace={self.trace_id} keys=[{keys}]"
