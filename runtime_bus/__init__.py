"""Runtime bus package: the request/reply transport to the core service."""

from .bus import RuntimeBus
from . import topics
from .messages import MessageEnvelope
from .plugins import load_core_plugin

__all__ = ["RuntimeBus", "MessageEnvelope", "topics", "load_core_plugin"]
