from __future__ import annotations

import importlib
import logging
from typing import Optional

from .bus import RuntimeBus

logger = logging.getLogger(__name__)


def load_core_plugin(bus: RuntimeBus, target: Optional[str]) -> bool:
    """Import ``module:function`` and let it register core-service handlers on ``bus``.

    Returns False when no plugin is configured; every request then comes back
    as a ``no_handler`` reply.
    """
    if not target:
        logger.warning("no core plugin configured; commands will report no_handler")
        return False
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"core plugin must look like 'module:function', got {target!r}")
    module = importlib.import_module(module_name)
    register = getattr(module, attr)
    register(bus)
    logger.info("core plugin loaded target=%s", target)
    return True
