from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from runtime_bus import topics

from .errors import CommandError

if TYPE_CHECKING:
    from .gateway import CommandGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AboutInfo:
    app_info: Any
    ai_health: Optional[Any] = None
    ai_models: Optional[List[Any]] = None

    @property
    def ai_status_text(self) -> str:
        if self.ai_health is None:
            return "unknown"
        return "ok" if self.ai_health.ok else "unavailable"


async def load_about(gateway: "CommandGateway") -> AboutInfo:
    """Load build metadata; AI health and models are optional extras."""
    info = await gateway.call(topics.APP_INFO)
    try:
        health = await gateway.call(topics.AI_HEALTH_CHECK)
        models = list(await gateway.call(topics.AI_MODELS_LIST)) if health.ok else None
    except CommandError as exc:
        logger.debug("about: AI status unavailable code=%s", exc.code)
        return AboutInfo(app_info=info)
    return AboutInfo(app_info=info, ai_health=health, ai_models=models)
