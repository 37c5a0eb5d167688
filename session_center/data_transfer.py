from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from runtime_bus import topics

if TYPE_CHECKING:
    from .gateway import CommandGateway
    from .pickers import Picker
    from .session_store import SessionStore

logger = logging.getLogger(__name__)


class DataTransfer:
    """Non-destructive copies out of the active workspace (backup, sanitized export)."""

    def __init__(self, gateway: "CommandGateway", store: "SessionStore", picker: "Picker"):
        self._gateway = gateway
        self._store = store
        self._picker = picker

    async def create_backup(self, destination_dir: Optional[str] = None) -> Optional[Any]:
        dest = destination_dir or await self._picker.pick_directory("Choose a folder for the backup")
        if not dest:
            return None
        generation = self._store.view_generation
        result = await self._gateway.call(topics.BACKUP_CREATE, {"destination_dir": dest})
        self._store.update_views(generation=generation, backup_result=result)
        logger.info("backup created dir=%s incidents=%s", result.backup_dir, result.manifest.counts.incidents)
        return result

    async def export_sanitized_dataset(self, destination_dir: Optional[str] = None) -> Optional[Any]:
        dest = destination_dir or await self._picker.pick_directory("Choose a folder for the sanitized export")
        if not dest:
            return None
        generation = self._store.view_generation
        result = await self._gateway.call(topics.EXPORT_SANITIZED_DATASET, {"destination_dir": dest})
        self._store.update_views(generation=generation, sanitized_export=result)
        logger.info("sanitized export dir=%s incidents=%s", result.export_dir, result.incident_count)
        return result
