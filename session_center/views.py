from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from runtime_bus import topics

from .errors import CommandError

if TYPE_CHECKING:
    from .gateway import CommandGateway
    from .session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardFilter:
    kind: str
    key: str
    label: str = ""


@dataclass(frozen=True)
class WorkspaceScopedViewState:
    """Everything on screen that belongs to the active workspace."""

    incidents: Optional[List[Any]] = None
    dashboard: Optional[Any] = None
    report_md: Optional[str] = None
    validation_report: Optional[List[Any]] = None
    incident_detail: Optional[Any] = None
    dashboard_filter: Optional[DashboardFilter] = None
    backup_result: Optional[Any] = None
    restore_pending: Optional[Any] = None
    restore_result: Optional[Any] = None
    sanitized_export: Optional[Any] = None
    sanitized_import_pending: Optional[Any] = None
    sanitized_import_summary: Optional[Any] = None

    @classmethod
    def empty(cls) -> "WorkspaceScopedViewState":
        return cls()

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in dataclasses.fields(self))

    def with_changes(self, **changes: Any) -> "WorkspaceScopedViewState":
        return dataclasses.replace(self, **changes)


class ViewLoader:
    """Loads workspace-scoped views through the gateway into the store.

    Each load captures the view generation when it starts; if the views were
    cleared in the meantime the result belongs to an older workspace and is
    dropped.
    """

    def __init__(self, gateway: "CommandGateway", store: "SessionStore"):
        self._gateway = gateway
        self._store = store

    async def _load(
        self, command: str, field: str, request: Optional[dict] = None, *, generation: Optional[int] = None
    ) -> Any:
        if generation is None:
            generation = self._store.view_generation
        result = await self._gateway.call(command, request)
        if not self._store.update_views(generation=generation, **{field: result}):
            logger.info("dropped stale view result command=%s generation=%s", command, generation)
        return result

    async def refresh_incidents(self, *, generation: Optional[int] = None) -> Any:
        return await self._load(topics.INCIDENTS_LIST, "incidents", generation=generation)

    async def load_dashboard(self, *, generation: Optional[int] = None) -> Any:
        return await self._load(topics.GET_DASHBOARD_V2, "dashboard", generation=generation)

    async def generate_report(self, *, generation: Optional[int] = None) -> Any:
        return await self._load(topics.GENERATE_REPORT_MD, "report_md", generation=generation)

    async def refresh_validation(self, *, generation: Optional[int] = None) -> Any:
        return await self._load(topics.VALIDATION_REPORT, "validation_report", generation=generation)

    async def open_incident_detail(self, incident_id: int) -> Any:
        return await self._load(topics.INCIDENT_DETAIL, "incident_detail", {"incident_id": incident_id})

    def close_incident_detail(self) -> None:
        self._store.update_views(incident_detail=None)

    def set_dashboard_filter(self, kind: str, key: str, label: str = "") -> None:
        self._store.update_views(dashboard_filter=DashboardFilter(kind=kind, key=key, label=label))

    def clear_dashboard_filter(self) -> None:
        self._store.update_views(dashboard_filter=None)

    def reload_steps(self):
        """The canonical reload sequence, in display order."""
        return (
            ("incidents", self.refresh_incidents),
            ("dashboard", self.load_dashboard),
            ("report_md", self.generate_report),
            ("validation_report", self.refresh_validation),
        )


async def run_reload(loader: ViewLoader, *, generation: Optional[int] = None) -> dict:
    """Run every reload step; a failing step is recorded and the rest still run.

    ``generation`` pins every result to the views cleared for one switch, so
    a later switch cannot receive them.
    """
    failures = {}
    for name, load in loader.reload_steps():
        try:
            await load(generation=generation)
        except CommandError as exc:
            logger.warning("reload step failed step=%s code=%s", name, exc.code)
            failures[name] = exc
    return failures
