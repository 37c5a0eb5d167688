# =============================================================================
# NAV INDEX (search these tags)
# [NAV-00] Imports / constants
# [NAV-10] Result types
# [NAV-20] Orchestrator: startup
# [NAV-30] Orchestrator: switching
# [NAV-40] Orchestrator: migration prompt actions
# [NAV-50] Plan steps
# [NAV-99] End
# =============================================================================

# === [NAV-00] Imports / constants ============================================
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from runtime_bus import topics

from .errors import PRECONDITION_NO_WORKSPACE, CommandError, PreconditionError
from .gateway import CommandGateway
from .migration_guard import GuardSuspended, MigrationGuard, SwitchMode
from .pickers import Picker
from .session_store import SessionStore, WorkspaceSession
from .steps import PlanResult, Step, StepHook, StepOutcome, StepPlan
from .views import ViewLoader, run_reload

logger = logging.getLogger(__name__)

DEFAULT_DB_FILENAME = "incidentreview.sqlite"
SWITCH_STEPS = ("resolve_path", "preflight", "clear_views", "open_workspace", "reload")
INITIALIZE_STEPS = ("preflight", "init_db", "reload")


# === [NAV-10] Result types ===================================================
@dataclass
class SwitchResult:
    outcome: StepOutcome
    db_path: Optional[str] = None
    is_empty: Optional[bool] = None
    suspended: Optional[GuardSuspended] = None
    reload_failures: Dict[str, CommandError] = field(default_factory=dict)
    halted_at: Optional[str] = None

    @classmethod
    def from_plan(cls, plan: PlanResult) -> "SwitchResult":
        ctx = plan.context
        meta = ctx.get("meta")
        return cls(
            outcome=plan.outcome,
            db_path=ctx.get("db_path"),
            is_empty=getattr(meta, "is_empty", None),
            suspended=ctx.get("suspended"),
            reload_failures=dict(ctx.get("reload_failures") or {}),
            halted_at=plan.halted_at,
        )


class WorkspaceSwitchOrchestrator:
    """Sequences every change of the active workspace.

    Preflight, view invalidation, the open/create request and the reload run
    as one named step plan so each stage can be observed and tested.
    """

    def __init__(
        self,
        gateway: CommandGateway,
        store: SessionStore,
        guard: MigrationGuard,
        loader: ViewLoader,
        picker: Picker,
        *,
        remember_path: Optional[Callable[[str], None]] = None,
        last_known_path: Optional[Callable[[], Optional[str]]] = None,
        backup_route: Optional[Callable[[], Awaitable[Any]]] = None,
        default_filename: str = DEFAULT_DB_FILENAME,
        on_step: Optional[StepHook] = None,
    ):
        self._gateway = gateway
        self._store = store
        self._guard = guard
        self._loader = loader
        self._picker = picker
        self._remember_path = remember_path
        self._last_known_path = last_known_path
        self._backup_route = backup_route
        self._default_filename = default_filename
        self._on_step = on_step
        # Serializes create/open/init_db; a later switch's request is issued
        # only after an earlier one has landed.
        self._switch_lock = asyncio.Lock()

    def _plan(self, name: str, step_names) -> StepPlan:
        steps = [Step(step, getattr(self, f"_step_{step}")) for step in step_names]
        return StepPlan(name, steps, on_step=self._on_step)

    # === [NAV-20] Orchestrator: startup ======================================
    async def load_session(self) -> WorkspaceSession:
        """Ask the core service which workspace is active.

        When the query fails, the last path this client remembered is used
        with the failure attached as ``load_error``.
        """
        try:
            info = await self._gateway.call(topics.WORKSPACE_GET_CURRENT)
        except CommandError as exc:
            fallback = self._last_known_path() if self._last_known_path else None
            if not fallback:
                raise
            logger.warning("workspace load failed code=%s fallback=%s", exc.code, fallback)
            session = WorkspaceSession(current_path=fallback, recent_paths=(fallback,), load_error=exc.error)
        else:
            session = WorkspaceSession.from_info(info)
        self._store.set_session(session)
        return session

    async def initialize(self, *, skip_preflight: bool = False) -> SwitchResult:
        """Make sure the current workspace database exists and is migrated.

        Needs a loaded session: without a target path there is nothing to
        preflight, and ``init_db`` would migrate unconfirmed.
        """
        session = self._store.session
        if session is None:
            raise PreconditionError(
                PRECONDITION_NO_WORKSPACE,
                "Load the workspace session before initializing the database.",
                command=topics.INIT_DB,
            )
        ctx: Dict[str, Any] = {
            "skip_preflight": skip_preflight,
            "action": "initialize",
            "target_path": session.current_path,
        }
        plan = self._plan("initialize", INITIALIZE_STEPS)
        return SwitchResult.from_plan(await plan.run(ctx))

    # === [NAV-30] Orchestrator: switching ====================================
    async def switch_to(
        self,
        path: Optional[str],
        mode: SwitchMode,
        *,
        filename: Optional[str] = None,
        skip_preflight: bool = False,
    ) -> SwitchResult:
        """Create (``path`` is a folder) or open (``path`` is a DB file) a workspace.

        With ``path=None`` the picker asks the user; cancelling ends the switch
        with no side effects.
        """
        if mode not in ("create", "open"):
            raise ValueError(f"unknown workspace switch mode: {mode}")
        ctx: Dict[str, Any] = {
            "path": path,
            "mode": mode,
            "filename": filename or self._default_filename,
            "skip_preflight": skip_preflight,
            "action": "open_or_switch",
        }
        plan = self._plan(f"workspace_{mode}", SWITCH_STEPS)
        result = SwitchResult.from_plan(await plan.run(ctx))
        logger.info("workspace switch mode=%s outcome=%s path=%s", mode, result.outcome.value, result.db_path)
        return result

    async def switch_to_recent(self, path: str) -> SwitchResult:
        if not path:
            raise ValueError("switch_to_recent requires a path")
        return await self.switch_to(path, "open")

    async def reload_all(self) -> Dict[str, CommandError]:
        return await run_reload(self._loader)

    # === [NAV-40] Orchestrator: migration prompt actions =====================
    async def proceed_after_migration_prompt(self) -> Optional[SwitchResult]:
        """Re-issue the suspended action; a second Proceed finds nothing to do."""
        pending = self._guard.take_for_proceed()
        if pending is None:
            logger.info("proceed ignored: guard is clear")
            return None
        if pending.pending_action == "initialize":
            return await self.initialize(skip_preflight=True)
        if pending.mode == "create":
            folder, name = os.path.split(pending.target_path)
            return await self.switch_to(folder, "create", filename=name, skip_preflight=True)
        return await self.switch_to(pending.target_path, "open", skip_preflight=True)

    def cancel_migration_prompt(self) -> None:
        self._guard.cancel()

    async def back_up_first(self) -> Any:
        """Leave the prompt in place and hand over to the backup route."""
        self._guard.backup_first()
        if self._backup_route is None:
            return None
        return await self._backup_route()

    # === [NAV-50] Plan steps ==================================================
    async def _step_resolve_path(self, ctx: Dict[str, Any]) -> Optional[StepOutcome]:
        path = ctx.get("path")
        if not path:
            if ctx["mode"] == "create":
                path = await self._picker.pick_directory("Choose a folder for the new workspace")
            else:
                path = await self._picker.pick_db_file("Open workspace database")
            if not path:
                return StepOutcome.CANCELLED
            ctx["path"] = path
        if ctx["mode"] == "create":
            ctx["target_path"] = os.path.join(path, ctx["filename"])
        else:
            ctx["target_path"] = path
        return None

    async def _step_preflight(self, ctx: Dict[str, Any]) -> Optional[StepOutcome]:
        target = ctx.get("target_path")
        if ctx.get("skip_preflight") or not target:
            return None
        state = await self._guard.preflight(ctx["action"], target, ctx.get("mode"))
        if isinstance(state, GuardSuspended):
            ctx["suspended"] = state
            return StepOutcome.SUSPENDED
        return None

    async def _step_clear_views(self, ctx: Dict[str, Any]) -> Optional[StepOutcome]:
        # No await between this and the open/create request being issued.
        ctx["generation"] = self._store.clear_views()
        return None

    async def _step_open_workspace(self, ctx: Dict[str, Any]) -> Optional[StepOutcome]:
        # Uncontended acquire does not yield, so the request still goes out in
        # the tick the views were cleared.
        async with self._switch_lock:
            if ctx["mode"] == "create":
                meta = await self._gateway.call(
                    topics.WORKSPACE_CREATE,
                    {"destination_dir": ctx["path"], "filename": ctx["filename"]},
                )
            else:
                meta = await self._gateway.call(topics.WORKSPACE_OPEN, {"db_path": ctx["path"]})
            ctx["meta"] = meta
            await self._commit_session(meta.db_path, ctx)
            self._gateway.bus.publish(
                topics.WORKSPACE_ACTIVE_CHANGED,
                {"db_path": meta.db_path, "is_empty": meta.is_empty},
                source="session_center",
            )
        if ctx["generation"] != self._store.view_generation:
            return StepOutcome.SUPERSEDED
        return None

    async def _step_init_db(self, ctx: Dict[str, Any]) -> Optional[StepOutcome]:
        async with self._switch_lock:
            ctx["generation"] = self._store.view_generation
            res = await self._gateway.call(topics.INIT_DB)
            await self._commit_session(res.db_path, ctx)
        return None

    async def _step_reload(self, ctx: Dict[str, Any]) -> Optional[StepOutcome]:
        failures = await run_reload(self._loader, generation=ctx.get("generation"))
        ctx["reload_failures"] = failures
        if ctx.get("generation") is not None and ctx["generation"] != self._store.view_generation:
            return StepOutcome.SUPERSEDED
        return None

    async def _commit_session(self, db_path: str, ctx: Dict[str, Any]) -> None:
        ctx["db_path"] = db_path
        previous = self._store.session
        recent = (db_path,) + (previous.recent_paths if previous else ())
        self._store.set_session(WorkspaceSession(current_path=db_path, recent_paths=recent))
        try:
            info = await self._gateway.call(topics.WORKSPACE_GET_CURRENT)
        except CommandError as exc:
            logger.warning("workspace info refresh failed code=%s", exc.code)
            ctx["session_refresh_error"] = exc
        else:
            self._store.set_session(WorkspaceSession.from_info(info))
        if self._remember_path is not None:
            try:
                self._remember_path(db_path)
            except OSError as exc:
                logger.warning("could not persist last workspace path=%s error=%s", db_path, exc)
                ctx["persist_error"] = exc


# === [NAV-99] End =============================================================
__all__ = [
    "DEFAULT_DB_FILENAME",
    "SWITCH_STEPS",
    "INITIALIZE_STEPS",
    "SwitchResult",
    "WorkspaceSwitchOrchestrator",
]
