"""Migration preflight guard.

Before a workspace is initialized, opened or switched to, the core service is
asked which schema migrations it would apply. A non-empty answer suspends the
action until the user picks Proceed, Cancel or Go back up first.

The transitions are pure functions over ``GuardState``; ``MigrationGuard``
only adds the query and keeps the current state in the ``SessionStore``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Optional, Tuple, Union

from runtime_bus import topics

from .errors import WORKSPACE_DB_NOT_FOUND, CommandError

if TYPE_CHECKING:
    from .gateway import CommandGateway
    from .schemas import MigrationStatus
    from .session_store import SessionStore

logger = logging.getLogger(__name__)

GuardedAction = Literal["initialize", "open_or_switch"]
SwitchMode = Literal["create", "open"]


@dataclass(frozen=True)
class GuardClear:
    pass


@dataclass(frozen=True)
class GuardSuspended:
    pending_action: GuardedAction
    target_path: str
    latest_known_migration: str
    pending_migrations: Tuple[str, ...]
    mode: Optional[SwitchMode] = None


GuardState = Union[GuardClear, GuardSuspended]
CLEAR = GuardClear()


# === Pure transitions =========================================================
def on_preflight_result(
    state: GuardState,
    *,
    action: GuardedAction,
    target_path: str,
    status: Optional["MigrationStatus"],
    mode: Optional[SwitchMode] = None,
) -> GuardState:
    """``status`` is None when the target does not exist yet."""
    if isinstance(state, GuardSuspended):
        return state
    if status is None or not status.pending_migrations:
        return CLEAR
    return GuardSuspended(
        pending_action=action,
        target_path=target_path,
        latest_known_migration=status.latest_migration,
        pending_migrations=tuple(status.pending_migrations),
        mode=mode,
    )


def on_cancel(state: GuardState) -> GuardState:
    return CLEAR


def on_proceed(state: GuardState) -> GuardState:
    return CLEAR


def on_backup_first(state: GuardState) -> GuardState:
    return state


# === Guard ====================================================================
class MigrationGuard:
    def __init__(self, gateway: "CommandGateway", store: "SessionStore"):
        self._gateway = gateway
        self._store = store

    @property
    def state(self) -> GuardState:
        return self._store.guard

    async def preflight(
        self,
        action: GuardedAction,
        target_path: str,
        mode: Optional[SwitchMode] = None,
    ) -> GuardState:
        """Return Clear when the action may run, Suspended when it must wait.

        Failures other than a missing database are raised; the caller must
        treat them as a blocked action.
        """
        current = self._store.guard
        if isinstance(current, GuardSuspended):
            logger.info(
                "preflight coalesced action=%s pending_action=%s", action, current.pending_action
            )
            return current

        try:
            status = await self._gateway.call(topics.WORKSPACE_MIGRATION_STATUS, {"db_path": target_path})
        except CommandError as exc:
            if exc.code != WORKSPACE_DB_NOT_FOUND:
                logger.warning("preflight failed action=%s code=%s", action, exc.code)
                raise
            status = None

        # The guard may have been suspended by another action while we waited.
        current = self._store.guard
        result = on_preflight_result(current, action=action, target_path=target_path, status=status, mode=mode)
        if result is not current:
            self._store.set_guard(result)
        if isinstance(result, GuardSuspended):
            logger.info(
                "preflight suspended action=%s pending=%s",
                action,
                ",".join(result.pending_migrations),
            )
        return result

    def cancel(self) -> None:
        self._store.set_guard(on_cancel(self._store.guard))

    def take_for_proceed(self) -> Optional[GuardSuspended]:
        """Clear the guard and hand back what was suspended, exactly once."""
        current = self._store.guard
        if not isinstance(current, GuardSuspended):
            return None
        self._store.set_guard(on_proceed(current))
        return current

    def backup_first(self) -> GuardState:
        state = on_backup_first(self._store.guard)
        self._store.set_guard(state)
        return state
