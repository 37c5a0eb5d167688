"""Two-phase confirmation for irreversible operations.

Restoring a backup and importing a sanitized dataset both go through the same
protocol: pick a source, inspect it (read-only, returns a manifest), then
commit. Commit is refused client-side until the latest inspect for the
selected source succeeded and, for restore, the user has separately
acknowledged that the current workspace will be overwritten.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Literal, Optional

from runtime_bus import topics

from .errors import (
    DESTRUCTIVE_COMMIT_IN_FLIGHT,
    DESTRUCTIVE_NO_SOURCE,
    DESTRUCTIVE_NOT_INSPECTED,
    DESTRUCTIVE_STALE_SOURCE,
    RESTORE_CONFIRMATION_REQUIRED,
    CommandError,
    PreconditionError,
)

if TYPE_CHECKING:
    from .gateway import CommandGateway
    from .pickers import Picker
    from .session_store import SessionStore

logger = logging.getLogger(__name__)

OperationKind = Literal["restore", "sanitized_import"]


@dataclass(frozen=True)
class PendingDestructiveOperation:
    kind: OperationKind
    source_location: str
    inspected_manifest: Optional[Any] = None
    user_confirmed_overwrite: bool = False


# === Pure transitions =========================================================
def select_source(kind: OperationKind, location: str) -> PendingDestructiveOperation:
    return PendingDestructiveOperation(kind=kind, source_location=location)


def inspect_started(
    op: Optional[PendingDestructiveOperation], location: str
) -> Optional[PendingDestructiveOperation]:
    """Drop the previous manifest; commit waits for this inspect to land."""
    if op is None or op.source_location != location:
        return op
    return dataclasses.replace(op, inspected_manifest=None)


def inspect_succeeded(
    op: Optional[PendingDestructiveOperation], location: str, manifest: Any
) -> Optional[PendingDestructiveOperation]:
    if op is None or op.source_location != location:
        return op
    return dataclasses.replace(op, inspected_manifest=manifest)


def inspect_failed(op: Optional[PendingDestructiveOperation], location: str) -> Optional[PendingDestructiveOperation]:
    if op is None or op.source_location != location:
        return op
    return None


def set_acknowledgement(op: Optional[PendingDestructiveOperation], confirmed: bool) -> PendingDestructiveOperation:
    if op is None:
        raise PreconditionError(DESTRUCTIVE_NO_SOURCE, "Pick a source folder first.")
    if op.inspected_manifest is None:
        raise PreconditionError(DESTRUCTIVE_NOT_INSPECTED, "The selected source has not been inspected yet.")
    return dataclasses.replace(op, user_confirmed_overwrite=bool(confirmed))


# === Operation table ==========================================================
@dataclass(frozen=True)
class OperationRoute:
    kind: OperationKind
    inspect_command: str
    commit_command: str
    location_key: str
    requires_acknowledgement: bool
    pending_field: str
    result_field: str
    picker_title: str
    commit_extra: Dict[str, Any] = dataclasses.field(default_factory=dict)


OPERATIONS: Dict[str, OperationRoute] = {
    "restore": OperationRoute(
        kind="restore",
        inspect_command=topics.BACKUP_INSPECT,
        commit_command=topics.RESTORE_FROM_BACKUP,
        location_key="backup_dir",
        requires_acknowledgement=True,
        pending_field="restore_pending",
        result_field="restore_result",
        picker_title="Choose a backup folder to restore",
        commit_extra={"allow_overwrite": True},
    ),
    "sanitized_import": OperationRoute(
        kind="sanitized_import",
        inspect_command=topics.INSPECT_SANITIZED_DATASET,
        commit_command=topics.IMPORT_SANITIZED_DATASET,
        location_key="dataset_dir",
        requires_acknowledgement=False,
        pending_field="sanitized_import_pending",
        result_field="sanitized_import_summary",
        picker_title="Choose a sanitized dataset folder to import",
    ),
}


class DestructiveOperationProtocol:
    def __init__(
        self,
        kind: OperationKind,
        gateway: "CommandGateway",
        store: "SessionStore",
        picker: "Picker",
        *,
        reload: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        if kind not in OPERATIONS:
            raise ValueError(f"unknown destructive operation: {kind}")
        self.operation = OPERATIONS[kind]
        self._gateway = gateway
        self._store = store
        self._picker = picker
        self._reload = reload
        self._committing = False

    @property
    def pending(self) -> Optional[PendingDestructiveOperation]:
        return getattr(self._store.views, self.operation.pending_field)

    @property
    def committing(self) -> bool:
        return self._committing

    def _set_pending(self, op: Optional[PendingDestructiveOperation], *, generation: Optional[int] = None) -> bool:
        return self._store.update_views(generation=generation, **{self.operation.pending_field: op})

    async def choose_source(self, location: Optional[str] = None) -> Optional[PendingDestructiveOperation]:
        """Select a source (asking the picker when ``location`` is None) and inspect it."""
        if location is None:
            location = await self._picker.pick_directory(self.operation.picker_title)
            if not location:
                return self.pending
        self._store.update_views(
            **{self.operation.pending_field: select_source(self.operation.kind, location), self.operation.result_field: None}
        )
        await self.inspect()
        return self.pending

    async def inspect(self) -> Any:
        op = self.pending
        if op is None:
            raise PreconditionError(
                DESTRUCTIVE_NO_SOURCE, "Pick a source folder first.", command=self.operation.inspect_command
            )
        location = op.source_location
        generation = self._store.view_generation
        self._set_pending(inspect_started(op, location))
        try:
            manifest = await self._gateway.call(
                self.operation.inspect_command, {self.operation.location_key: location}
            )
        except CommandError as exc:
            logger.info("inspect failed kind=%s code=%s", self.operation.kind, exc.code)
            self._set_pending(inspect_failed(self.pending, location), generation=generation)
            raise
        if not self._set_pending(inspect_succeeded(self.pending, location, manifest), generation=generation):
            logger.info("dropped inspect result for superseded workspace kind=%s", self.operation.kind)
        return manifest

    def acknowledge(self, confirmed: bool = True) -> PendingDestructiveOperation:
        op = set_acknowledgement(self.pending, confirmed)
        self._set_pending(op)
        return op

    def clear(self) -> None:
        self._store.update_views(**{self.operation.pending_field: None, self.operation.result_field: None})

    def _check_commit(self, expected_source: Optional[str]) -> PendingDestructiveOperation:
        command = self.operation.commit_command
        if self._committing:
            raise PreconditionError(DESTRUCTIVE_COMMIT_IN_FLIGHT, "A commit is already running.", command=command)
        op = self.pending
        if op is None:
            raise PreconditionError(DESTRUCTIVE_NO_SOURCE, "Pick a source folder first.", command=command)
        if expected_source is not None and expected_source != op.source_location:
            raise PreconditionError(
                DESTRUCTIVE_STALE_SOURCE,
                f"The selected source changed to {op.source_location}; inspect it before committing.",
                command=command,
            )
        if op.inspected_manifest is None:
            raise PreconditionError(
                DESTRUCTIVE_NOT_INSPECTED, "The selected source has not been inspected yet.", command=command
            )
        if self.operation.requires_acknowledgement and not op.user_confirmed_overwrite:
            raise PreconditionError(
                RESTORE_CONFIRMATION_REQUIRED,
                "Check the overwrite confirmation box before restoring.",
                command=command,
            )
        return op

    async def commit(self, expected_source: Optional[str] = None) -> Any:
        op = self._check_commit(expected_source)
        request = {self.operation.location_key: op.source_location, **self.operation.commit_extra}
        generation = self._store.view_generation
        self._committing = True
        try:
            result = await self._gateway.call(self.operation.commit_command, request)
        finally:
            self._committing = False
        logger.info("commit complete kind=%s source=%s", self.operation.kind, op.source_location)
        self._store.update_views(generation=generation, **{self.operation.result_field: result})
        if self._reload is not None:
            await self._reload()
        return result
