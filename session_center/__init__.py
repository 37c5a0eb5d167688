"""Session and safety orchestration between the desktop shell and the core service."""

from .errors import AppError, CommandError, PreconditionError, SchemaViolation, TransportError
from .gateway import CommandGateway
from .migration_guard import GuardClear, GuardSuspended, MigrationGuard
from .session_store import SessionStore, WorkspaceSession
from .steps import StepOutcome
from .views import ViewLoader, WorkspaceScopedViewState
from .workspace_switch import SwitchResult, WorkspaceSwitchOrchestrator

__all__ = [
    "AppError",
    "CommandError",
    "PreconditionError",
    "SchemaViolation",
    "TransportError",
    "CommandGateway",
    "GuardClear",
    "GuardSuspended",
    "MigrationGuard",
    "SessionStore",
    "WorkspaceSession",
    "StepOutcome",
    "ViewLoader",
    "WorkspaceScopedViewState",
    "SwitchResult",
    "WorkspaceSwitchOrchestrator",
]
