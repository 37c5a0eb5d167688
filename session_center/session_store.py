from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import AppError
from .migration_guard import CLEAR, GuardState
from .views import WorkspaceScopedViewState

logger = logging.getLogger(__name__)

CHANGE_SESSION = "session"
CHANGE_GUARD = "guard"
CHANGE_VIEWS = "views"

Listener = Callable[[str], None]


@dataclass(frozen=True)
class WorkspaceSession:
    current_path: str
    recent_paths: Tuple[str, ...] = ()
    load_error: Optional[AppError] = None

    def __post_init__(self) -> None:
        seen = []
        for path in self.recent_paths:
            if path and path not in seen:
                seen.append(path)
        object.__setattr__(self, "recent_paths", tuple(seen))

    @classmethod
    def from_info(cls, info: Any) -> "WorkspaceSession":
        load_error = None
        if info.load_error is not None:
            load_error = AppError(
                code=info.load_error.code,
                message=info.load_error.message,
                details=info.load_error.details,
                retryable=info.load_error.retryable,
            )
        return cls(current_path=info.current_db_path, recent_paths=tuple(info.recent_db_paths), load_error=load_error)


class SessionStore:
    """Owns the workspace session, the migration guard state and the views.

    All mutation happens on the asyncio loop; listeners are called
    synchronously with the kind of change after every mutation.
    """

    def __init__(self) -> None:
        self._session: Optional[WorkspaceSession] = None
        self._guard: GuardState = CLEAR
        self._views = WorkspaceScopedViewState.empty()
        self._view_generation = 0
        self._listeners: Dict[str, Listener] = {}

    # --- listeners --------------------------------------------------------
    def add_listener(self, listener: Listener) -> str:
        token = str(uuid.uuid4())
        self._listeners[token] = listener
        return token

    def remove_listener(self, token: str) -> None:
        self._listeners.pop(token, None)

    def _notify(self, kind: str) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(kind)
            except Exception as exc:
                logger.error("session store listener error kind=%s: %s", kind, exc)

    # --- session ----------------------------------------------------------
    @property
    def session(self) -> Optional[WorkspaceSession]:
        return self._session

    def set_session(self, session: WorkspaceSession) -> None:
        if not session.current_path:
            raise ValueError("workspace session requires a current path")
        self._session = session
        self._notify(CHANGE_SESSION)

    # --- guard ------------------------------------------------------------
    @property
    def guard(self) -> GuardState:
        return self._guard

    def set_guard(self, state: GuardState) -> None:
        if state == self._guard:
            return
        self._guard = state
        self._notify(CHANGE_GUARD)

    # --- views ------------------------------------------------------------
    @property
    def views(self) -> WorkspaceScopedViewState:
        return self._views

    @property
    def view_generation(self) -> int:
        return self._view_generation

    def clear_views(self) -> int:
        """Reset every workspace-scoped view and start a new generation."""
        self._view_generation += 1
        self._views = WorkspaceScopedViewState.empty()
        self._notify(CHANGE_VIEWS)
        return self._view_generation

    def update_views(self, *, generation: Optional[int] = None, **changes: Any) -> bool:
        """Apply ``changes`` unless they belong to a superseded generation."""
        if generation is not None and generation != self._view_generation:
            return False
        self._views = self._views.with_changes(**changes)
        self._notify(CHANGE_VIEWS)
        return True
