from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Callable, Optional

from PyQt6 import QtWidgets

from .async_bridge import UiDispatchBridge

DB_FILE_FILTER = "SQLite DB (*.sqlite *.db)"


class QtPicker:
    """File dialogs shown on the Qt thread, awaited from the session loop."""

    def __init__(self, bridge: UiDispatchBridge, parent: Optional[QtWidgets.QWidget] = None):
        self._bridge = bridge
        self._parent = parent

    async def _ask(self, show: Callable[[], str]) -> Optional[str]:
        future: concurrent.futures.Future = concurrent.futures.Future()

        def _run(_payload: object) -> None:
            try:
                future.set_result(show() or None)
            except Exception as exc:  # pragma: no cover - dialog failure
                future.set_exception(exc)

        self._bridge.dispatch(_run)
        return await asyncio.wrap_future(future)

    async def pick_directory(self, title: str) -> Optional[str]:
        return await self._ask(lambda: QtWidgets.QFileDialog.getExistingDirectory(self._parent, title))

    async def pick_db_file(self, title: str) -> Optional[str]:
        def _show() -> str:
            path, _ = QtWidgets.QFileDialog.getOpenFileName(self._parent, title, "", DB_FILE_FILTER)
            return path

        return await self._ask(_show)

    async def pick_text_file(self, title: str) -> Optional[str]:
        def _show() -> str:
            path, _ = QtWidgets.QFileDialog.getOpenFileName(
                self._parent, title, "", "Text files (*.txt *.md *.json);;All files (*)"
            )
            return path

        return await self._ask(_show)
