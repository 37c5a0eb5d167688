from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

from PyQt6 import QtCore

logger = logging.getLogger(__name__)


class AsyncRunner:
    """Runs the session asyncio loop on its own thread."""

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="session-loop", daemon=True)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def stop(self) -> None:
        if not self._thread.is_alive():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=2.0)

    def submit(self, coro: Awaitable[Any]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)


class UiDispatchBridge(QtCore.QObject):
    """Marshals callbacks from the session loop onto the Qt main thread."""

    callback_dispatched = QtCore.pyqtSignal(object, object)

    def __init__(self, parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self.callback_dispatched.connect(
            self._invoke_handler,
            QtCore.Qt.ConnectionType.QueuedConnection,
        )

    def dispatch(self, handler: Callable[[Any], None], payload: Any = None) -> None:
        self.callback_dispatched.emit(handler, payload)

    @QtCore.pyqtSlot(object, object)
    def _invoke_handler(self, handler: Callable[[Any], None], payload: Any) -> None:
        try:
            handler(payload)
        except Exception:  # pragma: no cover - UI callback bug
            logger.exception("ui callback failed")


class UiTaskRunner:
    """Submit a coroutine and get its outcome back on the Qt thread."""

    def __init__(self, runner: AsyncRunner, bridge: UiDispatchBridge):
        self._runner = runner
        self._bridge = bridge

    @property
    def bridge(self) -> UiDispatchBridge:
        return self._bridge

    def run(
        self,
        coro: Awaitable[Any],
        *,
        on_done: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> concurrent.futures.Future:
        future = self._runner.submit(coro)

        def _finished(fut: concurrent.futures.Future) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                if on_error is not None:
                    self._bridge.dispatch(on_error, exc)
                else:
                    logger.error("background task failed: %s", exc)
                return
            if on_done is not None:
                self._bridge.dispatch(on_done, fut.result())

        future.add_done_callback(_finished)
        return future
