# =============================================================================
# NAV INDEX (search these tags)
# [NAV-00] Imports / constants
# [NAV-10] Error reporting helpers
# [NAV-30] Screens: AboutScreen
# [NAV-90] MainWindow
# [NAV-99] main() entrypoint
# =============================================================================

# === [NAV-00] Imports / constants ============================================
# region NAV-00 Imports / constants
import logging
import os
import sys
from typing import Any, Callable, Optional

from PyQt6 import QtWidgets

from diagnostics.logging_setup import configure_logging
from runtime_bus import RuntimeBus, load_core_plugin, topics
from session_center import config as client_config
from session_center.about import load_about
from session_center.data_transfer import DataTransfer
from session_center.destructive_ops import DestructiveOperationProtocol
from session_center.errors import CommandError
from session_center.evidence_pipeline import EvidencePipeline
from session_center.gateway import CommandGateway
from session_center.guidance import format_error, guidance_for, guidance_for_workspace
from session_center.migration_guard import GuardSuspended, MigrationGuard
from session_center.session_store import CHANGE_GUARD, CHANGE_SESSION, CHANGE_VIEWS, SessionStore
from session_center.steps import StepOutcome
from session_center.views import ViewLoader
from session_center.workspace_switch import SwitchResult, WorkspaceSwitchOrchestrator

from .async_bridge import AsyncRunner, UiDispatchBridge, UiTaskRunner
from .pickers import QtPicker
from .screens.workspace_views import WorkspaceViewsScreen
from .widgets.data_safety_panel import DataSafetyPanel
from .widgets.evidence_panel import EvidencePanel
from .widgets.migration_prompt import BACKUP_FIRST, PROCEED, MigrationPromptDialog
from .widgets.workspace_selector import WorkspaceSelector

logger = logging.getLogger(__name__)

APP_TITLE = "IncidentReview"
CORE_PLUGIN_ENV = "INCIDENTREVIEW_CORE_PLUGIN"
# endregion


# === [NAV-10] Error reporting helpers ========================================
# region NAV-10 Error reporting helpers
def describe_failure(exc: BaseException, lookup: Optional[Callable[[str], Optional[str]]] = None) -> str:
    if isinstance(exc, CommandError):
        return format_error(exc, lookup or guidance_for)
    return str(exc) or type(exc).__name__


async def _run_sync(fn: Callable[..., Any], *args: Any) -> Any:
    return fn(*args)
# endregion


# === [NAV-30] Screens: AboutScreen ===========================================
# region NAV-30 AboutScreen
class AboutScreen(QtWidgets.QWidget):
    def __init__(self, tasks: UiTaskRunner, gateway: CommandGateway, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self._tasks = tasks
        self._gateway = gateway

        layout = QtWidgets.QVBoxLayout(self)
        hint = QtWidgets.QLabel("Build metadata is local-only. This app is offline-by-default and sends no telemetry.")
        hint.setStyleSheet("color: #555;")
        refresh_btn = QtWidgets.QPushButton("Refresh")
        refresh_btn.clicked.connect(self.refresh)
        self.body = QtWidgets.QPlainTextEdit()
        self.body.setReadOnly(True)
        layout.addWidget(hint)
        layout.addWidget(refresh_btn)
        layout.addWidget(self.body, stretch=1)

    def refresh(self) -> None:
        self._tasks.run(
            load_about(self._gateway),
            on_done=self._render,
            on_error=lambda exc: self.body.setPlainText(f"Error: {describe_failure(exc)}"),
        )

    def _render(self, about) -> None:
        info = about.app_info
        lines = [
            f"Version: {info.app_version}",
            f"Commit: {info.git_commit_hash or 'unknown'}",
            f"Workspace: {info.current_db_path}",
            f"Latest migration: {info.latest_migration}",
            f"Applied migrations: {len(info.applied_migrations)}",
            f"AI: {about.ai_status_text}",
        ]
        if about.ai_health is not None:
            lines.append(f"AI message: {about.ai_health.message}")
        for model in about.ai_models or []:
            lines.append(f"  model {model.name}")
        self.body.setPlainText("\n".join(lines))
# endregion


# === [NAV-90] MainWindow =====================================================
# region NAV-90 MainWindow
class MainWindow(QtWidgets.QMainWindow):
    # --- [NAV-90A] ctor / wiring
    def __init__(self, bus: RuntimeBus, runner: AsyncRunner):
        super().__init__()
        self.setWindowTitle(APP_TITLE)
        self.resize(1100, 720)
        self.bus = bus
        self._bridge = UiDispatchBridge(self)
        self.tasks = UiTaskRunner(runner, self._bridge)
        self._prompt_open = False

        self.gateway = CommandGateway(bus, source="app_ui")
        self.store = SessionStore()
        self.picker = QtPicker(self._bridge, self)
        self.guard = MigrationGuard(self.gateway, self.store)
        self.loader = ViewLoader(self.gateway, self.store)
        self.transfer = DataTransfer(self.gateway, self.store, self.picker)
        self.orchestrator = WorkspaceSwitchOrchestrator(
            self.gateway,
            self.store,
            self.guard,
            self.loader,
            self.picker,
            remember_path=client_config.remember_workspace_path,
            last_known_path=client_config.get_last_workspace_path,
            backup_route=self.transfer.create_backup,
            default_filename=client_config.get_default_db_filename(),
        )
        self.restore = DestructiveOperationProtocol(
            "restore", self.gateway, self.store, self.picker, reload=self.orchestrator.reload_all
        )
        self.sanitized_import = DestructiveOperationProtocol(
            "sanitized_import", self.gateway, self.store, self.picker, reload=self.orchestrator.reload_all
        )
        self.pipeline = EvidencePipeline(self.gateway)

        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)
        self.selector = WorkspaceSelector(
            list_recent_paths=lambda: list(self.store.session.recent_paths) if self.store.session else [],
            get_current_path=lambda: self.store.session.current_path if self.store.session else None,
        )
        self.selector.switch_requested.connect(self._switch_to_recent)
        self.selector.create_requested.connect(lambda: self._switch(None, "create"))
        self.selector.open_requested.connect(lambda: self._switch(None, "open"))
        layout.addWidget(self.selector)

        self.load_warning = QtWidgets.QLabel("")
        self.load_warning.setStyleSheet("color: #a60;")
        self.load_warning.setWordWrap(True)
        self.load_warning.hide()
        layout.addWidget(self.load_warning)

        self.tabs = QtWidgets.QTabWidget()
        self.views_screen = WorkspaceViewsScreen(self.tasks, self.loader, self.orchestrator.reload_all, self._report_error)
        self.data_safety = DataSafetyPanel(
            self.tasks, self.transfer, self.restore, self.sanitized_import, self._report_error
        )
        self.evidence = EvidencePanel(self.tasks, self.pipeline, self.picker, self._report_error)
        self.about = AboutScreen(self.tasks, self.gateway)
        self.tabs.addTab(self.views_screen, "Incidents")
        self.tabs.addTab(self.data_safety, "Data safety")
        self.tabs.addTab(self.evidence, "AI evidence")
        self.tabs.addTab(self.about, "About")
        layout.addWidget(self.tabs, stretch=1)
        self.setCentralWidget(central)

        self.store.add_listener(lambda kind: self._bridge.dispatch(self._on_store_changed, kind))
        self._workspace_event_sub = bus.subscribe(
            topics.WORKSPACE_ACTIVE_CHANGED,
            lambda envelope: self._bridge.dispatch(self._on_workspace_changed, envelope),
        )

    # --- [NAV-90B] startup
    def start(self) -> None:
        self.tasks.run(self._startup(), on_done=self._on_switch_done, on_error=self._on_startup_failed)

    async def _startup(self) -> SwitchResult:
        await self.orchestrator.load_session()
        return await self.orchestrator.initialize()

    def _on_startup_failed(self, exc: BaseException) -> None:
        self._report_error("Workspace init failed", exc, guidance_for_workspace)

    # --- [NAV-90C] workspace actions
    def _switch(self, path: Optional[str], mode: str) -> None:
        title = "Workspace create failed" if mode == "create" else "Workspace open failed"
        self.tasks.run(
            self.orchestrator.switch_to(path, mode),
            on_done=self._on_switch_done,
            on_error=lambda exc: self._report_error(title, exc, guidance_for_workspace),
        )

    def _switch_to_recent(self, path: str) -> None:
        self.tasks.run(
            self.orchestrator.switch_to_recent(path),
            on_done=self._on_switch_done,
            on_error=lambda exc: self._report_error("Workspace switch failed", exc, guidance_for_workspace),
        )

    def _on_switch_done(self, result: Optional[SwitchResult]) -> None:
        if result is None:
            return
        if result.outcome is StepOutcome.COMPLETED and result.db_path:
            self.statusBar().showMessage(f"Workspace: {result.db_path}", 5000)
        for name, exc in result.reload_failures.items():
            logger.warning("view %s failed to load: %s", name, exc.code)
        if result.reload_failures:
            failed = ", ".join(sorted(result.reload_failures))
            self.statusBar().showMessage(f"Some views failed to load: {failed}", 8000)

    def _on_workspace_changed(self, envelope) -> None:
        self.pipeline.clear_citations()
        self.evidence.render()
        logger.info("active workspace changed db_path=%s", envelope.payload.get("db_path"))

    # --- [NAV-90D] migration prompt
    def _show_migration_prompt(self) -> None:
        state = self.store.guard
        if self._prompt_open or not isinstance(state, GuardSuspended):
            return
        self._prompt_open = True
        try:
            dialog = MigrationPromptDialog(state, self)
            dialog.exec()
            choice = dialog.choice
        finally:
            self._prompt_open = False
        if choice == PROCEED:
            self.tasks.run(
                self.orchestrator.proceed_after_migration_prompt(),
                on_done=self._on_switch_done,
                on_error=lambda exc: self._report_error("Workspace migration failed", exc, guidance_for_workspace),
            )
        elif choice == BACKUP_FIRST:
            self.tasks.run(
                self.orchestrator.back_up_first(),
                on_done=lambda _result: self._show_migration_prompt(),
                on_error=lambda exc: self._backup_first_failed(exc),
            )
        else:
            self.tasks.run(_run_sync(self.orchestrator.cancel_migration_prompt))

    def _backup_first_failed(self, exc: BaseException) -> None:
        self._report_error("Backup failed", exc, guidance_for_workspace)
        self._show_migration_prompt()

    # --- [NAV-90E] store notifications
    def _on_store_changed(self, kind: str) -> None:
        if kind == CHANGE_SESSION:
            self.selector.refresh()
            session = self.store.session
            if session is not None and session.load_error is not None:
                self.load_warning.setText(f"Workspace config warning: {session.load_error.describe()}")
                self.load_warning.show()
            else:
                self.load_warning.hide()
        elif kind == CHANGE_VIEWS:
            views = self.store.views
            self.views_screen.render(views)
            self.data_safety.render(views)
        elif kind == CHANGE_GUARD:
            self._show_migration_prompt()

    def _report_error(
        self,
        title: str,
        exc: BaseException,
        lookup: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        logger.info("ui error title=%s error=%s", title, exc)
        QtWidgets.QMessageBox.warning(self, title, describe_failure(exc, lookup))

    def closeEvent(self, event) -> None:
        if self._workspace_event_sub:
            self.bus.unsubscribe(self._workspace_event_sub)
            self._workspace_event_sub = None
        super().closeEvent(event)
# endregion


# === [NAV-99] main() entrypoint ==============================================
# region NAV-99 main
def main():
    log_info = configure_logging()
    config = client_config.load_client_config()
    logger.info("starting %s log_path=%s", APP_TITLE, log_info.get("log_path"))
    bus = RuntimeBus(default_timeout_ms=client_config.get_bus_timeout_ms())
    load_core_plugin(bus, os.environ.get(CORE_PLUGIN_ENV) or config.get("core_plugin"))

    app = QtWidgets.QApplication(sys.argv)
    runner = AsyncRunner()
    runner.start()
    window = MainWindow(bus, runner)
    window.show()
    window.start()
    code = app.exec()
    runner.stop()
    sys.exit(code)


if __name__ == "__main__":
    main()
# endregion
