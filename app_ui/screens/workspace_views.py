from __future__ import annotations

from typing import Callable, Optional

from PyQt6 import QtCore, QtWidgets

from session_center.views import ViewLoader, WorkspaceScopedViewState

from ..async_bridge import UiTaskRunner


class WorkspaceViewsScreen(QtWidgets.QWidget):
    """Incidents, dashboard summary, validation warnings and the report."""

    def __init__(
        self,
        tasks: UiTaskRunner,
        loader: ViewLoader,
        reload_all: Callable[[], object],
        report_error: Callable[[str, BaseException, Optional[Callable[[str], Optional[str]]]], None],
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._tasks = tasks
        self._loader = loader
        self._reload_all = reload_all
        self._report_error = report_error

        layout = QtWidgets.QVBoxLayout(self)
        btn_row = QtWidgets.QHBoxLayout()
        reload_btn = QtWidgets.QPushButton("Reload all")
        reload_btn.clicked.connect(self._reload)
        clear_filter_btn = QtWidgets.QPushButton("Clear filter")
        clear_filter_btn.clicked.connect(self._clear_filter)
        close_detail_btn = QtWidgets.QPushButton("Close detail")
        close_detail_btn.clicked.connect(self._close_detail)
        self.filter_label = QtWidgets.QLabel("")
        btn_row.addWidget(reload_btn)
        btn_row.addWidget(clear_filter_btn)
        btn_row.addWidget(close_detail_btn)
        btn_row.addWidget(self.filter_label)
        btn_row.addStretch()
        layout.addLayout(btn_row)

        splitter = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)

        left = QtWidgets.QWidget()
        left_layout = QtWidgets.QVBoxLayout(left)
        left_layout.setContentsMargins(0, 0, 0, 0)
        self.summary_label = QtWidgets.QLabel("No data loaded.")
        self.summary_label.setWordWrap(True)
        self.severity_list = QtWidgets.QListWidget()
        self.severity_list.itemActivated.connect(self._on_severity_activated)
        self.incident_table = QtWidgets.QTreeWidget()
        self.incident_table.setColumnCount(4)
        self.incident_table.setHeaderLabels(["ID", "External", "Title", "Warnings"])
        self.incident_table.itemActivated.connect(self._on_incident_activated)
        left_layout.addWidget(self.summary_label)
        left_layout.addWidget(QtWidgets.QLabel("Severity"))
        left_layout.addWidget(self.severity_list)
        left_layout.addWidget(self.incident_table, stretch=1)
        splitter.addWidget(left)

        self.tabs = QtWidgets.QTabWidget()
        self.detail_view = QtWidgets.QPlainTextEdit()
        self.detail_view.setReadOnly(True)
        self.validation_view = QtWidgets.QPlainTextEdit()
        self.validation_view.setReadOnly(True)
        self.report_view = QtWidgets.QPlainTextEdit()
        self.report_view.setReadOnly(True)
        self.tabs.addTab(self.detail_view, "Incident detail")
        self.tabs.addTab(self.validation_view, "Validation")
        self.tabs.addTab(self.report_view, "Report")
        splitter.addWidget(self.tabs)
        layout.addWidget(splitter, stretch=1)

    # --- actions ------------------------------------------------------------
    def _reload(self) -> None:
        self._tasks.run(self._reload_all(), on_error=lambda exc: self._report_error("Reload failed", exc, None))

    def _clear_filter(self) -> None:
        async def _clear() -> None:
            self._loader.clear_dashboard_filter()

        self._tasks.run(_clear())

    def _close_detail(self) -> None:
        async def _close() -> None:
            self._loader.close_incident_detail()

        self._tasks.run(_close())

    def _on_severity_activated(self, item: QtWidgets.QListWidgetItem) -> None:
        severity = item.data(QtCore.Qt.ItemDataRole.UserRole)

        async def _set() -> None:
            self._loader.set_dashboard_filter("severity", severity, f"Severity {severity}")

        self._tasks.run(_set())

    def _on_incident_activated(self, item: QtWidgets.QTreeWidgetItem, _column: int) -> None:
        incident_id = item.data(0, QtCore.Qt.ItemDataRole.UserRole)
        if incident_id is None:
            return
        self._tasks.run(
            self._loader.open_incident_detail(int(incident_id)),
            on_error=lambda exc: self._report_error("Incident detail failed", exc, None),
        )

    # --- rendering ----------------------------------------------------------
    def render(self, views: WorkspaceScopedViewState) -> None:
        dashboard = views.dashboard
        selected_ids = None
        if dashboard is None:
            self.summary_label.setText("No data loaded.")
            self.severity_list.clear()
        else:
            self.summary_label.setText(f"{dashboard.incident_count} incidents")
            self.severity_list.clear()
            for bucket in dashboard.severity_counts:
                item = QtWidgets.QListWidgetItem(f"{bucket.severity}: {bucket.count}")
                item.setData(QtCore.Qt.ItemDataRole.UserRole, bucket.severity)
                self.severity_list.addItem(item)
            if views.dashboard_filter is not None and views.dashboard_filter.kind == "severity":
                for bucket in dashboard.severity_counts:
                    if bucket.severity == views.dashboard_filter.key:
                        selected_ids = set(bucket.incident_ids)
        self.filter_label.setText(views.dashboard_filter.label if views.dashboard_filter else "")

        self.incident_table.clear()
        warning_counts = {}
        if dashboard is not None:
            warning_counts = {inc.id: inc.warning_count for inc in dashboard.incidents}
        for incident in views.incidents or []:
            if selected_ids is not None and incident.id not in selected_ids:
                continue
            row = QtWidgets.QTreeWidgetItem(
                [str(incident.id), incident.external_id or "", incident.title, str(warning_counts.get(incident.id, ""))]
            )
            row.setData(0, QtCore.Qt.ItemDataRole.UserRole, incident.id)
            self.incident_table.addTopLevelItem(row)

        detail = views.incident_detail
        if detail is None:
            self.detail_view.setPlainText("")
        else:
            lines = [f"{detail.incident.title} (id={detail.incident.id})"]
            metrics = detail.metrics
            lines.append(
                f"MTTD={metrics.mttd_seconds} MTTA={metrics.mtta_seconds} "
                f"TTM={metrics.time_to_mitigation_seconds} MTTR={metrics.mttr_seconds}"
            )
            for warning in detail.warnings:
                lines.append(f"! {warning.code}: {warning.message}")
            for event in detail.timeline_events:
                lines.append(f"{event.ts or '?'} [{event.source}] {event.text}")
            self.detail_view.setPlainText("\n".join(lines))

        validation_lines = []
        for item in views.validation_report or []:
            for warning in item.warnings:
                validation_lines.append(f"{item.id} {item.title}: {warning.code}: {warning.message}")
        self.validation_view.setPlainText("\n".join(validation_lines))
        self.report_view.setPlainText(views.report_md or "")
