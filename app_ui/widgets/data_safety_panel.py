from __future__ import annotations

from typing import Any, Callable, Optional

from PyQt6 import QtWidgets

from session_center.data_transfer import DataTransfer
from session_center.destructive_ops import DestructiveOperationProtocol
from session_center.guidance import guidance_for_sanitized_import, guidance_for_workspace
from session_center.views import WorkspaceScopedViewState

from ..async_bridge import UiTaskRunner

ErrorReporter = Callable[[str, BaseException, Optional[Callable[[str], Optional[str]]]], None]


async def _run_sync(fn: Callable[..., Any], *args: Any) -> Any:
    return fn(*args)


class DataSafetyPanel(QtWidgets.QWidget):
    """Backup, restore and sanitized dataset export/import."""

    def __init__(
        self,
        tasks: UiTaskRunner,
        transfer: DataTransfer,
        restore: DestructiveOperationProtocol,
        sanitized_import: DestructiveOperationProtocol,
        report_error: ErrorReporter,
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._tasks = tasks
        self._transfer = transfer
        self._restore = restore
        self._import = sanitized_import
        self._report_error = report_error

        layout = QtWidgets.QVBoxLayout(self)

        # Backup
        backup_box = QtWidgets.QGroupBox("Backup")
        backup_layout = QtWidgets.QVBoxLayout(backup_box)
        backup_btn = QtWidgets.QPushButton("Create backup...")
        backup_btn.clicked.connect(self._create_backup)
        self.backup_status = QtWidgets.QLabel("")
        self.backup_status.setWordWrap(True)
        backup_layout.addWidget(backup_btn)
        backup_layout.addWidget(self.backup_status)
        layout.addWidget(backup_box)

        # Restore
        restore_box = QtWidgets.QGroupBox("Restore from backup")
        restore_layout = QtWidgets.QVBoxLayout(restore_box)
        pick_restore_btn = QtWidgets.QPushButton("Choose backup folder...")
        pick_restore_btn.clicked.connect(self._choose_restore_source)
        self.restore_manifest = QtWidgets.QLabel("No backup selected.")
        self.restore_manifest.setWordWrap(True)
        self.restore_confirm = QtWidgets.QCheckBox("I understand this overwrites the current workspace")
        self.restore_confirm.setEnabled(False)
        self.restore_confirm.toggled.connect(self._acknowledge_restore)
        self.restore_btn = QtWidgets.QPushButton("Restore")
        self.restore_btn.setEnabled(False)
        self.restore_btn.clicked.connect(self._commit_restore)
        self.restore_status = QtWidgets.QLabel("")
        self.restore_status.setWordWrap(True)
        for widget in (pick_restore_btn, self.restore_manifest, self.restore_confirm, self.restore_btn, self.restore_status):
            restore_layout.addWidget(widget)
        layout.addWidget(restore_box)

        # Sanitized datasets
        sanitized_box = QtWidgets.QGroupBox("Sanitized dataset")
        sanitized_layout = QtWidgets.QVBoxLayout(sanitized_box)
        export_btn = QtWidgets.QPushButton("Export sanitized dataset...")
        export_btn.clicked.connect(self._export_sanitized)
        self.export_status = QtWidgets.QLabel("")
        self.export_status.setWordWrap(True)
        pick_import_btn = QtWidgets.QPushButton("Choose dataset to import...")
        pick_import_btn.clicked.connect(self._choose_import_source)
        self.import_manifest = QtWidgets.QLabel("No dataset selected.")
        self.import_manifest.setWordWrap(True)
        self.import_btn = QtWidgets.QPushButton("Import into empty workspace")
        self.import_btn.setEnabled(False)
        self.import_btn.clicked.connect(self._commit_import)
        self.import_status = QtWidgets.QLabel("")
        self.import_status.setWordWrap(True)
        for widget in (export_btn, self.export_status, pick_import_btn, self.import_manifest, self.import_btn, self.import_status):
            sanitized_layout.addWidget(widget)
        layout.addWidget(sanitized_box)
        layout.addStretch()

    # --- actions ------------------------------------------------------------
    def _create_backup(self) -> None:
        self._tasks.run(
            self._transfer.create_backup(),
            on_error=lambda exc: self._report_error("Backup failed", exc, guidance_for_workspace),
        )

    def _export_sanitized(self) -> None:
        self._tasks.run(
            self._transfer.export_sanitized_dataset(),
            on_error=lambda exc: self._report_error("Sanitized export failed", exc, None),
        )

    def _choose_restore_source(self) -> None:
        self._tasks.run(
            self._restore.choose_source(),
            on_error=lambda exc: self._report_error("Load backup failed", exc, None),
        )

    def _acknowledge_restore(self, checked: bool) -> None:
        self._tasks.run(
            _run_sync(self._restore.acknowledge, checked),
            on_error=lambda exc: self._report_error("Confirmation failed", exc, None),
        )

    def _commit_restore(self) -> None:
        pending = self._restore.pending
        expected = pending.source_location if pending else None
        self._tasks.run(
            self._restore.commit(expected_source=expected),
            on_error=lambda exc: self._report_error("Restore failed", exc, guidance_for_workspace),
        )

    def _choose_import_source(self) -> None:
        self._tasks.run(
            self._import.choose_source(),
            on_error=lambda exc: self._report_error("Inspect sanitized dataset failed", exc, guidance_for_sanitized_import),
        )

    def _commit_import(self) -> None:
        pending = self._import.pending
        expected = pending.source_location if pending else None
        self._tasks.run(
            self._import.commit(expected_source=expected),
            on_error=lambda exc: self._report_error("Sanitized import failed", exc, guidance_for_sanitized_import),
        )

    # --- rendering ----------------------------------------------------------
    def render(self, views: WorkspaceScopedViewState) -> None:
        backup = views.backup_result
        self.backup_status.setText(
            f"{backup.backup_dir} (incidents={backup.manifest.counts.incidents})" if backup else ""
        )

        restore = views.restore_pending
        manifest = restore.inspected_manifest if restore else None
        if restore is None:
            self.restore_manifest.setText("No backup selected.")
        elif manifest is None:
            self.restore_manifest.setText(f"{restore.source_location}\nInspecting...")
        else:
            self.restore_manifest.setText(
                f"{restore.source_location}\nExported {manifest.export_time} by {manifest.app_version}; "
                f"incidents={manifest.counts.incidents} events={manifest.counts.timeline_events} "
                f"artifacts={'yes' if manifest.artifacts.included else 'no'}"
            )
        self.restore_confirm.blockSignals(True)
        self.restore_confirm.setEnabled(manifest is not None)
        self.restore_confirm.setChecked(bool(restore and restore.user_confirmed_overwrite))
        self.restore_confirm.blockSignals(False)
        self.restore_btn.setEnabled(bool(manifest is not None and restore.user_confirmed_overwrite))
        result = views.restore_result
        self.restore_status.setText(
            f"db={result.restored_db_path} artifacts={'yes' if result.restored_artifacts else 'no'}" if result else ""
        )

        export = views.sanitized_export
        self.export_status.setText(f"{export.export_dir} (incidents={export.incident_count})" if export else "")

        pending_import = views.sanitized_import_pending
        import_manifest = pending_import.inspected_manifest if pending_import else None
        if pending_import is None:
            self.import_manifest.setText("No dataset selected.")
        elif import_manifest is None:
            self.import_manifest.setText(f"{pending_import.source_location}\nInspecting...")
        else:
            self.import_manifest.setText(
                f"{pending_import.source_location}\nExported {import_manifest.export_time}; "
                f"incidents={import_manifest.incident_count} files={len(import_manifest.files)}"
            )
        self.import_btn.setEnabled(import_manifest is not None)
        summary = views.sanitized_import_summary
        self.import_status.setText(
            f"incidents={summary.inserted_incidents} events={summary.inserted_timeline_events} "
            f"warnings={len(summary.import_warnings)}"
            if summary
            else ""
        )
