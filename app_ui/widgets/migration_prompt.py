from __future__ import annotations

from typing import Optional

from PyQt6 import QtCore, QtWidgets

from session_center.migration_guard import GuardSuspended

PROCEED = "proceed"
CANCEL = "cancel"
BACKUP_FIRST = "backup_first"


class MigrationPromptDialog(QtWidgets.QDialog):
    """Asks before a workspace database is migrated to a newer schema."""

    def __init__(self, suspended: GuardSuspended, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle("Workspace migration required")
        self.setModal(True)
        self.choice = CANCEL

        layout = QtWidgets.QVBoxLayout(self)
        action = "initialize" if suspended.pending_action == "initialize" else "open"
        intro = QtWidgets.QLabel(
            f"Opening this workspace will upgrade its database before it can {action}.\n"
            "Migrations cannot be undone. Back up first if you may need the old version."
        )
        intro.setWordWrap(True)
        layout.addWidget(intro)

        form = QtWidgets.QFormLayout()
        path_label = QtWidgets.QLabel(suspended.target_path)
        path_label.setTextInteractionFlags(QtCore.Qt.TextInteractionFlag.TextSelectableByMouse)
        form.addRow("Database", path_label)
        form.addRow("Latest applied", QtWidgets.QLabel(suspended.latest_known_migration or "(none)"))
        layout.addLayout(form)

        pending = QtWidgets.QListWidget()
        pending.addItems(list(suspended.pending_migrations))
        pending.setMaximumHeight(140)
        layout.addWidget(QtWidgets.QLabel(f"Pending migrations ({len(suspended.pending_migrations)}):"))
        layout.addWidget(pending)

        buttons = QtWidgets.QHBoxLayout()
        backup_btn = QtWidgets.QPushButton("Go back up first")
        backup_btn.clicked.connect(lambda: self._finish(BACKUP_FIRST))
        cancel_btn = QtWidgets.QPushButton("Cancel")
        cancel_btn.clicked.connect(lambda: self._finish(CANCEL))
        proceed_btn = QtWidgets.QPushButton("Proceed")
        proceed_btn.clicked.connect(lambda: self._finish(PROCEED))
        buttons.addWidget(backup_btn)
        buttons.addStretch()
        buttons.addWidget(cancel_btn)
        buttons.addWidget(proceed_btn)
        layout.addLayout(buttons)

    def _finish(self, choice: str) -> None:
        self.choice = choice
        if choice == CANCEL:
            self.reject()
        else:
            self.accept()
