from __future__ import annotations

from typing import Callable, List, Optional

from PyQt6 import QtCore, QtWidgets


class WorkspaceSelector(QtWidgets.QWidget):
    """
    Header widget for the active workspace: recent databases plus New/Open.

    Switching is delegated to the provided callables; the combo only reflects
    the session after the switch actually succeeded.
    """

    switch_requested = QtCore.pyqtSignal(str)
    create_requested = QtCore.pyqtSignal()
    open_requested = QtCore.pyqtSignal()

    def __init__(
        self,
        *,
        list_recent_paths: Callable[[], List[str]],
        get_current_path: Callable[[], Optional[str]],
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._list_recent_paths = list_recent_paths
        self._get_current_path = get_current_path
        self._updating = False

        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        self.label = QtWidgets.QLabel("Workspace:")
        self.combo = QtWidgets.QComboBox()
        self.combo.setMinimumWidth(280)
        self.combo.currentIndexChanged.connect(self._on_combo_changed)

        new_btn = QtWidgets.QToolButton()
        new_btn.setText("New...")
        new_btn.setToolTip("Create a workspace database in a folder")
        new_btn.clicked.connect(self.create_requested.emit)

        open_btn = QtWidgets.QToolButton()
        open_btn.setText("Open...")
        open_btn.setToolTip("Open an existing workspace database")
        open_btn.clicked.connect(self.open_requested.emit)

        layout.addWidget(self.label)
        layout.addWidget(self.combo, stretch=1)
        layout.addWidget(new_btn)
        layout.addWidget(open_btn)

        self.refresh()

    def refresh(self) -> None:
        """Reload recent workspaces and select the current one."""
        current = self._get_current_path() or ""
        paths = list(self._list_recent_paths() or [])
        if current and current not in paths:
            paths.insert(0, current)

        self._updating = True
        try:
            self.combo.clear()
            for path in paths:
                self.combo.addItem(path, path)
            if current:
                idx = self.combo.findData(current)
                if idx >= 0:
                    self.combo.setCurrentIndex(idx)
        finally:
            self._updating = False

    def set_enabled_for_busy(self, busy: bool) -> None:
        self.combo.setEnabled(not busy)

    def _on_combo_changed(self, index: int) -> None:
        if self._updating or index < 0:
            return
        path = self.combo.itemData(index)
        if not isinstance(path, str) or not path:
            return
        if path == self._get_current_path():
            return
        self.switch_requested.emit(path)
        # Show the active workspace until the switch reports back.
        self.refresh()
