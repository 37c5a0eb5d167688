from __future__ import annotations

from typing import Any, Callable, Optional

from PyQt6 import QtCore, QtWidgets

from session_center.evidence_pipeline import EvidencePipeline, default_origin_kind
from session_center.guidance import guidance_for_ai

from ..async_bridge import UiTaskRunner
from ..pickers import QtPicker

SOURCE_TYPES = [
    ("sanitized_export", "Sanitized export"),
    ("slack_transcript", "Slack transcript"),
    ("incident_report_md", "Incident report (MD)"),
    ("freeform_text", "Freeform text"),
]


class EvidencePanel(QtWidgets.QWidget):
    """Evidence sources, chunks and the readiness gate for local AI drafting."""

    def __init__(
        self,
        tasks: UiTaskRunner,
        pipeline: EvidencePipeline,
        picker: QtPicker,
        report_error: Callable[[str, BaseException, Optional[Callable[[str], Optional[str]]]], None],
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._tasks = tasks
        self._pipeline = pipeline
        self._picker = picker
        self._report_error = report_error
        self._rendering = False

        layout = QtWidgets.QVBoxLayout(self)
        hint = QtWidgets.QLabel(
            "Local-only (Ollama on 127.0.0.1). AI never computes metrics; it only drafts text citing evidence chunks."
        )
        hint.setWordWrap(True)
        hint.setStyleSheet("color: #555;")
        layout.addWidget(hint)

        status_row = QtWidgets.QHBoxLayout()
        refresh_btn = QtWidgets.QPushButton("Check status")
        refresh_btn.clicked.connect(self.refresh_status)
        self.health_label = QtWidgets.QLabel("Health: unknown")
        self.index_label = QtWidgets.QLabel("Index: unknown")
        status_row.addWidget(refresh_btn)
        status_row.addWidget(self.health_label)
        status_row.addWidget(self.index_label)
        status_row.addStretch()
        layout.addLayout(status_row)

        add_box = QtWidgets.QGroupBox("Add evidence source")
        add_form = QtWidgets.QFormLayout(add_box)
        self.type_combo = QtWidgets.QComboBox()
        for value, label in SOURCE_TYPES:
            self.type_combo.addItem(value, label)
        self.type_combo.currentIndexChanged.connect(self._on_type_changed)
        self.label_edit = QtWidgets.QLineEdit(SOURCE_TYPES[0][1])
        path_row = QtWidgets.QHBoxLayout()
        self.path_edit = QtWidgets.QLineEdit()
        self.path_edit.setPlaceholderText("Pick a path")
        pick_btn = QtWidgets.QPushButton("Pick")
        pick_btn.clicked.connect(self._pick_path)
        path_row.addWidget(self.path_edit, stretch=1)
        path_row.addWidget(pick_btn)
        self.text_edit = QtWidgets.QPlainTextEdit()
        self.text_edit.setPlaceholderText("Paste text here")
        add_btn = QtWidgets.QPushButton("Add source")
        add_btn.clicked.connect(self._add_source)
        add_form.addRow("Type", self.type_combo)
        add_form.addRow("Label", self.label_edit)
        add_form.addRow("Path", path_row)
        add_form.addRow("Text", self.text_edit)
        add_form.addRow(add_btn)
        layout.addWidget(add_box)

        chunk_row = QtWidgets.QHBoxLayout()
        self.source_combo = QtWidgets.QComboBox()
        self.source_combo.currentIndexChanged.connect(self._on_source_changed)
        build_btn = QtWidgets.QPushButton("Build chunks")
        build_btn.clicked.connect(self._build_chunks)
        list_btn = QtWidgets.QPushButton("List chunks")
        list_btn.clicked.connect(self._list_chunks)
        chunk_row.addWidget(QtWidgets.QLabel("Source"))
        chunk_row.addWidget(self.source_combo, stretch=1)
        chunk_row.addWidget(build_btn)
        chunk_row.addWidget(list_btn)
        layout.addLayout(chunk_row)

        self.chunk_list = QtWidgets.QListWidget()
        self.chunk_list.itemChanged.connect(self._on_chunk_toggled)
        layout.addWidget(self.chunk_list, stretch=1)

        self.gate_label = QtWidgets.QLabel("")
        self.gate_label.setWordWrap(True)
        layout.addWidget(self.gate_label)

        self._on_type_changed(0)
        self.render()

    # --- actions ------------------------------------------------------------
    def _run(self, coro, title: str) -> None:
        self._tasks.run(
            coro,
            on_done=lambda _result: self.render(),
            on_error=lambda exc: self._failed(title, exc),
        )

    def _failed(self, title: str, exc: BaseException) -> None:
        self.render()
        self._report_error(title, exc, guidance_for_ai)

    def refresh_status(self) -> None:
        async def _refresh() -> None:
            await self._pipeline.check_health()
            await self._pipeline.refresh_sources()
            await self._pipeline.refresh_chunks(self._pipeline.selected_source_id)
            await self._pipeline.refresh_index_status()

        self._run(_refresh(), "AI status failed")

    def _selected_type(self) -> str:
        return str(self.type_combo.currentText())

    def _on_type_changed(self, _index: int) -> None:
        kind = default_origin_kind(self._selected_type())
        label = self.type_combo.currentData()
        if isinstance(label, str):
            self.label_edit.setText(label)
        self.path_edit.setEnabled(kind != "paste")
        self.text_edit.setEnabled(kind == "paste")

    def _pick_path(self) -> None:
        kind = default_origin_kind(self._selected_type())
        if kind == "paste":
            return
        if kind == "directory":
            coro = self._picker.pick_directory("Choose evidence folder")
        else:
            coro = self._picker.pick_text_file("Choose evidence file")
        self._tasks.run(
            coro,
            on_done=lambda path: self.path_edit.setText(path) if path else None,
            on_error=lambda exc: self._report_error("Picker failed", exc, None),
        )

    def _add_source(self) -> None:
        self._run(
            self._pipeline.add_source(
                self._selected_type(),
                self.label_edit.text().strip(),
                path=self.path_edit.text().strip() or None,
                text=self.text_edit.toPlainText(),
            ),
            "Add evidence failed",
        )

    def _on_source_changed(self, index: int) -> None:
        if self._rendering or index < 0:
            return
        source_id = self.source_combo.itemData(index)

        async def _select() -> None:
            self._pipeline.select_source(source_id)
            await self._pipeline.refresh_chunks(source_id)

        self._run(_select(), "List chunks failed")

    def _build_chunks(self) -> None:
        self._run(self._pipeline.build_chunks(), "Build chunks failed")

    def _list_chunks(self) -> None:
        self._run(self._pipeline.refresh_chunks(self._pipeline.selected_source_id), "List chunks failed")

    def _on_chunk_toggled(self, item: QtWidgets.QListWidgetItem) -> None:
        if self._rendering:
            return
        chunk_id = item.data(QtCore.Qt.ItemDataRole.UserRole)

        async def _toggle() -> Any:
            return self._pipeline.toggle_citation(chunk_id)

        self._run(_toggle(), "Citation selection failed")

    # --- rendering ----------------------------------------------------------
    def render(self) -> None:
        pipeline = self._pipeline
        self._rendering = True
        try:
            health = "unknown" if pipeline.health_ok is None else ("ok" if pipeline.health_ok else "unhealthy")
            self.health_label.setText(f"Health: {health}")
            index = "unknown" if pipeline.index_ready is None else ("ready" if pipeline.index_ready else "not ready")
            self.index_label.setText(f"Index: {index}")

            self.source_combo.clear()
            for source in pipeline.sources or ():
                self.source_combo.addItem(f"{source.label} ({source.source_type})", source.source_id)
            if pipeline.selected_source_id:
                idx = self.source_combo.findData(pipeline.selected_source_id)
                if idx >= 0:
                    self.source_combo.setCurrentIndex(idx)

            self.chunk_list.clear()
            selected = pipeline.selected_citations
            for chunk in pipeline.chunks or ():
                item = QtWidgets.QListWidgetItem(
                    f"#{chunk.ordinal} {chunk.chunk_id} ({chunk.meta.kind}, ~{chunk.token_count_est} tokens)"
                )
                item.setData(QtCore.Qt.ItemDataRole.UserRole, chunk.chunk_id)
                item.setFlags(item.flags() | QtCore.Qt.ItemFlag.ItemIsUserCheckable)
                item.setCheckState(
                    QtCore.Qt.CheckState.Checked if chunk.chunk_id in selected else QtCore.Qt.CheckState.Unchecked
                )
                self.chunk_list.addItem(item)

            gate = pipeline.gate()
            parts = [f"Search: {'enabled' if gate.can_search else 'disabled'}", f"Draft: {'enabled' if gate.can_draft else 'disabled'}"]
            if gate.reason_code:
                parts.append(f"{gate.reason_code}: {gate.reason_message}")
            self.gate_label.setText(" | ".join(parts))
        finally:
            self._rendering = False
