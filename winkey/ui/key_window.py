import logging
from typing import Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal
from PySide6.QtWidgets import (
    QFormLayout, QHBoxLayout, QLabel, QLineEdit, QMainWindow, QPushButton, QVBoxLayout, QWidget
)

from winkey.key_sources import (
    SOURCE_DECODED, SOURCE_PARTIAL, RecordSourceError, load_record, resolve_display_key
)
from winkey.product_key import InvalidRecordError
from winkey.settings_store import load_settings


SOURCE_LABELS = {
    SOURCE_DECODED: "Decoded from DigitalProductId",
    SOURCE_PARTIAL: "Partial key from licensing service",
}


class KeyWorkerSignals(QObject):
    finished = Signal(int, object)
    failed = Signal(int, str)


class KeyWorker(QRunnable):
    """Fetch the record and decode it off the UI thread."""

    def __init__(self, task_id: int, settings: dict):
        super().__init__()
        self.task_id = task_id
        self.settings = dict(settings)
        self.signals = KeyWorkerSignals()

    def run(self):
        try:
            record = load_record(self.settings)
            resolution = resolve_display_key(record, self.settings.get("partial_key"))
        except (RecordSourceError, InvalidRecordError) as exc:
            logging.getLogger(__name__).error("Product key lookup failed: %s", exc)
            self.signals.failed.emit(self.task_id, str(exc))
            return
        self.signals.finished.emit(self.task_id, resolution)


class KeyWindow(QMainWindow):
    def __init__(self, settings: Optional[dict] = None, parent=None):
        super().__init__(parent)
        self.settings = settings if settings is not None else load_settings()
        self.logger = logging.getLogger(__name__)
        self.setWindowTitle(self.settings.get("window_title") or "WinKey")
        self.resize(460, 140)
        self._thread_pool = QThreadPool(self)
        self._task_id = 0
        self._build_ui()

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        root_v = QVBoxLayout(central)

        form = QFormLayout()
        self.key_edit = QLineEdit()
        self.key_edit.setReadOnly(True)
        self.key_edit.setPlaceholderText("Not loaded")
        form.addRow("Product key:", self.key_edit)
        self.source_label = QLabel("")
        form.addRow("Source:", self.source_label)
        root_v.addLayout(form)

        row = QHBoxLayout()
        self.status_label = QLabel("Idle")
        row.addWidget(self.status_label)
        row.addStretch(1)
        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self.refresh)
        row.addWidget(self.refresh_btn)
        root_v.addLayout(row)

    def refresh(self):
        self._task_id += 1
        worker = KeyWorker(self._task_id, self.settings)
        worker.signals.finished.connect(self._on_finished)
        worker.signals.failed.connect(self._on_failed)
        self.refresh_btn.setEnabled(False)
        self.status_label.setText("Reading product id...")
        self._thread_pool.start(worker)

    def _on_finished(self, task_id: int, resolution):
        if task_id != self._task_id:
            return
        self.refresh_btn.setEnabled(True)
        if not resolution.key:
            self.key_edit.clear()
            self.source_label.setText("")
            self.status_label.setText("No product key available")
            return
        self.key_edit.setText(resolution.key)
        self.source_label.setText(SOURCE_LABELS.get(resolution.source, resolution.source))
        self.status_label.setText("Ready" if resolution.formatted or resolution.source != SOURCE_DECODED
                                  else "Ready (unformatted)")
        self.logger.info("Product key shown | source=%s formatted=%s", resolution.source, resolution.formatted)

    def _on_failed(self, task_id: int, message: str):
        if task_id != self._task_id:
            return
        self.refresh_btn.setEnabled(True)
        self.key_edit.clear()
        self.source_label.setText("")
        self.status_label.setText(f"Error: {message}")
