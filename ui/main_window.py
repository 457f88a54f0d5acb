from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Optional, Set

from PIL import Image

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QIcon, QImage, QKeySequence, QPixmap
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QFileDialog, QVBoxLayout, QHBoxLayout, QLabel,
    QPushButton, QMessageBox, QPlainTextEdit, QGroupBox
)

from core.codec import decode_bytes
from core.errors import PipelineError, ReadError
from core.logger import get_logger
from core.pipeline import TransformationPipeline
from core.state import DisplayedImage, EncodedImage, PipelineSnapshot
from ui.crop_view import CropView
from ui.result_view import ResultView

_logger = get_logger("ui")

IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.webp *.tif *.tiff)"


def pil_rgba_to_qimage(img: Image.Image) -> QImage:
    img = img.convert("RGBA")
    w, h = img.size
    data = img.tobytes("raw", "RGBA")
    qimg = QImage(data, w, h, QImage.Format_RGBA8888)
    # Important: keep a copy because Python-owned bytes may be freed
    return qimg.copy()


def encoded_to_pixmap(encoded: Optional[EncodedImage]) -> Optional[QPixmap]:
    if encoded is None:
        return None
    pm = QPixmap()
    try:
        raw = decode_bytes(encoded)
    except PipelineError as e:
        _logger.warning("result preview failed: %s", e)
        return None
    if not pm.loadFromData(raw):
        return None
    return pm


class MainWindow(QMainWindow):
    def __init__(self, pipeline: TransformationPipeline, logo_path: Optional[Path] = None):
        super().__init__()
        self._logo_path = logo_path
        if self._logo_path is not None and self._logo_path.exists():
            self.setWindowIcon(QIcon(str(self._logo_path)))
        self.setWindowTitle("PromptPix")

        self.pipeline = pipeline
        self._tasks: Set[asyncio.Task] = set()
        self._last_edit = None
        self._last_upscale = None

        central = QWidget()
        root = QVBoxLayout(central)

        title = QLabel("Edit an image with a text instruction")
        title.setAlignment(Qt.AlignCenter)
        title.setStyleSheet("font-size: 20px; font-weight: bold;")
        root.addWidget(title)

        grid = QHBoxLayout()
        grid.addWidget(self._build_source_group(), 1)
        grid.addWidget(self._build_edit_group(), 1)
        root.addLayout(grid)

        prompt_label = QLabel("2. Describe the edits you want")
        root.addWidget(prompt_label)
        self.prompt_edit = QPlainTextEdit()
        self.prompt_edit.setPlaceholderText("e.g. add a retro filter, or remove the person in the background")
        self.prompt_edit.setFixedHeight(80)
        self.prompt_edit.textChanged.connect(self._on_prompt_changed)
        root.addWidget(self.prompt_edit)

        self.apply_btn = QPushButton("Apply edits")
        self.apply_btn.clicked.connect(self._start_edit)
        root.addWidget(self.apply_btn)

        self.edit_error = self._make_error_label()
        root.addWidget(self.edit_error)

        self.upscale_group = self._build_upscale_group()
        root.addWidget(self.upscale_group)

        self.setCentralWidget(central)
        self._build_menu()

        self.setAcceptDrops(True)
        self.resize(1100, 900)

        self._unsubscribe = self.pipeline.subscribe(self._render)
        self._render(self.pipeline.snapshot())

    # ---------------------------
    # Layout
    # ---------------------------
    def _build_menu(self) -> None:
        open_act = QAction("Open…", self)
        open_act.setShortcut(QKeySequence.StandardKey.Open)
        open_act.triggered.connect(self.open_file)

        save_act = QAction("Save Edited As…", self)
        save_act.setShortcut(QKeySequence.StandardKey.Save)
        save_act.triggered.connect(self.save_edited)

        save_up_act = QAction("Save Upscaled As…", self)
        save_up_act.triggered.connect(self.save_upscaled)

        quit_act = QAction("Quit", self)
        quit_act.setShortcut(QKeySequence.StandardKey.Quit)
        quit_act.triggered.connect(self.close)

        mfile = self.menuBar().addMenu("File")
        mfile.addAction(open_act)
        mfile.addAction(save_act)
        mfile.addAction(save_up_act)
        mfile.addSeparator()
        mfile.addAction(quit_act)

    def _make_group(self, title: str) -> tuple[QGroupBox, QVBoxLayout]:
        g = QGroupBox(title)
        gl = QVBoxLayout()
        g.setLayout(gl)
        return g, gl

    def _make_error_label(self) -> QLabel:
        lbl = QLabel()
        lbl.setWordWrap(True)
        lbl.setAlignment(Qt.AlignCenter)
        lbl.setStyleSheet("color: #dc2626; background: #fee2e2; padding: 8px; border-radius: 6px;")
        lbl.hide()
        return lbl

    def _build_source_group(self) -> QGroupBox:
        g, gl = self._make_group("1. Upload and crop your image")
        row = QHBoxLayout()
        row.addStretch(1)
        self.clear_crop_btn = QPushButton("Clear selection")
        self.clear_crop_btn.clicked.connect(self._clear_crop)
        row.addWidget(self.clear_crop_btn)
        self.change_btn = QPushButton("Open image…")
        self.change_btn.clicked.connect(self.open_file)
        row.addWidget(self.change_btn)
        gl.addLayout(row)

        self.crop_view = CropView(
            on_crop_changed=self._on_crop_changed,
            on_display_size_changed=self._on_display_size_changed,
        )
        gl.addWidget(self.crop_view, 1)
        return g

    def _build_edit_group(self) -> QGroupBox:
        g, gl = self._make_group("3. See your edited image")
        self.edit_view = ResultView("Your edited image will appear here", "Editing…")
        gl.addWidget(self.edit_view, 1)
        row = QHBoxLayout()
        self.save_edit_btn = QPushButton("Download")
        self.save_edit_btn.clicked.connect(self.save_edited)
        row.addWidget(self.save_edit_btn)
        self.upscale_btn = QPushButton("Upscale image")
        self.upscale_btn.clicked.connect(self._start_upscale)
        row.addWidget(self.upscale_btn, 1)
        gl.addLayout(row)
        return g

    def _build_upscale_group(self) -> QGroupBox:
        g, gl = self._make_group("Upscale result")
        self.upscale_view = ResultView("The upscaled image will appear here", "Enhancing your image…")
        gl.addWidget(self.upscale_view, 1)
        self.save_upscale_btn = QPushButton("Download")
        self.save_upscale_btn.clicked.connect(self.save_upscaled)
        gl.addWidget(self.save_upscale_btn)
        self.upscale_error = self._make_error_label()
        gl.addWidget(self.upscale_error)
        return g

    # ---------------------------
    # State -> widgets
    # ---------------------------
    def _render(self, snap: PipelineSnapshot) -> None:
        edit = snap.edit
        upscale = snap.upscale

        # Re-decode previews only when the stage's result or busy flag changes
        edit_key = (edit.result_image, edit.is_loading)
        if edit_key != self._last_edit:
            self._last_edit = edit_key
            self.edit_view.set_result(encoded_to_pixmap(edit.result_image), busy=edit.is_loading)
        upscale_key = (upscale.result_image, upscale.is_loading)
        if upscale_key != self._last_upscale:
            self._last_upscale = upscale_key
            self.upscale_view.set_result(encoded_to_pixmap(upscale.result_image), busy=upscale.is_loading)

        self.apply_btn.setEnabled(not edit.is_loading and bool(snap.prompt) and snap.source is not None)
        self.apply_btn.setText("Editing…" if edit.is_loading else "Apply edits")
        self.prompt_edit.setReadOnly(edit.is_loading)
        self.change_btn.setEnabled(not edit.is_loading)
        self.clear_crop_btn.setVisible(snap.crop is not None and snap.crop.is_valid())

        has_edit = edit.result_image is not None and not edit.is_loading
        self.save_edit_btn.setVisible(has_edit)
        self.upscale_btn.setVisible(has_edit)
        self.upscale_btn.setEnabled(not upscale.is_loading)
        self.upscale_btn.setText("Upscaling…" if upscale.is_loading else "Upscale image")

        self._set_error(self.edit_error, edit.error_message)
        self.upscale_group.setVisible(
            upscale.is_loading or upscale.result_image is not None or bool(upscale.error_message)
        )
        self.save_upscale_btn.setVisible(upscale.result_image is not None)
        self._set_error(self.upscale_error, upscale.error_message)

        src = snap.source
        src_info = f"{src.size[0]}x{src.size[1]} {src.mime_type}" if src is not None else "none"
        crop = snap.crop
        crop_info = (
            f"{crop.width:.0f}x{crop.height:.0f} @ ({crop.x:.0f}, {crop.y:.0f})"
            if crop is not None and crop.is_valid() else "whole image"
        )
        self.statusBar().showMessage(
            f"Source: {src_info} | Region: {crop_info} | "
            f"Edit: {edit.status.value} | Upscale: {upscale.status.value}"
        )

    def _set_error(self, label: QLabel, message: str) -> None:
        label.setText(message)
        label.setVisible(bool(message))

    # ---------------------------
    # Actions
    # ---------------------------
    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", IMAGE_FILTER)
        if not path:
            return
        self.load_path(path)

    def load_path(self, path: str) -> None:
        if self.pipeline.edit.is_loading:
            return
        try:
            source = self.pipeline.select_new_source(path)
        except ReadError as e:
            _logger.warning("open failed: %s", e)
            QMessageBox.critical(self, "Open failed", self.pipeline.messages.read_failed)
            return
        qimg = pil_rgba_to_qimage(source.image) if source.image is not None else None
        self.crop_view.set_image(qimg)

    def _on_display_size_changed(self, w: float, h: float) -> None:
        src = self.pipeline.source
        if src is None or src.image is None or w <= 0 or h <= 0:
            self.pipeline.set_displayed_image(None)
            return
        self.pipeline.set_displayed_image(DisplayedImage(image=src.image, displayed_width=w, displayed_height=h))

    def _on_crop_changed(self, rect) -> None:
        displayed = self.pipeline.displayed
        if rect is None or displayed is None:
            self.pipeline.set_crop(None)
            return
        x, y, w, h = rect
        self.pipeline.set_crop(displayed.crop_region(x, y, w, h))

    def _clear_crop(self) -> None:
        self.crop_view.clear_selection()
        self.pipeline.reset_crop()

    def _on_prompt_changed(self) -> None:
        self.pipeline.set_prompt(self.prompt_edit.toPlainText())

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _start_edit(self) -> None:
        if self.pipeline.edit.is_loading:
            return
        self._spawn(self.pipeline.run_edit())

    def _start_upscale(self) -> None:
        if self.pipeline.upscale.is_loading:
            return
        self._spawn(self.pipeline.run_upscale())

    def save_edited(self) -> None:
        if self.pipeline.edit.result_image is None:
            return
        self._save_with_dialog(self.pipeline.edit_filename(), self.pipeline.save_edit)

    def save_upscaled(self) -> None:
        if self.pipeline.upscale.result_image is None:
            return
        self._save_with_dialog(self.pipeline.upscale_filename(), self.pipeline.save_upscale)

    def _save_with_dialog(self, suggested: str, save) -> None:
        path, _ = QFileDialog.getSaveFileName(self, "Save Image", suggested, "PNG (*.png)")
        if not path:
            return
        try:
            saved = save(path)
        except (OSError, PipelineError) as e:
            QMessageBox.critical(self, "Save failed", str(e))
            return
        if saved:
            self.statusBar().showMessage(f"Saved {saved}", 3000)

    def dragEnterEvent(self, e) -> None:
        if e.mimeData().hasUrls():
            e.acceptProposedAction()

    def dropEvent(self, e) -> None:
        urls = e.mimeData().urls()
        if not urls:
            return
        path = urls[0].toLocalFile()
        if path:
            self.load_path(path)

    def closeEvent(self, e) -> None:
        self._unsubscribe()
        super().closeEvent(e)
