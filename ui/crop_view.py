from __future__ import annotations
from typing import Callable, Optional, Tuple

from PySide6.QtCore import Qt, QPointF, QRectF, QTimer
from PySide6.QtGui import QColor, QImage, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QWidget


class CropView(QWidget):
    """
    Shows the source image fitted to the widget and lets the user drag a crop
    rectangle over it.

    Crop callbacks report (x, y, w, h) in displayed-image pixels, together with
    the displayed image size, so callers can map back to source resolution.
      - left-drag: draw a new crop rectangle
      - on_crop_changed(None) when the selection is cleared
    """
    def __init__(
        self,
        on_crop_changed: Callable[[Optional[Tuple[float, float, float, float]]], None],
        on_display_size_changed: Optional[Callable[[float, float], None]] = None,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self.setMouseTracking(True)
        self.setMinimumSize(320, 320)

        self._image: Optional[QImage] = None
        self._pixmap: Optional[QPixmap] = None

        # Selection stored normalized (0..1) so it survives resizes
        self._sel_norm: Optional[Tuple[float, float, float, float]] = None
        self._drag_origin: Optional[QPointF] = None
        self._drag_current: Optional[QPointF] = None

        self._on_crop_changed = on_crop_changed
        self._on_display_size_changed = on_display_size_changed
        self.placeholder_text = "Click File → Open… or drop an image here"

        self._ants_phase = 0.0
        self._ants_timer = QTimer(self)
        self._ants_timer.setInterval(120)
        self._ants_timer.timeout.connect(self._advance_ants)

    def set_image(self, qimg: Optional[QImage]) -> None:
        self._image = qimg
        self._pixmap = QPixmap.fromImage(qimg) if qimg is not None else None
        self._sel_norm = None
        self._drag_origin = None
        self._drag_current = None
        self._ants_timer.stop()
        self._emit_display_size()
        self.update()

    def clear_selection(self) -> None:
        if self._sel_norm is None and self._drag_origin is None:
            return
        self._sel_norm = None
        self._drag_origin = None
        self._drag_current = None
        self._ants_timer.stop()
        self.update()

    def displayed_size(self) -> Tuple[float, float]:
        r = self._image_rect()
        if r is None:
            return (0.0, 0.0)
        return (r.width(), r.height())

    def _image_rect(self) -> Optional[QRectF]:
        """Where the image is drawn in widget coords (aspect-fit, centered)."""
        if self._image is None or self._image.width() <= 0 or self._image.height() <= 0:
            return None
        iw = float(self._image.width())
        ih = float(self._image.height())
        scale = min(self.width() / iw, self.height() / ih)
        draw_w = iw * scale
        draw_h = ih * scale
        x0 = (self.width() - draw_w) * 0.5
        y0 = (self.height() - draw_h) * 0.5
        return QRectF(x0, y0, draw_w, draw_h)

    def _emit_display_size(self) -> None:
        if self._on_display_size_changed is not None:
            w, h = self.displayed_size()
            self._on_display_size_changed(w, h)

    def _emit_crop(self) -> None:
        r = self._image_rect()
        if r is None or self._sel_norm is None:
            self._on_crop_changed(None)
            return
        nx, ny, nw, nh = self._sel_norm
        self._on_crop_changed((nx * r.width(), ny * r.height(), nw * r.width(), nh * r.height()))

    def _clamp_to_image(self, pos: QPointF, r: QRectF) -> QPointF:
        x = max(r.left(), min(r.right(), pos.x()))
        y = max(r.top(), min(r.bottom(), pos.y()))
        return QPointF(x, y)

    def _drag_rect(self) -> Optional[QRectF]:
        if self._drag_origin is None or self._drag_current is None:
            return None
        return QRectF(self._drag_origin, self._drag_current).normalized()

    def paintEvent(self, _) -> None:
        p = QPainter(self)
        p.setRenderHint(QPainter.SmoothPixmapTransform, True)
        p.fillRect(self.rect(), QColor(241, 245, 249))

        r = self._image_rect()
        if r is None or self._pixmap is None:
            p.setPen(QPen(QColor(148, 163, 184)))
            p.drawText(self.rect(), Qt.AlignCenter, self.placeholder_text)
            return

        p.drawPixmap(r.toRect(), self._pixmap)

        sel = self._drag_rect()
        if sel is None and self._sel_norm is not None:
            nx, ny, nw, nh = self._sel_norm
            sel = QRectF(r.left() + nx * r.width(), r.top() + ny * r.height(), nw * r.width(), nh * r.height())
        if sel is None or sel.width() <= 0 or sel.height() <= 0:
            return

        # Shade outside selection
        shade = QColor(0, 0, 0, 90)
        p.fillRect(QRectF(r.left(), r.top(), r.width(), max(0.0, sel.top() - r.top())), shade)
        p.fillRect(QRectF(r.left(), sel.bottom(), r.width(), max(0.0, r.bottom() - sel.bottom())), shade)
        p.fillRect(QRectF(r.left(), sel.top(), max(0.0, sel.left() - r.left()), sel.height()), shade)
        p.fillRect(QRectF(sel.right(), sel.top(), max(0.0, r.right() - sel.right()), sel.height()), shade)

        outer = QPen(QColor(255, 255, 255), 2)
        outer.setDashPattern([4, 4])
        outer.setDashOffset(self._ants_phase)
        p.setPen(outer)
        p.drawRect(sel)

        inner = QPen(QColor(0, 0, 0), 2)
        inner.setDashPattern([4, 4])
        inner.setDashOffset(self._ants_phase + 4.0)
        p.setPen(inner)
        p.drawRect(sel)

    def resizeEvent(self, e) -> None:
        super().resizeEvent(e)
        self._emit_display_size()
        if self._sel_norm is not None:
            self._emit_crop()

    def mousePressEvent(self, e) -> None:
        r = self._image_rect()
        if r is None or e.button() != Qt.LeftButton:
            return
        pos = e.position()
        if not r.contains(pos):
            return
        self._drag_origin = self._clamp_to_image(pos, r)
        self._drag_current = self._drag_origin
        self.update()

    def mouseMoveEvent(self, e) -> None:
        r = self._image_rect()
        if r is None or self._drag_origin is None:
            return
        self._drag_current = self._clamp_to_image(e.position(), r)
        self.update()

    def mouseReleaseEvent(self, e) -> None:
        if e.button() != Qt.LeftButton or self._drag_origin is None:
            return
        r = self._image_rect()
        sel = self._drag_rect()
        self._drag_origin = None
        self._drag_current = None
        if r is None or sel is None or sel.width() < 1 or sel.height() < 1:
            # A click without a drag keeps the previous selection
            self.update()
            return
        self._sel_norm = (
            (sel.left() - r.left()) / r.width(),
            (sel.top() - r.top()) / r.height(),
            sel.width() / r.width(),
            sel.height() / r.height(),
        )
        if not self._ants_timer.isActive():
            self._ants_timer.start()
        self._emit_crop()
        self.update()

    def _advance_ants(self) -> None:
        self._ants_phase = (self._ants_phase + 1.0) % 8.0
        self.update()
