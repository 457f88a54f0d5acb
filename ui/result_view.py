from __future__ import annotations
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QColor, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QWidget


class ResultView(QWidget):
    """Aspect-fit preview of a stage result, with a busy/placeholder message."""

    def __init__(self, placeholder: str, busy_text: str, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setMinimumSize(320, 320)
        self._pixmap: Optional[QPixmap] = None
        self._busy = False
        self._placeholder = placeholder
        self._busy_text = busy_text

    def set_result(self, pixmap: Optional[QPixmap], busy: bool = False) -> None:
        self._pixmap = pixmap
        self._busy = bool(busy)
        self.update()

    def paintEvent(self, _) -> None:
        p = QPainter(self)
        p.setRenderHint(QPainter.SmoothPixmapTransform, True)
        p.fillRect(self.rect(), QColor(241, 245, 249))
        p.setPen(QPen(QColor(203, 213, 225), 2, Qt.DashLine))
        p.drawRect(self.rect().adjusted(1, 1, -1, -1))

        if self._busy:
            p.setPen(QPen(QColor(100, 116, 139)))
            p.drawText(self.rect(), Qt.AlignCenter, self._busy_text)
            return
        if self._pixmap is None or self._pixmap.isNull():
            p.setPen(QPen(QColor(148, 163, 184)))
            p.drawText(self.rect(), Qt.AlignCenter, self._placeholder)
            return

        scaled = self._pixmap.scaled(self.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation)
        x = (self.width() - scaled.width()) // 2
        y = (self.height() - scaled.height()) // 2
        p.drawPixmap(x, y, scaled)
