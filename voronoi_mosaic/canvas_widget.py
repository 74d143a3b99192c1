from typing import Callable, Optional

import numpy as np
from PyQt6.QtCore import QPoint, QSize, Qt
from PyQt6.QtGui import QImage, QPainter
from PyQt6.QtWidgets import QWidget


class CanvasWidget(QWidget):
    def __init__(
        self,
        get_image: Callable[[], Optional[np.ndarray]],
        title: str = "",
        on_hover: Optional[Callable[[int, int], None]] = None,
        zoom: float = 1.0,
        parent=None,
    ):
        """
        get_image: function returning the current np.ndarray (H, W, 4) uint8, or None
        title: caption drawn above the image
        on_hover: optional callable receiving hover image coords (y, x)
        zoom: initial display scale; the mouse wheel changes it
        """
        super().__init__(parent)
        self._get_image = get_image
        self._title = title
        self._on_hover = on_hover
        self._zoom = zoom
        self.setMouseTracking(True)

    def set_zoom(self, zoom: float):
        self._zoom = max(0.1, min(32.0, zoom))
        self.updateGeometry()
        self.update()

    def fit_to(self, pixels: int):
        """Pick a zoom so the image is about `pixels` wide."""
        img = self._get_image()
        if img is None:
            return
        self.set_zoom(pixels / img.shape[1])

    def paintEvent(self, event):
        del event
        painter = QPainter(self)
        if self._title:
            painter.drawText(4, 14, self._title)
        img = self._get_image()
        if img is None:
            painter.end()
            return
        H, W, _ = img.shape
        # QImage borrows the buffer; keep a contiguous reference alive while painting
        buf = np.ascontiguousarray(img, dtype=np.uint8)
        qimg = QImage(buf.data, W, H, 4 * W, QImage.Format.Format_RGBA8888)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
        painter.translate(0, self._top_margin())
        painter.scale(self._zoom, self._zoom)
        painter.drawImage(0, 0, qimg)
        painter.end()

    def _top_margin(self) -> int:
        return 20 if self._title else 0

    def sizeHint(self):
        img = self._get_image()
        if img is None:
            return QSize(256, 256 + self._top_margin())
        H, W, _ = img.shape
        return QSize(int(W * self._zoom), int(H * self._zoom) + self._top_margin())

    def _widget_to_image_coords(self, pos: QPoint) -> tuple[int, int]:
        x = int(pos.x() / self._zoom)
        y = int((pos.y() - self._top_margin()) / self._zoom)
        return y, x

    def mouseMoveEvent(self, event):
        if self._on_hover is None:
            return
        img = self._get_image()
        if img is None:
            return
        y, x = self._widget_to_image_coords(event.position().toPoint())
        H, W, _ = img.shape
        if 0 <= y < H and 0 <= x < W:
            self._on_hover(y, x)

    def wheelEvent(self, event):
        delta = event.angleDelta().y()
        if delta > 0:
            self.set_zoom(self._zoom * 1.1)
        elif delta < 0:
            self.set_zoom(self._zoom / 1.1)

    def mouseDoubleClickEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            self.fit_to(256)
