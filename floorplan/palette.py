from __future__ import annotations
import json
from typing import Dict, List, Optional
from PySide6.QtCore import Qt, QPoint, QSize, QMimeData, QRectF, QByteArray
from PySide6.QtGui import QPainter, QPen, QDrag, QColor, QPixmap
from PySide6.QtWidgets import QWidget, QVBoxLayout, QGridLayout, QScrollArea, QLabel, QApplication

from .scene import MIME_TYPE
from .utils import REGION_FILL_RGBA, REGION_BORDER, TABLE_FILL_RGBA, TABLE_BORDER, TABLE_SIZE

# Заготовки залов: размеры и metadata как у новой локации в админке
REGION_PRESETS: List[Dict] = [
    {"kind": "region", "name": "Основной зал", "w": 400, "h": 300,
     "metadata": {"backgroundColor": "#f0f0f0", "gridSize": 20}},
    {"kind": "region", "name": "Терраса", "w": 300, "h": 200, "metadata": {"gridSize": 20}},
    {"kind": "region", "name": "VIP", "w": 200, "h": 200, "metadata": {"gridSize": 20}},
]

TABLE_PRESETS: List[Dict] = [
    {"kind": "table", "name": f"Стол на {n}", "capacity": n, "w": TABLE_SIZE, "h": TABLE_SIZE}
    for n in (2, 4, 6)
]

TILE_W, TILE_H = 120, 96
ICON_MAX = QSize(100, 60)


def _icon_size(meta: Dict) -> QSize:
    """Миниатюра в масштабе: залы вписываем в ICON_MAX, стол всегда квадрат."""
    if meta.get("kind") != "region":
        return QSize(44, 44)
    w, h = float(meta.get("w", 300)), float(meta.get("h", 200))
    k = min(ICON_MAX.width() / w, ICON_MAX.height() / h)
    return QSize(int(w * k), int(h * k))


def _paint_icon(p: QPainter, r: QRectF, meta: Dict):
    if meta.get("kind") == "region":
        p.setBrush(QColor(*REGION_FILL_RGBA))
        p.setPen(QPen(QColor(REGION_BORDER), 1.5))
        p.drawRoundedRect(r, 5, 5)
        return
    p.setBrush(QColor(*TABLE_FILL_RGBA))
    p.setPen(QPen(QColor(TABLE_BORDER), 1))
    p.drawRoundedRect(r, 8, 8)
    p.setPen(QColor(255, 255, 255))
    p.drawText(r, Qt.AlignCenter, str(meta.get("capacity", "")))


class PresetTile(QWidget):
    """Плитка палитры. Тянем её на сцену, в mime уходит meta заготовки."""
    def __init__(self, meta: Dict, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.meta = meta
        self._press: Optional[QPoint] = None
        self.setFixedSize(TILE_W, TILE_H)
        self.setCursor(Qt.OpenHandCursor)
        if meta.get("kind") == "region":
            self.setToolTip(f"{meta['name']}: {meta['w']} × {meta['h']}")
        else:
            self.setToolTip(f"{meta['name']} ({meta['w']:.0f} × {meta['h']:.0f})")

    def _icon_rect(self) -> QRectF:
        s = _icon_size(self.meta)
        return QRectF((self.width() - s.width()) / 2, 6, s.width(), s.height())

    def paintEvent(self, ev):
        p = QPainter(self)
        p.setRenderHint(QPainter.Antialiasing)
        r = self._icon_rect()
        _paint_icon(p, r, self.meta)
        p.setPen(QColor("#344054"))
        p.drawText(QRectF(0, r.bottom() + 4, self.width(), 20), Qt.AlignHCenter | Qt.AlignTop,
                   self.meta.get("name", ""))
        p.end()

    def _drag_pixmap(self) -> QPixmap:
        s = _icon_size(self.meta)
        pm = QPixmap(s)
        pm.fill(Qt.transparent)
        p = QPainter(pm)
        p.setRenderHint(QPainter.Antialiasing)
        _paint_icon(p, QRectF(0, 0, s.width(), s.height()).adjusted(1, 1, -1, -1), self.meta)
        p.end()
        return pm

    def mousePressEvent(self, ev):
        self._press = ev.pos() if ev.button() == Qt.LeftButton else None
        super().mousePressEvent(ev)

    def mouseMoveEvent(self, ev):
        if self._press is None or not (ev.buttons() & Qt.LeftButton):
            return
        if (ev.pos() - self._press).manhattanLength() < QApplication.startDragDistance():
            return
        self._press = None
        mime = QMimeData()
        mime.setData(MIME_TYPE, QByteArray(json.dumps(self.meta, ensure_ascii=False).encode("utf-8")))
        drag = QDrag(self)
        drag.setMimeData(mime)
        drag.setPixmap(self._drag_pixmap())
        drag.exec(Qt.CopyAction)

    def mouseReleaseEvent(self, ev):
        self._press = None
        super().mouseReleaseEvent(ev)


class PalettePanel(QWidget):
    def __init__(self, parent=None):
        super().__init__(parent)
        scroll = QScrollArea(self)
        scroll.setWidgetResizable(True)
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(scroll)

        body = QWidget()
        body.setObjectName("PaletteContent")
        self._layout = QVBoxLayout(body)
        self._layout.setContentsMargins(8, 8, 8, 8)
        self._layout.setSpacing(6)
        scroll.setWidget(body)

        self.tiles: List[PresetTile] = []
        self._section("Залы", REGION_PRESETS, columns=1)
        self._section("Столы", TABLE_PRESETS, columns=2)
        self._layout.addStretch(1)

    def _section(self, title: str, presets: List[Dict], columns: int):
        header = QLabel(title)
        header.setStyleSheet("font-weight:600; color:#344054;")
        self._layout.addWidget(header)
        host = QWidget()
        grid = QGridLayout(host)
        grid.setContentsMargins(0, 0, 0, 0)
        grid.setSpacing(6)
        for i, meta in enumerate(presets):
            tile = PresetTile(meta)
            self.tiles.append(tile)
            grid.addWidget(tile, i // columns, i % columns, Qt.AlignHCenter)
        self._layout.addWidget(host)
