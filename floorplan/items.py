from __future__ import annotations
from typing import List, Optional
from PySide6.QtCore import Qt, QRectF, QPointF
from PySide6.QtGui import QBrush, QColor, QPainter, QPen, QFont
from PySide6.QtWidgets import QGraphicsRectItem, QGraphicsItem

from .geometry import snap_to_grid
from .models import Region, Table
from .utils import (REGION_FILL_RGBA, REGION_BORDER, TABLE_FILL_RGBA, TABLE_BORDER,
                    TABLE_INACTIVE_RGBA, GRID_SIZE, MIN_REGION_SIZE)

GHOST_PEN   = QPen(QColor("#94A3B8"), 1, Qt.DashLine)
GHOST_BRUSH = QBrush(QColor(148, 163, 184, 80))
SELECTED_PEN = QPen(QColor(255, 140, 0), 2, Qt.DashLine)


class ResizeHandle(QGraphicsRectItem):
    """Угловая ручка зала. Пока тянем, меняется только картинка, размер фиксируется на отпускании."""
    SIZE = 10.0
    def __init__(self, owner: "RegionItem", cx: float, cy: float, corner: str):
        super().__init__(0, 0, self.SIZE, self.SIZE, owner)
        self.owner = owner
        self.corner = corner
        self.setZValue(1000)
        self.setBrush(QColor(255, 255, 255))
        self.setPen(QPen(QColor(80, 80, 80), 1))
        self.setFlag(QGraphicsItem.ItemIsMovable, True)
        self.setFlag(QGraphicsItem.ItemSendsGeometryChanges, True)
        self.setCursor({
            "tl": Qt.SizeFDiagCursor, "br": Qt.SizeFDiagCursor,
            "tr": Qt.SizeBDiagCursor, "bl": Qt.SizeBDiagCursor,
        }[corner])
        self._syncing = False
        self.update_pos(cx, cy)

    def update_pos(self, cx: float, cy: float):
        self._syncing = True
        try:
            self.setPos(cx - self.SIZE/2, cy - self.SIZE/2)
        finally:
            self._syncing = False

    def itemChange(self, change, value):
        if change == QGraphicsItem.ItemPositionChange and not self._syncing:
            new_pos: QPointF = value
            lx = new_pos.x() + self.SIZE/2
            ly = new_pos.y() + self.SIZE/2
            if self.owner.snap_enabled():
                lx = snap_to_grid(lx, GRID_SIZE)
                ly = snap_to_grid(ly, GRID_SIZE)
            rect = QRectF(self.owner.rect())
            L, T, R, B = rect.left(), rect.top(), rect.right(), rect.bottom()
            if self.corner == "tl":
                L = min(lx, R - MIN_REGION_SIZE); T = min(ly, B - MIN_REGION_SIZE)
            elif self.corner == "tr":
                R = max(lx, L + MIN_REGION_SIZE); T = min(ly, B - MIN_REGION_SIZE)
            elif self.corner == "bl":
                L = min(lx, R - MIN_REGION_SIZE); B = max(ly, T + MIN_REGION_SIZE)
            else:
                R = max(lx, L + MIN_REGION_SIZE); B = max(ly, T + MIN_REGION_SIZE)
            self.owner.preview_rect(QRectF(L, T, R - L, B - T))
            return self.pos()
        return super().itemChange(change, value)

    def mouseReleaseEvent(self, e):
        super().mouseReleaseEvent(e)
        scene = self.owner.scene()
        if scene is not None and e.button() == Qt.LeftButton:
            scene.commit_region_resize(self.owner)


class PlanRectItem(QGraphicsRectItem):
    """Общая часть зала и стола: выделение, режимы отображения, фиксация перетаскивания."""
    kind = "object"

    def __init__(self, record_id: int, w: float, h: float):
        super().__init__(QRectF(0, 0, w, h))
        self.record_id = record_id
        self.setAcceptHoverEvents(True)
        self.setFlag(QGraphicsItem.ItemIsSelectable, True)
        self.setFlag(QGraphicsItem.ItemIsMovable, True)
        self.setFlag(QGraphicsItem.ItemSendsGeometryChanges, True)
        self._rounded = 6.0
        self._is_preview = False
        self._view_mode = "active"  # active | dim | ghost
        self._press_pos: Optional[QPointF] = None
        self._syncing = False
        self.brush_normal = QBrush(QColor(200, 200, 200))
        self.pen_normal = QPen(QColor(80, 80, 80), 1)

    def snap_enabled(self) -> bool:
        scene = self.scene()
        return bool(scene is not None and getattr(scene, "snap_to_grid", False))

    def set_view_mode(self, mode: str):
        self._view_mode = mode
        if mode == "ghost" and self._is_preview:
            self.setOpacity(0.5)
        elif mode == "dim":
            self.setOpacity(0.55)
        else:
            self.setOpacity(1.0)
        self.update()

    def _current_brush_pen(self):
        if self._view_mode == "ghost" and self._is_preview:
            return GHOST_BRUSH, GHOST_PEN
        if self.isSelected():
            return self.brush_normal, SELECTED_PEN
        return self.brush_normal, self.pen_normal

    def mousePressEvent(self, e):
        if e.button() == Qt.LeftButton:
            self._press_pos = QPointF(self.pos())
            self.setOpacity(0.6)
        super().mousePressEvent(e)

    def mouseReleaseEvent(self, e):
        super().mouseReleaseEvent(e)
        if e.button() != Qt.LeftButton:
            return
        self.set_view_mode(self._view_mode)
        moved = self._press_pos is not None and self._press_pos != self.pos()
        self._press_pos = None
        scene = self.scene()
        if moved and scene is not None:
            scene.commit_item_move(self)

    def itemChange(self, change, value):
        if change == QGraphicsItem.ItemPositionChange and self.scene() is not None \
                and not (self._is_preview or self._syncing):
            new_pos: QPointF = value
            x, y = new_pos.x(), new_pos.y()
            if self.snap_enabled():
                x = snap_to_grid(x, GRID_SIZE)
                y = snap_to_grid(y, GRID_SIZE)
            return self.constrain_drag(QPointF(x, y))
        return super().itemChange(change, value)

    def _set_pos_raw(self, x: float, y: float):
        """setPos без привязки и ограничений перетаскивания (данные уже из плана)."""
        self._syncing = True
        try:
            self.setPos(QPointF(x, y))
        finally:
            self._syncing = False

    def constrain_drag(self, pos: QPointF) -> QPointF:
        return pos


class RegionItem(PlanRectItem):
    kind = "region"

    def __init__(self, region: Region):
        super().__init__(region.id, region.width, region.height)
        self._handles: List[ResizeHandle] = []
        self.brush_normal = QBrush(QColor(*REGION_FILL_RGBA))
        self.pen_normal = QPen(QColor(REGION_BORDER), 2, Qt.SolidLine)
        self.setZValue(0)
        self.sync(region)

    def sync(self, region: Region):
        self.name = region.name
        self.setRect(QRectF(0, 0, region.width, region.height))
        self._set_pos_raw(region.x, region.y)
        self._layout_handles()
        self.setToolTip(f"Зал: {region.name or '(без названия)'}\n"
                        f"Размер: {region.width:.0f} × {region.height:.0f}")

    def constrain_drag(self, pos: QPointF) -> QPointF:
        return QPointF(max(0.0, pos.x()), max(0.0, pos.y()))

    def preview_rect(self, local: QRectF):
        """Временная геометрия при ресайзе: local задан в координатах зала."""
        if local.left() != 0 or local.top() != 0:
            # сдвиг начала зала: дети (столы) должны остаться на месте в сцене
            p = self.pos() + local.topLeft()
            self._set_pos_raw(p.x(), p.y())
            for ch in self.childItems():
                if isinstance(ch, TableItem):
                    q = ch.pos() - local.topLeft()
                    ch._set_pos_raw(q.x(), q.y())
        self.setRect(QRectF(0, 0, local.width(), local.height()))
        self._layout_handles()

    def paint(self, painter: QPainter, option, widget=None):
        painter.setRenderHint(QPainter.Antialiasing, True)
        brush, pen = self._current_brush_pen()
        painter.setPen(pen)
        painter.setBrush(brush)
        painter.drawRoundedRect(self.rect(), self._rounded, self._rounded)

        label = f"{self.name or 'Зал'}  {self.rect().width():.0f}×{self.rect().height():.0f}"
        painter.setFont(QFont("", 8, QFont.DemiBold))
        fm = painter.fontMetrics()
        pill = QRectF(self.rect().left() + 4, self.rect().top() + 4,
                      fm.horizontalAdvance(label) + 8, fm.height() + 4)
        painter.setPen(Qt.NoPen)
        painter.setBrush(QColor(0, 0, 0, 110))
        painter.drawRoundedRect(pill, 4, 4)
        painter.setPen(QColor(255, 255, 255))
        painter.drawText(pill, Qt.AlignCenter, label)

    # ---- handles ----
    def _corners(self):
        r = self.rect()
        return {"tl": r.topLeft(), "tr": r.topRight(), "bl": r.bottomLeft(), "br": r.bottomRight()}

    def _create_handles(self):
        if self._handles:
            return
        self._handles = [ResizeHandle(self, p.x(), p.y(), corner) for corner, p in self._corners().items()]

    def _remove_handles(self):
        scene = self.scene()
        for h in self._handles:
            h.setParentItem(None)
            if scene:
                scene.removeItem(h)
        self._handles.clear()

    def _layout_handles(self):
        corners = self._corners()
        for h in self._handles:
            p = corners[h.corner]
            h.update_pos(p.x(), p.y())

    def itemChange(self, change, value):
        if change == QGraphicsItem.ItemSelectedChange:
            if bool(value) and self.flags() & QGraphicsItem.ItemIsMovable:
                self._create_handles()
            else:
                self._remove_handles()
        return super().itemChange(change, value)


class TableItem(PlanRectItem):
    kind = "table"

    def __init__(self, table: Table):
        super().__init__(table.id, table.width, table.height)
        self._rounded = 8.0
        self.pen_normal = QPen(QColor(TABLE_BORDER), 1.5, Qt.SolidLine)
        self.setZValue(10)
        self.sync(table)

    def sync(self, table: Table):
        self.table_number = table.table_number
        self.capacity = table.capacity
        self.is_active = table.is_active
        rgba = TABLE_FILL_RGBA if table.is_active else TABLE_INACTIVE_RGBA
        self.brush_normal = QBrush(QColor(*rgba))
        self.setRect(QRectF(0, 0, table.width, table.height))
        self._set_pos_raw(table.x, table.y)
        self.setToolTip(f"Стол {table.table_number or table.id}\n"
                        f"Мест: {table.capacity}"
                        + ("" if table.is_active else "\nНе активен"))
        self.update()

    def paint(self, painter: QPainter, option, widget=None):
        painter.setRenderHint(QPainter.Antialiasing, True)
        brush, pen = self._current_brush_pen()
        painter.setPen(pen)
        painter.setBrush(brush)
        r = self.rect()
        painter.drawRoundedRect(r, self._rounded, self._rounded)
        painter.setPen(QColor(255, 255, 255))
        painter.setFont(QFont("", 9, QFont.Bold))
        painter.drawText(r.adjusted(0, 2, 0, -r.height() / 2), Qt.AlignCenter, str(self.table_number))
        painter.setFont(QFont("", 7))
        painter.drawText(r.adjusted(0, r.height() / 2, 0, -2), Qt.AlignCenter, f"{self.capacity} мест")
