from __future__ import annotations
import json
import logging
import math
from typing import Optional, Dict, Callable

from PySide6.QtCore import Qt, QRectF, QPointF, Signal
from PySide6.QtGui import QPainter, QPen, QColor, QWheelEvent
from PySide6.QtWidgets import QGraphicsScene, QGraphicsView, QGraphicsItem

from .geometry import snap_to_grid
from .layout import FloorPlan, PlacementError
from .models import Mode, Layer, Region, Table
from .utils import (BG_COLOR, GRID_STEP, GRID_SIZE, MAJOR_EVERY, GRID_MAJOR, GRID_MINOR,
                    SCENE_BORDER, SCENE_BORDER_W, DEFAULT_CANVAS_W, DEFAULT_CANVAS_H, TABLE_SIZE)
from .state import SceneState
from .factory import ItemFactory
from .items import PlanRectItem, RegionItem, TableItem

logger = logging.getLogger(__name__)

MIME_TYPE = "application/x-floorplan"


class PlanScene(QGraphicsScene):
    # label действия для undo и статуса
    planChanged = Signal(str)
    # kind и REST-payload записи: всё, что нужно отправить во внешний API
    recordCommitted = Signal(str, dict)

    def __init__(self, plan: Optional[FloorPlan] = None,
                 status_cb: Optional[Callable[[str], None]] = None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.mode = Mode.EDIT
        self.snap_to_grid = True
        self.setItemIndexMethod(QGraphicsScene.NoIndex)
        self.plan = plan if plan is not None else FloorPlan()
        self.plan.on_commit = self._on_commit
        self._status_cb = status_cb
        self.state = SceneState()
        self.factory = ItemFactory(self)
        self.active_layer = Layer.REGIONS
        self._region_items: Dict[int, RegionItem] = {}
        self._table_items: Dict[int, TableItem] = {}
        self._drag_preview: Optional[PlanRectItem] = None
        self._drag_meta: Optional[Dict] = None
        self.rebuild()

    # ---- связь с планом ----
    def _on_commit(self, kind: str, record):
        self.recordCommitted.emit(kind, record.to_payload())

    def _status(self, text: str):
        if self._status_cb:
            self._status_cb(text)

    def _push_snapshot(self, label: str = "change"):
        self._status(f"Сохранено действие: {label}")
        self.planChanged.emit(label)

    def region_item(self, region_id: int) -> Optional[RegionItem]:
        return self._region_items.get(region_id)

    def table_item(self, table_id: int) -> Optional[TableItem]:
        return self._table_items.get(table_id)

    def add_region_item(self, region: Region) -> RegionItem:
        item = RegionItem(region)
        self.addItem(item)
        self._region_items[region.id] = item
        self._apply_flags(item)
        return item

    def add_table_item(self, table: Table) -> TableItem:
        item = TableItem(table)
        self._table_items[table.id] = item
        self._attach_table(item, table)
        item.sync(table)
        self._apply_flags(item)
        return item

    def _attach_table(self, item: TableItem, table: Table):
        parent = self._region_items.get(table.location_id) if table.location_id is not None else None
        if item.scene() is None and parent is None:
            self.addItem(item)
        item.setParentItem(parent)

    def sync_table(self, table: Table):
        item = self._table_items.get(table.id)
        if item is None:
            self.add_table_item(table)
            return
        self._attach_table(item, table)
        item.sync(table)

    def sync_region(self, region: Region):
        item = self._region_items.get(region.id)
        if item is None:
            self.add_region_item(region)
            return
        item.sync(region)
        for t in self.plan.tables.values():
            if t.location_id == region.id:
                self.sync_table(t)

    def rebuild(self):
        """Пересоздаёт все элементы сцены из плана."""
        self._clear_preview()
        for item in list(self._region_items.values()) + list(self._table_items.values()):
            if item.scene() is self:
                self.removeItem(item)
        self._region_items.clear()
        self._table_items.clear()
        for region in self.plan.regions.values():
            self.add_region_item(region)
        for table in self.plan.tables.values():
            self.add_table_item(table)
        self.update_scene_rect()
        self.apply_layer_state()

    def update_scene_rect(self):
        b = self.plan.canvas_bounds()
        rect = QRectF(b.min_x, b.min_y, b.width, b.height).united(
            QRectF(0, 0, DEFAULT_CANVAS_W, DEFAULT_CANVAS_H))
        for t in self.plan.unassigned_tables():
            rect = rect.united(QRectF(t.x, t.y, t.width, t.height))
        self.setSceneRect(rect)

    # ---- итоги жестов ----
    def commit_item_move(self, item: PlanRectItem):
        try:
            if isinstance(item, RegionItem):
                region = self.plan.move_region(item.record_id, item.pos().x(), item.pos().y())
                item.sync(region)
            elif isinstance(item, TableItem):
                self._commit_table_drop(item)
            else:
                return
        except PlacementError as e:
            self._status(str(e))
            self._revert(item)
            return
        self.update_scene_rect()
        self._push_snapshot("move")

    def _commit_table_drop(self, item: TableItem):
        top_left = item.scenePos()
        center = item.mapToScene(item.rect().center())
        region = self.plan.region_at(center.x(), center.y())
        if region is not None:
            table = self.plan.drop_table(item.record_id, region.id,
                                         top_left.x() - region.x, top_left.y() - region.y)
        else:
            table = self.plan.unassign_table(item.record_id, top_left.x(), top_left.y())
        self.sync_table(table)

    def commit_region_resize(self, item: RegionItem):
        r, p = item.rect(), item.pos()
        try:
            region = self.plan.resize_region(item.record_id, r.width(), r.height(), p.x(), p.y())
        except PlacementError as e:
            self._status(str(e))
            self.sync_region(self.plan.region(item.record_id))
            return
        self.sync_region(region)
        self.update_scene_rect()
        self._push_snapshot("resize")

    def _revert(self, item: PlanRectItem):
        if isinstance(item, RegionItem):
            self.sync_region(self.plan.region(item.record_id))
        elif isinstance(item, TableItem):
            self.sync_table(self.plan.table(item.record_id))

    def apply_size(self, region_id: int, w: float, h: float) -> bool:
        """Ресайз из панели свойств."""
        try:
            region = self.plan.resize_region(region_id, w, h)
        except PlacementError as e:
            self._status(str(e))
            return False
        self.sync_region(region)
        self.update_scene_rect()
        self._push_snapshot("region.size")
        return True

    def delete_selected(self) -> int:
        removed = 0
        for it in list(self.selectedItems()):
            if isinstance(it, TableItem) and it.record_id in self.plan.tables:
                self.plan.remove_table(it.record_id)
                self._table_items.pop(it.record_id, None)
                self.removeItem(it)
                removed += 1
        for it in list(self.selectedItems()):
            if isinstance(it, RegionItem) and it.record_id in self.plan.regions:
                region_id = it.record_id
                orphans = [t for t in self.plan.tables.values() if t.location_id == region_id]
                self.plan.remove_region(region_id)
                # столы зала выносим на холст до удаления самого зала
                for t in orphans:
                    self.sync_table(t)
                self._region_items.pop(region_id, None)
                it.setSelected(False)
                self.removeItem(it)
                removed += 1
        if removed:
            self.update_scene_rect()
            self._push_snapshot("delete")
        return removed

    # ---- слои / режимы ----
    def _is_allowed(self, it) -> bool:
        if self.mode == Mode.VIEW:
            return False
        if self.active_layer == Layer.REGIONS:
            return isinstance(it, RegionItem)
        if self.active_layer == Layer.TABLES:
            return isinstance(it, TableItem)
        return False

    def _apply_flags(self, it: PlanRectItem):
        allowed = self._is_allowed(it)
        it.setFlag(QGraphicsItem.ItemIsMovable, allowed)
        it.setFlag(QGraphicsItem.ItemIsSelectable, allowed)
        it.set_view_mode("active" if allowed or self.mode == Mode.VIEW else "dim")

    def apply_layer_state(self):
        """Двигать и выделять можно только элементы активного слоя."""
        self.clearSelection()
        for it in list(self._region_items.values()) + list(self._table_items.values()):
            self._apply_flags(it)

    def set_active_layer(self, layer: str):
        if layer == self.active_layer:
            return
        self.active_layer = layer
        self.apply_layer_state()

    def set_editable(self, editable: bool):
        self.mode = Mode.EDIT if editable else Mode.VIEW
        self.apply_layer_state()

    # ---- фон ----
    def drawBackground(self, painter: QPainter, rect: QRectF):
        painter.fillRect(rect, QColor(BG_COLOR))
        step = GRID_STEP
        minor, major = QColor(GRID_MINOR), QColor(GRID_MAJOR)
        x = math.floor(rect.left() / step) * step; i = int(x // step)
        while x < rect.right():
            is_major = (i % MAJOR_EVERY == 0)
            painter.setPen(QPen(major if is_major else minor, 1.5 if is_major else 1))
            painter.drawLine(QPointF(x, rect.top()), QPointF(x, rect.bottom()))
            x += step; i += 1
        y = math.floor(rect.top() / step) * step; j = int(y // step)
        while y < rect.bottom():
            is_major = (j % MAJOR_EVERY == 0)
            painter.setPen(QPen(major if is_major else minor, 1.5 if is_major else 1))
            painter.drawLine(QPointF(rect.left(), y), QPointF(rect.right(), y))
            y += step; j += 1
        painter.setPen(QPen(QColor(SCENE_BORDER), SCENE_BORDER_W)); painter.setBrush(Qt.NoBrush)
        painter.drawRect(self.sceneRect())

    # ---- DnD из палитры ----
    def _make_preview(self, meta: Dict):
        self._clear_preview()
        if meta.get("kind") == "region":
            item = RegionItem(Region(-1, meta.get("name", "Зал"), 0, 0,
                                     float(meta.get("w", 300)), float(meta.get("h", 200))))
        else:
            item = TableItem(Table(-1, "?", int(meta.get("capacity", 4))))
        item._is_preview = True
        item.setZValue(10_000)
        item.setFlag(QGraphicsItem.ItemIsMovable, False)
        item.setFlag(QGraphicsItem.ItemIsSelectable, False)
        self.addItem(item)
        item.set_view_mode("ghost")
        self._drag_preview = item
        self._drag_meta = meta

    def _clear_preview(self):
        if self._drag_preview:
            self.removeItem(self._drag_preview)
        self._drag_preview = None
        self._drag_meta = None

    def _update_preview_pos(self, scene_pos: QPointF):
        if not (self._drag_preview and self._drag_meta):
            return
        x, y = scene_pos.x(), scene_pos.y()
        if self.snap_to_grid:
            x, y = snap_to_grid(x, GRID_SIZE), snap_to_grid(y, GRID_SIZE)
        self._drag_preview.setPos(QPointF(max(0.0, x), max(0.0, y)))

    @staticmethod
    def _read_meta(event) -> Dict:
        try:
            return json.loads(bytes(event.mimeData().data(MIME_TYPE).data()).decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            logger.warning("bad palette payload, using default table")
            return {"kind": "table", "capacity": 4, "w": TABLE_SIZE, "h": TABLE_SIZE}

    def dragEnterEvent(self, event):
        if self.mode == Mode.EDIT and event.mimeData().hasFormat(MIME_TYPE):
            self._make_preview(self._read_meta(event)); self._update_preview_pos(event.scenePos())
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event):
        if self.mode == Mode.EDIT and event.mimeData().hasFormat(MIME_TYPE):
            self._update_preview_pos(event.scenePos()); event.acceptProposedAction()
        else:
            event.ignore()

    def dragLeaveEvent(self, event):
        self._clear_preview(); event.accept()

    def dropEvent(self, event):
        if self.mode != Mode.EDIT or not event.mimeData().hasFormat(MIME_TYPE):
            event.ignore(); return
        meta = self._read_meta(event)
        self._clear_preview()
        created = self.factory.create_from_meta(meta, event.scenePos())
        if created is None:
            event.ignore(); return
        self.update_scene_rect()
        self._push_snapshot("drop")
        self.clearSelection()
        event.acceptProposedAction()

    # ---- снимки ----
    def serialize(self) -> Dict:
        return self.state.serialize(self.plan)

    def deserialize(self, data: Dict):
        self.state.deserialize(self.plan, data)
        self.rebuild()

    def restore(self, data: Dict) -> int:
        """Снимок из истории undo: отличия уходят в recordCommitted."""
        changed = self.state.restore(self.plan, data)
        self.rebuild()
        return changed

    def ensure_visible_item(self, item):
        views = self.views()
        if not views: return
        views[0].ensureVisible(item.mapRectToScene(item.rect()), 40, 40)


class PlanView(QGraphicsView):
    """Вид плана: Ctrl+колесо меняет масштаб в пределах ZOOM_MIN..ZOOM_MAX, зажатый пробел включает панораму."""
    scaleChanged = Signal(float)
    ZOOM_STEP = 1.15
    ZOOM_MIN, ZOOM_MAX = 0.2, 5.0

    def __init__(self, scene: PlanScene):
        super().__init__(scene)
        self.setRenderHints(QPainter.Antialiasing | QPainter.TextAntialiasing)
        self.setViewportUpdateMode(QGraphicsView.BoundingRectViewportUpdate)
        self.setTransformationAnchor(QGraphicsView.AnchorUnderMouse)
        self.setResizeAnchor(QGraphicsView.AnchorViewCenter)
        self.setAcceptDrops(True)
        self._set_panning(False)

    def zoom(self) -> float:
        return self.transform().m11()

    def set_zoom(self, value: float):
        value = min(max(value, self.ZOOM_MIN), self.ZOOM_MAX)
        k = value / self.zoom()
        if abs(k - 1.0) < 1e-6:
            return
        self.scale(k, k)
        self.scaleChanged.emit(self.zoom())

    def fit_plan(self):
        """Показать все залы целиком (рамка холста из плана)."""
        b = self.scene().plan.canvas_bounds()
        self.fitInView(QRectF(b.min_x, b.min_y, b.width, b.height), Qt.KeepAspectRatio)
        self.scaleChanged.emit(self.zoom())

    def wheelEvent(self, event: QWheelEvent):
        if not (event.modifiers() & Qt.ControlModifier):
            super().wheelEvent(event)
            return
        step = self.ZOOM_STEP if event.angleDelta().y() > 0 else 1.0 / self.ZOOM_STEP
        self.set_zoom(self.zoom() * step)
        event.accept()

    def _set_panning(self, on: bool):
        self._panning = on
        self.setDragMode(QGraphicsView.ScrollHandDrag if on else QGraphicsView.RubberBandDrag)

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Space and not event.isAutoRepeat():
            self._set_panning(True)
            event.accept()
            return
        super().keyPressEvent(event)

    def keyReleaseEvent(self, event):
        if event.key() == Qt.Key_Space and not event.isAutoRepeat() and self._panning:
            self._set_panning(False)
            event.accept()
            return
        super().keyReleaseEvent(event)
