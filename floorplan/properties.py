from __future__ import annotations
from typing import Optional
from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QFormLayout, QLineEdit, QDoubleSpinBox, QSpinBox, QCheckBox,
    QListWidget, QListWidgetItem, QLabel
)

from .items import PlanRectItem, RegionItem, TableItem
from .models import Layer
from .scene import PlanScene


class PropertyPanel(QWidget):
    requestFocusItem = Signal(object)  # item

    def __init__(self, scene: PlanScene, parent=None):
        super().__init__(parent)
        self.scene = scene
        self._current: Optional[PlanRectItem] = None

        self.setMinimumWidth(280)
        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)
        root.setSpacing(10)

        self.lbl_title = QLabel("Ничего не выбрано")
        self.lbl_title.setStyleSheet("font-weight: 600;")
        root.addWidget(self.lbl_title)

        # ------- Зал -------
        self.frm_region = QWidget()
        fr = QFormLayout(self.frm_region)
        fr.setLabelAlignment(Qt.AlignRight)

        self.ed_region_name = QLineEdit()
        self.sp_region_w = QDoubleSpinBox(); self.sp_region_h = QDoubleSpinBox()
        for s in (self.sp_region_w, self.sp_region_h):
            s.setRange(1, 99999); s.setDecimals(0); s.setSingleStep(20); s.setKeyboardTracking(False)
        self.sp_region_grid = QSpinBox()
        self.sp_region_grid.setRange(1, 200); self.sp_region_grid.setKeyboardTracking(False)
        self.list_tables = QListWidget()
        self.list_tables.setMinimumHeight(120)

        fr.addRow("Название:", self.ed_region_name)
        fr.addRow("Ширина:", self.sp_region_w)
        fr.addRow("Высота:", self.sp_region_h)
        fr.addRow("Сетка столов:", self.sp_region_grid)
        fr.addRow(QLabel("Столы в зале:"), self.list_tables)

        self.ed_region_name.editingFinished.connect(self._apply_region_name)
        self.sp_region_w.valueChanged.connect(self._apply_region_size)
        self.sp_region_h.valueChanged.connect(self._apply_region_size)
        self.sp_region_grid.valueChanged.connect(self._apply_region_grid)
        self.list_tables.itemDoubleClicked.connect(self._go_to_table)
        root.addWidget(self.frm_region)

        # ------- Стол -------
        self.frm_table = QWidget()
        ft = QFormLayout(self.frm_table)
        ft.setLabelAlignment(Qt.AlignRight)

        self.ed_table_number = QLineEdit()
        self.sp_capacity = QSpinBox(); self.sp_capacity.setRange(1, 50)
        self.chk_active = QCheckBox("Активен")
        self.lbl_table_region = QLabel("-")

        ft.addRow("Номер:", self.ed_table_number)
        ft.addRow("Мест:", self.sp_capacity)
        ft.addRow("", self.chk_active)
        ft.addRow("Зал:", self.lbl_table_region)

        self.ed_table_number.editingFinished.connect(self._apply_table_number)
        self.sp_capacity.valueChanged.connect(self._apply_table_capacity)
        self.chk_active.toggled.connect(self._apply_table_active)
        root.addWidget(self.frm_table)
        root.addStretch(1)

        self.scene.planChanged.connect(lambda _label: self.load_item(self._current))
        self.clear()

    # ---------- API ----------
    def clear(self):
        self._current = None
        self.lbl_title.setText("Ничего не выбрано")
        self.frm_region.setVisible(False)
        self.frm_table.setVisible(False)

    def load_item(self, item: Optional[PlanRectItem]):
        if item is not None and item.scene() is not self.scene:
            item = None
        self._current = item
        if item is None:
            self.clear()
            return
        widgets = (self.ed_region_name, self.sp_region_w, self.sp_region_h, self.sp_region_grid,
                   self.ed_table_number, self.sp_capacity, self.chk_active)
        for w in widgets: w.blockSignals(True)
        try:
            if isinstance(item, RegionItem):
                region = self.scene.plan.region(item.record_id)
                self.lbl_title.setText("Свойства: Зал")
                self.ed_region_name.setText(region.name)
                self.sp_region_w.setValue(region.width)
                self.sp_region_h.setValue(region.height)
                self.sp_region_grid.setValue(int(region.grid_size))
                self._populate_region_tables(region.id)
                self.frm_region.setVisible(True)
                self.frm_table.setVisible(False)
            elif isinstance(item, TableItem):
                table = self.scene.plan.table(item.record_id)
                self.lbl_title.setText("Свойства: Стол")
                self.ed_table_number.setText(table.table_number)
                self.sp_capacity.setValue(table.capacity)
                self.chk_active.setChecked(table.is_active)
                region = self.scene.plan.regions.get(table.location_id)
                self.lbl_table_region.setText((region.name or f"#{region.id}") if region else "не назначен")
                self.frm_region.setVisible(False)
                self.frm_table.setVisible(True)
            else:
                self.clear()
        finally:
            for w in widgets: w.blockSignals(False)

    # ---------- helpers ----------
    def _populate_region_tables(self, region_id: int):
        self.list_tables.clear()
        for t in self.scene.plan.tables_for_region(region_id):
            li = QListWidgetItem(f"Стол {t.table_number} — {t.capacity} мест")
            li.setData(Qt.UserRole, t.id)
            self.list_tables.addItem(li)

    def _go_to_table(self, li: QListWidgetItem):
        item = self.scene.table_item(li.data(Qt.UserRole))
        if item is None: return
        self.scene.set_active_layer(Layer.TABLES)
        self.scene.clearSelection()
        item.setSelected(True)
        self.requestFocusItem.emit(item)

    # ---------- apply handlers ----------
    def _apply_region_name(self):
        if not isinstance(self._current, RegionItem): return
        region = self.scene.plan.update_region(self._current.record_id, name=self.ed_region_name.text().strip())
        self.scene.sync_region(region)
        self.scene._push_snapshot("region.name")

    def _apply_region_size(self, *_):
        if not isinstance(self._current, RegionItem): return
        self.scene.apply_size(self._current.record_id, self.sp_region_w.value(), self.sp_region_h.value())
        # при отказе (пересечение / столы не влезают) вернём фактический размер
        self.load_item(self._current)

    def _apply_region_grid(self, value: int):
        if not isinstance(self._current, RegionItem): return
        region = self.scene.plan.region(self._current.record_id)
        metadata = dict(region.metadata, gridSize=int(value))
        self.scene.plan.update_region(region.id, metadata=metadata)
        self.scene._push_snapshot("region.grid")

    def _apply_table_number(self):
        if not isinstance(self._current, TableItem): return
        table = self.scene.plan.update_table(self._current.record_id,
                                             table_number=self.ed_table_number.text().strip())
        self.scene.sync_table(table)
        self.scene._push_snapshot("table.number")

    def _apply_table_capacity(self, value: int):
        if not isinstance(self._current, TableItem): return
        table = self.scene.plan.update_table(self._current.record_id, capacity=value)
        self.scene.sync_table(table)
        self.scene._push_snapshot("table.capacity")

    def _apply_table_active(self, on: bool):
        if not isinstance(self._current, TableItem): return
        table = self.scene.plan.update_table(self._current.record_id, is_active=on)
        self.scene.sync_table(table)
        self.scene._push_snapshot("table.active")
