#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations
import sys, json, os, logging
from PySide6.QtCore import Qt, QSettings, QSize
from PySide6.QtGui import QAction, QActionGroup, QKeySequence
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QToolBar, QStatusBar, QFileDialog, QMessageBox,
    QDockWidget, QStyle
)

from floorplan import ProjectFormatError, Mode, Layer
from floorplan.layout import COMMIT_REGION_DELETED, COMMIT_TABLE_DELETED
from floorplan.scene import PlanScene, PlanView
from floorplan.palette import PalettePanel
from floorplan.properties import PropertyPanel
from floorplan.undo import UndoManager
from floorplan.utils import SETTINGS_ORG, SETTINGS_APP, log_level_from_env

logger = logging.getLogger("floorplan.editor")


def _ensure_ext(path: str, ext: str) -> str:
    return path if path.lower().endswith(ext.lower()) else path + ext


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Схема зала ресторана")
        self.resize(1280, 860)
        self.settings = QSettings(SETTINGS_ORG, SETTINGS_APP)

        # 1) Сцена/вью
        self.scene = PlanScene(status_cb=self._status)
        self.scene.snap_to_grid = self.settings.value("snap_to_grid", True, bool)
        self.view = PlanView(self.scene)
        self.setCentralWidget(self.view)

        # 2) Свойства
        self.props_panel = PropertyPanel(self.scene, self)
        self.props_dock = QDockWidget("Свойства", self)
        self.props_dock.setWidget(self.props_panel)
        self.props_dock.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)
        self.props_dock.setMinimumWidth(280)
        self.addDockWidget(Qt.RightDockWidgetArea, self.props_dock)

        # 3) Палитра
        self.palette = PalettePanel()
        self.palette_dock = QDockWidget("Палитра", self)
        self.palette_dock.setWidget(self.palette)
        self.palette_dock.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)
        self.palette_dock.setMinimumWidth(220)
        self.addDockWidget(Qt.LeftDockWidgetArea, self.palette_dock)

        # 4) Тулбар/статус
        self.undo_manager = UndoManager(on_change=self._update_actions)
        self._build_toolbar()
        self.setStatusBar(QStatusBar(self))
        self.view.scaleChanged.connect(lambda s: self._update_status(scale=s))

        # 5) Подписки
        self.scene.selectionChanged.connect(self._on_scene_selection)
        self.scene.planChanged.connect(self._on_plan_changed)
        self.scene.recordCommitted.connect(self._on_record_committed)
        self.props_panel.requestFocusItem.connect(self._focus_item)

        # 6) Стартовое состояние
        self.undo_manager.reset(json.dumps(self.scene.serialize()))
        self._update_status()

    # ---------- toolbar ----------
    def _build_toolbar(self):
        tb = QToolBar("Панель", self)
        tb.setMovable(False)
        tb.setIconSize(QSize(18, 18))
        tb.setToolButtonStyle(Qt.ToolButtonTextBesideIcon)
        self.addToolBar(Qt.TopToolBarArea, tb)
        style = self.style()

        self.act_open = QAction(style.standardIcon(QStyle.SP_DirOpenIcon), "Открыть…", self)
        self.act_open.setShortcut(QKeySequence("Ctrl+O"))
        self.act_open.triggered.connect(self._open_project_dialog)

        self.act_save = QAction(style.standardIcon(QStyle.SP_DialogSaveButton), "Сохранить…", self)
        self.act_save.setShortcut(QKeySequence("Ctrl+S"))
        self.act_save.triggered.connect(self._save_project_dialog)

        self.act_undo = QAction(style.standardIcon(QStyle.SP_ArrowBack), "Откат", self)
        self.act_undo.setShortcut(QKeySequence("Ctrl+Z"))
        self.act_undo.triggered.connect(self._undo)

        self.act_redo = QAction(style.standardIcon(QStyle.SP_ArrowForward), "Обратно", self)
        self.act_redo.setShortcut(QKeySequence("Ctrl+Y"))
        self.act_redo.triggered.connect(self._redo)

        self.act_delete = QAction(style.standardIcon(QStyle.SP_TrashIcon), "Удалить", self)
        self.act_delete.setShortcut(QKeySequence(QKeySequence.Delete))
        self.act_delete.triggered.connect(self._delete_selected)

        # слои: что сейчас двигаем, залы или столы
        layers = QActionGroup(self)
        self.act_layer_regions = QAction("Залы", self, checkable=True)
        self.act_layer_tables = QAction("Столы", self, checkable=True)
        for act, layer in ((self.act_layer_regions, Layer.REGIONS), (self.act_layer_tables, Layer.TABLES)):
            layers.addAction(act)
            act.triggered.connect(lambda _=False, L=layer: self._set_layer(L))
        self.act_layer_regions.setChecked(True)

        self.act_snap = QAction("Сетка", self, checkable=True)
        self.act_snap.setChecked(self.scene.snap_to_grid)
        self.act_snap.toggled.connect(self._toggle_snap)

        self.act_viewmode = QAction(style.standardIcon(QStyle.SP_DesktopIcon), "Просмотр", self, checkable=True)
        self.act_viewmode.toggled.connect(self._toggle_viewmode)

        self.act_fit = QAction("Весь план", self)
        self.act_fit.triggered.connect(self.view.fit_plan)

        for a in (self.act_open, self.act_save, None, self.act_undo, self.act_redo, self.act_delete, None,
                  self.act_layer_regions, self.act_layer_tables, None, self.act_snap, self.act_viewmode, self.act_fit):
            if a is None: tb.addSeparator()
            else: tb.addAction(a)
        self._update_actions()

    # ---------- handlers ----------
    def _on_scene_selection(self):
        sel = [it for it in self.scene.selectedItems() if hasattr(it, "record_id")]
        self.props_panel.load_item(sel[0] if sel else None)
        if sel and self.props_dock.isHidden():
            self.props_dock.show()

    def _on_plan_changed(self, label: str):
        self.undo_manager.push(json.dumps(self.scene.serialize()), label)
        self._update_status()

    def _on_record_committed(self, kind: str, payload: dict):
        # запрос, который уйдёт во внешний API: PUT/DELETE admin/locations|tables/<id>
        resource = "locations" if kind.startswith("region") else "tables"
        method = "DELETE" if kind in (COMMIT_REGION_DELETED, COMMIT_TABLE_DELETED) else "PUT"
        logger.info("%s admin/%s/%s %s", method, resource, payload.get("id"), payload)

    def _focus_item(self, item):
        self.scene.ensure_visible_item(item)
        self._status(f"Перешли к столу {getattr(item, 'table_number', '')}")

    def _set_layer(self, layer: str):
        self.scene.set_active_layer(layer)
        self._update_status()

    def _toggle_snap(self, on: bool):
        self.scene.snap_to_grid = on
        self.settings.setValue("snap_to_grid", on)
        self._update_status()

    def _toggle_viewmode(self, on: bool):
        self.scene.set_editable(not on)
        self._update_status()

    def _delete_selected(self):
        if self.scene.delete_selected():
            self.props_panel.load_item(None)

    def _undo(self):
        label = self.undo_manager.undo_label()
        snap = self.undo_manager.undo()
        if snap is None: return
        self.scene.restore(json.loads(snap))
        self._update_status()
        self._status(f"Отменено: {label}")

    def _redo(self):
        label = self.undo_manager.redo_label()
        snap = self.undo_manager.redo()
        if snap is None: return
        self.scene.restore(json.loads(snap))
        self._update_status()
        self._status(f"Повторено: {label}")

    def _update_actions(self):
        if hasattr(self, "act_undo"):
            self.act_undo.setEnabled(self.undo_manager.can_undo())
            self.act_redo.setEnabled(self.undo_manager.can_redo())
            self.act_undo.setToolTip(f"Откат: {self.undo_manager.undo_label()}" if self.undo_manager.can_undo() else "Откат")
            self.act_redo.setToolTip(f"Обратно: {self.undo_manager.redo_label()}" if self.undo_manager.can_redo() else "Обратно")

    # ---------- файлы ----------
    def open_project(self, path: str) -> bool:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.scene.deserialize(data)
        except (OSError, json.JSONDecodeError, ProjectFormatError) as e:
            logger.exception("cannot open %s", path)
            QMessageBox.critical(self, "Ошибка открытия", str(e))
            return False
        self.undo_manager.reset(json.dumps(self.scene.serialize()))
        self.settings.setValue("last_project", path)
        self.view.fit_plan()
        self._status(f"Открыт проект: {os.path.basename(path)}")
        return True

    def _open_project_dialog(self):
        start = os.path.dirname(self.settings.value("last_project", "", str) or "")
        path, _ = QFileDialog.getOpenFileName(self, "Открыть схему", start, "JSON (*.json);;Все файлы (*)")
        if path:
            self.open_project(path)

    def _save_project_dialog(self):
        path, _ = QFileDialog.getSaveFileName(
            self, "Сохранить схему",
            self.settings.value("last_project", "floorplan.json", str), "JSON (*.json)")
        if not path:
            return
        path = _ensure_ext(path, ".json")
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.scene.serialize(), f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.exception("cannot save %s", path)
            QMessageBox.critical(self, "Ошибка сохранения", str(e))
            return
        self.settings.setValue("last_project", path)
        self._status(f"Сохранено: {os.path.basename(path)}")

    # ---------- статус ----------
    def _status(self, text: str):
        self.statusBar().showMessage(text, 3000)

    def _update_status(self, scale: float = None):
        b = self.scene.plan.canvas_bounds()
        layer = "Залы" if self.scene.active_layer == Layer.REGIONS else "Столы"
        text = (f"Режим: {'Просмотр' if self.scene.mode == Mode.VIEW else 'Редактирование'} | "
                f"Слой: {layer} | Сетка: {'ON' if self.scene.snap_to_grid else 'OFF'} | "
                f"План: {int(b.width)}×{int(b.height)}")
        if scale is not None:
            text += f" | Масштаб: {int(scale * 100)}%"
        self.statusBar().showMessage(text)


def main():
    logging.basicConfig(level=log_level_from_env(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    try:
        with open("floorplan_theme.qss", "r", encoding="utf-8") as f:
            app.setStyleSheet(f.read())
    except OSError:
        logger.debug("no theme file, using default style")
    win = MainWindow()
    if len(sys.argv) > 1:
        win.open_project(sys.argv[1])
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
