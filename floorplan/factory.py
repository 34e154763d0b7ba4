from __future__ import annotations
import logging
from typing import Optional, Dict
from PySide6.QtCore import QPointF
from PySide6.QtWidgets import QMessageBox

from .layout import PlacementError
from .items import PlanRectItem
from .utils import DEFAULT_TABLE_CAPACITY

logger = logging.getLogger(__name__)


class ItemFactory:
    """Создаёт записи плана по метаданным из палитры и сразу же элементы сцены для них."""
    def __init__(self, scene):
        self.scene = scene

    def create_from_meta(self, meta: Dict, scene_pos: QPointF) -> Optional[PlanRectItem]:
        kind = meta.get("kind", "table")
        try:
            if kind == "region":
                return self._create_region(meta, scene_pos)
            return self._create_table(meta, scene_pos)
        except PlacementError as e:
            logger.info("drop of %s rejected: %s", kind, e)
            QMessageBox.warning(None, "Пересечение", str(e))
            return None

    def _create_region(self, meta: Dict, pos: QPointF):
        region = self.scene.plan.add_region(
            meta.get("name", "Зал"), pos.x(), pos.y(),
            float(meta.get("w", 300)), float(meta.get("h", 200)),
            meta.get("metadata"),
        )
        return self.scene.add_region_item(region)

    def _create_table(self, meta: Dict, pos: QPointF):
        plan = self.scene.plan
        capacity = int(meta.get("capacity", DEFAULT_TABLE_CAPACITY))
        number = plan.next_table_number()
        region = plan.region_at(pos.x(), pos.y())
        if region is not None:
            table = plan.add_table(number, capacity, pos.x() - region.x, pos.y() - region.y,
                                   location_id=region.id)
        else:
            table = plan.add_table(number, capacity, pos.x(), pos.y())
        return self.scene.add_table_item(table)
