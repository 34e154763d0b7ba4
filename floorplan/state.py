from __future__ import annotations
import logging
import math
from typing import Dict, List, Tuple

from .geometry import InvalidGeometryError, as_rect
from .models import Region, Table
from .layout import FloorPlan

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class ProjectFormatError(ValueError):
    pass


class SceneState:
    """JSON-снимок плана. Поля залов и столов те же, что принимает REST API."""

    def serialize(self, plan: FloorPlan) -> Dict:
        return {
            "version": FORMAT_VERSION,
            "canvas": {"grid": plan.grid_size},
            "locations": [r.to_payload() for r in sorted(plan.regions.values(), key=lambda r: r.id)],
            "tables": [t.to_payload() for t in sorted(plan.tables.values(), key=lambda t: t.id)],
        }

    def _parse(self, plan: FloorPlan, data: Dict) -> Tuple[float, List[Region], List[Table]]:
        """Разбор и проверка снимка; план при этом не трогаем."""
        if not isinstance(data, dict):
            raise ProjectFormatError("project must be a JSON object")
        try:
            regions: List[Region] = [Region.from_payload(d) for d in data.get("locations", [])]
            tables: List[Table] = [Table.from_payload(d) for d in data.get("tables", [])]
            grid = float(data.get("canvas", {}).get("grid", plan.grid_size))
            for r in regions:
                as_rect(r, f"location {r.id}")
            for t in tables:
                as_rect(t, f"table {t.id}")
        except (KeyError, TypeError, ValueError, AttributeError, InvalidGeometryError) as e:
            raise ProjectFormatError(f"bad project data: {e}") from e
        if not math.isfinite(grid) or grid <= 0:
            raise ProjectFormatError(f"bad grid size: {grid}")
        return grid, regions, tables

    def deserialize(self, plan: FloorPlan, data: Dict):
        """Открытие проекта: содержимое плана заменяется без on_commit."""
        grid, regions, tables = self._parse(plan, data)
        plan.grid_size = grid
        plan.load(regions, tables)
        for issue in plan.validate():
            logger.warning("loaded plan: %s", issue["message"])

    def restore(self, plan: FloorPlan, data: Dict) -> int:
        """Undo/redo: план возвращается к снимку, каждое отличие уходит в on_commit."""
        grid, regions, tables = self._parse(plan, data)
        plan.grid_size = grid
        return plan.restore(regions, tables)
