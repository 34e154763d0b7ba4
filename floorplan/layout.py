"""
FloorPlan: рабочая копия залов и столов, которую редактирует UI.

Сюда приходят итоги жестов (drop, конец перетаскивания, конец ресайза).
План прогоняет их через geometry, хранит принятый результат и сообщает о нём
через on_commit(kind, record); сохранение во внешнем API делает тот, кто
подписан на on_commit.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .geometry import (Rect, Size, CanvasBounds, rectangles_overlap, snap_to_grid,
                       clamp_to_bounds, find_non_overlapping_placement, compute_canvas_bounds)
from .models import Region, Table
from .utils import GRID_SIZE, MIN_REGION_SIZE, DEFAULT_TABLE_CAPACITY

logger = logging.getLogger(__name__)

COMMIT_REGION = "region"
COMMIT_REGION_DELETED = "region.deleted"
COMMIT_TABLE = "table"
COMMIT_TABLE_DELETED = "table.deleted"

CommitCallback = Callable[[str, Any], None]


class PlacementError(Exception):
    """Жест нельзя применить без пересечений, план остаётся прежним."""


class RecordNotFoundError(KeyError):
    pass


def _snap_inside(value: float, limit: float, grid: float) -> float:
    """snap, но не дальше limit (при limit < 0 только 0)."""
    v = snap_to_grid(value, grid)
    while v > limit and v > 0:
        v -= grid
    return max(v, 0.0)


class FloorPlan:
    def __init__(self, grid_size: float = GRID_SIZE, on_commit: Optional[CommitCallback] = None):
        self.grid_size = float(grid_size)
        self.regions: Dict[int, Region] = {}
        self.tables: Dict[int, Table] = {}
        self.on_commit = on_commit

    # ---- lookup ----
    def region(self, region_id: int) -> Region:
        try:
            return self.regions[region_id]
        except KeyError:
            raise RecordNotFoundError(f"region {region_id} not found") from None

    def table(self, table_id: int) -> Table:
        try:
            return self.tables[table_id]
        except KeyError:
            raise RecordNotFoundError(f"table {table_id} not found") from None

    @staticmethod
    def _next_id(records: Dict[int, Any]) -> int:
        return max(records, default=0) + 1

    def _commit(self, kind: str, record):
        logger.debug("commit %s %s", kind, getattr(record, "id", record))
        if self.on_commit:
            self.on_commit(kind, record)

    def clear(self):
        self.regions.clear()
        self.tables.clear()

    def load(self, regions: Iterable[Region], tables: Iterable[Table]):
        """Заменяет содержимое без проверок и без on_commit (загрузка из API/файла)."""
        self.clear()
        for r in regions:
            self.regions[r.id] = r
        for t in tables:
            self.tables[t.id] = t

    def restore(self, regions: Iterable[Region], tables: Iterable[Table]) -> int:
        """
        Как load, но каждое отличие от текущего содержимого уходит в on_commit:
        изменённые и вернувшиеся записи как обычный commit, пропавшие как deleted.
        Залы коммитятся раньше столов, при удалении наоборот.
        """
        old_regions, old_tables = dict(self.regions), dict(self.tables)
        self.load(regions, tables)
        count = 0
        for rid in sorted(self.regions):
            if old_regions.get(rid) != self.regions[rid]:
                self._commit(COMMIT_REGION, self.regions[rid]); count += 1
        for tid in sorted(self.tables):
            if old_tables.get(tid) != self.tables[tid]:
                self._commit(COMMIT_TABLE, self.tables[tid]); count += 1
        for tid in sorted(old_tables.keys() - self.tables.keys()):
            self._commit(COMMIT_TABLE_DELETED, old_tables[tid]); count += 1
        for rid in sorted(old_regions.keys() - self.regions.keys()):
            self._commit(COMMIT_REGION_DELETED, old_regions[rid]); count += 1
        logger.info("plan restored, %d record(s) changed", count)
        return count

    # ---- regions ----
    def _region_size(self, width: float, height: float) -> Size:
        w = max(MIN_REGION_SIZE, snap_to_grid(width, self.grid_size))
        h = max(MIN_REGION_SIZE, snap_to_grid(height, self.grid_size))
        return Size(w, h)

    def _place_region(self, rect: Rect, exclude_id: Optional[int] = None) -> Rect:
        others = [r for rid, r in self.regions.items() if rid != exclude_id]
        g = self.grid_size
        proposed = rect.at(max(0.0, snap_to_grid(rect.x, g)), max(0.0, snap_to_grid(rect.y, g)))
        placed = find_non_overlapping_placement(proposed, others)
        placed = placed.at(max(0.0, snap_to_grid(placed.x, g)), max(0.0, snap_to_grid(placed.y, g)))
        if any(rectangles_overlap(placed, o) for o in others):
            raise PlacementError("Зал пересекается с другим залом, свободного места рядом нет.")
        return placed

    def add_region(self, name: str, x: float, y: float, width: float = 300.0, height: float = 200.0,
                   metadata: Optional[Dict[str, Any]] = None) -> Region:
        size = self._region_size(width, height)
        placed = self._place_region(Rect(x, y, size.width, size.height))
        region = Region(self._next_id(self.regions), name, placed.x, placed.y,
                        placed.width, placed.height, dict(metadata or {}))
        self.regions[region.id] = region
        logger.info("region %s added at (%s, %s)", region.id, region.x, region.y)
        self._commit(COMMIT_REGION, region)
        return region

    def move_region(self, region_id: int, x: float, y: float) -> Region:
        region = self.region(region_id)
        placed = self._place_region(Rect.of(region).at(x, y), exclude_id=region_id)
        region.x, region.y = placed.x, placed.y
        self._commit(COMMIT_REGION, region)
        return region

    def resize_region(self, region_id: int, width: float, height: float,
                      x: Optional[float] = None, y: Optional[float] = None) -> Region:
        """Ресайз зала. x/y задаются, когда тянули левый или верхний край: столы остаются на месте холста."""
        region = self.region(region_id)
        size = self._region_size(width, height)
        g = self.grid_size
        nx = region.x if x is None else max(0.0, snap_to_grid(x, g))
        ny = region.y if y is None else max(0.0, snap_to_grid(y, g))
        rect = Rect(nx, ny, size.width, size.height)
        for rid, other in self.regions.items():
            if rid != region_id and rectangles_overlap(rect, other):
                raise PlacementError(f"Зал пересечётся с залом «{other.name or other.id}».")
        dx, dy = region.x - nx, region.y - ny
        tables = self._tables_in(region_id)
        for t in tables:
            tx, ty = t.x + dx, t.y + dy
            if tx < 0 or ty < 0 or tx + t.width > size.width or ty + t.height > size.height:
                raise PlacementError(f"Стол {t.table_number or t.id} не поместится в зал.")
        region.x, region.y = nx, ny
        region.width, region.height = size.width, size.height
        self._commit(COMMIT_REGION, region)
        if dx or dy:
            for t in tables:
                t.x, t.y = t.x + dx, t.y + dy
                self._commit(COMMIT_TABLE, t)
        return region

    def update_region(self, region_id: int, name: Optional[str] = None,
                      metadata: Optional[Dict[str, Any]] = None) -> Region:
        region = self.region(region_id)
        if name is not None:
            region.name = name
        if metadata is not None:
            region.metadata = dict(metadata)
        self._commit(COMMIT_REGION, region)
        return region

    def remove_region(self, region_id: int) -> Region:
        region = self.region(region_id)
        for t in self._tables_in(region_id):
            t.x, t.y = region.x + t.x, region.y + t.y
            t.location_id = None
            self._commit(COMMIT_TABLE, t)
        del self.regions[region_id]
        logger.info("region %s removed", region_id)
        self._commit(COMMIT_REGION_DELETED, region)
        return region

    def region_at(self, x: float, y: float) -> Optional[Region]:
        # последний добавленный лежит сверху
        for region in reversed(list(self.regions.values())):
            if region.x <= x < region.x + region.width and region.y <= y < region.y + region.height:
                return region
        return None

    # ---- tables ----
    def _tables_in(self, region_id: int, exclude_id: Optional[int] = None) -> List[Table]:
        return [t for t in self.tables.values() if t.location_id == region_id and t.id != exclude_id]

    def _place_in_region(self, table: Table, region: Region, x: float, y: float) -> Rect:
        g = region.grid_size
        limit_x = region.width - table.width
        limit_y = region.height - table.height
        rect = clamp_to_bounds(Rect(x, y, table.width, table.height), region)
        rect = rect.at(_snap_inside(rect.x, limit_x, g), _snap_inside(rect.y, limit_y, g))
        obstacles = self._tables_in(region.id, exclude_id=table.id)
        placed = find_non_overlapping_placement(rect, obstacles, bounds=Size(region.width, region.height))
        placed = placed.at(_snap_inside(placed.x, limit_x, g), _snap_inside(placed.y, limit_y, g))
        if any(rectangles_overlap(placed, o) for o in obstacles):
            raise PlacementError(f"В зале «{region.name or region.id}» нет свободного места рядом.")
        return placed

    def add_table(self, table_number: str, capacity: int = DEFAULT_TABLE_CAPACITY,
                  x: float = 0.0, y: float = 0.0, location_id: Optional[int] = None) -> Table:
        table = Table(self._next_id(self.tables), table_number, int(capacity))
        if location_id is not None:
            placed = self._place_in_region(table, self.region(location_id), x, y)
            table.location_id = location_id
        else:
            placed = self._free_rect(table, x, y)
        table.x, table.y = placed.x, placed.y
        self.tables[table.id] = table
        logger.info("table %s added (location=%s)", table.id, table.location_id)
        self._commit(COMMIT_TABLE, table)
        return table

    def drop_table(self, table_id: int, region_id: int, x: float, y: float) -> Table:
        """Стол брошен в зал region_id в точку (x, y) относительно начала зала."""
        table = self.table(table_id)
        placed = self._place_in_region(table, self.region(region_id), x, y)
        table.location_id = region_id
        table.x, table.y = placed.x, placed.y
        self._commit(COMMIT_TABLE, table)
        return table

    def _free_rect(self, table: Table, x: float, y: float) -> Rect:
        g = self.grid_size
        return Rect(max(0.0, snap_to_grid(x, g)), max(0.0, snap_to_grid(y, g)), table.width, table.height)

    def move_table(self, table_id: int, x: float, y: float) -> Table:
        """Перемещение в своих координатах: внутри зала как drop, вне зала свободно."""
        table = self.table(table_id)
        if table.location_id is not None:
            return self.drop_table(table_id, table.location_id, x, y)
        placed = self._free_rect(table, x, y)
        table.x, table.y = placed.x, placed.y
        self._commit(COMMIT_TABLE, table)
        return table

    def unassign_table(self, table_id: int, x: Optional[float] = None, y: Optional[float] = None) -> Table:
        """Стол вынесен за пределы залов; без (x, y) остаётся на том же месте холста."""
        table = self.table(table_id)
        if x is None or y is None:
            r = self.absolute_rect(table)
            x, y = r.x, r.y
        placed = self._free_rect(table, x, y)
        table.location_id = None
        table.x, table.y = placed.x, placed.y
        self._commit(COMMIT_TABLE, table)
        return table

    def update_table(self, table_id: int, table_number: Optional[str] = None,
                     capacity: Optional[int] = None, is_active: Optional[bool] = None) -> Table:
        table = self.table(table_id)
        if table_number is not None:
            table.table_number = table_number
        if capacity is not None:
            table.capacity = int(capacity)
        if is_active is not None:
            table.is_active = bool(is_active)
        self._commit(COMMIT_TABLE, table)
        return table

    def remove_table(self, table_id: int) -> Table:
        table = self.table(table_id)
        del self.tables[table_id]
        self._commit(COMMIT_TABLE_DELETED, table)
        return table

    def next_table_number(self) -> str:
        numbers = [int(t.table_number) for t in self.tables.values() if str(t.table_number).isdigit()]
        return str(max(numbers, default=0) + 1)

    def tables_for_region(self, region_id: int) -> List[Table]:
        return sorted((t for t in self._tables_in(region_id) if t.is_active), key=lambda t: t.id)

    def unassigned_tables(self) -> List[Table]:
        return sorted((t for t in self.tables.values() if t.location_id is None and t.is_active),
                      key=lambda t: t.id)

    def absolute_rect(self, table: Table) -> Rect:
        rect = Rect.of(table)
        if table.location_id is None:
            return rect
        region = self.region(table.location_id)
        return rect.moved(region.x, region.y)

    def canvas_bounds(self) -> CanvasBounds:
        return compute_canvas_bounds(self.regions.values())

    # ---- validation ----
    def validate(self) -> List[Dict[str, Any]]:
        """Нарушения инвариантов плана (для загруженных извне данных)."""
        issues: List[Dict[str, Any]] = []
        regions = list(self.regions.values())
        for i, a in enumerate(regions):
            for b in regions[i + 1:]:
                if rectangles_overlap(a, b):
                    issues.append({"type": "overlapping_regions", "ids": [a.id, b.id],
                                   "message": f"Regions {a.name or a.id} and {b.name or b.id} overlap"})
        for region in regions:
            tables = self._tables_in(region.id)
            for i, a in enumerate(tables):
                if a.x < 0 or a.y < 0 or a.x + a.width > region.width or a.y + a.height > region.height:
                    issues.append({"type": "table_out_of_bounds", "ids": [a.id],
                                   "message": f"Table {a.table_number or a.id} extends outside region {region.id}"})
                for b in tables[i + 1:]:
                    if rectangles_overlap(a, b):
                        issues.append({"type": "overlapping_tables", "ids": [a.id, b.id],
                                       "message": f"Tables {a.table_number or a.id} and {b.table_number or b.id} overlap"})
        for t in self.tables.values():
            if t.location_id is not None and t.location_id not in self.regions:
                issues.append({"type": "unknown_region", "ids": [t.id],
                               "message": f"Table {t.table_number or t.id} refers to missing region {t.location_id}"})
        return issues
