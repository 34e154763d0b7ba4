from .geometry import (Rect, Size, CanvasBounds, InvalidGeometryError, rectangles_overlap, snap_to_grid,
                       find_non_overlapping_placement, clamp_to_bounds, compute_canvas_bounds)
from .models import Region, Table, Mode, Layer
from .layout import FloorPlan, PlacementError, RecordNotFoundError
from .state import SceneState, ProjectFormatError
from .undo import UndoManager

# Qt-часть (scene, items, palette, properties) импортируется из подмодулей напрямую,
# чтобы геометрия и модель работали без PySide6.
__all__ = [
    "Rect", "Size", "CanvasBounds", "InvalidGeometryError",
    "rectangles_overlap", "snap_to_grid", "find_non_overlapping_placement",
    "clamp_to_bounds", "compute_canvas_bounds",
    "Region", "Table", "Mode", "Layer",
    "FloorPlan", "PlacementError", "RecordNotFoundError",
    "SceneState", "ProjectFormatError", "UndoManager",
]
