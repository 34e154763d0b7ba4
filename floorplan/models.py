from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .utils import GRID_SIZE, TABLE_SIZE, DEFAULT_TABLE_CAPACITY


@dataclass
class Region:
    """Зал (location). Столы внутри хранят координаты относительно (x, y) зала."""
    id: int
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = 300.0
    height: float = 200.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def grid_size(self) -> float:
        try:
            g = float(self.metadata.get("gridSize", GRID_SIZE))
        except (TypeError, ValueError):
            return GRID_SIZE
        return g if g > 0 else GRID_SIZE

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position_x": self.x,
            "position_y": self.y,
            "width": self.width,
            "height": self.height,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_payload(cls, d: Dict[str, Any]) -> "Region":
        return cls(
            id=int(d["id"]),
            name=str(d.get("name", "")),
            x=float(d.get("position_x", d.get("x", 0))),
            y=float(d.get("position_y", d.get("y", 0))),
            width=float(d["width"]),
            height=float(d["height"]),
            metadata=dict(d.get("metadata") or {}),
        )


@dataclass
class Table:
    """Стол. при location_id=None стол не привязан к залу и стоит в координатах холста."""
    id: int
    table_number: str = ""
    capacity: int = DEFAULT_TABLE_CAPACITY
    x: float = 0.0
    y: float = 0.0
    width: float = TABLE_SIZE
    height: float = TABLE_SIZE
    location_id: Optional[int] = None
    is_active: bool = True

    @property
    def assigned(self) -> bool:
        return self.location_id is not None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "table_number": self.table_number,
            "capacity": self.capacity,
            "position_x": self.x,
            "position_y": self.y,
            "width": self.width,
            "height": self.height,
            "location_id": self.location_id,
            "is_active": self.is_active,
        }

    @classmethod
    def from_payload(cls, d: Dict[str, Any]) -> "Table":
        loc = d.get("location_id")
        return cls(
            id=int(d["id"]),
            table_number=str(d.get("table_number", "")),
            capacity=int(d.get("capacity", DEFAULT_TABLE_CAPACITY)),
            x=float(d.get("position_x", d.get("x", 0)) or 0),
            y=float(d.get("position_y", d.get("y", 0)) or 0),
            width=float(d.get("width", TABLE_SIZE)),
            height=float(d.get("height", TABLE_SIZE)),
            location_id=int(loc) if loc is not None else None,
            is_active=bool(d.get("is_active", True)),
        )


class Mode:
    EDIT = "edit"
    VIEW = "view"

class Layer:
    REGIONS = "regions"
    TABLES = "tables"
