"""
Геометрия плана зала: пересечения прямоугольников, привязка к сетке,
поиск свободного места, зажим в границы и рамка холста.

Модуль не зависит от Qt: всё работает с простыми значениями, у которых есть
x / y / width / height (Rect, Region, Table).
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence

from .utils import (GRID_SIZE, PLACEMENT_MARGIN, MAX_PLACEMENT_ATTEMPTS,
                    CANVAS_MARGIN, DEFAULT_CANVAS_W, DEFAULT_CANVAS_H)

logger = logging.getLogger(__name__)


class InvalidGeometryError(ValueError):
    """Нарушено предусловие: NaN/inf в координатах или отрицательный размер."""


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def moved(self, dx: float, dy: float) -> "Rect":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def at(self, x: float, y: float) -> "Rect":
        return replace(self, x=x, y=y)

    @classmethod
    def of(cls, obj) -> "Rect":
        """Rect из любого объекта с x/y/width/height (Region, Table, Rect)."""
        if isinstance(obj, Rect):
            return obj
        return cls(float(obj.x), float(obj.y), float(obj.width), float(obj.height))


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class CanvasBounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


# ---- проверки входа ----
def _check_number(name: str, value: float):
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidGeometryError(f"{name} must be a finite number, got {value!r}")


def as_rect(obj, what: str = "rect") -> Rect:
    """Rect из obj с проверкой: конечные числа, неотрицательный размер."""
    try:
        r = Rect.of(obj)
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidGeometryError(f"{what} is not a rectangle: {obj!r}") from e
    for name in ("x", "y", "width", "height"):
        _check_number(f"{what}.{name}", getattr(r, name))
    if r.width < 0 or r.height < 0:
        raise InvalidGeometryError(f"{what} has negative size: {r.width}x{r.height}")
    return r


# ---- операции ----
def rectangles_overlap(a, b) -> bool:
    """True, если внутренности пересекаются. Касание по ребру не считается пересечением."""
    a = as_rect(a, "a"); b = as_rect(b, "b")
    return (
        a.x < b.right and b.x < a.right and
        a.y < b.bottom and b.y < a.bottom and
        a.width > 0 and a.height > 0 and b.width > 0 and b.height > 0
    )


def snap_to_grid(value: float, grid_size: float = GRID_SIZE) -> float:
    """Ближайшее кратное grid_size; половина округляется от нуля."""
    _check_number("value", value)
    _check_number("grid_size", grid_size)
    if grid_size <= 0:
        raise InvalidGeometryError(f"grid_size must be positive, got {grid_size}")
    steps = math.floor(abs(value) / grid_size + 0.5)
    return math.copysign(steps * grid_size, value) if steps else 0.0


def clamp_to_bounds(rect, bounds) -> Rect:
    """Зажимает позицию в [0, bounds.width - w] x [0, bounds.height - h]."""
    r = as_rect(rect)
    _check_number("bounds.width", bounds.width)
    _check_number("bounds.height", bounds.height)
    max_x = max(0.0, bounds.width - r.width)
    max_y = max(0.0, bounds.height - r.height)
    return r.at(min(max(r.x, 0.0), max_x), min(max(r.y, 0.0), max_y))


def _candidates(rect: Rect, blocker: Rect, margin: float) -> List[Rect]:
    right = blocker.width + margin
    left = -(rect.width + margin)
    down = blocker.height + margin
    up = -(rect.height + margin)
    return [
        rect.moved(right, 0),
        rect.moved(left, 0),
        rect.moved(0, down),
        rect.moved(0, up),
        rect.moved(right, down),
        rect.moved(left, up),
    ]


def _admissible(rect: Rect, bounds) -> bool:
    if rect.x < 0 or rect.y < 0:
        return False
    if bounds is not None and (rect.right > bounds.width or rect.bottom > bounds.height):
        return False
    return True


def _overlap_count(rect: Rect, obstacles: Sequence[Rect]) -> int:
    return sum(1 for ob in obstacles if rectangles_overlap(rect, ob))


def find_non_overlapping_placement(proposed, obstacles: Iterable,
                                   max_attempts: int = MAX_PLACEMENT_ATTEMPTS,
                                   margin: float = PLACEMENT_MARGIN,
                                   bounds=None) -> Rect:
    """
    Ищет ближайшее к proposed место, не пересекающее ни одного препятствия.

    Перебирает шесть смещений от первого мешающего препятствия (вправо,
    влево, вниз, вверх, вправо+вниз, влево+вверх). Если ни одно не подходит,
    продолжает от лучшего кандидата (меньше всего пересечений), но не дольше
    max_attempts итераций. Если места так и не нашлось, возвращает исходный
    proposed: вызывающий сам решает, что делать с пересечением.
    Кандидаты с отрицательными координатами не рассматриваются даже без
    bounds: позиции на плане неотрицательны. Поэтому proposed в отрицательной
    области, упёршийся в препятствие, обычно возвращается как есть.
    С bounds отбрасываются и кандидаты, выходящие за bounds.width / bounds.height.
    """
    original = as_rect(proposed, "proposed")
    obs = [as_rect(o, "obstacle") for o in obstacles]
    _check_number("margin", margin)
    if not isinstance(max_attempts, int) or max_attempts < 1:
        raise InvalidGeometryError(f"max_attempts must be a positive int, got {max_attempts!r}")
    if bounds is not None:
        _check_number("bounds.width", bounds.width)
        _check_number("bounds.height", bounds.height)

    current = original
    for attempt in range(max_attempts):
        blocker = next((ob for ob in obs if rectangles_overlap(current, ob)), None)
        if blocker is None:
            if attempt:
                logger.debug("placement %s -> %s after %d attempt(s)", original, current, attempt)
            return current

        best: Optional[Rect] = None
        best_hits = None
        for cand in _candidates(current, blocker, margin):
            if not _admissible(cand, bounds):
                continue
            hits = _overlap_count(cand, obs)
            if hits == 0:
                logger.debug("placement %s -> %s after %d attempt(s)", original, cand, attempt + 1)
                return cand
            if best_hits is None or hits < best_hits:
                best, best_hits = cand, hits
        if best is None:
            # все шесть кандидатов вне допустимой области
            break
        current = best

    logger.warning("no free placement for %s among %d obstacle(s), keeping it", original, len(obs))
    return original


def compute_canvas_bounds(regions: Iterable, margin: float = CANVAS_MARGIN) -> CanvasBounds:
    """Рамка вокруг всех залов плюс margin с каждой стороны; без залов берётся холст по умолчанию."""
    rects = [as_rect(r, "region") for r in regions]
    if not rects:
        return CanvasBounds(0.0, 0.0, float(DEFAULT_CANVAS_W), float(DEFAULT_CANVAS_H))
    return CanvasBounds(
        min(r.x for r in rects) - margin,
        min(r.y for r in rects) - margin,
        max(r.right for r in rects) + margin,
        max(r.bottom for r in rects) + margin,
    )
