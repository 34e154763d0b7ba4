from __future__ import annotations
import json
import logging
from collections import deque
from typing import Callable, Deque, List, NamedTuple, Optional

from .utils import AUTOSAVE_PATH, UNDO_DEPTH

logger = logging.getLogger(__name__)


class Snapshot(NamedTuple):
    label: str
    data: str  # JSON плана, как его отдаёт SceneState.serialize


class UndoManager:
    """
    История снимков плана. Верх стека undo хранит текущее состояние сцены.
    Каждый новый снимок сразу пишется в autosave.
    """
    def __init__(self, on_change: Optional[Callable[[], None]] = None,
                 autosave_path: Optional[str] = AUTOSAVE_PATH, depth: int = UNDO_DEPTH):
        self._undo: Deque[Snapshot] = deque(maxlen=depth + 1)
        self._redo: List[Snapshot] = []
        self.autosave_path = autosave_path
        self.on_change = on_change

    def _changed(self):
        if self.on_change: self.on_change()

    def push(self, data: str, label: str = ""):
        if self._undo and self._undo[-1].data == data:
            return
        self._undo.append(Snapshot(label, data))
        self._redo.clear()
        self._autosave(data)
        self._changed()

    def reset(self, data: str):
        """Новая история (открыт проект): откатывать некуда."""
        self._undo.clear()
        self._undo.append(Snapshot("open", data))
        self._redo.clear()
        self._changed()

    def can_undo(self) -> bool:
        return len(self._undo) > 1

    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo_label(self) -> str:
        return self._undo[-1].label if self.can_undo() else ""

    def redo_label(self) -> str:
        return self._redo[-1].label if self._redo else ""

    def undo(self) -> Optional[str]:
        if not self.can_undo():
            return None
        self._redo.append(self._undo.pop())
        self._changed()
        return self._undo[-1].data

    def redo(self) -> Optional[str]:
        if not self._redo:
            return None
        snap = self._redo.pop()
        self._undo.append(snap)
        self._changed()
        return snap.data

    def top(self) -> Optional[str]:
        return self._undo[-1].data if self._undo else None

    def _autosave(self, data: str):
        if not self.autosave_path:
            return
        try:
            plan = json.loads(data)
            with open(self.autosave_path, "w", encoding="utf-8") as f:
                json.dump(plan, f, ensure_ascii=False, indent=2)
        except (OSError, ValueError):
            logger.exception("autosave to %s failed", self.autosave_path)
