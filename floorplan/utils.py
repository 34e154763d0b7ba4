from __future__ import annotations
import os

# ===== Canvas / grid =====
GRID_SIZE = 20.0
GRID_STEP = GRID_SIZE
MAJOR_EVERY = 5
DEFAULT_CANVAS_W = 800.0
DEFAULT_CANVAS_H = 600.0
CANVAS_MARGIN = 50.0

# ===== Placement =====
PLACEMENT_MARGIN = 10.0
MAX_PLACEMENT_ATTEMPTS = 50
MIN_REGION_SIZE = 100.0
TABLE_SIZE = 50.0
DEFAULT_TABLE_CAPACITY = 4

# ===== Colors (без Qt, QColor собирается в items.py) =====
REGION_FILL_RGBA = (37, 99, 235, 70)
REGION_BORDER = "#1E5AC8"
TABLE_FILL_RGBA = (34, 197, 94, 200)
TABLE_BORDER = "#15803D"
TABLE_INACTIVE_RGBA = (148, 163, 184, 140)
BG_COLOR = "#F2F4F7"
GRID_MINOR = "#D0D6E0"
GRID_MAJOR = "#A8B3C2"
SCENE_BORDER = "#111827"
SCENE_BORDER_W = 2

# ===== Files / settings =====
AUTOSAVE_PATH = "floorplan_autosave.json"
UNDO_DEPTH = 100
SETTINGS_ORG = "RestaurantFloorPlan"
SETTINGS_APP = "Editor"
LOG_LEVEL_ENV = "FLOORPLAN_LOG_LEVEL"


def log_level_from_env(default: str = "INFO") -> str:
    return os.environ.get(LOG_LEVEL_ENV, default).upper()
