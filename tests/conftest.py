"""
Pytest configuration for the floor-plan editor tests.

Qt runs on the offscreen platform so the scene tests work without a display.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from floorplan import FloorPlan


@pytest.fixture
def commits():
    """List that collects (kind, record id) for every on_commit call."""
    return []


@pytest.fixture
def plan(commits):
    """Empty floor plan recording its commits."""
    return FloorPlan(on_commit=lambda kind, record: commits.append((kind, record.id)))


@pytest.fixture
def hall(plan):
    """A 300x200 region at the canvas origin."""
    return plan.add_region("Main hall", 0, 0, 300, 200)
