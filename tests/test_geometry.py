# Layout geometry tests
#
# Overlap test, grid snapping, free-placement search, bounds clamping and
# canvas bounds. Everything here is pure and runs without Qt.

import math

import pytest

from floorplan.geometry import (
    Rect, Size, CanvasBounds, InvalidGeometryError,
    rectangles_overlap, snap_to_grid, find_non_overlapping_placement,
    clamp_to_bounds, compute_canvas_bounds,
)
from floorplan.models import Region, Table


class TestRectanglesOverlap:

    def test_positive_area_intersection_overlaps(self):
        assert rectangles_overlap(Rect(0, 0, 50, 50), Rect(25, 25, 50, 50))

    def test_contained_rectangle_overlaps(self):
        assert rectangles_overlap(Rect(0, 0, 100, 100), Rect(10, 10, 20, 20))

    def test_touching_edges_do_not_overlap(self):
        """Rectangles sharing an edge are neighbours, not collisions."""
        assert not rectangles_overlap(Rect(0, 0, 50, 50), Rect(50, 0, 50, 50))
        assert not rectangles_overlap(Rect(0, 0, 50, 50), Rect(0, 50, 50, 50))
        assert not rectangles_overlap(Rect(0, 0, 50, 50), Rect(50, 50, 50, 50))

    def test_disjoint_rectangles_do_not_overlap(self):
        assert not rectangles_overlap(Rect(0, 0, 50, 50), Rect(100, 100, 10, 10))

    def test_zero_area_rectangle_never_overlaps(self):
        assert not rectangles_overlap(Rect(10, 10, 0, 0), Rect(0, 0, 50, 50))

    def test_is_symmetric(self):
        a, b = Rect(0, 0, 60, 40), Rect(30, 20, 60, 40)
        assert rectangles_overlap(a, b) == rectangles_overlap(b, a)

    def test_accepts_model_records(self):
        region = Region(1, "A", 0, 0, 200, 200)
        table = Table(1, "1", x=150, y=150)
        assert rectangles_overlap(region, table)

    def test_nan_coordinate_is_rejected(self):
        with pytest.raises(InvalidGeometryError):
            rectangles_overlap(Rect(math.nan, 0, 10, 10), Rect(0, 0, 10, 10))

    def test_negative_size_is_rejected(self):
        with pytest.raises(InvalidGeometryError):
            rectangles_overlap(Rect(0, 0, -10, 10), Rect(0, 0, 10, 10))


class TestSnapToGrid:

    @pytest.mark.parametrize("value,expected", [
        (0, 0), (9, 0), (10, 20), (29, 20), (30, 40), (60, 60), (-10, -20), (-9, 0),
    ])
    def test_rounds_half_away_from_zero(self, value, expected):
        assert snap_to_grid(value) == expected

    def test_custom_grid(self):
        assert snap_to_grid(37, 25) == 25
        assert snap_to_grid(38, 25) == 50

    @pytest.mark.parametrize("value", [-123.4, -10, 0, 7.5, 10, 33.3, 999.9])
    def test_is_idempotent(self, value):
        once = snap_to_grid(value, 20)
        assert snap_to_grid(once, 20) == once

    def test_non_positive_grid_is_rejected(self):
        with pytest.raises(InvalidGeometryError):
            snap_to_grid(10, 0)


class TestFindNonOverlappingPlacement:

    def test_no_obstacles_returns_proposed_unchanged(self):
        proposed = Rect(13, 17, 50, 50)
        assert find_non_overlapping_placement(proposed, []) == proposed

    def test_free_spot_is_kept(self):
        proposed = Rect(200, 200, 50, 50)
        assert find_non_overlapping_placement(proposed, [Rect(0, 0, 50, 50)]) == proposed

    def test_single_obstacle_moves_right_with_margin(self):
        result = find_non_overlapping_placement(Rect(0, 0, 50, 50), [Rect(0, 0, 50, 50)])
        assert result == Rect(60, 0, 50, 50)

    def test_row_of_obstacles_finds_free_slot(self):
        """Right slot is taken and left is off-canvas, so the table goes down."""
        obstacles = [Rect(0, 0, 50, 50), Rect(60, 0, 50, 50), Rect(120, 0, 50, 50)]
        result = find_non_overlapping_placement(Rect(0, 0, 50, 50), obstacles)
        assert result == Rect(0, 60, 50, 50)
        assert not any(rectangles_overlap(result, ob) for ob in obstacles)

    def test_row_of_obstacles_in_a_strip_skips_to_the_end(self):
        """With only horizontal room, retries walk past the occupied slots."""
        obstacles = [Rect(0, 0, 50, 50), Rect(60, 0, 50, 50), Rect(120, 0, 50, 50)]
        result = find_non_overlapping_placement(Rect(0, 0, 50, 50), obstacles, bounds=Size(240, 50))
        assert result == Rect(180, 0, 50, 50)

    @pytest.mark.parametrize("proposed,obstacles", [
        (Rect(100, 100, 50, 50), [Rect(90, 90, 50, 50)]),
        (Rect(100, 100, 50, 50), [Rect(100, 100, 50, 50), Rect(160, 100, 50, 50)]),
        (Rect(40, 40, 100, 100), [Rect(0, 0, 100, 100), Rect(110, 0, 100, 100), Rect(0, 110, 100, 100)]),
        (Rect(300, 0, 80, 40), [Rect(280, 0, 60, 60), Rect(350, 0, 60, 60)]),
    ])
    def test_result_clears_every_obstacle(self, proposed, obstacles):
        result = find_non_overlapping_placement(proposed, obstacles)
        assert not any(rectangles_overlap(result, ob) for ob in obstacles)
        assert result.x >= 0 and result.y >= 0
        assert (result.width, result.height) == (proposed.width, proposed.height)

    def test_no_admissible_candidate_fails_open(self):
        proposed = Rect(0, 0, 50, 50)
        result = find_non_overlapping_placement(proposed, [Rect(0, 0, 50, 50)], bounds=Size(50, 50))
        assert result == proposed

    def test_negative_candidates_are_skipped_without_bounds(self):
        proposed = Rect(-100, -100, 50, 50)
        assert find_non_overlapping_placement(proposed, [Rect(-100, -100, 50, 50)]) == proposed

    def test_negative_proposal_can_move_into_positive_area(self):
        result = find_non_overlapping_placement(Rect(-20, 10, 50, 50), [Rect(-20, 10, 50, 50)])
        assert result == Rect(40, 10, 50, 50)

    def test_exhausted_attempts_return_original(self):
        obstacles = [Rect(0, 0, 50, 50), Rect(60, 0, 50, 50), Rect(120, 0, 50, 50)]
        proposed = Rect(0, 0, 50, 50)
        result = find_non_overlapping_placement(proposed, obstacles, max_attempts=1, bounds=Size(240, 50))
        assert result == proposed

    def test_candidates_stay_inside_bounds(self):
        result = find_non_overlapping_placement(Rect(200, 100, 50, 50), [Rect(200, 100, 50, 50)],
                                                bounds=Size(250, 150))
        assert result.right <= 250 and result.bottom <= 150
        assert not rectangles_overlap(result, Rect(200, 100, 50, 50))

    def test_bad_attempt_budget_is_rejected(self):
        with pytest.raises(InvalidGeometryError):
            find_non_overlapping_placement(Rect(0, 0, 10, 10), [], max_attempts=0)


class TestClampToBounds:

    def test_inside_position_is_unchanged(self):
        assert clamp_to_bounds(Rect(10, 20, 50, 50), Size(300, 200)) == Rect(10, 20, 50, 50)

    def test_negative_position_goes_to_zero(self):
        assert clamp_to_bounds(Rect(-30, -5, 50, 50), Size(300, 200)) == Rect(0, 0, 50, 50)

    def test_far_position_goes_to_last_fitting_spot(self):
        assert clamp_to_bounds(Rect(290, 190, 50, 50), Size(300, 200)) == Rect(250, 150, 50, 50)

    def test_bounds_smaller_than_rect_clamp_to_zero(self):
        assert clamp_to_bounds(Rect(40, 40, 50, 50), Size(30, 30)) == Rect(0, 0, 50, 50)

    @pytest.mark.parametrize("x,y", [(-100, -100), (0, 0), (123, 45), (1000, 1000)])
    def test_result_fits_inside(self, x, y):
        r = clamp_to_bounds(Rect(x, y, 60, 40), Size(200, 100))
        assert 0 <= r.x and r.right <= 200
        assert 0 <= r.y and r.bottom <= 100


class TestComputeCanvasBounds:

    def test_empty_plan_uses_default_canvas(self):
        assert compute_canvas_bounds([]) == CanvasBounds(0, 0, 800, 600)

    def test_single_region_with_margin(self):
        bounds = compute_canvas_bounds([Rect(100, 100, 200, 150)])
        assert bounds == CanvasBounds(50, 50, 350, 300)
        assert (bounds.width, bounds.height) == (300, 250)

    def test_encloses_all_regions(self):
        regions = [Region(1, "A", 0, 0, 100, 100), Region(2, "B", 400, 300, 200, 100)]
        assert compute_canvas_bounds(regions) == CanvasBounds(-50, -50, 650, 450)
